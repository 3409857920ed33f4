"""Records shared across acquisition, scoring, and the analysis worker."""

from agimonitor.models.analysis import (
    AnalysisResult,
    HeuristicResult,
    HeuristicSignal,
    LastValidation,
    OracleVerdict,
    Recommendation,
    ScoreBreakdown,
    Severity,
    ValidationVerdict,
)
from agimonitor.models.documents import Document, build_document, document_id
from agimonitor.models.evidence import Claim, EvidenceBundle, EvidenceSnippet
from agimonitor.models.jobs import AnalysisJob, JobStatus

__all__ = [
    "AnalysisJob",
    "AnalysisResult",
    "Claim",
    "Document",
    "EvidenceBundle",
    "EvidenceSnippet",
    "HeuristicResult",
    "HeuristicSignal",
    "JobStatus",
    "LastValidation",
    "OracleVerdict",
    "Recommendation",
    "ScoreBreakdown",
    "Severity",
    "ValidationVerdict",
    "build_document",
    "document_id",
]
