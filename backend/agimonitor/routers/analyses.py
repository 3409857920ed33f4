"""Read-only analysis listing router."""

from fastapi import APIRouter, HTTPException, Query

from agimonitor.db import get_analysis, list_analyses
from agimonitor.models.analysis import AnalysisResult
from agimonitor.schemas import AnalysisSummary
from agimonitor.settings import settings

router = APIRouter(prefix="/api/analyses", tags=["analyses"])


def to_summary(result: AnalysisResult) -> AnalysisSummary:
    return AnalysisSummary(
        id=result.id,
        document_id=result.document_id,
        score=result.score,
        confidence=result.confidence,
        severity=result.severity.value,
        indicators=result.indicators,
        explanation=result.explanation,
        evidence_quality=result.evidence_quality,
        requires_verification=result.requires_verification,
        cross_references=result.cross_references,
        breakdown=result.breakdown.model_dump(),
        last_validation=result.last_validation.model_dump(mode="json") if result.last_validation else None,
        validated_at=result.validated_at,
        created_at=result.created_at,
    )


@router.get("", response_model=list[AnalysisSummary])
def api_list_analyses(limit: int = Query(200, ge=1, le=1000)) -> list[AnalysisSummary]:
    return [to_summary(r) for r in list_analyses(settings.db_path, limit=limit)]


@router.get("/{analysis_id}", response_model=AnalysisSummary)
def api_get_analysis(analysis_id: str) -> AnalysisSummary:
    result = get_analysis(settings.db_path, analysis_id)
    if result is None:
        raise HTTPException(status_code=404, detail="Analysis not found")
    return to_summary(result)
