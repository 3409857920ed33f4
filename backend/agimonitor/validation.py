"""Second-opinion re-validation of a stored analysis.

A separate oracle call reviews the earlier verdict. Its score is combined
with fresh heuristics against the prior score floor; its recommendation may
steer the severity, but severity never drops below what was stored.
"""

from __future__ import annotations

import functools
import logging

import anyio

from agimonitor.db import utc_now_iso
from agimonitor.jobs.deadlines import with_deadline
from agimonitor.jobs.store import AnalysisStore
from agimonitor.jobs.worker import dedupe_indicators, evidence_for_document
from agimonitor.llm.oracle import ModelOracle
from agimonitor.models.analysis import AnalysisResult, LastValidation, Severity
from agimonitor.scoring.combiner import combine_scores
from agimonitor.scoring.corroboration import check_cross_references
from agimonitor.scoring.heuristic import score_heuristics
from agimonitor.scoring.secrecy import detect_secrecy_indicators, secrecy_boost
from agimonitor.scoring.severity import apply_evidence_gate, apply_validation_override, severity_for_score
from agimonitor.settings import Settings

logger = logging.getLogger(__name__)


async def revalidate_analysis(
    analysis_id: str,
    *,
    store: AnalysisStore,
    oracle: ModelOracle,
    settings: Settings,
) -> AnalysisResult:
    """Re-score an analysis with a second oracle call.

    Raises:
        KeyError: if the analysis or its document does not exist.
        OperationTimeoutError: if the validation call exceeds its deadline.
    """
    analysis = await store.get_analysis(analysis_id)
    if analysis is None:
        raise KeyError(analysis_id)
    doc = await store.get_document(analysis.document_id)
    if doc is None:
        raise KeyError(analysis.document_id)

    verdict = await with_deadline(
        anyio.to_thread.run_sync(
            functools.partial(
                oracle.validate,
                analysis,
                title=doc.title,
                content=doc.content,
                timeout=settings.oracle_timeout_s,
            ),
            abandon_on_cancel=True,
        ),
        settings.oracle_timeout_s,
        "validation",
    )

    penalty = 0.0
    signals = []
    if analysis.severity.rank >= Severity.HIGH.rank:
        corroboration = check_cross_references(
            analysis.cross_references,
            await store.known_sources(),
            penalty=settings.validation_corroboration_penalty,
        )
        penalty = corroboration.penalty
        penalty_signal = corroboration.signal()
        if penalty_signal is not None:
            signals.append(penalty_signal)

    bundle = await evidence_for_document(doc, store)
    heuristic = score_heuristics(bundle.claims, bundle.snippets, heuristic_max=settings.heuristic_max)
    boost = secrecy_boost(detect_secrecy_indicators(doc.content, doc.source))

    # A malformed reply parses to 0; keep the stored model score instead.
    model_score = verdict.validated_score or analysis.model_score or analysis.score
    breakdown = combine_scores(
        model_score=model_score,
        heuristic_score=heuristic.score,
        secrecy_boost=boost,
        corroboration_penalty=penalty,
        signals=[*heuristic.signals, *signals],
        prior_score=analysis.score,
        model_weight=settings.model_score_weight,
        heuristic_weight=settings.heuristic_score_weight,
    )
    computed = apply_evidence_gate(severity_for_score(breakdown.combined_score), bundle.claims)
    severity = apply_validation_override(computed, verdict.recommendation, analysis.severity)

    validated_at = utc_now_iso()
    updated = analysis.model_copy(
        update={
            "score": breakdown.combined_score,
            "model_score": breakdown.model_score,
            "heuristic_score": breakdown.heuristic_score,
            "secrecy_boost": boost,
            "corroboration_penalty": penalty,
            "confidence": min(1.0, analysis.confidence + (0.2 if verdict.agrees else 0.1)),
            "severity": severity,
            "indicators": dedupe_indicators([*analysis.indicators, *verdict.additional_indicators]),
            "requires_verification": analysis.requires_verification or penalty > 0,
            "breakdown": breakdown,
            "last_validation": LastValidation(
                validated_at=validated_at,
                agrees=verdict.agrees,
                validated_score=verdict.validated_score,
                recommendation=verdict.recommendation,
                reasoning=verdict.reasoning,
                previous_score=analysis.score,
                previous_severity=analysis.severity,
                corroboration_penalty=penalty,
            ),
            "validated_at": validated_at,
        }
    )
    logger.info(
        "Re-validated %s: %.3f -> %.3f, %s -> %s (%s)",
        analysis_id,
        analysis.score,
        updated.score,
        analysis.severity.value,
        severity.value,
        verdict.recommendation.value,
    )
    return await store.update_validation(updated)
