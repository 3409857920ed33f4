"""Batch analysis worker.

A job pulls up to ``analyze_job_limit`` documents that have no analysis yet,
scores them in small concurrent batches, and persists progress after every
batch. Documents that already have an analysis are skipped, so re-running a
job (or resuming one after a restart) never produces a second result.
"""

from __future__ import annotations

import asyncio
import functools
import logging
import math
import time
import uuid
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum

import anyio

from agimonitor.db import utc_now_iso
from agimonitor.evidence.extractor import EvidenceExtractor
from agimonitor.jobs.deadlines import OperationTimeoutError, with_deadline
from agimonitor.jobs.store import AnalysisStore
from agimonitor.jobs.trends import update_trend_snapshots
from agimonitor.llm.oracle import ModelOracle, OracleRequest
from agimonitor.llm.providers import get_llm_client
from agimonitor.llm.translation import Translation, Translator
from agimonitor.models.analysis import AnalysisResult, ScoreBreakdown, Severity
from agimonitor.models.documents import Document
from agimonitor.models.evidence import Claim, EvidenceBundle
from agimonitor.models.jobs import AnalysisJob, JobStatus
from agimonitor.scoring.combiner import combine_scores
from agimonitor.scoring.corroboration import check_cross_references
from agimonitor.scoring.heuristic import score_heuristics
from agimonitor.scoring.secrecy import detect_secrecy_indicators, secrecy_boost
from agimonitor.scoring.severity import apply_evidence_gate, max_severity, severity_for_score
from agimonitor.scoring.triage import FILTERED_CONFIDENCE, FILTERED_SCORE, TriageResult, run_triage
from agimonitor.settings import Settings

logger = logging.getLogger(__name__)


class DocumentOutcome(str, Enum):
    ANALYZED = "analyzed"
    FILTERED = "filtered"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass
class WorkerContext:
    store: AnalysisStore
    oracle: ModelOracle
    settings: Settings
    translator: Translator | None = None


def build_oracle(settings: Settings) -> tuple[ModelOracle, Translator | None]:
    """Create the oracle (and translator) for the configured provider.

    Raises ValueError when the provider is not configured.
    """
    provider = get_llm_client(settings.llm_provider.value, ollama_base_url=settings.ollama_base_url)
    oracle = ModelOracle(provider, model=settings.llm_model)
    translator = Translator(provider, model=settings.resolved_translation_model) if settings.translation_enabled else None
    return oracle, translator


def _merge_claims(primary: list[Claim], extra: list[Claim]) -> list[Claim]:
    seen = {c.claim for c in primary}
    merged = list(primary)
    for claim in extra:
        if claim.claim not in seen:
            seen.add(claim.claim)
            merged.append(claim)
    return merged


def dedupe_indicators(items: list[str]) -> list[str]:
    return list(dict.fromkeys(i for i in items if i))


def filtered_result(doc: Document, triage: TriageResult) -> AnalysisResult:
    return AnalysisResult(
        id=uuid.uuid4().hex,
        document_id=doc.id,
        score=FILTERED_SCORE,
        model_score=0.0,
        heuristic_score=0.0,
        confidence=FILTERED_CONFIDENCE,
        severity=Severity.LOW,
        indicators=[],
        explanation=f"Filtered by triage: {triage.reason}",
        evidence_quality="filtered",
        breakdown=ScoreBreakdown(combined_score=FILTERED_SCORE, filtered=True, filter_reason=triage.reason),
        created_at=utc_now_iso(),
    )


async def evidence_for_document(doc: Document, store: AnalysisStore) -> EvidenceBundle:
    bundle = doc.evidence or EvidenceBundle()
    if bundle.claims:
        return bundle
    stored = await store.list_claims(doc.id)
    if stored:
        snippets = bundle.snippets or EvidenceExtractor().extract(doc.content, title=doc.title).snippets
        return EvidenceBundle(snippets=snippets, claims=stored)
    rebuilt = EvidenceExtractor().extract(doc.content, title=doc.title)
    if rebuilt.claims:
        await store.store_claims(doc.id, rebuilt.claims)
    return EvidenceBundle(snippets=bundle.snippets or rebuilt.snippets, claims=rebuilt.claims)


async def _translate(ctx: WorkerContext, doc: Document, snippets: list[str]) -> Translation:
    if ctx.translator is None:
        return Translation(title=doc.title)
    call = functools.partial(
        ctx.translator.translate_if_non_english,
        doc.title,
        doc.content,
        snippets,
        timeout=ctx.settings.oracle_timeout_s,
    )
    try:
        return await with_deadline(
            anyio.to_thread.run_sync(call, abandon_on_cancel=True),
            ctx.settings.oracle_timeout_s,
            "translation",
        )
    except OperationTimeoutError as e:
        logger.warning("%s; scoring untranslated text for %s", e, doc.id)
        return Translation(title=doc.title)


async def analyze_document(doc: Document, ctx: WorkerContext) -> DocumentOutcome:
    """Score one document and persist the result."""
    settings = ctx.settings
    store = ctx.store

    if await store.find_existing(doc.id):
        return DocumentOutcome.SKIPPED

    if settings.triage_enabled:
        triage = run_triage(doc.title, doc.content)
        if triage.skip:
            logger.info("Triage filtered %r: %s", doc.title[:80], triage.reason)
            inserted = await store.insert_analysis(filtered_result(doc, triage))
            return DocumentOutcome.FILTERED if inserted else DocumentOutcome.SKIPPED

    bundle = await evidence_for_document(doc, store)
    snippets = [s.text for s in bundle.snippets]
    translation = await _translate(ctx, doc, snippets)

    request = OracleRequest(
        title=doc.title,
        content=doc.content,
        snippets=snippets,
        translated_title=translation.title if translation.translated else None,
        translated_snippets=translation.snippets,
    )
    verdict = await with_deadline(
        anyio.to_thread.run_sync(
            functools.partial(ctx.oracle.score, request, timeout=settings.oracle_timeout_s),
            abandon_on_cancel=True,
        ),
        settings.oracle_timeout_s,
        "oracle",
    )

    claims = list(bundle.claims)
    if translation.snippets:
        translated = EvidenceExtractor().extract("\n".join(translation.snippets))
        claims = _merge_claims(claims, translated.claims)

    heuristic = score_heuristics(claims, bundle.snippets, heuristic_max=settings.heuristic_max)
    secrecy = detect_secrecy_indicators(doc.content, doc.source)
    boost = secrecy_boost(secrecy)
    corroboration = check_cross_references(
        verdict.cross_references,
        await store.known_sources(),
        penalty=settings.analysis_corroboration_penalty,
    )

    signals = list(heuristic.signals)
    penalty_signal = corroboration.signal()
    if penalty_signal is not None:
        signals.append(penalty_signal)

    breakdown = combine_scores(
        model_score=verdict.score,
        heuristic_score=heuristic.score,
        secrecy_boost=boost,
        corroboration_penalty=corroboration.penalty,
        signals=signals,
        model_weight=settings.model_score_weight,
        heuristic_weight=settings.heuristic_score_weight,
    )
    severity = max_severity(severity_for_score(breakdown.combined_score), verdict.severity)
    severity = apply_evidence_gate(severity, claims)

    result = AnalysisResult(
        id=uuid.uuid4().hex,
        document_id=doc.id,
        score=breakdown.combined_score,
        model_score=breakdown.model_score,
        heuristic_score=breakdown.heuristic_score,
        secrecy_boost=boost,
        corroboration_penalty=corroboration.penalty,
        confidence=verdict.confidence,
        severity=severity,
        indicators=dedupe_indicators([*verdict.indicators, *(i.description for i in secrecy)]),
        explanation=verdict.explanation,
        evidence_quality=verdict.evidence_quality,
        requires_verification=verdict.requires_verification or corroboration.penalty > 0,
        cross_references=verdict.cross_references,
        breakdown=breakdown,
        created_at=utc_now_iso(),
    )
    if not await store.insert_analysis(result):
        return DocumentOutcome.SKIPPED

    await store.record_metrics(
        result.id,
        {
            "score": result.score,
            "model_score": result.model_score,
            "heuristic_score": result.heuristic_score,
            "confidence": result.confidence,
            "indicator_count": float(len(result.indicators)),
        },
    )
    return DocumentOutcome.ANALYZED


async def _process(doc: Document, ctx: WorkerContext) -> DocumentOutcome:
    try:
        return await analyze_document(doc, ctx)
    except OperationTimeoutError as e:
        logger.warning("Document %s failed: %s", doc.id, e)
    except Exception:  # noqa: BLE001
        logger.exception("Document %s failed", doc.id)
    return DocumentOutcome.FAILED


async def run_analysis_job(
    job_id: str,
    *,
    store: AnalysisStore,
    settings: Settings,
    oracle: ModelOracle | None = None,
    translator: Translator | None = None,
    oracle_factory: Callable[[Settings], tuple[ModelOracle, Translator | None]] = build_oracle,
    sleep_fn: Callable[[float], Awaitable[None]] = asyncio.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> AnalysisJob | None:
    """Run one job to completion. Only unexpected errors mark the job failed."""
    try:
        if oracle is None:
            oracle, translator = oracle_factory(settings)
        ctx = WorkerContext(store=store, oracle=oracle, settings=settings, translator=translator)

        docs = await store.list_unanalyzed(limit=settings.analyze_job_limit)
        total = len(docs)
        await store.set_job_status(
            job_id,
            JobStatus.RUNNING,
            total_articles=total,
            processed_articles=0,
            successful_analyses=0,
            failed_analyses=0,
            skipped_analyses=0,
            started_at_utc=utc_now_iso(),
        )
        logger.info("Job %s started with %s documents", job_id, total)

        batch_size = max(1, settings.analyze_batch_size)
        counts = {outcome: 0 for outcome in DocumentOutcome}
        batch_times: list[float] = []

        for start in range(0, total, batch_size):
            batch = docs[start : start + batch_size]
            batch_no = start // batch_size + 1
            await store.update_job_progress(job_id, current_article=batch[0].title)
            started = clock()
            try:
                outcomes = await with_deadline(
                    asyncio.gather(*(_process(doc, ctx) for doc in batch)),
                    settings.batch_timeout_s,
                    f"batch {batch_no}",
                )
            except OperationTimeoutError as e:
                logger.warning("Job %s: %s; counting %s documents as failed", job_id, e, len(batch))
                outcomes = [DocumentOutcome.FAILED] * len(batch)
            batch_times.append(clock() - started)

            for outcome in outcomes:
                counts[outcome] += 1
            processed = start + len(batch)
            avg = sum(batch_times) / len(batch_times)
            remaining_batches = math.ceil((total - processed) / batch_size)
            await store.update_job_progress(
                job_id,
                processed_articles=processed,
                successful_analyses=counts[DocumentOutcome.ANALYZED] + counts[DocumentOutcome.FILTERED],
                failed_analyses=counts[DocumentOutcome.FAILED],
                skipped_analyses=counts[DocumentOutcome.SKIPPED],
                current_article=batch[-1].title,
                avg_batch_time_s=round(avg, 3),
                estimated_time_remaining_s=int(round(avg * remaining_batches)),
            )
            logger.info("Job %s batch %s done in %.2fs (%s/%s)", job_id, batch_no, batch_times[-1], processed, total)
            if processed < total:
                await sleep_fn(settings.inter_batch_delay_s)

        try:
            await update_trend_snapshots(store)
        except Exception as e:  # noqa: BLE001
            logger.warning("Trend snapshot update failed for job %s: %s", job_id, e)

        await store.set_job_status(
            job_id,
            JobStatus.COMPLETED,
            current_article=None,
            estimated_time_remaining_s=0,
            completed_at_utc=utc_now_iso(),
        )
        logger.info("Job %s completed", job_id)
    except Exception as e:
        logger.exception("Job %s failed", job_id)
        await store.set_job_status(job_id, JobStatus.FAILED, error=str(e), completed_at_utc=utc_now_iso())
    return await store.get_job(job_id)
