"""Tests for the batch analysis worker."""
from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

from agimonitor import db
from agimonitor.jobs.store import AnalysisStore
from agimonitor.jobs.worker import evidence_for_document, run_analysis_job
from agimonitor.models.analysis import OracleVerdict, Severity
from agimonitor.models.jobs import JobStatus
from agimonitor.settings import Settings
from tests.factories import FakeOracle, make_claim, make_document, no_sleep


def _seed(db_path: Path, *docs) -> None:
    for doc in docs:
        db.upsert_document(db_path, doc)


async def _run(db_path: Path, settings: Settings, **kwargs):
    store = AnalysisStore(db_path, op_timeout_s=settings.db_op_timeout_s)
    job = await store.create_job()
    kwargs.setdefault("sleep_fn", no_sleep)
    return await run_analysis_job(job.job_id, store=store, settings=settings, **kwargs)


@pytest.mark.asyncio
async def test_job_scores_and_filters_documents(db_path: Path, test_settings: Settings) -> None:
    capability_a = make_document(title="Reasoning model A")
    capability_b = make_document(title="Reasoning model B")
    hiring = make_document(title="We are hiring", content="Join our team in Zurich.")
    _seed(db_path, capability_a, capability_b, hiring)
    oracle = FakeOracle(OracleVerdict(score=0.5, confidence=0.6, severity="medium", indicators=["transfer"]))

    job = await _run(db_path, test_settings, oracle=oracle)

    assert job.status is JobStatus.COMPLETED
    assert job.total_articles == 3
    assert job.processed_articles == 3
    assert job.successful_analyses == 3
    assert job.failed_analyses == 0
    assert job.skipped_analyses == 0
    assert job.completed_at_utc is not None
    assert len(oracle.requests) == 2

    filtered = db.get_analysis_for_document(db_path, hiring.id)
    assert filtered is not None
    assert filtered.score == 0.05
    assert filtered.confidence == 0.9
    assert filtered.severity is Severity.LOW
    assert filtered.evidence_quality == "filtered"
    assert filtered.breakdown.filtered is True

    scored = db.get_analysis_for_document(db_path, capability_a.id)
    assert scored is not None
    assert scored.score >= 0.5
    assert scored.model_score == 0.5
    assert scored.heuristic_score > 0
    assert scored.severity.rank >= Severity.MEDIUM.rank
    assert "transfer" in scored.indicators
    assert db.list_evidence_claims(db_path, document_id=capability_a.id)
    assert db.list_historical_metrics(db_path, analysis_id=scored.id)["model_score"] == 0.5

    daily = db.list_trend_snapshots(db_path, period="daily")
    assert len(daily) == 1
    assert daily[0].total_analyses == 3


@pytest.mark.asyncio
async def test_rerun_is_idempotent(db_path: Path, test_settings: Settings) -> None:
    _seed(db_path, make_document(title="Reasoning model"))
    oracle = FakeOracle()

    first = await _run(db_path, test_settings, oracle=oracle)
    second = await _run(db_path, test_settings, oracle=oracle)

    assert first.successful_analyses == 1
    assert second.status is JobStatus.COMPLETED
    assert second.total_articles == 0
    assert len(oracle.requests) == 1
    assert len(db.list_analyses(db_path)) == 1


@pytest.mark.asyncio
async def test_critical_requires_benchmark_delta(db_path: Path, test_settings: Settings) -> None:
    no_delta = make_document(
        title="Model update",
        content="Our model achieves state of the art accuracy on the MMLU benchmark.",
    )
    with_delta = make_document(title="Reasoning model")
    _seed(db_path, no_delta, with_delta)
    oracle = FakeOracle(OracleVerdict(score=0.95, confidence=0.8, severity="critical"))

    await _run(db_path, test_settings, oracle=oracle)

    assert db.get_analysis_for_document(db_path, no_delta.id).severity is Severity.HIGH
    assert db.get_analysis_for_document(db_path, with_delta.id).severity is Severity.CRITICAL


@pytest.mark.asyncio
async def test_unverified_cross_references_are_penalized(db_path: Path, test_settings: Settings) -> None:
    doc = make_document(title="Reasoning model")
    _seed(db_path, doc)
    oracle = FakeOracle(OracleVerdict(score=0.5, confidence=0.6, cross_references=["Some Unknown Lab"]))

    await _run(db_path, test_settings, oracle=oracle)

    result = db.get_analysis_for_document(db_path, doc.id)
    assert result.corroboration_penalty == pytest.approx(0.15)
    assert result.requires_verification is True
    assert "unverified_cross_reference" in [s.name for s in result.breakdown.signals]


@pytest.mark.asyncio
async def test_oracle_error_counts_as_failed_document(db_path: Path, test_settings: Settings) -> None:
    doc = make_document(title="Reasoning model")
    _seed(db_path, doc)

    job = await _run(db_path, test_settings, oracle=FakeOracle(error=RuntimeError("provider down")))

    assert job.status is JobStatus.COMPLETED
    assert job.failed_analyses == 1
    assert job.successful_analyses == 0
    assert db.get_analysis_for_document(db_path, doc.id) is None


@pytest.mark.asyncio
async def test_batch_timeout_fails_whole_batch(db_path: Path, test_settings: Settings) -> None:
    _seed(db_path, make_document(title="Reasoning model A"), make_document(title="Reasoning model B"))
    settings = test_settings.model_copy(update={"batch_timeout_s": 0.2, "oracle_timeout_s": 5.0})

    job = await _run(db_path, settings, oracle=FakeOracle(delay_s=0.5))
    # let the abandoned oracle threads finish before the loop closes
    await asyncio.sleep(0.7)

    assert job.status is JobStatus.COMPLETED
    assert job.processed_articles == 2
    assert job.failed_analyses == 2
    assert job.successful_analyses == 0


@pytest.mark.asyncio
async def test_missing_provider_fails_job(db_path: Path, test_settings: Settings) -> None:
    _seed(db_path, make_document())

    def broken_factory(settings: Settings):
        raise ValueError("OPENAI_API_KEY not set")

    job = await _run(db_path, test_settings, oracle_factory=broken_factory)

    assert job.status is JobStatus.FAILED
    assert "OPENAI_API_KEY" in (job.error or "")
    assert db.list_analyses(db_path) == []


@pytest.mark.asyncio
async def test_progress_estimate_between_batches(db_path: Path, test_settings: Settings) -> None:
    _seed(db_path, *(make_document(title=f"Reasoning model {i}") for i in range(3)))
    sleeps: list[float] = []

    async def record_sleep(seconds: float) -> None:
        sleeps.append(seconds)

    settings = test_settings.model_copy(update={"analyze_batch_size": 2, "inter_batch_delay_s": 1.5})
    job = await _run(db_path, settings, oracle=FakeOracle(), sleep_fn=record_sleep)

    assert sleeps == [1.5]
    assert job.processed_articles == 3
    assert job.estimated_time_remaining_s == 0
    assert job.avg_batch_time_s is not None


@pytest.mark.asyncio
async def test_stored_claims_still_get_snippets(db_path: Path) -> None:
    doc = make_document()
    _seed(db_path, doc)
    db.upsert_evidence_claims(db_path, document_id=doc.id, claims=[make_claim()])

    bundle = await evidence_for_document(doc, AnalysisStore(db_path))

    assert [c.claim for c in bundle.claims] == ["MMLU 87.5%"]
    assert len(bundle.snippets) > 1
    assert any("ARC-AGI" in s.text for s in bundle.snippets)
