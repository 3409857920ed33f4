"""Async persistence adapter used by the analysis worker.

Every call runs the blocking sqlite function on a worker thread under a
deadline, so a stuck database surfaces as OperationTimeoutError instead of
hanging a batch.
"""

from __future__ import annotations

import functools
import logging
from collections.abc import Callable
from pathlib import Path
from typing import Any, TypeVar

import anyio

from agimonitor import db
from agimonitor.jobs.deadlines import with_deadline
from agimonitor.models.analysis import AnalysisResult, Severity
from agimonitor.models.documents import Document
from agimonitor.models.evidence import Claim
from agimonitor.models.jobs import AnalysisJob, JobStatus

logger = logging.getLogger(__name__)

T = TypeVar("T")


class AnalysisStore:
    def __init__(self, db_path: Path, *, op_timeout_s: float = 10.0) -> None:
        self.db_path = db_path
        self.op_timeout_s = op_timeout_s

    async def _run(self, label: str, fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        call = functools.partial(fn, self.db_path, *args, **kwargs)
        return await with_deadline(
            anyio.to_thread.run_sync(call, abandon_on_cancel=True),
            self.op_timeout_s,
            label,
        )

    # Documents
    async def list_unanalyzed(self, *, limit: int) -> list[Document]:
        return await self._run("list_unanalyzed", db.list_unanalyzed_documents, limit=limit)

    async def get_document(self, document_id: str) -> Document | None:
        return await self._run("get_document", db.get_document, document_id)

    async def known_sources(self) -> set[str]:
        return await self._run("known_sources", db.crawled_source_names)

    async def list_claims(self, document_id: str) -> list[Claim]:
        return await self._run("list_claims", db.list_evidence_claims, document_id=document_id)

    async def store_claims(self, document_id: str, claims: list[Claim]) -> int:
        return await self._run("store_claims", db.upsert_evidence_claims, document_id=document_id, claims=claims)

    # Analyses
    async def find_existing(self, document_id: str) -> bool:
        return await self._run("find_existing", db.get_analysis_for_document, document_id) is not None

    async def insert_analysis(self, result: AnalysisResult) -> bool:
        return await self._run("insert_analysis", db.insert_analysis, result)

    async def get_analysis(self, analysis_id: str) -> AnalysisResult | None:
        return await self._run("get_analysis", db.get_analysis, analysis_id)

    async def update_validation(self, result: AnalysisResult) -> AnalysisResult:
        return await self._run("update_validation", db.update_analysis_validation, result)

    async def record_metrics(self, analysis_id: str, metrics: dict[str, float]) -> None:
        try:
            await self._run("record_metrics", db.insert_historical_metrics, analysis_id=analysis_id, metrics=metrics)
        except Exception as e:  # noqa: BLE001
            logger.warning("Failed to record historical metrics for %s: %s", analysis_id, e)

    async def scores_since(self, since_utc: str) -> list[tuple[float, Severity]]:
        return await self._run("scores_since", db.scores_since, since_utc)

    # Jobs
    async def get_job(self, job_id: str) -> AnalysisJob | None:
        return await self._run("get_job", db.get_job, job_id)

    async def update_job_progress(self, job_id: str, **fields: Any) -> None:
        await self._run("update_job", db.update_job, job_id, **fields)

    async def set_job_status(self, job_id: str, status: JobStatus, **fields: Any) -> None:
        await self.update_job_progress(job_id, status=status, **fields)

    # Trends
    async def insert_trend_snapshot(self, *, period: str, date_bucket: str, aggregates: dict[str, Any]) -> None:
        await self._run(
            "insert_trend_snapshot",
            db.upsert_trend_snapshot,
            period=period,
            date_bucket=date_bucket,
            **aggregates,
        )

    async def create_job(self) -> AnalysisJob:
        return await self._run("create_job", db.create_job)

    async def latest_job(self) -> AnalysisJob | None:
        return await self._run("latest_job", db.latest_job)

    async def interrupted_jobs(self) -> list[AnalysisJob]:
        return await self._run("interrupted_jobs", db.list_jobs_with_status, [JobStatus.QUEUED, JobStatus.RUNNING])
