"""Single-consumer in-process job queue.

Jobs are identified by id and executed strictly one at a time by one
consumer task, so two analysis jobs never interleave.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from agimonitor.jobs.store import AnalysisStore
from agimonitor.models.jobs import JobStatus

logger = logging.getLogger(__name__)


class QueueFullError(RuntimeError):
    pass


class AnalysisJobQueue:
    def __init__(self, runner: Callable[[str], Awaitable[Any]], *, max_pending: int = 32) -> None:
        self._runner = runner
        self._queue: asyncio.Queue[str] = asyncio.Queue(maxsize=max_pending)
        self._task: asyncio.Task[None] | None = None
        self._current: str | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def current_job_id(self) -> str | None:
        return self._current

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    def submit(self, job_id: str) -> None:
        try:
            self._queue.put_nowait(job_id)
        except asyncio.QueueFull as e:
            raise QueueFullError(f"Job queue is full ({self._queue.maxsize} pending)") from e
        logger.info("Job %s queued (%s pending)", job_id, self._queue.qsize())

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._consume(), name="analysis-job-queue")
        logger.info("Job queue consumer started")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None
        logger.info("Job queue consumer stopped")

    async def join(self) -> None:
        """Wait until every submitted job has finished."""
        await self._queue.join()

    async def _consume(self) -> None:
        while True:
            job_id = await self._queue.get()
            self._current = job_id
            try:
                await self._runner(job_id)
            except Exception:  # noqa: BLE001
                logger.exception("Job %s raised out of the runner", job_id)
            finally:
                self._current = None
                self._queue.task_done()


async def recover_interrupted_jobs(store: AnalysisStore, queue: AnalysisJobQueue) -> list[str]:
    """Re-enqueue jobs a previous process left queued or running."""
    recovered: list[str] = []
    for job in await store.interrupted_jobs():
        if job.status is JobStatus.RUNNING:
            await store.set_job_status(job.job_id, JobStatus.QUEUED)
        try:
            queue.submit(job.job_id)
        except QueueFullError:
            logger.warning("Queue full; job %s left queued", job.job_id)
            break
        recovered.append(job.job_id)
    if recovered:
        logger.info("Recovered %s interrupted jobs", len(recovered))
    return recovered
