"""Tests for the single-consumer job queue."""
from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

from agimonitor import db
from agimonitor.jobs.queue import AnalysisJobQueue, QueueFullError, recover_interrupted_jobs
from agimonitor.jobs.store import AnalysisStore
from agimonitor.models.jobs import JobStatus


class RecordingRunner:
    def __init__(self, delay_s: float = 0.01, fail_on: str | None = None) -> None:
        self.delay_s = delay_s
        self.fail_on = fail_on
        self.active = 0
        self.max_active = 0
        self.order: list[str] = []

    async def __call__(self, job_id: str) -> None:
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            await asyncio.sleep(self.delay_s)
            if job_id == self.fail_on:
                raise RuntimeError("runner blew up")
            self.order.append(job_id)
        finally:
            self.active -= 1


@pytest.mark.asyncio
async def test_jobs_run_one_at_a_time_in_order() -> None:
    runner = RecordingRunner()
    queue = AnalysisJobQueue(runner)
    queue.start()
    try:
        for job_id in ("a", "b", "c"):
            queue.submit(job_id)
        await asyncio.wait_for(queue.join(), timeout=2)
    finally:
        await queue.stop()

    assert runner.order == ["a", "b", "c"]
    assert runner.max_active == 1
    assert queue.running is False


@pytest.mark.asyncio
async def test_runner_exception_does_not_stop_consumer() -> None:
    runner = RecordingRunner(fail_on="a")
    queue = AnalysisJobQueue(runner)
    queue.start()
    try:
        queue.submit("a")
        queue.submit("b")
        await asyncio.wait_for(queue.join(), timeout=2)
        assert queue.running is True
    finally:
        await queue.stop()

    assert runner.order == ["b"]


@pytest.mark.asyncio
async def test_submit_beyond_capacity_raises() -> None:
    queue = AnalysisJobQueue(RecordingRunner(), max_pending=2)
    queue.submit("a")
    queue.submit("b")
    with pytest.raises(QueueFullError):
        queue.submit("c")
    assert queue.pending == 2


@pytest.mark.asyncio
async def test_recover_requeues_interrupted_jobs(db_path: Path) -> None:
    queued = db.create_job(db_path)
    running = db.create_job(db_path)
    done = db.create_job(db_path)
    db.update_job(db_path, running.job_id, status=JobStatus.RUNNING)
    db.update_job(db_path, done.job_id, status=JobStatus.COMPLETED)

    store = AnalysisStore(db_path)
    queue = AnalysisJobQueue(RecordingRunner())
    recovered = await recover_interrupted_jobs(store, queue)

    assert set(recovered) == {queued.job_id, running.job_id}
    assert queue.pending == 2
    assert db.get_job(db_path, running.job_id).status is JobStatus.QUEUED
    assert db.get_job(db_path, done.job_id).status is JobStatus.COMPLETED
