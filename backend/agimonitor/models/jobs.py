"""Analysis job records."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class JobStatus(str, Enum):
    QUEUED = "queued"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)


@dataclass(frozen=True)
class AnalysisJob:
    job_id: str
    status: JobStatus
    total_articles: int
    processed_articles: int
    successful_analyses: int
    failed_analyses: int
    skipped_analyses: int
    current_article: str | None
    avg_batch_time_s: float | None
    estimated_time_remaining_s: int | None
    error: str | None
    created_at_utc: str
    started_at_utc: str | None
    completed_at_utc: str | None
    updated_at_utc: str

    def to_dict(self) -> dict[str, object]:
        return {
            "job_id": self.job_id,
            "status": self.status.value,
            "total_articles": self.total_articles,
            "processed_articles": self.processed_articles,
            "successful_analyses": self.successful_analyses,
            "failed_analyses": self.failed_analyses,
            "skipped_analyses": self.skipped_analyses,
            "current_article": self.current_article,
            "avg_batch_time_s": self.avg_batch_time_s,
            "estimated_time_remaining_s": self.estimated_time_remaining_s,
            "error": self.error,
            "created_at_utc": self.created_at_utc,
            "started_at_utc": self.started_at_utc,
            "completed_at_utc": self.completed_at_utc,
            "updated_at_utc": self.updated_at_utc,
        }
