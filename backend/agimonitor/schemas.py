from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class ConfigText(BaseModel):
    text: str


class CrawlRequest(BaseModel):
    sources: list[str] | None = None
    persist: bool = True


class CrawlSourceSummary(BaseModel):
    source: str
    documents: int
    strategy: str | None = None
    attempted: list[str] = Field(default_factory=list)
    refused_reason: str | None = None


class CrawlResponse(BaseModel):
    total_documents: int
    inserted: int = 0
    updated: int = 0
    unchanged: int = 0
    sources: list[CrawlSourceSummary]


class AnalyzeAllResponse(BaseModel):
    job_id: str
    status: str


class JobStatusResponse(BaseModel):
    job_id: str
    status: str
    total_articles: int
    processed_articles: int
    successful_analyses: int
    failed_analyses: int
    skipped_analyses: int
    current_article: str | None = None
    avg_batch_time_s: float | None = None
    estimated_time_remaining_s: int | None = None
    error: str | None = None
    created_at_utc: str
    started_at_utc: str | None = None
    completed_at_utc: str | None = None
    updated_at_utc: str


class ValidateRequest(BaseModel):
    analysis_id: str = Field(min_length=1)


class AnalysisSummary(BaseModel):
    id: str
    document_id: str
    score: float
    confidence: float
    severity: str
    indicators: list[str]
    explanation: str
    evidence_quality: str
    requires_verification: bool
    cross_references: list[str]
    breakdown: dict[str, Any]
    last_validation: dict[str, Any] | None = None
    validated_at: str | None = None
    created_at: str | None = None


class TrendPoint(BaseModel):
    date_bucket: str
    avg_score: float
    max_score: float
    min_score: float
    total_analyses: int
    critical_alerts: int


class TrendsResponse(BaseModel):
    period: str
    points: list[TrendPoint]


class HealthResponse(BaseModel):
    status: str
    db: str
    queue_running: bool
    pending_jobs: int
