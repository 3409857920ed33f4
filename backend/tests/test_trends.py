"""Tests for trend bucketing and snapshot aggregation."""
from __future__ import annotations

from datetime import UTC, date, datetime
from pathlib import Path

import pytest

from agimonitor import db
from agimonitor.jobs.store import AnalysisStore
from agimonitor.jobs.trends import aggregate_scores, bucket_start, update_trend_snapshots
from agimonitor.models.analysis import Severity
from tests.factories import make_analysis, make_document

NOW = datetime(2024, 5, 8, 15, 30, tzinfo=UTC)  # a Wednesday


def test_bucket_start() -> None:
    assert bucket_start("daily", NOW) == date(2024, 5, 8)
    assert bucket_start("weekly", NOW) == date(2024, 5, 6)
    assert bucket_start("monthly", NOW) == date(2024, 5, 1)
    with pytest.raises(ValueError):
        bucket_start("hourly", NOW)


def test_aggregate_scores() -> None:
    rows = [(0.2, Severity.LOW), (0.9, Severity.CRITICAL), (0.4, Severity.MEDIUM)]
    assert aggregate_scores(rows) == {
        "avg_score": 0.5,
        "max_score": 0.9,
        "min_score": 0.2,
        "total_analyses": 3,
        "critical_alerts": 1,
    }
    assert aggregate_scores([]) is None


@pytest.mark.asyncio
async def test_update_snapshots_writes_current_buckets(db_path: Path) -> None:
    for score, severity in ((0.3, Severity.MEDIUM), (0.85, Severity.CRITICAL)):
        doc = make_document()
        db.upsert_document(db_path, doc)
        db.insert_analysis(db_path, make_analysis(document_id=doc.id, score=score, severity=severity))

    written = await update_trend_snapshots(AnalysisStore(db_path))

    assert written == ["daily", "weekly"]
    daily = db.list_trend_snapshots(db_path, period="daily")
    assert daily[0].total_analyses == 2
    assert daily[0].critical_alerts == 1
    assert daily[0].max_score == 0.85
    assert db.list_trend_snapshots(db_path, period="monthly") == []


@pytest.mark.asyncio
async def test_no_scores_writes_nothing(db_path: Path) -> None:
    assert await update_trend_snapshots(AnalysisStore(db_path), now=NOW) == []


@pytest.mark.asyncio
async def test_windows_roll_back_across_midnight(db_path: Path) -> None:
    doc = make_document()
    db.upsert_document(db_path, doc)
    late_sunday = make_analysis(document_id=doc.id, score=0.9, severity=Severity.CRITICAL).model_copy(
        update={"created_at": "2024-05-05T23:30:00+00:00"}
    )
    db.insert_analysis(db_path, late_sunday)
    monday = datetime(2024, 5, 6, 0, 30, tzinfo=UTC)

    written = await update_trend_snapshots(AnalysisStore(db_path), now=monday)

    assert written == ["daily", "weekly"]
    daily = db.list_trend_snapshots(db_path, period="daily")
    assert daily[0].total_analyses == 1
    assert daily[0].critical_alerts == 1
    weekly = db.list_trend_snapshots(db_path, period="weekly")
    assert weekly[0].max_score == 0.9


@pytest.mark.asyncio
async def test_daily_window_excludes_older_analyses(db_path: Path) -> None:
    doc = make_document()
    db.upsert_document(db_path, doc)
    two_days_ago = make_analysis(document_id=doc.id, score=0.4).model_copy(
        update={"created_at": "2024-05-06T12:00:00+00:00"}
    )
    db.insert_analysis(db_path, two_days_ago)

    written = await update_trend_snapshots(AnalysisStore(db_path), now=NOW)

    assert written == ["weekly"]
    assert db.list_trend_snapshots(db_path, period="daily") == []
