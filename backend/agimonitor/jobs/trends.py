"""Rolling trend snapshots over recent analysis scores."""

from __future__ import annotations

import logging
from datetime import UTC, date, datetime, timedelta
from typing import Any

from agimonitor.jobs.store import AnalysisStore
from agimonitor.models.analysis import Severity

logger = logging.getLogger(__name__)

PERIODS: tuple[str, ...] = ("daily", "weekly", "monthly")
SNAPSHOT_PERIODS: tuple[str, ...] = ("daily", "weekly")
WINDOWS: dict[str, timedelta] = {
    "daily": timedelta(days=1),
    "weekly": timedelta(days=7),
    "monthly": timedelta(days=30),
}


def bucket_start(period: str, now: datetime) -> date:
    """First day of the bucket containing ``now`` (UTC)."""
    today = now.astimezone(UTC).date()
    if period == "daily":
        return today
    if period == "weekly":
        return today - timedelta(days=today.weekday())
    if period == "monthly":
        return today.replace(day=1)
    raise ValueError(f"Unknown trend period: {period}")


def aggregate_scores(rows: list[tuple[float, Severity]]) -> dict[str, Any] | None:
    if not rows:
        return None
    scores = [score for score, _ in rows]
    return {
        "avg_score": round(sum(scores) / len(scores), 6),
        "max_score": max(scores),
        "min_score": min(scores),
        "total_analyses": len(scores),
        "critical_alerts": sum(1 for _, sev in rows if sev is Severity.CRITICAL),
    }


async def update_trend_snapshots(
    store: AnalysisStore,
    *,
    periods: tuple[str, ...] = SNAPSHOT_PERIODS,
    now: datetime | None = None,
) -> list[str]:
    """Aggregate scores over the trailing window of each period.

    The window is rolling (the last 24 hours, the last 7 days); the calendar
    bucket only keys the snapshot row. Returns the periods written.
    """
    now = now or datetime.now(UTC)
    written: list[str] = []
    for period in periods:
        start = bucket_start(period, now)
        since = (now.astimezone(UTC) - WINDOWS[period]).replace(microsecond=0).isoformat()
        aggregates = aggregate_scores(await store.scores_since(since))
        if aggregates is None:
            continue
        await store.insert_trend_snapshot(period=period, date_bucket=start.isoformat(), aggregates=aggregates)
        written.append(period)
    logger.info("Trend snapshots updated: %s", ", ".join(written) or "none")
    return written
