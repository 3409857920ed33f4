"""Trend snapshot router."""

from fastapi import APIRouter, HTTPException, Query

from agimonitor.db import list_trend_snapshots
from agimonitor.jobs.trends import PERIODS
from agimonitor.schemas import TrendPoint, TrendsResponse
from agimonitor.settings import settings

router = APIRouter(prefix="/api", tags=["trends"])


@router.get("/trends", response_model=TrendsResponse)
def api_trends(period: str = Query("daily"), limit: int = Query(30, ge=1, le=365)) -> TrendsResponse:
    if period not in PERIODS:
        raise HTTPException(status_code=400, detail=f"Unknown period: {period}")
    rows = list_trend_snapshots(settings.db_path, period=period, limit=limit)
    return TrendsResponse(
        period=period,
        points=[
            TrendPoint(
                date_bucket=r.date_bucket,
                avg_score=r.avg_score,
                max_score=r.max_score,
                min_score=r.min_score,
                total_analyses=r.total_analyses,
                critical_alerts=r.critical_alerts,
            )
            for r in rows
        ],
    )
