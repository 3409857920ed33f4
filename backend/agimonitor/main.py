from __future__ import annotations

import asyncio
import functools
import logging
import sqlite3
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from starlette.middleware.base import BaseHTTPMiddleware

from agimonitor.db import _connect, init_db
from agimonitor.jobs.deadlines import OperationTimeoutError
from agimonitor.jobs.queue import AnalysisJobQueue, QueueFullError, recover_interrupted_jobs
from agimonitor.jobs.store import AnalysisStore
from agimonitor.jobs.worker import build_oracle, run_analysis_job
from agimonitor.llm.oracle import ModelOracle
from agimonitor.models.jobs import JobStatus
from agimonitor.routers import analyses as analyses_router
from agimonitor.routers import config as config_router
from agimonitor.routers import crawl as crawl_router
from agimonitor.routers import trends as trends_router
from agimonitor.routers.analyses import to_summary
from agimonitor.schemas import AnalysisSummary, AnalyzeAllResponse, HealthResponse, JobStatusResponse, ValidateRequest
from agimonitor.settings import settings
from agimonitor.validation import revalidate_analysis

logger = logging.getLogger(__name__)

limiter = Limiter(key_func=get_remote_address)

# Crawls and validation calls can take a while
REQUEST_TIMEOUT_SECONDS = 300


class TimeoutMiddleware(BaseHTTPMiddleware):
    """Enforce a wall-clock limit per request."""

    async def dispatch(self, request: Request, call_next):
        try:
            return await asyncio.wait_for(call_next(request), timeout=REQUEST_TIMEOUT_SECONDS)
        except TimeoutError:
            return JSONResponse(
                status_code=504,
                content={"detail": f"Request timed out after {REQUEST_TIMEOUT_SECONDS} seconds"},
            )


def _store() -> AnalysisStore:
    return AnalysisStore(settings.db_path, op_timeout_s=settings.db_op_timeout_s)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    try:
        logger.info("Starting AGI monitor API...")
        init_db(settings.db_path)
        store = _store()
        queue = AnalysisJobQueue(
            functools.partial(run_analysis_job, store=store, settings=settings),
            max_pending=settings.queue_max_pending,
        )
        app.state.job_queue = queue
        if settings.queue_start_worker_on_startup:
            queue.start()
            await recover_interrupted_jobs(store, queue)
        logger.info("AGI monitor API started")
    except Exception as e:
        logger.error("FATAL: Startup failed: %s", e, exc_info=True)
        raise

    yield

    logger.info("Shutting down AGI monitor API...")
    try:
        await app.state.job_queue.stop()
        logger.info("Shutdown complete")
    except Exception as e:
        logger.error("Error during shutdown: %s", e, exc_info=True)


app = FastAPI(title="AGI monitor", version="0.1.0", lifespan=lifespan)
app.state.limiter = limiter


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    return JSONResponse(status_code=429, content={"detail": "Rate limit exceeded. Try again later."})


app.add_middleware(TimeoutMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://127.0.0.1:5173", "http://localhost:5173"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(analyses_router.router)
app.include_router(config_router.router)
app.include_router(crawl_router.router)
app.include_router(trends_router.router)


def get_oracle() -> ModelOracle:
    """Oracle for one request. Unconfigured providers surface as 503."""
    try:
        oracle, _ = build_oracle(settings)
    except ValueError as e:
        raise HTTPException(status_code=503, detail=str(e)) from e
    return oracle


@app.get("/api/health", response_model=HealthResponse)
@limiter.limit("60/minute")
def health_check(request: Request):
    db_ok = False
    try:
        with _connect(settings.db_path) as conn:
            conn.execute("SELECT 1").fetchone()
            db_ok = True
    except sqlite3.Error:
        pass

    queue: AnalysisJobQueue = request.app.state.job_queue
    body = HealthResponse(
        status="healthy" if db_ok else "degraded",
        db="ok" if db_ok else "unavailable",
        queue_running=queue.running,
        pending_jobs=queue.pending,
    )
    if not db_ok:
        return JSONResponse(status_code=503, content=body.model_dump())
    return body


@app.post("/api/analyze-all", response_model=AnalyzeAllResponse)
@limiter.limit("10/minute")
async def api_analyze_all(request: Request) -> AnalyzeAllResponse:
    store = _store()
    job = await store.create_job()
    try:
        request.app.state.job_queue.submit(job.job_id)
    except QueueFullError as e:
        await store.set_job_status(job.job_id, JobStatus.FAILED, error=str(e))
        raise HTTPException(status_code=503, detail=str(e)) from e
    return AnalyzeAllResponse(job_id=job.job_id, status=job.status.value)


@app.get("/api/analyze-status", response_model=JobStatusResponse)
async def api_analyze_status(job_id: str | None = Query(None)) -> JobStatusResponse:
    store = _store()
    job = await (store.get_job(job_id) if job_id else store.latest_job())
    if job is None:
        raise HTTPException(status_code=404, detail="Job not found")
    return JobStatusResponse(**job.to_dict())


@app.post("/api/validate", response_model=AnalysisSummary)
@limiter.limit("5/minute")
async def api_validate(
    request: Request,
    req: ValidateRequest,
    oracle: ModelOracle = Depends(get_oracle),
) -> AnalysisSummary:
    try:
        result = await revalidate_analysis(req.analysis_id, store=_store(), oracle=oracle, settings=settings)
    except KeyError as e:
        raise HTTPException(status_code=404, detail="Analysis not found") from e
    except OperationTimeoutError as e:
        raise HTTPException(status_code=504, detail=str(e)) from e
    return to_summary(result)
