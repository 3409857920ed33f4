"""Crawl router: run the acquisition chain over configured sources."""

from __future__ import annotations

from fastapi import APIRouter, HTTPException

from agimonitor.acquisition.crawl import run_crawl
from agimonitor.acquisition.sources import load_sources
from agimonitor.schemas import CrawlRequest, CrawlResponse, CrawlSourceSummary
from agimonitor.settings import settings

router = APIRouter(prefix="/api", tags=["crawl"])


@router.post("/crawl", response_model=CrawlResponse)
async def api_crawl(req: CrawlRequest | None = None) -> CrawlResponse:
    req = req or CrawlRequest()
    sources = load_sources(settings.sources_path)
    if req.sources:
        wanted = {s.lower() for s in req.sources}
        sources = [s for s in sources if s.name.lower() in wanted]
        if not sources:
            raise HTTPException(status_code=404, detail="No matching sources configured")

    report = await run_crawl(settings, sources, persist=req.persist)
    stored = report.stored
    return CrawlResponse(
        total_documents=sum(len(o.documents) for o in report.outcomes),
        inserted=stored.inserted if stored else 0,
        updated=stored.updated if stored else 0,
        unchanged=stored.unchanged if stored else 0,
        sources=[CrawlSourceSummary(source=name, **info) for name, info in report.per_source().items()],
    )
