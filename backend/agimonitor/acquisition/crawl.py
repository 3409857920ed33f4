"""Crawl entry point: run the acquisition chain over many sources and store results."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from pathlib import Path

import anyio

from agimonitor.acquisition.browser import BrowserSession
from agimonitor.acquisition.chain import AcquisitionChain, AcquisitionOutcome
from agimonitor.acquisition.fetcher import SafeHttpClient
from agimonitor.acquisition.rate_limit import TokenBucket
from agimonitor.acquisition.search import BraveSearchClient
from agimonitor.acquisition.sources import SourceConfig
from agimonitor.acquisition.strategies import AcquisitionContext
from agimonitor.db import upsert_document, upsert_evidence_claims
from agimonitor.evidence.extractor import EvidenceExtractor
from agimonitor.models.documents import Document
from agimonitor.settings import Settings

logger = logging.getLogger(__name__)


@asynccontextmanager
async def open_acquisition_context(settings: Settings) -> AsyncIterator[AcquisitionContext]:
    """Create the shared limiter, HTTP client, browser, and search client for one crawl."""
    limiter = TokenBucket(capacity=1, refill_interval_s=settings.crawl_rate_interval_s)
    async with SafeHttpClient(
        limiter=limiter,
        timeout_s=settings.http_timeout_s,
        max_redirects=settings.max_redirects,
        max_content_bytes=settings.max_content_bytes,
    ) as http, BrowserSession(
        nav_timeout_ms=settings.browser_nav_timeout_ms,
        post_nav_delay_s=(settings.post_nav_delay_min_s, settings.post_nav_delay_max_s),
    ) as browser:
        yield AcquisitionContext(
            http=http,
            browser=browser,
            limiter=limiter,
            search=BraveSearchClient(http, api_key=settings.brave_api_key),
            feed_timeout_s=settings.feed_timeout_s,
            default_render_retries=settings.playwright_retries,
            sitemap_max_urls=settings.sitemap_max_urls,
            discover_max_results=settings.discover_max_results,
            pre_fetch_delay_s=(settings.post_nav_delay_min_s, settings.post_nav_delay_max_s),
        )


async def crawl_sources(
    chain: AcquisitionChain,
    sources: list[SourceConfig],
    *,
    concurrency: int = 4,
) -> list[AcquisitionOutcome]:
    """Acquire every source concurrently; the chain's limiter paces the network."""
    semaphore = asyncio.Semaphore(max(1, concurrency))

    async def _one(source: SourceConfig) -> AcquisitionOutcome:
        async with semaphore:
            return await chain.acquire(source)

    return list(await asyncio.gather(*(_one(s) for s in sources)))


def with_evidence(doc: Document, extractor: EvidenceExtractor | None = None) -> Document:
    if doc.evidence is not None:
        return doc
    bundle = (extractor or EvidenceExtractor()).extract(doc.content, title=doc.title)
    return doc.model_copy(update={"evidence": bundle})


@dataclass
class StoreSummary:
    inserted: int = 0
    updated: int = 0
    unchanged: int = 0
    document_ids: list[str] = field(default_factory=list)


def store_documents(db_path: Path, documents: list[Document]) -> StoreSummary:
    summary = StoreSummary()
    extractor = EvidenceExtractor()
    for doc in documents:
        doc = with_evidence(doc, extractor)
        outcome = upsert_document(db_path, doc)
        if outcome == "inserted":
            summary.inserted += 1
        elif outcome == "updated":
            summary.updated += 1
        else:
            summary.unchanged += 1
        if outcome != "unchanged" and doc.evidence is not None and doc.evidence.claims:
            upsert_evidence_claims(db_path, document_id=doc.id, claims=doc.evidence.claims)
        summary.document_ids.append(doc.id)
    return summary


@dataclass
class CrawlReport:
    outcomes: list[AcquisitionOutcome]
    stored: StoreSummary | None = None

    def per_source(self) -> dict[str, dict[str, object]]:
        return {
            o.source: {
                "documents": len(o.documents),
                "strategy": o.strategy.value if o.strategy else None,
                "attempted": [k.value for k in o.attempted],
                "refused_reason": o.refused_reason,
            }
            for o in self.outcomes
        }


async def run_crawl(
    settings: Settings,
    sources: list[SourceConfig],
    *,
    persist: bool = True,
) -> CrawlReport:
    async with open_acquisition_context(settings) as ctx:
        chain = AcquisitionChain(ctx)
        outcomes = await crawl_sources(chain, sources, concurrency=settings.crawl_concurrency)

    report = CrawlReport(outcomes=outcomes)
    if persist:
        documents = [doc for o in outcomes for doc in o.documents]
        report.stored = await anyio.to_thread.run_sync(lambda: store_documents(settings.db_path, documents))
        logger.info(
            "Crawl stored %s new, %s updated, %s unchanged documents",
            report.stored.inserted,
            report.stored.updated,
            report.stored.unchanged,
        )
    return report
