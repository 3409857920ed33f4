"""Acquisition strategies.

Each strategy turns a :class:`SourceConfig` into zero or more documents. The
chain in :mod:`agimonitor.acquisition.chain` decides which ones run and in
which order.
"""

from __future__ import annotations

import asyncio
import logging
import random
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import ClassVar
from urllib.parse import urlsplit

from agimonitor.acquisition.browser import BrowserSession
from agimonitor.acquisition.feeds import fetch_feed
from agimonitor.acquisition.fetcher import SafeHttpClient
from agimonitor.acquisition.html_extract import discover_articles, extract_with_selectors
from agimonitor.acquisition.rate_limit import TokenBucket
from agimonitor.acquisition.search import BraveSearchClient
from agimonitor.acquisition.sitemap import discover_from_sitemap
from agimonitor.acquisition.sources import SourceConfig
from agimonitor.acquisition.url_safety import check_url
from agimonitor.models.documents import Document, build_document

logger = logging.getLogger(__name__)

SEARCH_RESULT_PLACEHOLDER = "Search result from Brave; open the URL for full content."


class StrategyKind(str, Enum):
    FEED = "feed"
    PRIORITY_RENDER = "priority_render"
    BLOCKED_RENDER = "blocked_render"
    DIRECT_FETCH = "direct_fetch"
    FALLBACK_RENDER = "fallback_render"
    SITEMAP = "sitemap"
    SEARCH = "search"


@dataclass
class AcquisitionContext:
    """Shared handles for one crawl: HTTP client, browser, limiter, search."""

    http: SafeHttpClient
    browser: BrowserSession
    limiter: TokenBucket
    search: BraveSearchClient | None = None
    feed_timeout_s: float = 30.0
    default_render_retries: int = 2
    sitemap_max_urls: int = 8
    discover_max_results: int = 20
    pre_fetch_delay_s: tuple[float, float] = (2.0, 5.0)
    sleep_fn: Callable[[float], Awaitable[None]] = asyncio.sleep
    rng: random.Random = field(default_factory=random.Random)


class Strategy(ABC):
    kind: ClassVar[StrategyKind]

    def __init__(self, ctx: AcquisitionContext) -> None:
        self.ctx = ctx

    @abstractmethod
    async def execute(self, source: SourceConfig) -> list[Document]:
        """Return documents for ``source``; empty when the strategy found nothing."""


class FeedStrategy(Strategy):
    kind = StrategyKind.FEED

    async def execute(self, source: SourceConfig) -> list[Document]:
        for feed_url in source.feeds:
            logger.info("[%s] Checking feed %s", source.name, feed_url)
            try:
                documents = await fetch_feed(
                    self.ctx.http, feed_url, source.name, timeout_s=self.ctx.feed_timeout_s
                )
            except Exception as e:  # noqa: BLE001
                logger.info("[%s] Feed %s failed: %s", source.name, feed_url, e)
                continue
            if documents:
                return documents
        return []


def parse_listing(html: str, source: SourceConfig, page_url: str, max_results: int) -> list[Document]:
    if source.auto_discover:
        return discover_articles(html, page_url, source.name, max_results=max_results)
    return extract_with_selectors(html, source, page_url)


class RenderStrategy(Strategy):
    """Render the listing page with retries and linear backoff (1s, 2s, ...)."""

    kind = StrategyKind.FALLBACK_RENDER

    async def execute(self, source: SourceConfig) -> list[Document]:
        retries = source.playwright_retries
        if retries is None:
            retries = self.ctx.default_render_retries
        attempts = max(1, retries + 1)
        for attempt in range(1, attempts + 1):
            await self.ctx.limiter.acquire()
            try:
                html = await self.ctx.browser.render(source.url)
            except Exception as e:  # noqa: BLE001
                logger.info("[%s] Render attempt %s/%s failed: %s", source.name, attempt, attempts, e)
                html = ""
            documents = (
                parse_listing(html, source, source.url, self.ctx.discover_max_results) if html else []
            )
            if documents:
                return documents
            if attempt < attempts:
                await self.ctx.sleep_fn(1.0 * attempt)
        return []


class PriorityRenderStrategy(RenderStrategy):
    kind = StrategyKind.PRIORITY_RENDER


class BlockedRenderStrategy(RenderStrategy):
    kind = StrategyKind.BLOCKED_RENDER


class FallbackRenderStrategy(RenderStrategy):
    kind = StrategyKind.FALLBACK_RENDER


class DirectFetchStrategy(Strategy):
    kind = StrategyKind.DIRECT_FETCH

    async def execute(self, source: SourceConfig) -> list[Document]:
        await self.ctx.sleep_fn(self.ctx.rng.uniform(*self.ctx.pre_fetch_delay_s))
        resp = await self.ctx.http.get(source.url)
        return parse_listing(resp.text, source, resp.url, self.ctx.discover_max_results)


class SitemapStrategy(Strategy):
    kind = StrategyKind.SITEMAP

    async def execute(self, source: SourceConfig) -> list[Document]:
        return await discover_from_sitemap(
            self.ctx.http, source.url, source.name, max_urls=self.ctx.sitemap_max_urls
        )


class SearchStrategy(Strategy):
    kind = StrategyKind.SEARCH

    async def execute(self, source: SourceConfig) -> list[Document]:
        search = self.ctx.search
        if search is None or not search.enabled:
            return []
        query = f"site:{urlsplit(source.url).netloc}"
        if source.search_terms:
            query = f"{query} {source.search_terms}"
        hits = await search.web_search(query, count=6, freshness="pm", country="us")
        documents: list[Document] = []
        for hit in hits:
            verdict = check_url(hit.url)
            if not verdict.safe:
                logger.warning("[%s] Dropping search result %s: %s", source.name, hit.url, verdict.reason)
                continue
            documents.append(
                build_document(
                    source=source.name,
                    url=hit.url,
                    title=hit.title,
                    content=hit.snippet or SEARCH_RESULT_PLACEHOLDER,
                )
            )
        return documents


STRATEGY_TYPES: dict[StrategyKind, type[Strategy]] = {
    StrategyKind.FEED: FeedStrategy,
    StrategyKind.PRIORITY_RENDER: PriorityRenderStrategy,
    StrategyKind.BLOCKED_RENDER: BlockedRenderStrategy,
    StrategyKind.DIRECT_FETCH: DirectFetchStrategy,
    StrategyKind.FALLBACK_RENDER: FallbackRenderStrategy,
    StrategyKind.SITEMAP: SitemapStrategy,
    StrategyKind.SEARCH: SearchStrategy,
}


def plan_strategies(source: SourceConfig, *, search_enabled: bool) -> list[StrategyKind]:
    """Ordered strategy kinds for a source."""
    plan = [StrategyKind.FEED]
    if source.playwright_first:
        plan.append(StrategyKind.PRIORITY_RENDER)
    if source.is_blocked:
        plan.append(StrategyKind.BLOCKED_RENDER)
    plan.append(StrategyKind.DIRECT_FETCH)
    if not source.is_blocked:
        plan.append(StrategyKind.FALLBACK_RENDER)
    if source.auto_discover:
        plan.append(StrategyKind.SITEMAP)
    if search_enabled:
        plan.append(StrategyKind.SEARCH)
    return plan
