"""Tests for individual acquisition strategies."""
from __future__ import annotations

import httpx
import pytest
import respx

from agimonitor.acquisition.fetcher import SafeHttpClient
from agimonitor.acquisition.search import SearchHit
from agimonitor.acquisition.sources import SourceConfig
from agimonitor.acquisition.strategies import (
    SEARCH_RESULT_PLACEHOLDER,
    AcquisitionContext,
    DirectFetchStrategy,
    FallbackRenderStrategy,
    FeedStrategy,
    SearchStrategy,
)
from tests.factories import fast_limiter, no_sleep

LISTING_HTML = """
<html><body>
  <article>
    <h2>Scaling reasoning</h2>
    <a href="/blog/scaling-reasoning">Read</a>
    <p>We trained a larger model.</p>
  </article>
</body></html>
"""

RSS = b"""<?xml version="1.0"?>
<rss version="2.0"><channel><title>Lab</title>
<item><title>Feed post</title><link>https://lab.example.com/blog/feed-post</link>
<description>Body text.</description></item>
</channel></rss>
"""


class FakeBrowser:
    def __init__(self, pages: list[str | Exception]) -> None:
        self.pages = list(pages)
        self.calls = 0

    async def render(self, url: str) -> str:
        self.calls += 1
        page = self.pages.pop(0) if self.pages else ""
        if isinstance(page, Exception):
            raise page
        return page


class FakeSearch:
    enabled = True

    def __init__(self, hits: list[SearchHit]) -> None:
        self.hits = hits
        self.queries: list[str] = []

    async def web_search(self, query, *, count=5, freshness=None, country=None):
        self.queries.append(query)
        return self.hits


def _source(**overrides) -> SourceConfig:
    data = {"name": "Example Lab", "url": "https://lab.example.com/blog"}
    data.update(overrides)
    return SourceConfig(**data)


def _ctx(http=None, browser=None, search=None, sleeps: list[float] | None = None) -> AcquisitionContext:
    async def record_sleep(seconds: float) -> None:
        if sleeps is not None:
            sleeps.append(seconds)

    return AcquisitionContext(
        http=http,
        browser=browser,
        limiter=fast_limiter(),
        search=search,
        sleep_fn=record_sleep,
    )


@pytest.mark.asyncio
@respx.mock
async def test_feed_strategy_falls_through_to_next_feed() -> None:
    respx.get("https://lab.example.com/broken.xml").mock(return_value=httpx.Response(500))
    respx.get("https://lab.example.com/feed.xml").mock(return_value=httpx.Response(200, content=RSS))
    source = _source(feeds=["https://lab.example.com/broken.xml", "https://lab.example.com/feed.xml"])

    async with SafeHttpClient(limiter=fast_limiter(), sleep_fn=no_sleep, max_retries=0) as http:
        docs = await FeedStrategy(_ctx(http=http)).execute(source)

    assert [d.title for d in docs] == ["Feed post"]


@pytest.mark.asyncio
async def test_render_strategy_retries_with_linear_backoff() -> None:
    sleeps: list[float] = []
    browser = FakeBrowser([RuntimeError("timeout"), "<html></html>", LISTING_HTML])
    strategy = FallbackRenderStrategy(_ctx(browser=browser, sleeps=sleeps))

    docs = await strategy.execute(_source(playwright_retries=2))

    assert [d.title for d in docs] == ["Scaling reasoning"]
    assert browser.calls == 3
    assert sleeps == [1.0, 2.0]


@pytest.mark.asyncio
async def test_render_strategy_gives_up_after_retries() -> None:
    browser = FakeBrowser([RuntimeError("timeout")] * 5)
    strategy = FallbackRenderStrategy(_ctx(browser=browser))

    assert await strategy.execute(_source(playwright_retries=1)) == []
    assert browser.calls == 2


@pytest.mark.asyncio
@respx.mock
async def test_direct_fetch_parses_listing() -> None:
    respx.get("https://lab.example.com/blog").mock(return_value=httpx.Response(200, text=LISTING_HTML))

    async with SafeHttpClient(limiter=fast_limiter(), sleep_fn=no_sleep) as http:
        docs = await DirectFetchStrategy(_ctx(http=http)).execute(_source())

    assert len(docs) == 1
    assert docs[0].url == "https://lab.example.com/blog/scaling-reasoning"


@pytest.mark.asyncio
async def test_search_strategy_drops_unsafe_hits() -> None:
    search = FakeSearch([
        SearchHit(title="Good", url="https://lab.example.com/good", snippet="A snippet"),
        SearchHit(title="Bad", url="http://127.0.0.1/admin", snippet="nope"),
        SearchHit(title="No snippet", url="https://lab.example.com/other"),
    ])
    docs = await SearchStrategy(_ctx(search=search)).execute(_source(search_terms="reasoning"))

    assert [d.title for d in docs] == ["Good", "No snippet"]
    assert docs[1].content == SEARCH_RESULT_PLACEHOLDER
    assert search.queries == ["site:lab.example.com reasoning"]


@pytest.mark.asyncio
async def test_search_strategy_without_client_finds_nothing() -> None:
    assert await SearchStrategy(_ctx()).execute(_source()) == []
