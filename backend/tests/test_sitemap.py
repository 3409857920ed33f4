"""Tests for sitemap discovery."""
from __future__ import annotations

import httpx
import pytest
import respx

from agimonitor.acquisition.fetcher import SafeHttpClient
from agimonitor.acquisition.sitemap import discover_from_sitemap, extract_locs, slug_to_title
from tests.factories import fast_limiter, no_sleep

URLSET = b"""<?xml version="1.0" encoding="UTF-8"?>
<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">
  <url><loc>https://lab.example.com/research/agi-progress-report</loc></url>
  <url><loc>https://lab.example.com/about</loc></url>
  <url><loc>https://other.example.com/research/elsewhere</loc></url>
  <url><loc>https://lab.example.com/blog/new_model.html</loc></url>
</urlset>
"""

INDEX = b"""<?xml version="1.0" encoding="UTF-8"?>
<sitemapindex xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">
  <sitemap><loc>https://lab.example.com/sitemap-posts.xml</loc></sitemap>
</sitemapindex>
"""


def test_extract_locs_handles_namespaces() -> None:
    assert len(extract_locs(URLSET)) == 4
    assert extract_locs(b"<not xml") == []


def test_slug_to_title() -> None:
    assert slug_to_title("https://lab.example.com/blog/new-reasoning_model.html") == "New Reasoning Model"


@pytest.mark.asyncio
@respx.mock
async def test_discovers_same_host_article_paths() -> None:
    respx.get("https://lab.example.com/sitemap.xml").mock(return_value=httpx.Response(200, content=URLSET))
    async with SafeHttpClient(limiter=fast_limiter(), sleep_fn=no_sleep) as http:
        docs = await discover_from_sitemap(http, "https://lab.example.com/", "Lab")
    assert [d.url for d in docs] == [
        "https://lab.example.com/research/agi-progress-report",
        "https://lab.example.com/blog/new_model.html",
    ]
    assert docs[0].title == "Agi Progress Report"
    assert docs[0].content == "Discovered via sitemap for Lab."


@pytest.mark.asyncio
@respx.mock
async def test_follows_sitemap_index_and_falls_through_missing_paths() -> None:
    respx.get("https://lab.example.com/sitemap.xml").mock(return_value=httpx.Response(404))
    respx.get("https://lab.example.com/sitemap_index.xml").mock(return_value=httpx.Response(200, content=INDEX))
    respx.get("https://lab.example.com/sitemap-posts.xml").mock(return_value=httpx.Response(200, content=URLSET))
    async with SafeHttpClient(limiter=fast_limiter(), sleep_fn=no_sleep) as http:
        docs = await discover_from_sitemap(http, "https://lab.example.com/", "Lab", max_urls=1)
    assert len(docs) == 1


@pytest.mark.asyncio
@respx.mock
async def test_no_sitemap_no_documents() -> None:
    respx.get(url__startswith="https://lab.example.com/").mock(return_value=httpx.Response(404))
    async with SafeHttpClient(limiter=fast_limiter(), sleep_fn=no_sleep) as http:
        assert await discover_from_sitemap(http, "https://lab.example.com/", "Lab") == []
