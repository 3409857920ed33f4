"""Tests for the Brave search client."""
from __future__ import annotations

import httpx
import pytest
import respx

from agimonitor.acquisition.fetcher import SafeHttpClient
from agimonitor.acquisition.search import BRAVE_ENDPOINT, BraveSearchClient
from tests.factories import fast_limiter, no_sleep

PAYLOAD = {
    "web": {
        "results": [
            {"title": "Lab announces model", "url": "https://lab.example.com/a", "description": "Snippet"},
            {"title": "", "url": "https://lab.example.com/b"},
        ]
    }
}


@pytest.mark.asyncio
@respx.mock
async def test_no_api_key_sends_nothing() -> None:
    route = respx.get(url__startswith=BRAVE_ENDPOINT).mock(return_value=httpx.Response(200, json=PAYLOAD))
    async with SafeHttpClient(limiter=fast_limiter(), sleep_fn=no_sleep) as http:
        client = BraveSearchClient(http, api_key=None)
        assert client.enabled is False
        assert await client.web_search("site:lab.example.com") == []
    assert route.call_count == 0


@pytest.mark.asyncio
@respx.mock
async def test_results_parsed_and_cached() -> None:
    route = respx.get(url__startswith=BRAVE_ENDPOINT).mock(return_value=httpx.Response(200, json=PAYLOAD))
    now = [0.0]
    async with SafeHttpClient(limiter=fast_limiter(), sleep_fn=no_sleep) as http:
        client = BraveSearchClient(http, api_key="key", clock=lambda: now[0])
        hits = await client.web_search("site:lab.example.com", count=50, freshness="pm", country="us")
        again = await client.web_search("site:lab.example.com", count=50, freshness="pm", country="us")
        now[0] = 601.0
        await client.web_search("site:lab.example.com", count=50, freshness="pm", country="us")

    assert [h.url for h in hits] == ["https://lab.example.com/a"]
    assert hits[0].snippet == "Snippet"
    assert again == hits
    assert route.call_count == 2

    request = route.calls[0].request
    assert request.headers["X-Subscription-Token"] == "key"
    assert request.url.params["count"] == "20"
    assert request.url.params["freshness"] == "pm"
