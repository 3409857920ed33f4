"""Brave Web Search client, used as the last acquisition fallback."""

from __future__ import annotations

import json
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass

from agimonitor.acquisition.fetcher import SafeHttpClient

logger = logging.getLogger(__name__)

BRAVE_ENDPOINT = "https://api.search.brave.com/res/v1/web/search"
CACHE_TTL_S = 10 * 60


@dataclass(frozen=True)
class SearchHit:
    title: str
    url: str
    snippet: str | None = None


class BraveSearchClient:
    def __init__(
        self,
        http: SafeHttpClient,
        *,
        api_key: str | None,
        ttl_s: float = CACHE_TTL_S,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._http = http
        self._api_key = api_key
        self._ttl_s = ttl_s
        self._clock = clock
        self._cache: dict[str, tuple[float, list[SearchHit]]] = {}

    @property
    def enabled(self) -> bool:
        return bool(self._api_key)

    def clear_cache(self) -> None:
        self._cache.clear()

    async def web_search(
        self,
        query: str,
        *,
        count: int = 5,
        freshness: str | None = None,
        country: str | None = None,
    ) -> list[SearchHit]:
        """Query Brave. Without an API key, returns nothing and sends nothing."""
        if not self._api_key:
            return []

        params: dict[str, str | int] = {"q": query, "count": max(1, min(count, 20))}
        if freshness:
            params["freshness"] = freshness
        if country:
            params["country"] = country

        key = json.dumps(params, sort_keys=True)
        now = self._clock()
        hit = self._cache.get(key)
        if hit is not None and now - hit[0] < self._ttl_s:
            return hit[1]

        resp = await self._http.get(
            BRAVE_ENDPOINT,
            params=params,
            headers={"Accept": "application/json", "X-Subscription-Token": self._api_key},
            timeout_s=10.0,
        )
        payload = json.loads(resp.content or b"{}")
        results = (payload.get("web") or {}).get("results") or []
        hits = [
            SearchHit(title=r["title"], url=r["url"], snippet=r.get("description"))
            for r in results
            if r.get("title") and r.get("url")
        ]
        self._cache[key] = (now, hits)
        logger.info("Brave search %r returned %s results", query, len(hits))
        return hits
