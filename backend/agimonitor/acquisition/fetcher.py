"""Async HTTP fetcher used by every network-facing acquisition strategy.

All requests go through the safety gate (including each redirect hop) and the
shared token bucket before they leave the process.
"""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from urllib.parse import urljoin

import httpx

from agimonitor.acquisition.rate_limit import TokenBucket
from agimonitor.acquisition.url_safety import ensure_safe_url

logger = logging.getLogger(__name__)

USER_AGENTS = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/124.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/124.0.0.0 Safari/537.36",
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/123.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 14_4) AppleWebKit/605.1.15 (KHTML, like Gecko) "
    "Version/17.4 Safari/605.1.15",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:125.0) Gecko/20100101 Firefox/125.0",
)

RETRY_STATUSES = frozenset({429, 500, 502, 503, 504})
REDIRECT_STATUSES = frozenset({301, 302, 303, 307, 308})


class AcquisitionError(RuntimeError):
    """A fetch that completed but cannot be used (status, size, content)."""


def random_user_agent(rng: random.Random | None = None) -> str:
    return (rng or random).choice(USER_AGENTS)


def browser_headers(user_agent: str | None = None, *, accept: str | None = None) -> dict[str, str]:
    """Headers resembling a desktop browser navigation."""
    return {
        "User-Agent": user_agent or random_user_agent(),
        "Accept": accept or "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
        "Accept-Language": "en-US,en;q=0.9,zh-CN;q=0.6",
        "DNT": "1",
        "Upgrade-Insecure-Requests": "1",
        "Sec-Fetch-Dest": "document",
        "Sec-Fetch-Mode": "navigate",
        "Sec-Fetch-Site": "none",
        "Cache-Control": "no-cache",
    }


@dataclass(frozen=True)
class FetchedResponse:
    url: str
    status_code: int
    headers: dict[str, str]
    content: bytes

    @property
    def text(self) -> str:
        charset = "utf-8"
        content_type = self.headers.get("content-type", "")
        if "charset=" in content_type:
            charset = content_type.split("charset=", 1)[1].split(";", 1)[0].strip() or "utf-8"
        try:
            return self.content.decode(charset, errors="replace")
        except LookupError:
            return self.content.decode("utf-8", errors="replace")


class SafeHttpClient:
    def __init__(
        self,
        *,
        limiter: TokenBucket,
        timeout_s: float = 15.0,
        max_redirects: int = 3,
        max_content_bytes: int = 10 * 1024 * 1024,
        max_retries: int = 1,
        backoff_s: float = 0.6,
        sleep_fn: Callable[[float], Awaitable[None]] = asyncio.sleep,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._limiter = limiter
        self._timeout_s = timeout_s
        self._max_redirects = max_redirects
        self._max_content_bytes = max_content_bytes
        self._max_retries = max_retries
        self._backoff_s = backoff_s
        self._sleep_fn = sleep_fn
        self._client = httpx.AsyncClient(timeout=timeout_s, follow_redirects=False, transport=transport)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> SafeHttpClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def get(
        self,
        url: str,
        *,
        params: dict[str, str | int] | None = None,
        headers: dict[str, str] | None = None,
        accept: str | None = None,
        timeout_s: float | None = None,
    ) -> FetchedResponse:
        """GET a URL, following redirects manually so every hop is gated.

        Raises UnsafeUrlError, AcquisitionError, or httpx.HTTPError.
        """
        request_headers = headers if headers is not None else browser_headers(accept=accept)
        current = url
        for _hop in range(self._max_redirects + 1):
            ensure_safe_url(current)
            resp = await self._send(current, params=params, headers=request_headers, timeout_s=timeout_s)
            if resp.status_code in REDIRECT_STATUSES and resp.headers.get("location"):
                current = urljoin(current, resp.headers["location"])
                params = None
                continue
            if resp.status_code >= 400:
                raise AcquisitionError(f"HTTP {resp.status_code} for {current}")
            if len(resp.content) > self._max_content_bytes:
                raise AcquisitionError(f"Response too large ({len(resp.content)} bytes) for {current}")
            return FetchedResponse(
                url=str(resp.url),
                status_code=resp.status_code,
                headers={k.lower(): v for k, v in resp.headers.items()},
                content=resp.content,
            )
        raise AcquisitionError(f"Too many redirects for {url}")

    async def _send(
        self,
        url: str,
        *,
        params: dict[str, str | int] | None,
        headers: dict[str, str],
        timeout_s: float | None,
    ) -> httpx.Response:
        for attempt in range(self._max_retries + 1):
            await self._limiter.acquire()
            try:
                resp = await self._client.get(
                    url, params=params, headers=headers, timeout=timeout_s or self._timeout_s
                )
            except httpx.RequestError:
                if attempt >= self._max_retries:
                    raise
                await self._sleep_fn(self._backoff_delay(attempt))
                continue

            if resp.status_code in RETRY_STATUSES and attempt < self._max_retries:
                delay = _retry_after_seconds(resp) or self._backoff_delay(attempt)
                logger.info("Retrying %s after HTTP %s (%.1fs)", url, resp.status_code, delay)
                await self._sleep_fn(delay)
                continue
            return resp
        raise AcquisitionError(f"Request to {url} failed unexpectedly")

    def _backoff_delay(self, attempt: int) -> float:
        # 0.6, 1.2, 2.4, 4.8... (capped)
        delay = self._backoff_s * (1 << attempt)
        return min(20.0, delay)


def _retry_after_seconds(resp: httpx.Response) -> float | None:
    raw = resp.headers.get("Retry-After")
    if not raw:
        return None
    raw = raw.strip()
    if raw.isdigit():
        return min(30.0, float(raw))
    return None
