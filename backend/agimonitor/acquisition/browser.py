"""Headless Chromium rendering for script-heavy or bot-hostile sources.

One browser per :class:`BrowserSession`, launched on first use and closed
with the session. Each render opens a fresh page and closes it afterwards.
"""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from typing import Any

from agimonitor.acquisition.fetcher import random_user_agent
from agimonitor.acquisition.url_safety import UnsafeUrlError, check_url, check_url_with_dns

logger = logging.getLogger(__name__)

LAUNCH_ARGS = [
    "--disable-blink-features=AutomationControlled",
    "--disable-dev-shm-usage",
    "--disable-accelerated-2d-canvas",
    "--no-first-run",
    "--disable-gpu",
]


class BrowserSession:
    def __init__(
        self,
        *,
        nav_timeout_ms: int = 30_000,
        post_nav_delay_s: tuple[float, float] = (2.0, 5.0),
        sleep_fn: Callable[[float], Awaitable[None]] = asyncio.sleep,
        rng: random.Random | None = None,
    ) -> None:
        self._nav_timeout_ms = nav_timeout_ms
        self._post_nav_delay_s = post_nav_delay_s
        self._sleep_fn = sleep_fn
        self._rng = rng or random.Random()
        self._playwright: Any = None
        self._browser: Any = None
        self._launch_lock = asyncio.Lock()

    async def __aenter__(self) -> BrowserSession:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    @property
    def is_launched(self) -> bool:
        return self._browser is not None

    async def _get_browser(self) -> Any:
        async with self._launch_lock:
            if self._browser is None:
                from playwright.async_api import async_playwright

                self._playwright = await async_playwright().start()
                self._browser = await self._playwright.chromium.launch(headless=True, args=LAUNCH_ARGS)
                logger.info("Launched headless Chromium")
        return self._browser

    async def close(self) -> None:
        if self._browser is not None:
            await self._browser.close()
            self._browser = None
        if self._playwright is not None:
            await self._playwright.stop()
            self._playwright = None

    async def render(self, url: str) -> str:
        """Navigate to ``url`` and return the settled page HTML."""
        verdict = await check_url_with_dns(url)
        if not verdict.safe:
            logger.warning("Safety gate refused render of %s: %s", url, verdict.reason)
            raise UnsafeUrlError(url, verdict.reason or "unsafe")

        browser = await self._get_browser()
        page = await browser.new_page()
        try:
            await page.set_viewport_size({
                "width": 1920 + self._rng.randrange(100),
                "height": 1080 + self._rng.randrange(100),
            })
            await page.set_extra_http_headers({"Accept-Language": "en-US,en;q=0.9"})

            async def _rotate_user_agent(route: Any) -> None:
                if not check_url(route.request.url).safe:
                    await route.abort()
                    return
                headers = {**route.request.headers, "user-agent": random_user_agent(self._rng)}
                await route.continue_(headers=headers)

            await page.route("**/*", _rotate_user_agent)
            logger.info("Rendering %s", url)
            await page.goto(url, wait_until="networkidle", timeout=self._nav_timeout_ms)
            await self._sleep_fn(self._rng.uniform(*self._post_nav_delay_s))
            return await page.content()
        finally:
            await page.close()
