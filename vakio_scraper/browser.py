# Shared Chromium instance with one isolated context per job, so network
# capture of one job never sees another job's responses.

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from playwright.async_api import Browser, Page, Playwright, async_playwright

from vakio_scraper import config
from vakio_scraper.logging_utils import _dbg
from vakio_scraper.veikkaus import DriverLaunchFailure

USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/121.0.0.0 Safari/537.36"
)

LAUNCH_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-gpu",
    "--disable-dev-shm-usage",
    "--disable-blink-features=AutomationControlled",
]


class BrowserPool:
    def __init__(self, *, headless: bool = True, max_sessions: Optional[int] = None):
        self.headless = headless
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._lock = asyncio.Lock()
        self._slots = asyncio.Semaphore(max_sessions or config.max_sessions())

    async def ensure_browser(self) -> Browser:
        async with self._lock:
            if self._browser is not None and self._browser.is_connected():
                return self._browser
            try:
                if self._playwright is None:
                    self._playwright = await async_playwright().start()
                self._browser = await self._playwright.chromium.launch(headless=self.headless, args=LAUNCH_ARGS)
            except Exception as e:
                raise DriverLaunchFailure(f"Playwright init failed: {e}") from e
            return self._browser

    @asynccontextmanager
    async def session(self) -> AsyncIterator[Page]:
        """Fresh context + page; always closed on exit."""
        async with self._slots:
            browser = await self.ensure_browser()
            context = await browser.new_context(
                locale="fi-FI",
                timezone_id="Europe/Helsinki",
                viewport={"width": 1200, "height": 900},
                user_agent=USER_AGENT,
            )
            page: Optional[Page] = None
            try:
                try:
                    await context.add_init_script(
                        "Object.defineProperty(navigator, 'webdriver', { get: () => undefined });"
                    )
                except Exception as e:
                    _dbg(f"init script failed: {e}")
                context.set_default_timeout(15_000)
                context.set_default_navigation_timeout(config.nav_timeout_ms())
                page = await context.new_page()
                yield page
            finally:
                if page is not None:
                    try:
                        await page.close()
                    except Exception as e:
                        _dbg(f"page close failed: {e}")
                try:
                    await context.close()
                except Exception as e:
                    _dbg(f"context close failed: {e}")

    async def close(self) -> None:
        async with self._lock:
            browser, self._browser = self._browser, None
            pw, self._playwright = self._playwright, None
        try:
            if browser is not None:
                await browser.close()
        finally:
            if pw is not None:
                await pw.stop()
