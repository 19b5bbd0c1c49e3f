"""Headless browser session management.

A BrowserPool owns one Playwright Chromium instance per worker. The browser
is started lazily on first use and is torn down explicitly: between retry
attempts, after a completed extraction, and on shutdown. Pages are only ever
handed out through the ``page()`` context manager, which serialises access
and always closes the page.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

import structlog
from playwright.async_api import async_playwright

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from playwright.async_api import Browser, BrowserContext, Page, Playwright

    from siteprofile.config import ScraperSettings

log = structlog.get_logger()


class BrowserPool:
    """Lazily started, explicitly released Chromium session."""

    def __init__(self, settings: ScraperSettings) -> None:
        self._settings = settings
        self._lock = asyncio.Lock()
        self._playwright: Playwright | None = None
        self._browser: Browser | None = None
        self._context: BrowserContext | None = None

    @property
    def started(self) -> bool:
        return self._browser is not None

    async def _ensure_context(self) -> BrowserContext:
        if self._playwright is None:
            self._playwright = await async_playwright().start()
        if self._browser is None or not self._browser.is_connected():
            self._browser = await self._playwright.chromium.launch(
                headless=self._settings.headless,
                args=list(self._settings.launch_args),
            )
            self._context = None
            log.info("browser_launched", headless=self._settings.headless)
        if self._context is None:
            self._context = await self._browser.new_context(
                viewport={
                    "width": self._settings.viewport_width,
                    "height": self._settings.viewport_height,
                },
                user_agent=self._settings.user_agent,
            )
        return self._context

    @asynccontextmanager
    async def page(self) -> AsyncIterator[Page]:
        """Yield a fresh page, holding the session for the duration."""
        async with self._lock:
            context = await self._ensure_context()
            page = await context.new_page()
            try:
                yield page
            finally:
                try:
                    await page.close()
                except Exception:
                    log.warning("browser_page_close_failed", exc_info=True)

    async def reset(self) -> None:
        """Tear the browser down; the next ``page()`` call starts a new one."""
        async with self._lock:
            await self._teardown()

    async def close(self) -> None:
        await self.reset()
        log.info("browser_pool_closed")

    async def _teardown(self) -> None:
        context, browser, playwright = self._context, self._browser, self._playwright
        self._context = None
        self._browser = None
        self._playwright = None

        if context is not None:
            try:
                await context.close()
            except Exception:
                log.warning("browser_context_close_failed", exc_info=True)
        if browser is not None:
            try:
                await browser.close()
            except Exception:
                log.warning("browser_close_failed", exc_info=True)
        if playwright is not None:
            try:
                await playwright.stop()
            except Exception:
                log.warning("playwright_stop_failed", exc_info=True)
