"""
Headless Chromium retrieval for script-rendered pages.
"""

from __future__ import annotations

import asyncio
import logging

from playwright.async_api import Browser, BrowserContext, Playwright, async_playwright
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from app.scraping.config.models import SourceConfig
from app.scraping.errors import StrategyError
from app.scraping.logging_utils import log_event
from app.scraping.strategies.base import ExtractionStrategy, FetchedPage
from app.scraping.types import ErrorKind, FetchTarget, StrategyKind

logger = logging.getLogger(__name__)


class HeadlessRenderStrategy(ExtractionStrategy):
    """
    Render the page in a shared headless browser and return the post-render DOM.

    The browser is launched on first use and reused until `aclose()`. Each
    fetch runs in its own browser context.
    """

    kind = StrategyKind.HEADLESS_RENDER

    def __init__(
        self,
        *,
        user_agent: str,
        timeout_seconds: float = 30.0,
        wait_until: str = "networkidle",
    ) -> None:
        self._user_agent = user_agent
        self._timeout_ms = int(timeout_seconds * 1000)
        self._wait_until = wait_until
        self._playwright: Playwright | None = None
        self._browser: Browser | None = None
        self._lock = asyncio.Lock()

    async def _retrieve(self, target: FetchTarget, config: SourceConfig) -> FetchedPage:
        browser = await self._ensure_browser()
        context = None
        try:
            context = await browser.new_context(
                user_agent=self._user_agent,
                viewport={"width": 1920, "height": 1080},
                locale="en-US",
                extra_http_headers=config.headers or None,
            )
            page = await context.new_page()
            response = await page.goto(target.url, wait_until=self._wait_until, timeout=self._timeout_ms)
            status = response.status if response is not None else None
            if status == 429:
                raise StrategyError(
                    f"render of {target.url} rate limited",
                    kind=ErrorKind.RATE_LIMITED,
                    url=target.url,
                    status_code=status,
                )
            if status is not None and status >= 400:
                raise StrategyError(
                    f"render of {target.url} returned HTTP {status}",
                    kind=ErrorKind.HTTP_STATUS,
                    url=target.url,
                    status_code=status,
                )
            if config.wait_for_selector:
                await page.wait_for_selector(config.wait_for_selector, timeout=self._timeout_ms)
            content = await page.content()
            return FetchedPage(content=content, status_code=status)
        except PlaywrightTimeoutError as exc:
            raise StrategyError(
                f"render of {target.url} timed out: {exc}",
                kind=ErrorKind.RENDER_TIMEOUT,
                url=target.url,
            ) from exc
        except PlaywrightError as exc:
            kind = ErrorKind.NETWORK_TIMEOUT if "net::" in str(exc) else ErrorKind.STRATEGY_UNAVAILABLE
            raise StrategyError(
                f"render of {target.url} failed: {exc}",
                kind=kind,
                url=target.url,
            ) from exc
        finally:
            if context is not None:
                await self._close_context(context, target)

    async def _close_context(self, context: BrowserContext, target: FetchTarget) -> None:
        try:
            await context.close()
        except PlaywrightError as exc:
            log_event(
                logger,
                logging.WARNING,
                "headless_context_close_failed",
                source=target.source,
                target_key=target.target_key,
                error=str(exc),
            )

    async def _ensure_browser(self) -> Browser:
        async with self._lock:
            if self._browser is not None:
                if self._browser.is_connected():
                    return self._browser
                # Crashed or closed underneath us; relaunch on this fetch.
                log_event(logger, logging.WARNING, "headless_browser_disconnected")
                self._browser = None
                await self._stop_playwright()
            try:
                self._playwright = await async_playwright().start()
                self._browser = await self._playwright.chromium.launch(headless=True)
            except PlaywrightError as exc:
                await self._stop_playwright()
                raise StrategyError(
                    f"headless browser unavailable: {exc}",
                    kind=ErrorKind.STRATEGY_UNAVAILABLE,
                ) from exc
            log_event(logger, logging.INFO, "headless_browser_launched")
            return self._browser

    async def aclose(self) -> None:
        async with self._lock:
            if self._browser is not None:
                await self._browser.close()
                self._browser = None
            await self._stop_playwright()

    async def _stop_playwright(self) -> None:
        if self._playwright is not None:
            await self._playwright.stop()
            self._playwright = None
