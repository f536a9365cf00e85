"""Headless Chromium for the crawler.

One browser process per crawl.  Every render opens its own browser context so
cookies, storage and listeners from one page never reach the next, and the
context is closed whether the render succeeds or not.
"""

import logging

from playwright.async_api import Browser, Playwright, async_playwright

from app.config import settings

logger = logging.getLogger(__name__)

CHROMIUM_ARGS = [
    "--no-sandbox",
    "--disable-gpu",
    "--disable-dev-shm-usage",
    "--disable-setuid-sandbox",
    "--disable-extensions",
    "--disable-background-networking",
    "--disable-default-apps",
    "--disable-sync",
    "--metrics-recording-only",
    "--no-first-run",
]


class HeadlessBrowser:
    def __init__(
        self,
        user_agent: str = settings.crawl_user_agent,
        navigation_timeout_ms: int = settings.crawl_navigation_timeout_ms,
        page_timeout_ms: int = settings.crawl_page_timeout_ms,
        settle_ms: int = settings.crawl_settle_ms,
        executable_path: str = settings.chromium_path,
    ):
        self.user_agent = user_agent
        self.navigation_timeout_ms = navigation_timeout_ms
        self.page_timeout_ms = page_timeout_ms
        self.settle_ms = settle_ms
        self.executable_path = executable_path
        self._pw: Playwright | None = None
        self._browser: Browser | None = None

    async def start(self) -> None:
        if self._browser is not None:
            return
        logger.info("Starting headless Chromium")
        self._pw = await async_playwright().start()
        try:
            self._browser = await self._pw.chromium.launch(
                headless=True,
                executable_path=self.executable_path or None,
                args=CHROMIUM_ARGS,
            )
        except Exception:
            await self._pw.stop()
            self._pw = None
            raise

    async def render(self, url: str) -> str:
        """Load ``url`` in a fresh context and return the rendered HTML.

        Raises on navigation errors and timeouts; the caller decides whether
        to retry.
        """
        if self._browser is None:
            raise RuntimeError("Browser not started")

        context = await self._browser.new_context(
            user_agent=self.user_agent,
            viewport={"width": 1280, "height": 720},
            java_script_enabled=True,
        )
        try:
            context.set_default_timeout(self.page_timeout_ms)
            page = await context.new_page()
            await page.goto(
                url,
                wait_until="domcontentloaded",
                timeout=self.navigation_timeout_ms,
            )
            if self.settle_ms > 0:
                await page.wait_for_timeout(self.settle_ms)
            return await page.content()
        finally:
            try:
                await context.close()
            except Exception:
                logger.debug("Failed to close browser context for %s", url)

    async def close(self) -> None:
        if self._browser is not None:
            try:
                await self._browser.close()
            except Exception:
                logger.warning("Error while closing Chromium", exc_info=True)
            self._browser = None
        if self._pw is not None:
            try:
                await self._pw.stop()
            except Exception:
                logger.warning("Error while stopping Playwright", exc_info=True)
            self._pw = None
        logger.info("Headless Chromium shut down")
