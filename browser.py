"""
Playwright browser session hosting the assignment page
"""
import logging
from typing import Optional

from playwright.async_api import Browser, BrowserContext, Page, Playwright, async_playwright

from host_page import ANNOTATE_SCRIPT, CONTAINER_SELECTOR, PageSnapshot

logger = logging.getLogger(__name__)


class BrowserNotStarted(RuntimeError):
    pass


class BrowserSession:
    """Owns the Playwright instance, browser and the single working page"""

    def __init__(self, headless: bool = False, default_timeout_ms: int = 30000):
        self.headless = headless
        self.default_timeout_ms = default_timeout_ms
        self.playwright: Optional[Playwright] = None
        self.browser: Optional[Browser] = None
        self.context: Optional[BrowserContext] = None
        self._page: Optional[Page] = None

    @property
    def started(self) -> bool:
        return self._page is not None

    @property
    def page(self) -> Page:
        if self._page is None:
            raise BrowserNotStarted("Browser session has not been started")
        return self._page

    async def start(self):
        """Launch Chromium and open the working page"""
        logger.info(f"[BROWSER] Launching Chromium (headless={self.headless})")
        self.playwright = await async_playwright().start()
        self.browser = await self.playwright.chromium.launch(headless=self.headless)
        self.context = await self.browser.new_context()
        self._page = await self.context.new_page()
        self._page.set_default_timeout(self.default_timeout_ms)
        logger.info("[BROWSER] Browser ready")

    async def stop(self):
        logger.info("[BROWSER] Closing browser")
        if self.browser:
            await self.browser.close()
        if self.playwright:
            await self.playwright.stop()
        self.browser = None
        self.context = None
        self.playwright = None
        self._page = None

    async def navigate(self, url: str, timeout: int = 45000):
        logger.info(f"[BROWSER] Navigating to {url}")
        await self.page.goto(url, wait_until="domcontentloaded", timeout=timeout)

    async def snapshot(self) -> PageSnapshot:
        """Stamp runtime state onto the DOM and parse the resulting HTML"""
        stamped = await self.page.evaluate(ANNOTATE_SCRIPT, CONTAINER_SELECTOR)
        html = await self.page.content()
        logger.debug(f"[BROWSER] Snapshot taken ({stamped} elements, {len(html)} bytes)")
        return PageSnapshot.from_html(html)
