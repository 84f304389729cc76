"""
Browser page session using Playwright for browser automation.
Exposes the small set of page capabilities the poll cycle relies on.
"""

import logging
from abc import ABC, abstractmethod
from typing import Optional

from playwright.async_api import Browser, Error as PlaywrightError, Page, async_playwright
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from seatfinder.exceptions import ElementNotFoundError, NavigationError, SessionError

logger = logging.getLogger(__name__)

USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/120.0.0.0 Safari/537.36"
)


class PageSession(ABC):
    """Capabilities of a single navigable browser page."""

    @abstractmethod
    async def navigate(self, url: str) -> None:
        """Load url, raising NavigationError on failure."""

    @abstractmethod
    async def wait_for_element(self, selector: str, timeout_ms: int) -> None:
        """Wait for selector, raising ElementNotFoundError on timeout."""

    @abstractmethod
    async def read_text(self, selector: str) -> str:
        ...

    @abstractmethod
    async def set_value(self, selector: str, value: str) -> None:
        """Clear the input matched by selector and type value into it."""

    @abstractmethod
    async def click(self, selector: str) -> None:
        ...

    @abstractmethod
    async def select_option(self, selector: str, value: str) -> None:
        ...

    @abstractmethod
    async def check_option_by_label(self, text: str) -> bool:
        """Tick the checkbox of the first label containing text."""

    async def close(self) -> None:
        pass

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()


class PlaywrightPageSession(PageSession):
    """PageSession backed by a Playwright Chromium page."""

    def __init__(
        self,
        headless: bool = True,
        slow_mo_ms: int = 0,
        navigation_timeout_ms: int = 45_000,
    ):
        """
        Initialize page session.

        Args:
            headless: Run the browser without a visible window
            slow_mo_ms: Delay applied to every browser operation (in milliseconds)
            navigation_timeout_ms: Maximum time to wait for page loading
        """
        self.headless = headless
        self.slow_mo_ms = slow_mo_ms
        self.navigation_timeout_ms = navigation_timeout_ms
        self.browser: Optional[Browser] = None
        self.page: Optional[Page] = None
        self._playwright = None

    async def initialize(self) -> None:
        """Launch Chromium and open the page used for the whole run."""
        if self.browser is not None:
            return

        logger.info("Initializing Playwright browser...")
        try:
            self._playwright = await async_playwright().start()
            self.browser = await self._playwright.chromium.launch(
                headless=self.headless,
                slow_mo=self.slow_mo_ms,
                args=[
                    "--no-sandbox",
                    "--disable-setuid-sandbox",
                ],
            )
            context = await self.browser.new_context(
                user_agent=USER_AGENT,
                viewport={"width": 1920, "height": 1080},
            )
            self.page = await context.new_page()
            self.page.set_default_navigation_timeout(self.navigation_timeout_ms)
        except Exception as e:
            try:
                await self.close()
            except Exception as cleanup_error:
                logger.warning(f"Cleanup after failed browser start also failed: {cleanup_error}")
            raise SessionError(f"Could not start browser session: {e}") from e

        logger.info("Playwright browser initialized successfully")

    async def close(self) -> None:
        """Close Playwright browser and cleanup resources. Safe to call twice."""
        browser, self.browser, self.page = self.browser, None, None
        playwright, self._playwright = self._playwright, None

        try:
            if browser:
                logger.info("Closing Playwright browser...")
                await browser.close()
        finally:
            if playwright:
                await playwright.stop()
                logger.info("Playwright browser closed successfully")

    def _require_page(self) -> Page:
        if self.page is None:
            raise SessionError("Page session is not initialized")
        return self.page

    async def navigate(self, url: str) -> None:
        page = self._require_page()
        try:
            await page.goto(url, wait_until="networkidle")
        except PlaywrightError as e:
            raise NavigationError(f"Could not load {url}: {e}") from e

    async def wait_for_element(self, selector: str, timeout_ms: int) -> None:
        page = self._require_page()
        try:
            await page.wait_for_selector(selector, timeout=timeout_ms)
        except PlaywrightTimeoutError as e:
            raise ElementNotFoundError(selector, timeout_ms) from e

    async def read_text(self, selector: str) -> str:
        page = self._require_page()
        element = await page.query_selector(selector)
        if element is None:
            raise ElementNotFoundError(selector, 0)
        return (await element.inner_text()).strip()

    async def set_value(self, selector: str, value: str) -> None:
        await self._require_page().fill(selector, value)

    async def click(self, selector: str) -> None:
        await self._require_page().click(selector)

    async def select_option(self, selector: str, value: str) -> None:
        await self._require_page().select_option(selector, value)

    async def check_option_by_label(self, text: str) -> bool:
        label = self._require_page().locator("label", has_text=text).first
        checkbox = label.locator('input[type="checkbox"]')
        if await checkbox.count() == 0:
            logger.warning(f"No checkbox found for label containing {text!r}")
            return False
        await checkbox.first.click()
        return True

    async def __aenter__(self):
        """Async context manager entry."""
        await self.initialize()
        return self
