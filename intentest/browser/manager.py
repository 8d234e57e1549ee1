"""
Playwright browser lifecycle for one test file.
"""

import os
from typing import Optional

from playwright.async_api import Browser, BrowserContext, Page, Playwright, async_playwright

from intentest.monitoring.logger import get_logger


class BrowserManager:
    """Launches Chromium with a single context and page, and tears it down."""

    def __init__(
        self,
        headless: bool = False,
        viewport_width: int = 1920,
        viewport_height: int = 1080,
        timeout: int = 30000,
        base_url: Optional[str] = None,
    ) -> None:
        """
        Initialize the browser manager.

        Args:
            headless: Run browser in headless mode
            viewport_width: Browser viewport width
            viewport_height: Browser viewport height
            timeout: Default timeout in milliseconds
            base_url: Page opened after launch
        """
        self.headless = headless
        self.viewport_width = viewport_width
        self.viewport_height = viewport_height
        self.timeout = timeout
        self.base_url = base_url

        self.logger = get_logger(__name__)
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._context: Optional[BrowserContext] = None
        self._page: Optional[Page] = None

    @classmethod
    def from_settings(cls, settings) -> "BrowserManager":
        return cls(
            headless=settings.browser_headless,
            viewport_width=settings.browser_viewport_width,
            viewport_height=settings.browser_viewport_height,
            timeout=settings.browser_timeout,
            base_url=settings.base_url,
        )

    @property
    def playwright(self) -> Optional[Playwright]:
        return self._playwright

    @property
    def browser(self) -> Optional[Browser]:
        return self._browser

    @property
    def context(self) -> Optional[BrowserContext]:
        return self._context

    @property
    def page(self) -> Optional[Page]:
        return self._page

    async def launch(self) -> BrowserContext:
        """Start the browser and open ``base_url`` in a fresh context."""
        if self._playwright is None:
            self._playwright = await async_playwright().start()

        if self._browser is None:
            self.logger.info(
                "Starting browser",
                extra={
                    "headless": self.headless,
                    "viewport": f"{self.viewport_width}x{self.viewport_height}",
                },
            )
            self._browser = await self._playwright.chromium.launch(
                headless=self.headless,
                args=["--no-sandbox", "--disable-dev-shm-usage"],
                env=os.environ,
            )

        if self._context is None:
            self._context = await self._browser.new_context(
                viewport={
                    "width": self.viewport_width,
                    "height": self.viewport_height,
                },
                base_url=self.base_url,
            )
            self._context.set_default_timeout(self.timeout)

        if self._page is None:
            self._page = await self._context.new_page()
            if self.base_url:
                await self._page.goto(self.base_url)

        return self._context

    async def close(self) -> None:
        """Stop the browser and cleanup resources."""
        if self._page:
            await self._page.close()
            self._page = None

        if self._context:
            await self._context.close()
            self._context = None

        if self._browser:
            await self._browser.close()
            self._browser = None

        if self._playwright:
            await self._playwright.stop()
            self._playwright = None

        self.logger.info("Browser stopped")
