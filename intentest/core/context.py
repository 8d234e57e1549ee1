"""Objects handed to user callbacks and lifecycle hooks."""

from __future__ import annotations

import inspect
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, Optional

if TYPE_CHECKING:
    from playwright.async_api import APIRequestContext, Browser, BrowserContext, Page, Playwright

    from intentest.core.test_case import TestCase


@dataclass
class TestContext:
    """
    Shared state for the tests of one file.

    Built once per file after the browser is launched and dropped when the
    file finishes, so nothing carries over to the next file.
    """

    __test__ = False

    page: "Page"
    browser: Optional["Browser"] = None
    browser_context: Optional["BrowserContext"] = None
    playwright: Optional["Playwright"] = None
    base_url: Optional[str] = None
    current_test: Optional["TestCase"] = None
    current_step_index: int = 0

    async def new_request_context(self, **options: Any) -> "APIRequestContext":
        """API request context rooted at the configured base URL."""
        if self.playwright is None:
            raise RuntimeError("Playwright is not available in this context")
        options.setdefault("base_url", self.base_url)
        return await self.playwright.request.new_context(**options)


async def invoke_callback(fn: Callable[..., Any], context: TestContext) -> None:
    """Call a sync or async user callback with the test context."""
    result = fn(context)
    if inspect.isawaitable(result):
        await result
