"""
Shared fixtures for the intentest test suite.
"""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from intentest.core.test_case import Expectation, TestCase
from intentest.core.types import TokenUsage
from intentest.models.base import Completion, FinishReason, ToolCall


def make_settings(**overrides):
    """SimpleNamespace stand-in for ``Settings``."""
    values = dict(
        ai_provider="anthropic",
        ai_model="claude-3-5-sonnet-20241022",
        ai_max_tokens=1024,
        ai_max_retries=3,
        ai_pacing_delay_seconds=0.0,
        ai_retry_backoff_seconds=0.0,
        ai_rate_limit_backoff_seconds=0.0,
        base_url="http://localhost:3000",
        test_pattern="**/*.test.py",
        caching_enabled=True,
        cache_dir=".intentest/cache",
        replay_step_delay_seconds=0.0,
        browser_headless=True,
        browser_timeout=30000,
        browser_viewport_width=1920,
        browser_viewport_height=1080,
    )
    values.update(overrides)
    return SimpleNamespace(**values)


def make_test_case(name="Log in", file_path="login.test.py", **kwargs) -> TestCase:
    expectations = kwargs.pop(
        "expectations", (Expectation(description="Dashboard is visible"),)
    )
    return TestCase(name=name, file_path=file_path, expectations=expectations, **kwargs)


def tool_turn(*calls, text="", usage=None) -> Completion:
    """Model turn requesting ``calls`` given as ``(name, input)`` pairs."""
    return Completion(
        text=text,
        finish_reason=FinishReason.TOOL_CALLS,
        usage=usage or TokenUsage(prompt_tokens=10, completion_tokens=5, total_tokens=15),
        tool_calls=[
            ToolCall(id=f"call_{index}", name=name, input=tool_input)
            for index, (name, tool_input) in enumerate(calls)
        ],
    )


def verdict_turn(status="passed", reason="ok", usage=None) -> Completion:
    return Completion(
        text=f'{{"status": "{status}", "reason": "{reason}"}}',
        finish_reason=FinishReason.STOP,
        usage=usage or TokenUsage(prompt_tokens=10, completion_tokens=5, total_tokens=15),
    )


def make_page(component="button Submit"):
    """MagicMock Playwright page with the async surface ``BrowserTool`` uses."""
    page = MagicMock()
    page.url = "http://localhost:3000/"
    page.title = AsyncMock(return_value="Home")
    page.screenshot = AsyncMock(return_value=b"\x89PNG")
    page.evaluate = AsyncMock(return_value=component)
    page.goto = AsyncMock()
    for method in ("move", "click", "down", "up", "wheel"):
        setattr(page.mouse, method, AsyncMock())
    for method in ("type", "press", "down", "up"):
        setattr(page.keyboard, method, AsyncMock())
    return page


def make_llm_client(*completions, provider="anthropic", model="claude-3-5-sonnet-20241022"):
    client = MagicMock()
    client.provider = provider
    client.model = model
    client.complete = AsyncMock(side_effect=list(completions))
    return client


@pytest.fixture
def settings():
    return make_settings()


@pytest.fixture
def test_case():
    return make_test_case()


@pytest.fixture
def page():
    return make_page()
