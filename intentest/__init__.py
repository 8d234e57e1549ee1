"""
intentest - browser tests written as natural-language intents.

An LLM agent drives the browser to satisfy each test; successful action
sequences are cached and replayed without the model on later runs.
"""

from intentest.api import TestAPI, TestChain, test
from intentest.core.context import TestContext
from intentest.error_handling import (
    AIError,
    CacheError,
    ConfigError,
    IntentestError,
    TestError,
    ToolError,
)

__version__ = "0.1.0"

__all__ = [
    "test",
    "TestAPI",
    "TestChain",
    "TestContext",
    "IntentestError",
    "ConfigError",
    "AIError",
    "CacheError",
    "ToolError",
    "TestError",
]
