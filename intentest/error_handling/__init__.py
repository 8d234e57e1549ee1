"""
Error types shared by every intentest component.
"""

from .exceptions import (
    AIError,
    CacheError,
    ConfigError,
    IntentestError,
    TestError,
    ToolError,
    TypedError,
    as_intentest_error,
    get_error_details,
)

__all__ = [
    "IntentestError",
    "TypedError",
    "ConfigError",
    "AIError",
    "CacheError",
    "ToolError",
    "TestError",
    "as_intentest_error",
    "get_error_details",
]
