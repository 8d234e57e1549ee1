"""
Exception hierarchy for intentest.

Every error raised by the framework derives from ``IntentestError``. The typed
subclasses carry a machine-readable ``error_type`` drawn from a closed set so
callers can branch on the failure kind without parsing messages.
"""

from datetime import datetime, timezone
from typing import Any, Dict, FrozenSet, Optional


class IntentestError(Exception):
    """Base exception for all intentest errors."""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[BaseException] = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.details = details or {}
        self.cause = cause
        self.timestamp = datetime.now(timezone.utc)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details,
            "timestamp": self.timestamp.isoformat(),
            "cause": str(self.cause) if self.cause else None,
        }


class TypedError(IntentestError):
    """Error whose subtype must be one of ``allowed_types``."""

    allowed_types: FrozenSet[str] = frozenset()

    def __init__(self, error_type: str, message: str, **kwargs: Any):
        if error_type not in self.allowed_types:
            raise ValueError(
                f"Invalid {self.__class__.__name__} type: {error_type}. "
                f"Allowed values: {sorted(self.allowed_types)}"
            )
        kwargs.setdefault("error_code", error_type)
        super().__init__(message, **kwargs)
        self.error_type = error_type
        self.details.setdefault("type", error_type)


class ConfigError(TypedError):
    """Configuration could not be discovered or validated. Always fatal."""

    allowed_types = frozenset(
        {"no-config", "multiple-config", "invalid-config", "file-not-found"}
    )


class AIError(TypedError):
    """Failure of the model conversation, fatal to the current test."""

    allowed_types = frozenset(
        {
            "invalid-response",
            "max-retries-reached",
            "token-limit-exceeded",
            "unsafe-content-detected",
            "unsupported-provider",
            "unknown",
        }
    )


class CacheError(TypedError):
    """Cached run is missing or unusable. Recovered by a fresh AI run."""

    allowed_types = frozenset({"not-found", "invalid"})


class ToolError(IntentestError):
    """Error raised while executing a tool call."""

    def __init__(self, message: str, tool: Optional[str] = None, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.tool = tool
        if tool:
            self.details["tool"] = tool


class TestError(TypedError):
    """Assertion or user callback failure inside a test."""

    __test__ = False

    allowed_types = frozenset({"callback-execution-failed", "assertion-failed"})

    def __init__(
        self,
        error_type: str,
        message: str,
        actual: Any = None,
        expected: Any = None,
        **kwargs: Any,
    ):
        super().__init__(error_type, message, **kwargs)
        self.actual = actual
        self.expected = expected
        if actual is not None or expected is not None:
            self.details.update({"actual": actual, "expected": expected})


def as_intentest_error(error: BaseException) -> IntentestError:
    """Wrap an arbitrary exception so it can cross framework boundaries."""
    if isinstance(error, IntentestError):
        return error
    return IntentestError(str(error) or error.__class__.__name__, cause=error)


def get_error_details(error: BaseException) -> Dict[str, Any]:
    """Flatten an exception into a dict suitable for log ``extra``."""
    if isinstance(error, IntentestError):
        details = {
            "error_name": error.__class__.__name__,
            "error_message": error.message,
            "error_code": error.error_code,
        }
        error_type = getattr(error, "error_type", None)
        if error_type:
            details["error_subtype"] = error_type
        return details

    details = {
        "error_name": error.__class__.__name__,
        "error_message": str(error),
    }
    status = getattr(error, "status_code", None) or getattr(error, "status", None)
    if status is not None:
        details["error_status"] = status
    return details
