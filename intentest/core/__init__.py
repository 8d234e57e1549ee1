"""
Core data models for intentest.
"""

from intentest.core.context import TestContext, invoke_callback
from intentest.core.registry import TestDefinition, TestRegistry, get_active_registry
from intentest.core.test_case import Expectation, TestCase, create_identifier
from intentest.core.test_run import CACHE_FORMAT_VERSION, TestRun, create_run_id
from intentest.core.types import (
    CacheAction,
    CacheEntry,
    CacheEntryData,
    CacheEntryMetadata,
    CacheEntryTest,
    CacheStep,
    FileResult,
    TestResult,
    TestStatus,
    TokenUsage,
    ToolResult,
    Verdict,
)

__all__ = [
    # Tests
    "TestCase",
    "Expectation",
    "create_identifier",
    "TestRun",
    "create_run_id",
    "CACHE_FORMAT_VERSION",
    "TestRegistry",
    "TestDefinition",
    "get_active_registry",
    "TestContext",
    "invoke_callback",

    # Models
    "TestStatus",
    "TokenUsage",
    "CacheAction",
    "CacheStep",
    "CacheEntry",
    "CacheEntryMetadata",
    "CacheEntryTest",
    "CacheEntryData",
    "Verdict",
    "ToolResult",
    "TestResult",
    "FileResult",
]
