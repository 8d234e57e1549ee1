"""
Core data models and types for intentest.

Cache models serialize with camelCase keys so cache files stay readable by any
tool that understands the run-cache layout.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

if TYPE_CHECKING:
    from intentest.core.test_case import TestCase


class TestStatus(str, Enum):
    """Status of a test execution."""

    __test__ = False

    PENDING = "pending"
    RUNNING = "running"
    PASSED = "passed"
    FAILED = "failed"


class CacheModel(BaseModel):
    """Base for models persisted to the run cache."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_json_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class TokenUsage(CacheModel):
    """Token counters accumulated across model calls."""

    completion_tokens: int = 0
    prompt_tokens: int = 0
    total_tokens: int = 0

    def add(self, other: "TokenUsage") -> None:
        self.completion_tokens += other.completion_tokens
        self.prompt_tokens += other.prompt_tokens
        self.total_tokens += other.total_tokens


class CacheAction(CacheModel):
    """Tool invocation recorded in a cache step."""

    type: Literal["tool_use", "text"] = "tool_use"
    name: str
    input: Dict[str, Any] = Field(default_factory=dict)


class CacheStep(CacheModel):
    """One executed action within a run."""

    reasoning: str = ""
    action: Optional[CacheAction] = None
    timestamp: int
    result: Optional[str] = None
    extras: Dict[str, Any] = Field(default_factory=dict)


class CacheEntryMetadata(CacheModel):
    timestamp: int
    version: int
    status: TestStatus
    reason: Optional[str] = None
    token_usage: TokenUsage = Field(default_factory=TokenUsage)
    run_id: str
    from_cache: bool = False


class CacheEntryTest(CacheModel):
    name: str
    file_path: str


class CacheEntryData(CacheModel):
    steps: List[CacheStep] = Field(default_factory=list)


class CacheEntry(CacheModel):
    """On-disk form of one test run."""

    metadata: CacheEntryMetadata
    test: CacheEntryTest
    data: CacheEntryData = Field(default_factory=CacheEntryData)


class Verdict(BaseModel):
    """Final pass/fail judgement returned by the model."""

    status: Literal["passed", "failed"]
    reason: str


@dataclass
class ToolResult:
    """Outcome of a single tool execution."""

    output: Optional[str] = None
    error: Optional[str] = None
    base64_image: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def window_info(self) -> Dict[str, Any]:
        return self.metadata.get("window_info", {})


@dataclass
class TestResult:
    """Result of executing one test."""

    __test__ = False

    test: "TestCase"
    status: TestStatus
    reason: str
    token_usage: TokenUsage = field(default_factory=TokenUsage)

    @property
    def passed(self) -> bool:
        return self.status == TestStatus.PASSED


@dataclass
class FileResult:
    """Result of executing a whole test file."""

    file_path: str
    status: TestStatus
    reason: str = ""
    test_results: List[TestResult] = field(default_factory=list)
