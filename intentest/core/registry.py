"""
Per-file registry of declared tests and lifecycle hooks.

The orchestrator creates a fresh ``TestRegistry`` for every test file and
activates it while the file is imported. The authoring API in
``intentest.api`` writes into whichever registry is active, so declarations
from one file can never leak into another.
"""

from __future__ import annotations

from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field
from typing import Any, Iterator, List, Optional

from intentest.core.test_case import Expectation, TestCase, TestFn

_active_registry: ContextVar[Optional["TestRegistry"]] = ContextVar(
    "intentest_active_registry", default=None
)


@dataclass
class TestDefinition:
    """Mutable test declaration, frozen into a ``TestCase`` after import."""

    __test__ = False

    name: str
    file_path: str
    payload: Any = None
    fn: Optional[TestFn] = None
    expectations: List[Expectation] = field(default_factory=list)
    before_fn: Optional[TestFn] = None
    after_fn: Optional[TestFn] = None
    direct_execution: bool = False

    def build(self) -> TestCase:
        return TestCase(
            name=self.name,
            file_path=self.file_path,
            payload=self.payload,
            fn=self.fn,
            expectations=tuple(self.expectations),
            before_fn=self.before_fn,
            after_fn=self.after_fn,
            direct_execution=self.direct_execution,
        )


class TestRegistry:
    """Tests and hooks declared by a single test file."""

    __test__ = False

    def __init__(self, file_path: str) -> None:
        self.file_path = file_path
        self.definitions: List[TestDefinition] = []
        self.before_all_fns: List[TestFn] = []
        self.after_all_fns: List[TestFn] = []
        self.before_each_fns: List[TestFn] = []
        self.after_each_fns: List[TestFn] = []
        self._direct_count = 0

    def add_test(self, definition: TestDefinition) -> TestDefinition:
        self.definitions.append(definition)
        return definition

    def next_direct_name(self) -> str:
        self._direct_count += 1
        return f"Direct Test #{self._direct_count}"

    def build_test_cases(self) -> List[TestCase]:
        return [definition.build() for definition in self.definitions]

    @contextmanager
    def activate(self) -> Iterator["TestRegistry"]:
        """Route authoring API calls into this registry for the duration."""
        token = _active_registry.set(self)
        try:
            yield self
        finally:
            _active_registry.reset(token)


def get_active_registry() -> Optional[TestRegistry]:
    return _active_registry.get()
