"""
Authoring API used inside test files.

Example::

    from intentest import test

    test("Log in with valid credentials", {"username": "demo"}).expect(
        "The dashboard greets the user by name"
    )

    @test.before_each
    async def reset(context):
        await context.page.goto("/")
"""

from __future__ import annotations

from typing import Any, List, Optional, Sequence, Union

from intentest.core.registry import TestDefinition, TestRegistry, get_active_registry
from intentest.core.test_case import Expectation, TestFn
from intentest.error_handling import IntentestError


def _require_registry() -> TestRegistry:
    registry = get_active_registry()
    if registry is None:
        raise IntentestError(
            "test() can only be used inside a test file loaded by intentest"
        )
    return registry


class TestChain:
    """Builder returned by ``test(...)`` for adding expectations and hooks."""

    __test__ = False

    def __init__(self, definitions: List[TestDefinition]) -> None:
        self._definitions = definitions

    def _check_not_direct(self, method: str) -> None:
        if any(definition.direct_execution for definition in self._definitions):
            raise IntentestError(
                f"{method}() is not available on a direct-execution test"
            )

    def expect(
        self,
        description: Union[str, TestFn],
        payload: Any = None,
        fn: Optional[TestFn] = None,
    ) -> "TestChain":
        """Add an expectation. Passing only a callable adds a direct check."""
        self._check_not_direct("expect")
        if callable(description):
            expectation = Expectation(fn=description, direct_execution=True)
        else:
            if callable(payload) and fn is None:
                payload, fn = None, payload
            expectation = Expectation(description=description, payload=payload, fn=fn)

        for definition in self._definitions:
            definition.expectations.append(expectation)
        return self

    def before(self, fn: TestFn) -> "TestChain":
        self._check_not_direct("before")
        for definition in self._definitions:
            definition.before_fn = fn
        return self

    def after(self, fn: TestFn) -> "TestChain":
        self._check_not_direct("after")
        for definition in self._definitions:
            definition.after_fn = fn
        return self


class TestAPI:
    """Callable entry point exposed as ``intentest.test``."""

    __test__ = False

    def __call__(
        self,
        name: Union[str, Sequence[str], TestFn],
        payload: Any = None,
        fn: Optional[TestFn] = None,
    ) -> TestChain:
        registry = _require_registry()

        if callable(name):
            definition = TestDefinition(
                name=registry.next_direct_name(),
                file_path=registry.file_path,
                fn=name,
                direct_execution=True,
            )
            return TestChain([registry.add_test(definition)])

        if callable(payload) and fn is None:
            payload, fn = None, payload

        names = [name] if isinstance(name, str) else list(name)
        if not names:
            raise IntentestError("test() requires at least one name")

        definitions = [
            registry.add_test(
                TestDefinition(
                    name=test_name,
                    file_path=registry.file_path,
                    payload=payload,
                    fn=fn,
                )
            )
            for test_name in names
        ]
        return TestChain(definitions)

    def before_all(self, fn: TestFn) -> TestFn:
        _require_registry().before_all_fns.append(fn)
        return fn

    def after_all(self, fn: TestFn) -> TestFn:
        _require_registry().after_all_fns.append(fn)
        return fn

    def before_each(self, fn: TestFn) -> TestFn:
        _require_registry().before_each_fns.append(fn)
        return fn

    def after_each(self, fn: TestFn) -> TestFn:
        _require_registry().after_each_fns.append(fn)
        return fn


test = TestAPI()
