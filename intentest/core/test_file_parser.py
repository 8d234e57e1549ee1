"""
Locate ``test(...)`` declarations in a test file.

Used to narrow a run to the test declared at a given source line. Names built
with f-strings are recorded with ``EXPRESSION_PLACEHOLDER`` standing in for
each interpolated expression and matched as wildcards.
"""

from __future__ import annotations

import ast
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Union

from intentest.core.test_case import TestCase

logger = logging.getLogger(__name__)

EXPRESSION_PLACEHOLDER = "{...}"
TEST_FUNCTION_NAMES = ("test",)


@dataclass(frozen=True)
class TestLocation:
    __test__ = False

    test_name: str
    start_line: int
    end_line: int

    @property
    def span(self) -> int:
        return self.end_line - self.start_line

    def contains(self, line: int) -> bool:
        return self.start_line <= line <= self.end_line

    def matches(self, name: str) -> bool:
        normalized = name.strip()
        if self.test_name == normalized:
            return True
        if EXPRESSION_PLACEHOLDER not in self.test_name:
            return False
        pattern = ".*".join(
            re.escape(part) for part in self.test_name.split(EXPRESSION_PLACEHOLDER)
        )
        return re.fullmatch(pattern, normalized, flags=re.DOTALL) is not None


def _is_test_call(node: ast.Call) -> bool:
    func = node.func
    if isinstance(func, ast.Name):
        return func.id in TEST_FUNCTION_NAMES
    if isinstance(func, ast.Attribute):
        return func.attr in TEST_FUNCTION_NAMES and isinstance(func.value, ast.Name)
    return False


def _literal_names(node: ast.expr) -> List[str]:
    if isinstance(node, ast.Constant) and isinstance(node.value, str):
        return [node.value]
    if isinstance(node, ast.JoinedStr):
        parts = []
        for value in node.values:
            if isinstance(value, ast.Constant):
                parts.append(str(value.value))
            else:
                parts.append(EXPRESSION_PLACEHOLDER)
        return [re.sub(r"\s+", " ", "".join(parts)).strip()]
    if isinstance(node, (ast.List, ast.Tuple)):
        names: List[str] = []
        for element in node.elts:
            names.extend(_literal_names(element))
        return names
    return []


def _chain_end_line(call: ast.Call, parents: Dict[ast.AST, ast.AST]) -> int:
    """Last line of ``test(...).expect(...)...`` chains rooted at ``call``."""
    current: ast.AST = call
    end_line = call.end_lineno or call.lineno
    while current in parents:
        parent = parents[current]
        if isinstance(parent, ast.Attribute) or (
            isinstance(parent, ast.Call) and parent.func is current
        ):
            current = parent
            end_line = max(end_line, getattr(parent, "end_lineno", None) or end_line)
            continue
        break
    return end_line


def parse_test_file(source: Union[str, Path]) -> List[TestLocation]:
    """Return the location of every named test declared in ``source``."""
    text = Path(source).read_text(encoding="utf-8")
    tree = ast.parse(text, filename=str(source))

    parents: Dict[ast.AST, ast.AST] = {}
    for parent in ast.walk(tree):
        for child in ast.iter_child_nodes(parent):
            parents[child] = parent

    locations: List[TestLocation] = []
    for node in ast.walk(tree):
        if not isinstance(node, ast.Call) or not _is_test_call(node) or not node.args:
            continue
        names = _literal_names(node.args[0])
        if not names:
            continue
        end_line = _chain_end_line(node, parents)
        for name in names:
            locations.append(TestLocation(name, node.lineno, end_line))

    locations.sort(key=lambda location: location.start_line)
    logger.debug("Parsed test locations", extra={"count": len(locations)})
    return locations


def find_location(
    test_case: TestCase, locations: Sequence[TestLocation], line: int
) -> Optional[TestLocation]:
    """Smallest declaration span around ``line`` that belongs to ``test_case``."""
    enclosing = [
        location
        for location in locations
        if location.contains(line) and location.matches(test_case.name)
    ]
    if not enclosing:
        return None
    return min(enclosing, key=lambda location: location.span)


def filter_tests_by_line(
    test_cases: Sequence[TestCase], source: Union[str, Path], line: int
) -> List[TestCase]:
    """Keep only the tests declared by the innermost declaration around ``line``."""
    locations = parse_test_file(source)
    matches = []
    for test_case in test_cases:
        location = find_location(test_case, locations, line)
        if location is not None:
            matches.append((test_case, location))
    if not matches:
        return []

    smallest = min(location.span for _, location in matches)
    return [test_case for test_case, location in matches if location.span == smallest]
