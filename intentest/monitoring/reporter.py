"""
Console reporting for test runs.
"""

import time
from datetime import datetime
from typing import Dict, List, Optional

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from intentest.core.test_case import TestCase
from intentest.core.types import FileResult, TestResult, TestStatus
from intentest.monitoring.logger import get_logger

logger = get_logger(__name__)

# USD per 1K tokens
PRICING_PER_1K: Dict[str, Dict[str, float]] = {
    "claude-3-5-sonnet": {"prompt": 0.003, "completion": 0.015},
    "claude-3-7-sonnet": {"prompt": 0.003, "completion": 0.015},
    "claude-3-5-haiku": {"prompt": 0.0008, "completion": 0.004},
    "gpt-4o-mini": {"prompt": 0.00015, "completion": 0.0006},
    "gpt-4o": {"prompt": 0.0025, "completion": 0.01},
}
DEFAULT_PRICING_MODEL = "claude-3-5-sonnet"

STATUS_STYLES = {
    TestStatus.PENDING: ("○", "yellow"),
    TestStatus.RUNNING: ("●", "blue"),
    TestStatus.PASSED: ("✓", "green"),
    TestStatus.FAILED: ("✗", "red"),
}


def resolve_pricing(model: Optional[str]) -> Dict[str, float]:
    """Pricing entry for ``model``, matched exactly or by family prefix."""
    if model in PRICING_PER_1K:
        return PRICING_PER_1K[model]

    if model:
        # Longest prefix first so gpt-4o-mini wins over gpt-4o
        for key in sorted(PRICING_PER_1K, key=len, reverse=True):
            if model.startswith(key):
                return PRICING_PER_1K[key]

    return PRICING_PER_1K[DEFAULT_PRICING_MODEL]


def estimate_cost(prompt_tokens: int, completion_tokens: int, model: Optional[str] = None) -> float:
    """Estimated USD cost, rounded to a tenth of a cent."""
    pricing = resolve_pricing(model)
    cost = (prompt_tokens / 1000) * pricing["prompt"] + (
        completion_tokens / 1000
    ) * pricing["completion"]
    return round(cost, 3)


class TestReporter:
    """Prints progress and the final summary of a run."""

    __test__ = False

    def __init__(self, console: Optional[Console] = None, model: Optional[str] = None) -> None:
        self.console = console or Console()
        self.model = model
        self.start_time = time.time()

        self.files_count = 0
        self.tests_count = 0
        self.passed_tests_count = 0
        self.failed_tests_count = 0
        self.total_prompt_tokens = 0
        self.total_completion_tokens = 0
        self.failed_files: List[FileResult] = []
        self.test_results: List[TestResult] = []

    def on_run_start(self, files_count: int) -> None:
        self.files_count = files_count
        self.console.print(f"Found {files_count} test file(s)")

    def on_file_start(self, file_path: str, tests_count: int) -> None:
        self.console.print(f"\n[bold blue]{escape(file_path)}[/bold blue] {tests_count} test(s)")

    def on_test_start(self, test: TestCase) -> None:
        self.tests_count += 1
        icon, style = STATUS_STYLES[TestStatus.RUNNING]
        self.console.print(f"[{style}]{icon}[/{style}] {escape(test.name)}")

    def on_test_end(self, result: TestResult) -> None:
        self.test_results.append(result)
        if result.status == TestStatus.PASSED:
            self.passed_tests_count += 1
        elif result.status == TestStatus.FAILED:
            self.failed_tests_count += 1

        usage = result.token_usage
        self.total_prompt_tokens += usage.prompt_tokens
        self.total_completion_tokens += usage.completion_tokens

        icon, style = STATUS_STYLES[result.status]
        self.console.print(f"  [{style}]{icon} {result.status.value}[/{style}]")

        if usage.prompt_tokens or usage.completion_tokens:
            tokens = usage.prompt_tokens + usage.completion_tokens
            cost = estimate_cost(usage.prompt_tokens, usage.completion_tokens, self.model)
            self.console.print(f"    [dim]↳ {tokens:,} tokens (≈ ${cost:.2f})[/dim]")

        if result.status == TestStatus.FAILED:
            self.error("Test Execution", result.reason)

        logger.info(
            "Test finished",
            extra={
                "test_id": result.test.identifier,
                "status": result.status.value,
                "reason": result.reason,
            },
        )

    def on_file_end(self, result: FileResult) -> None:
        if result.status == TestStatus.FAILED:
            self.failed_files.append(result)
            self.error("Error processing file", f"{result.file_path}: {result.reason}")

    def on_run_end(self) -> None:
        self.summary()

    @property
    def ai_cost(self) -> float:
        return estimate_cost(
            self.total_prompt_tokens, self.total_completion_tokens, self.model
        )

    def summary(self) -> None:
        duration = time.time() - self.start_time
        total_tokens = self.total_prompt_tokens + self.total_completion_tokens

        if self.failed_tests_count:
            tests_label = (
                f"[red]{self.failed_tests_count} failed[/red] | "
                f"[green]{self.passed_tests_count} passed[/green]"
            )
        else:
            tests_label = f"[green]{self.passed_tests_count} passed[/green]"

        table = Table(title="Test Summary", show_header=False)
        table.add_column("Metric", style="bold")
        table.add_column("Value")
        table.add_row("Tests", f"{tests_label} [dim]({self.tests_count})[/dim]")
        if self.failed_files:
            table.add_row("Files", f"[red]{len(self.failed_files)} failed[/red]")
        table.add_row("Duration", f"{duration:.2f}s")
        table.add_row(
            "Started at",
            datetime.fromtimestamp(self.start_time).strftime("%H:%M:%S"),
        )
        table.add_row("Tokens", f"{total_tokens:,} tokens (≈ ${self.ai_cost:.2f})")

        self.console.print()
        self.console.print(table)

    def all_tests_passed(self) -> bool:
        return not self.failed_files and self.tests_count == self.passed_tests_count

    def error(self, context: str, message: str) -> None:
        self.console.print(f"[red]{escape(context)}: {escape(message)}[/red]")
