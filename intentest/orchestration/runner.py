"""
Top-level control loop: discover test files, run their tests, report results.

Each file gets its own registry, browser and ``TestContext``. Per test the
runner either replays a cached run or hands the test to the action engine,
and falls back to a fresh model-driven run once if the cache turns out to be
unusable.
"""

from __future__ import annotations

import asyncio
import glob
import json
import os
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

from intentest.agents.action_engine import (
    COMPONENT_EXTRA_KEY,
    ActionEngine,
    is_mouse_move,
    is_screenshot,
)
from intentest.agents.tools.registry import ToolRegistry, create_tool_registry
from intentest.browser.browser_tool import BrowserTool
from intentest.browser.manager import BrowserManager
from intentest.cache.lock import register_cleanup_handlers
from intentest.cache.maintenance import clean_up_cache, purge_legacy_cache
from intentest.cache.test_cache import TestCache
from intentest.core.compiler import compile_file, load_module
from intentest.core.context import TestContext, invoke_callback
from intentest.core.registry import TestRegistry
from intentest.core.test_case import TestCase, TestFn
from intentest.core.test_file_parser import filter_tests_by_line
from intentest.core.test_run import TestRun
from intentest.core.types import FileResult, TestResult, TestStatus, TokenUsage
from intentest.error_handling import (
    CacheError,
    ConfigError,
    IntentestError,
    TestError,
    as_intentest_error,
    get_error_details,
)
from intentest.models.base import LLMClient
from intentest.models.provider import create_llm_client
from intentest.monitoring.logger import get_logger
from intentest.monitoring.reporter import TestReporter

logger = get_logger(__name__)

DIRECT_SUCCESS_REASON = "Direct execution successful"
REPLAY_SUCCESS_REASON = "All actions successfully replayed from cache"


def build_prompt(test_case: TestCase, window_info: Dict[str, Any]) -> str:
    """Natural-language instruction handed to the action engine."""
    lines = [f'Test: "{test_case.name}"']
    if test_case.payload is not None:
        lines.append(f"Context: {json.dumps(test_case.payload, default=str)}")
    lines.append(
        "Callback function: " + ("[HAS_CALLBACK]" if test_case.fn else "[NO_CALLBACK]")
    )

    lines.append("\nExpect:")
    if test_case.expectations:
        for index, expectation in enumerate(test_case.expectations, start=1):
            marker = "[HAS_CALLBACK]" if expectation.fn else "[NO_CALLBACK]"
            description = expectation.description or "Callback succeeds"
            lines.append(f"{index}. {description} {marker}")
    else:
        lines.append(f'1. "{test_case.name}" expected to be successful')

    lines.append("\nCurrent Page State:")
    lines.append(f"URL: {window_info.get('url') or 'unknown'}")
    lines.append(f"Title: {window_info.get('title') or 'unknown'}")
    return "\n".join(lines)


class TestRunner:
    """Runs test files one after another, tests within a file in order."""

    __test__ = False

    def __init__(
        self,
        settings,
        cwd: Union[str, Path, None] = None,
        reporter: Optional[TestReporter] = None,
        llm_client_factory: Callable[[Any], LLMClient] = create_llm_client,
        browser_manager_factory: Callable[[Any], BrowserManager] = BrowserManager.from_settings,
        tool_registry: Optional[ToolRegistry] = None,
        force_purge_cache: bool = False,
    ) -> None:
        self.settings = settings
        self.cwd = Path(cwd) if cwd else Path.cwd()
        self.reporter = reporter or TestReporter(model=settings.ai_model)
        self.llm_client_factory = llm_client_factory
        self.browser_manager_factory = browser_manager_factory
        self.tool_registry = tool_registry or create_tool_registry()
        self.force_purge_cache = force_purge_cache

        self.cache_dir = self.cwd / Path(settings.cache_dir)
        self.test_context: Optional[TestContext] = None
        self._llm_client: Optional[LLMClient] = None

    @property
    def llm_client(self) -> LLMClient:
        if self._llm_client is None:
            self._llm_client = self.llm_client_factory(self.settings)
        return self._llm_client

    # ------------------------------------------------------------------ #
    # Session
    # ------------------------------------------------------------------ #

    def find_test_files(self, pattern: str) -> List[Path]:
        matches = glob.glob(os.path.join(str(self.cwd), pattern), recursive=True)
        return sorted(Path(match) for match in matches if os.path.isfile(match))

    def prepare_cache(self) -> None:
        register_cleanup_handlers()
        purge_legacy_cache(self.cache_dir.parent)
        removed = clean_up_cache(
            self.cache_dir, force_purge=self.force_purge_cache, project_root=self.cwd
        )
        if removed:
            logger.info("Removed stale cache entries", extra={"count": removed})

    async def execute(self, pattern: str, line_number: Optional[int] = None) -> bool:
        """
        Run every test file matching ``pattern``.

        Returns:
            True when every test passed and no file failed

        Raises:
            ConfigError: Configuration problems abort the whole run
        """
        self.prepare_cache()

        files = self.find_test_files(pattern)
        logger.debug("Found test files", extra={"pattern": pattern, "count": len(files)})
        if not files:
            self.reporter.error(
                "Test Discovery", f"No test files found matching the pattern {pattern}"
            )
            return False

        self.reporter.on_run_start(len(files))
        for file in files:
            await self.execute_test_file(file, line_number)
        self.reporter.on_run_end()

        return self.reporter.all_tests_passed()

    # ------------------------------------------------------------------ #
    # Files
    # ------------------------------------------------------------------ #

    def _relative_path(self, file: Path) -> str:
        try:
            return Path(file).resolve().relative_to(self.cwd.resolve()).as_posix()
        except ValueError:
            return str(file)

    def load_test_file(self, file: Path) -> TestRegistry:
        """Compile and import ``file`` into a fresh registry."""
        registry = TestRegistry(self._relative_path(file))
        compiled_path = compile_file(file)
        with registry.activate():
            load_module(compiled_path)
        return registry

    async def execute_test_file(
        self, file: Path, line_number: Optional[int] = None
    ) -> FileResult:
        relative_path = self._relative_path(file)
        logger.debug("Executing test file", extra={"file": relative_path, "line": line_number})

        try:
            result = await self._execute_test_file(file, relative_path, line_number)
        except ConfigError:
            raise
        except IntentestError as exc:
            logger.error(
                "Test file failed", extra={"file": relative_path, **get_error_details(exc)}
            )
            self.test_context = None
            result = FileResult(
                file_path=relative_path, status=TestStatus.FAILED, reason=exc.message
            )

        self.reporter.on_file_end(result)
        return result

    async def _execute_test_file(
        self, file: Path, relative_path: str, line_number: Optional[int]
    ) -> FileResult:
        registry = self.load_test_file(file)
        test_cases = registry.build_test_cases()

        if line_number is not None:
            test_cases = filter_tests_by_line(test_cases, Path(file), line_number)
            if not test_cases:
                raise IntentestError(
                    f"No test found at line {line_number} in {relative_path}"
                )

        browser_manager = self.browser_manager_factory(self.settings)
        results: List[TestResult] = []
        try:
            try:
                browser_context = await browser_manager.launch()
            except Exception as exc:
                logger.error("Browser launching failed", extra=get_error_details(exc))
                raise as_intentest_error(exc) from exc

            self.test_context = TestContext(
                page=browser_manager.page,
                browser=browser_manager.browser,
                browser_context=browser_context,
                playwright=browser_manager.playwright,
                base_url=self.settings.base_url,
            )

            await self._run_hooks(registry.before_all_fns, "beforeAll")
            self.reporter.on_file_start(relative_path, len(test_cases))
            logger.info(f"Running {len(test_cases)} test(s)", extra={"file": relative_path})

            for test_case in test_cases:
                await self._run_hooks(registry.before_each_fns, "beforeEach")
                self.reporter.on_test_start(test_case)
                result = await self.run_test(test_case)
                results.append(result)
                self.reporter.on_test_end(result)
                await self._run_hooks(registry.after_each_fns, "afterEach")

            await self._run_hooks(registry.after_all_fns, "afterAll")
        finally:
            await browser_manager.close()
            self.test_context = None

        return FileResult(
            file_path=relative_path, status=TestStatus.PASSED, test_results=results
        )

    async def _run_hooks(self, hooks: Sequence[TestFn], hook_name: str) -> None:
        context = self._require_context()
        for hook in hooks:
            try:
                await invoke_callback(hook, context)
            except IntentestError:
                raise
            except Exception as exc:
                raise TestError(
                    "callback-execution-failed", f"{hook_name} hook failed: {exc}", cause=exc
                ) from exc

    def _require_context(self) -> TestContext:
        if self.test_context is None:
            raise IntentestError("No active test context")
        return self.test_context

    # ------------------------------------------------------------------ #
    # Tests
    # ------------------------------------------------------------------ #

    async def run_test(self, test_case: TestCase) -> TestResult:
        """``execute_test`` with failures turned into a failed result."""
        try:
            return await self.execute_test(test_case)
        except ConfigError:
            raise
        except Exception as exc:
            logger.error(
                "Test execution failed",
                extra={"test_id": test_case.identifier, **get_error_details(exc)},
            )
            return TestResult(
                test=test_case,
                status=TestStatus.FAILED,
                reason=str(exc) or exc.__class__.__name__,
            )

    async def execute_test(self, test_case: TestCase, skip_cache: bool = False) -> TestResult:
        context = self._require_context()
        logger.debug(
            "Executing test",
            extra={
                "test_id": test_case.identifier,
                "test_name": test_case.name,
                "skip_cache": skip_cache,
            },
        )

        if test_case.direct_execution:
            return await self._execute_direct(test_case, context)

        context.current_test = test_case
        context.current_step_index = 0
        browser_tool = BrowserTool(
            context.page,
            context,
            width=self.settings.browser_viewport_width,
            height=self.settings.browser_viewport_height,
            settings=self.settings,
        )
        initial_state = await browser_tool.execute({"action": "screenshot"})
        cache = TestCache(test_case, self.cache_dir, enabled=self.settings.caching_enabled)

        if self.settings.caching_enabled and not skip_cache:
            try:
                result = await self.run_cached_test(test_case, browser_tool, cache)
            except CacheError as exc:
                logger.warning(
                    "Cache execution interrupted, falling back to normal execution",
                    extra={"test_id": test_case.identifier, **get_error_details(exc)},
                )
                if exc.error_type != "not-found":
                    await cache.delete()
                initial_url = initial_state.window_info.get("url")
                if initial_url:
                    await context.page.goto(initial_url)
                return await self.execute_test(test_case, skip_cache=True)
            return await self._run_after(test_case, context, result)

        logger.debug(
            "Skipping cache",
            extra={"caching_enabled": self.settings.caching_enabled, "skip_cache": skip_cache},
        )

        if test_case.before_fn is not None:
            try:
                await invoke_callback(test_case.before_fn, context)
            except Exception as exc:
                return TestResult(
                    test=test_case, status=TestStatus.FAILED, reason=str(exc)
                )

        result = await self._run_with_engine(
            test_case, browser_tool, cache, build_prompt(test_case, initial_state.window_info)
        )
        return await self._run_after(test_case, context, result)

    async def _execute_direct(self, test_case: TestCase, context: TestContext) -> TestResult:
        try:
            if test_case.fn is not None:
                await invoke_callback(test_case.fn, context)
        except Exception as exc:
            return TestResult(
                test=test_case,
                status=TestStatus.FAILED,
                reason=str(exc) or "Direct execution failed",
            )
        return TestResult(test=test_case, status=TestStatus.PASSED, reason=DIRECT_SUCCESS_REASON)

    async def _run_with_engine(
        self, test_case: TestCase, browser_tool: BrowserTool, cache: TestCache, prompt: str
    ) -> TestResult:
        test_run = TestRun(test_case)
        if cache.enabled:
            browser_tool.artifact_dir = cache.repository.ensure_run_dir(test_run)

        engine = ActionEngine(
            self.llm_client,
            browser_tool,
            test_run,
            self.settings,
            tool_registry=self.tool_registry,
        )
        test_run.mark_running()
        try:
            response = await engine.run_action(prompt)
        except Exception as exc:
            test_run.mark_failed(str(exc), engine.usage.model_copy())
            await cache.set(test_run)
            raise

        verdict = response.verdict
        if verdict.status == "passed":
            test_run.mark_passed(verdict.reason, response.usage)
        else:
            test_run.mark_failed(verdict.reason, response.usage)
        await cache.set(test_run)

        return TestResult(
            test=test_case,
            status=TestStatus(verdict.status),
            reason=verdict.reason,
            token_usage=response.usage,
        )

    async def _run_after(
        self, test_case: TestCase, context: TestContext, result: TestResult
    ) -> TestResult:
        if test_case.after_fn is None:
            return result
        try:
            await invoke_callback(test_case.after_fn, context)
        except Exception as exc:
            return TestResult(
                test=test_case,
                status=TestStatus.FAILED,
                reason=f"AI: {result.reason}, After: {exc}",
                token_usage=result.token_usage,
            )
        return result

    async def run_cached_test(
        self, test_case: TestCase, browser_tool: BrowserTool, cache: TestCache
    ) -> TestResult:
        """
        Replay the latest passed run of ``test_case``.

        Raises:
            CacheError: ``not-found`` without a usable entry, ``invalid`` when
                the entry cannot be replayed against the current page
        """
        entry = await cache.get()
        if entry is None:
            raise CacheError("not-found", "No cache found")

        steps = [
            step
            for step in entry.data.steps
            if step.action is not None
            and step.action.type == "tool_use"
            and not is_screenshot(step.action.input)
        ]
        if not steps:
            raise CacheError("invalid", "No eligible steps in cache")

        tools = self.tool_registry.get_tools(
            self.settings.ai_provider, self.settings.ai_model, browser_tool
        )
        logger.debug(
            "Executing cached steps",
            extra={"test_id": test_case.identifier, "step_count": len(steps)},
        )

        for step in steps:
            await asyncio.sleep(self.settings.replay_step_delay_seconds)
            tool_input = step.action.input

            if is_mouse_move(tool_input):
                x, y = tool_input["coordinate"][:2]
                component = await browser_tool.get_normalized_component_string_by_coords(x, y)
                if component != step.extras.get(COMPONENT_EXTRA_KEY):
                    logger.debug(
                        "UI element mismatch with cached UI element",
                        extra={
                            "component": component,
                            "cached_component": step.extras.get(COMPONENT_EXTRA_KEY),
                        },
                    )
                    raise CacheError("invalid", "UI element mismatch")

            tool = tools.get(step.action.name)
            if tool is None:
                raise CacheError("invalid", f"Cached tool '{step.action.name}' is not available")

            try:
                result = await tool.execute(tool_input)
            except Exception as exc:
                logger.error(
                    "Failed to execute cached step",
                    extra={"tool": step.action.name, "input": tool_input, **get_error_details(exc)},
                )
                raise CacheError("invalid", "Error executing cached step", cause=exc) from exc

            if result.error:
                logger.warning(
                    "Cached step reported an error, continuing replay",
                    extra={"tool": step.action.name, "error": result.error},
                )

        logger.debug("Successfully executed all cached steps")
        return TestResult(
            test=test_case,
            status=TestStatus.PASSED,
            reason=REPLAY_SUCCESS_REASON,
            token_usage=TokenUsage(),
        )
