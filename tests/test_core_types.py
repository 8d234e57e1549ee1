"""
Unit tests for test cases, test runs and cache models.
"""

import re

import pytest

from intentest.core.test_case import Expectation, TestCase, create_identifier
from intentest.core.test_run import CACHE_FORMAT_VERSION, TestRun, create_run_id
from intentest.core.types import (
    CacheAction,
    CacheEntry,
    CacheStep,
    TestStatus,
    TokenUsage,
    ToolResult,
)
from intentest.error_handling import IntentestError

from conftest import make_test_case


class TestIdentifier:
    """Identity hashing of test cases."""

    def test_identical_declarations_share_identifier(self):
        first = make_test_case(fn=lambda context: None)
        second = make_test_case(fn=lambda context: 1)
        assert first.identifier == second.identifier
        assert re.fullmatch(r"[0-9a-f]{8}", first.identifier)

    @pytest.mark.parametrize(
        "changes",
        [
            {"name": "Log out"},
            {"file_path": "other.test.py"},
            {"expectations": (Expectation(description="Error banner shown"),)},
        ],
    )
    def test_identifier_changes_with_identity_fields(self, changes):
        assert make_test_case(**changes).identifier != make_test_case().identifier

    def test_payload_outside_hash(self):
        assert (
            make_test_case(payload={"user": "a"}).identifier
            == make_test_case(payload={"user": "b"}).identifier
        )

    def test_create_identifier_matches_test_case(self):
        test_case = make_test_case()
        assert test_case.identifier == create_identifier(
            test_case.name, test_case.file_path, test_case.expectations
        )

    def test_expectation_json_omits_callbacks(self):
        expectation = Expectation(description="Shown", payload={"a": 1}, fn=print)
        assert expectation.to_json() == {
            "description": "Shown",
            "payload": {"a": 1},
            "directExecution": False,
        }


class TestRunStateMachine:
    """Transitions of a TestRun."""

    def test_happy_path(self, test_case):
        run = TestRun(test_case)
        assert run.status == TestStatus.PENDING

        run.mark_running()
        usage = TokenUsage(prompt_tokens=3, completion_tokens=2, total_tokens=5)
        run.mark_passed("ok", usage)

        assert run.status == TestStatus.PASSED
        assert run.reason == "ok"
        assert run.token_usage == usage

    def test_fail_from_pending_and_running(self, test_case):
        pending = TestRun(test_case)
        pending.mark_failed("never started")
        assert pending.status == TestStatus.FAILED

        running = TestRun(test_case)
        running.mark_running()
        running.mark_failed("broke")
        assert running.status == TestStatus.FAILED

    def test_pass_requires_running(self, test_case):
        with pytest.raises(IntentestError, match="Can only pass running tests"):
            TestRun(test_case).mark_passed("ok")

    def test_running_requires_pending(self, test_case):
        run = TestRun(test_case)
        run.mark_running()
        with pytest.raises(IntentestError, match="Can only start pending tests"):
            run.mark_running()

    @pytest.mark.parametrize("final", ["passed", "failed"])
    def test_terminal_states_are_final(self, test_case, final):
        run = TestRun(test_case)
        run.mark_running()
        if final == "passed":
            run.mark_passed("ok")
        else:
            run.mark_failed("no")

        with pytest.raises(IntentestError):
            run.mark_failed("again")
        with pytest.raises(IntentestError):
            run.mark_running()
        with pytest.raises(IntentestError):
            run.mark_passed("again")

    def test_get_steps_returns_copy(self, test_case):
        run = TestRun(test_case)
        run.add_step(CacheStep(timestamp=1))
        run.get_steps().clear()
        assert len(run.get_steps()) == 1


class TestRunId:
    """Run identifiers."""

    def test_format(self):
        run_id = create_run_id("abcd1234", 0)
        assert run_id == "1970-01-01T00-00-00-000Z_abcd1234"

    def test_sortable_by_time(self):
        assert create_run_id("a", 1_000) < create_run_id("a", 2_000)

    def test_run_uses_identifier(self, test_case):
        run = TestRun(test_case, timestamp=1_700_000_000_000)
        assert run.run_id.endswith(f"_{test_case.identifier}")
        assert run.version == CACHE_FORMAT_VERSION


class TestCacheRoundTrip:
    """Serializing a run and rebuilding it."""

    def test_round_trip_preserves_state(self, test_case):
        run = TestRun(test_case, timestamp=1_700_000_000_000)
        run.mark_running()
        run.add_step(
            CacheStep(
                reasoning="Move to the submit button",
                action=CacheAction(
                    name="computer", input={"action": "mouse_move", "coordinate": [10, 20]}
                ),
                timestamp=1_700_000_000_100,
                result="Mouse moved to (10, 20)",
                extras={"componentStr": "button Submit"},
            )
        )
        run.mark_passed("ok", TokenUsage(prompt_tokens=7, completion_tokens=3, total_tokens=10))

        data = run.to_cache_entry().to_json_dict()
        restored = TestRun.from_cache_entry(test_case, CacheEntry.model_validate(data))

        assert restored.status == run.status
        assert restored.reason == run.reason
        assert restored.token_usage == run.token_usage
        assert restored.get_steps() == run.get_steps()
        assert restored.run_id == run.run_id

    def test_json_uses_camel_case(self, test_case):
        run = TestRun(test_case, timestamp=5)
        data = run.to_cache_entry().to_json_dict()

        assert set(data) == {"metadata", "test", "data"}
        assert data["metadata"]["runId"] == run.run_id
        assert data["metadata"]["fromCache"] is False
        assert data["metadata"]["tokenUsage"] == {
            "completionTokens": 0,
            "promptTokens": 0,
            "totalTokens": 0,
        }
        assert data["test"] == {"name": test_case.name, "filePath": test_case.file_path}


class TestTokenUsage:
    def test_add(self):
        usage = TokenUsage()
        usage.add(TokenUsage(prompt_tokens=1, completion_tokens=2, total_tokens=3))
        usage.add(TokenUsage(prompt_tokens=1, completion_tokens=2, total_tokens=3))
        assert usage == TokenUsage(prompt_tokens=2, completion_tokens=4, total_tokens=6)


class TestToolResult:
    def test_window_info(self):
        result = ToolResult(metadata={"window_info": {"url": "http://a", "title": "A"}})
        assert result.window_info == {"url": "http://a", "title": "A"}
        assert ToolResult().window_info == {}
