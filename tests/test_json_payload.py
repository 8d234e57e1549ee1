"""
Unit tests for verdict extraction.
"""

import pytest

from intentest.agents.json_payload import extract_verdict
from intentest.error_handling import AIError


class TestExtractVerdict:
    def test_verdict_in_prose(self):
        verdict = extract_verdict(
            'The dashboard is shown.\n{"status": "passed", "reason": "Dashboard visible"}\nDone.'
        )
        assert verdict.status == "passed"
        assert verdict.reason == "Dashboard visible"

    def test_failed_verdict(self):
        verdict = extract_verdict('{"status": "failed", "reason": "Login error shown"}')
        assert verdict.status == "failed"

    @pytest.mark.parametrize(
        "text, message",
        [
            ("No verdict here", "No JSON object found"),
            ("", "No JSON object found"),
            (
                '{"status": "passed", "reason": "a"} {"status": "failed", "reason": "b"}',
                "multiple JSON objects",
            ),
            ("{status: passed}", "could not be parsed"),
            ('{"status": "skipped", "reason": "x"}', "does not match"),
            ('{"status": "passed"}', "does not match"),
        ],
    )
    def test_invalid_responses(self, text, message):
        with pytest.raises(AIError, match=message) as exc_info:
            extract_verdict(text)
        assert exc_info.value.error_type == "invalid-response"
