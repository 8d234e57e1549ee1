"""
Unit tests for logging setup.
"""

import json
import logging

from rich.logging import RichHandler

from intentest.monitoring.logger import (
    ContextLogAdapter,
    JSONFormatter,
    get_logger,
    setup_logging,
)


def make_record(**extra):
    record = logging.LogRecord(
        name="intentest.runner",
        level=logging.INFO,
        pathname=__file__,
        lineno=10,
        msg="Test finished",
        args=(),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestJSONFormatter:
    def test_format(self):
        data = json.loads(JSONFormatter().format(make_record(test_id="abcd1234", status="passed")))

        assert data["level"] == "INFO"
        assert data["logger"] == "intentest.runner"
        assert data["message"] == "Test finished"
        assert data["test_id"] == "abcd1234"
        assert "status" not in data


class TestSetupLogging:
    def test_text_format_uses_rich(self):
        root = setup_logging(log_level="DEBUG", log_format="text")

        assert root.level == logging.DEBUG
        assert isinstance(root.handlers[0], RichHandler)
        assert logging.getLogger("httpx").level == logging.WARNING

    def test_json_format_with_file(self, tmp_path):
        log_file = tmp_path / "intentest.log"
        root = setup_logging(log_level="INFO", log_format="json", log_file=str(log_file))

        assert all(isinstance(handler.formatter, JSONFormatter) for handler in root.handlers)
        assert len(root.handlers) == 2
        for handler in root.handlers[:]:
            handler.close()
            root.removeHandler(handler)


class TestGetLogger:
    def test_plain_logger(self):
        assert isinstance(get_logger("intentest.test"), logging.Logger)

    def test_context_adapter(self):
        adapter = get_logger("intentest.test", test_id="abcd1234")

        assert isinstance(adapter, ContextLogAdapter)
        msg, kwargs = adapter.process("hello", {"extra": {"tool": "computer"}})
        assert kwargs["extra"] == {"tool": "computer", "test_id": "abcd1234"}
