"""
Logging setup for intentest.

Console output goes through rich in ``text`` mode and one JSON object per line
in ``json`` mode. Records carry structured context through ``extra``; the
fields in ``CONTEXT_FIELDS`` are lifted into the JSON payload.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from rich.console import Console
from rich.logging import RichHandler

from intentest.config.settings import get_settings

CONTEXT_FIELDS = ("test_id", "run_id", "file", "tool", "attempt")
FILE_TEXT_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"
QUIET_LOGGERS = ("anthropic", "openai", "httpx", "httpcore", "asyncio")


class JSONFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }
        payload.update(
            {name: getattr(record, name) for name in CONTEXT_FIELDS if hasattr(record, name)}
        )
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


class ContextLogAdapter(logging.LoggerAdapter):
    """Merges bound context into the ``extra`` of every call."""

    def process(
        self, msg: str, kwargs: Dict[str, Any]
    ) -> tuple[str, Dict[str, Any]]:
        kwargs["extra"] = {**(kwargs.get("extra") or {}), **self.extra}
        return msg, kwargs


def _console_handler(format_type: str) -> logging.Handler:
    if format_type == "json":
        handler: logging.Handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(JSONFormatter())
        return handler
    return RichHandler(
        console=Console(stderr=True),
        rich_tracebacks=True,
        show_path=False,
    )


def _file_handler(path: str, format_type: str) -> logging.Handler:
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setFormatter(
        JSONFormatter() if format_type == "json" else logging.Formatter(FILE_TEXT_FORMAT)
    )
    return handler


def setup_logging(
    log_level: Optional[str] = None,
    log_format: Optional[str] = None,
    log_file: Optional[str] = None,
) -> logging.Logger:
    """
    Configure the root logger for a run.

    Args:
        log_level: Logging level (defaults to settings)
        log_format: 'json' or 'text' (defaults to settings)
        log_file: Also write records to this file (defaults to settings)

    Returns:
        Root logger instance
    """
    settings = get_settings()
    level = (log_level or settings.log_level).upper()
    format_type = log_format or settings.log_format
    file_path = log_file or settings.log_file
    numeric_level = getattr(logging, level)

    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handlers = [_console_handler(format_type)]
    if file_path:
        handlers.append(_file_handler(file_path, format_type))
    for handler in handlers:
        handler.setLevel(numeric_level)
        root_logger.addHandler(handler)
    root_logger.setLevel(numeric_level)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger("intentest").debug(
        "Logging initialized",
        extra={"log_level": level, "log_format": format_type, "log_file": file_path},
    )
    return root_logger


def get_logger(name: str, **context: Any) -> logging.Logger:
    """
    Get a logger, bound to ``context`` when any is given.

    Args:
        name: Logger name
        **context: Fields added to the ``extra`` of every record

    Returns:
        Logger instance
    """
    logger = logging.getLogger(name)
    if context:
        return ContextLogAdapter(logger, context)
    return logger
