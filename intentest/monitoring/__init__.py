"""
Monitoring module exports.
"""

from intentest.monitoring.logger import (
    ContextLogAdapter,
    JSONFormatter,
    get_logger,
    setup_logging,
)
from intentest.monitoring.reporter import TestReporter, estimate_cost, resolve_pricing

__all__ = [
    # Logger
    "setup_logging",
    "get_logger",
    "JSONFormatter",
    "ContextLogAdapter",

    # Reporter
    "TestReporter",
    "estimate_cost",
    "resolve_pricing",
]
