"""
Test orchestration.
"""

from intentest.orchestration.runner import TestRunner, build_prompt

__all__ = ["TestRunner", "build_prompt"]
