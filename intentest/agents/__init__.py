"""
Model-driven test execution.
"""

from intentest.agents.action_engine import ActionEngine, ActionResponse
from intentest.agents.json_payload import extract_verdict

__all__ = [
    "ActionEngine",
    "ActionResponse",
    "extract_verdict",
]
