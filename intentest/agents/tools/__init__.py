"""
Tools the model can call while executing a test.
"""

from intentest.agents.tools.base import Tool, ToolKind
from intentest.agents.tools.bash import BashTool
from intentest.agents.tools.registry import ToolEntry, ToolRegistry, create_tool_registry

__all__ = [
    "Tool",
    "ToolKind",
    "BashTool",
    "ToolEntry",
    "ToolRegistry",
    "create_tool_registry",
]
