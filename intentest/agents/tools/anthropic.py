"""
Anthropic-defined tools (``computer`` and ``bash``) per tool version.

Each model generation expects a specific version of each tool; the mapping
from model to family to version is resolved by the tool registry.
"""

from typing import Dict, Optional

from intentest.agents.tools.base import Tool, ToolKind
from intentest.agents.tools.bash import BashTool

PROVIDER = "anthropic"

DISPLAY_WIDTH_PX = 1920
DISPLAY_HEIGHT_PX = 1080

MODEL_TO_FAMILY: Dict[str, str] = {
    "claude-3-5-sonnet-latest": "claude-3-5",
    "claude-3-5-sonnet-20241022": "claude-3-5",
    "claude-3-7-sonnet-latest": "claude-3-7",
    "claude-3-7-sonnet-20250219": "claude-3-7",
}

FAMILY_TOOL_VERSIONS: Dict[str, Dict[str, str]] = {
    "claude-3-5": {"computer": "20241022", "bash": "20241022"},
    "claude-3-7": {"computer": "20250124", "bash": "20250124"},
}

BETA_FLAGS = {
    "20241022": "computer-use-2024-10-22",
    "20250124": "computer-use-2025-01-24",
}

COMPUTER_20241022_ACTIONS: Dict[str, str] = {
    "key": "key",
    "type": "type",
    "mouse_move": "mouse_move",
    "left_click": "left_click",
    "left_click_drag": "left_click_drag",
    "right_click": "right_click",
    "middle_click": "middle_click",
    "double_click": "double_click",
    "screenshot": "screenshot",
    "cursor_position": "cursor_position",
}

COMPUTER_20250124_ACTIONS: Dict[str, str] = {
    **COMPUTER_20241022_ACTIONS,
    "hold_key": "hold_key",
    "left_mouse_down": "left_mouse_down",
    "left_mouse_up": "left_mouse_up",
    "triple_click": "triple_click",
    "scroll": "scroll",
    "wait": "wait",
}


def resolve_tool_version(model: str, tool_kind: str) -> Optional[str]:
    """Tool version the model's family expects, or None if unsupported."""
    family = MODEL_TO_FAMILY.get(model)
    if family is None:
        return None
    return FAMILY_TOOL_VERSIONS[family].get(tool_kind)


def _computer_tool(browser, version: str, action_map: Dict[str, str]) -> Tool:
    return Tool(
        name="computer",
        kind=ToolKind.BROWSER_ACTION,
        description="Control the browser with mouse, keyboard and screenshots",
        definition={
            "type": f"computer_{version}",
            "name": "computer",
            "display_width_px": DISPLAY_WIDTH_PX,
            "display_height_px": DISPLAY_HEIGHT_PX,
            "display_number": 0,
        },
        beta=BETA_FLAGS[version],
        action_map=action_map,
        browser=browser,
    )


def _bash_tool(version: str) -> Tool:
    return Tool(
        name="bash",
        kind=ToolKind.SHELL,
        description="Run shell commands",
        definition={"type": f"bash_{version}", "name": "bash"},
        beta=BETA_FLAGS[version],
        shell=BashTool(),
    )


def create_computer_20241022(browser) -> Tool:
    return _computer_tool(browser, "20241022", COMPUTER_20241022_ACTIONS)


def create_computer_20250124(browser) -> Tool:
    return _computer_tool(browser, "20250124", COMPUTER_20250124_ACTIONS)


def create_bash_20241022(browser=None) -> Tool:
    return _bash_tool("20241022")


def create_bash_20250124(browser=None) -> Tool:
    return _bash_tool("20250124")
