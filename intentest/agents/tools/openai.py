"""
Browser control for OpenAI models, exposed as a plain function tool.

Chat-completions models have no native computer tool, so the same pointer,
keyboard and screenshot actions are described by a JSON schema instead.
"""

from typing import Dict, Optional

from intentest.agents.tools.base import Tool, ToolKind

PROVIDER = "openai"

# Model name prefix -> family, longest prefix wins
MODEL_PREFIX_TO_FAMILY: Dict[str, str] = {
    "gpt-4o": "gpt-4o",
    "gpt-4.1": "gpt-4.1",
}

FAMILY_TOOL_VERSIONS: Dict[str, Dict[str, str]] = {
    "gpt-4o": {"computer": "v1"},
    "gpt-4.1": {"computer": "v1"},
}

COMPUTER_V1_ACTIONS: Dict[str, str] = {
    action: action
    for action in (
        "key",
        "type",
        "mouse_move",
        "left_click",
        "left_click_drag",
        "right_click",
        "middle_click",
        "double_click",
        "triple_click",
        "scroll",
        "wait",
        "screenshot",
        "cursor_position",
    )
}

COORDINATE_SCHEMA = {
    "type": "array",
    "items": {"type": "integer", "minimum": 0},
    "minItems": 2,
    "maxItems": 2,
}


def resolve_tool_version(model: str, tool_kind: str) -> Optional[str]:
    """Tool version the model's family expects, or None if unsupported."""
    for prefix in sorted(MODEL_PREFIX_TO_FAMILY, key=len, reverse=True):
        if model.startswith(prefix):
            return FAMILY_TOOL_VERSIONS[MODEL_PREFIX_TO_FAMILY[prefix]].get(tool_kind)
    return None


def create_computer_v1(browser) -> Tool:
    return Tool(
        name="computer",
        kind=ToolKind.BROWSER_ACTION,
        description=(
            "Control a 1920x1080 browser viewport with mouse, keyboard and "
            "screenshots. Coordinates are [x, y] pixels from the top-left corner."
        ),
        input_schema={
            "type": "object",
            "properties": {
                "action": {"type": "string", "enum": sorted(COMPUTER_V1_ACTIONS)},
                "coordinate": COORDINATE_SCHEMA,
                "start_coordinate": COORDINATE_SCHEMA,
                "text": {
                    "type": "string",
                    "description": "Text to type, or key combination such as ctrl+a",
                },
                "scroll_direction": {
                    "type": "string",
                    "enum": ["up", "down", "left", "right"],
                },
                "scroll_amount": {"type": "integer", "minimum": 1},
                "duration": {"type": "number", "minimum": 0, "description": "Seconds"},
            },
            "required": ["action"],
        },
        action_map=COMPUTER_V1_ACTIONS,
        browser=browser,
    )
