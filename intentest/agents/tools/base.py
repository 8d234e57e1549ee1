"""Tool model shared by the registry, the LLM clients and the action engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, Optional

from intentest.core.types import ToolResult
from intentest.error_handling import ToolError

if TYPE_CHECKING:
    from intentest.agents.tools.bash import BashTool
    from intentest.browser.browser_tool import BrowserTool


class ToolKind(str, Enum):
    """Closed set of capabilities a tool can drive."""

    BROWSER_ACTION = "browser-action"
    SHELL = "shell"
    CALLBACK = "callback"


@dataclass
class Tool:
    """
    A capability exposed to the model.

    Provider-defined tools (``computer``, ``bash``) carry the provider's native
    ``definition`` and, for pointer/screen control, an ``action_map`` from
    provider action names to browser actions. Custom tools carry a JSON
    ``input_schema`` and a ``fixed_action`` injected into every call.
    """

    name: str
    kind: ToolKind
    description: str = ""
    input_schema: Optional[Dict[str, Any]] = None
    definition: Optional[Dict[str, Any]] = None
    beta: Optional[str] = None
    action_map: Optional[Dict[str, str]] = None
    fixed_action: Optional[str] = None
    browser: Optional["BrowserTool"] = field(default=None, repr=False)
    shell: Optional["BashTool"] = field(default=None, repr=False)

    @property
    def is_provider_defined(self) -> bool:
        return self.definition is not None

    async def execute(self, tool_input: Dict[str, Any]) -> ToolResult:
        if self.kind is ToolKind.BROWSER_ACTION:
            return await self._execute_browser_action(tool_input)
        if self.kind is ToolKind.SHELL:
            return await self._execute_shell(tool_input)
        if self.kind is ToolKind.CALLBACK:
            return await self._require_browser().execute({"action": "run_callback"})
        raise ToolError(f"Unsupported tool kind: {self.kind}", tool=self.name)

    def _require_browser(self) -> "BrowserTool":
        if self.browser is None:
            raise ToolError("Tool is not bound to a browser", tool=self.name)
        return self.browser

    async def _execute_browser_action(self, tool_input: Dict[str, Any]) -> ToolResult:
        browser = self._require_browser()
        action_input = dict(tool_input)

        if self.fixed_action:
            action_input["action"] = self.fixed_action
        elif self.action_map is not None:
            action = action_input.get("action")
            internal = self.action_map.get(action) if isinstance(action, str) else None
            if internal is None:
                return ToolResult(output=f"Action '{action}' not supported")
            action_input["action"] = internal

        return await browser.execute(action_input)

    async def _execute_shell(self, tool_input: Dict[str, Any]) -> ToolResult:
        if self.shell is None:
            raise ToolError("Tool is not bound to a shell", tool=self.name)
        if tool_input.get("restart"):
            return ToolResult(output="Shell restarted")
        command = tool_input.get("command")
        if not isinstance(command, str) or not command.strip():
            raise ToolError("Missing shell command", tool=self.name)
        return ToolResult(output=await self.shell.execute(command))
