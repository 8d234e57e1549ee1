"""
Registry resolving which tools a model generation can use.

Custom tools are always available. Provider tools are looked up under the key
``<provider>_<tool kind>_<version>``, where the version comes from the model's
family. A tool kind with no mapping for the model is skipped, so a model
without shell support simply runs without the ``bash`` tool.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Dict, Literal, Optional, Tuple

from intentest.agents.tools import anthropic, custom, openai
from intentest.agents.tools.base import Tool
from intentest.error_handling import IntentestError

if TYPE_CHECKING:
    from intentest.browser.browser_tool import BrowserTool

logger = logging.getLogger(__name__)

ToolFactory = Callable[["BrowserTool"], Tool]

# provider -> (version resolver, provider tool kinds)
PROVIDER_TOOL_KINDS: Dict[str, Tuple[Callable[[str, str], Optional[str]], Tuple[str, ...]]] = {
    anthropic.PROVIDER: (anthropic.resolve_tool_version, ("computer", "bash")),
    openai.PROVIDER: (openai.resolve_tool_version, ("computer",)),
}


@dataclass(frozen=True)
class ToolEntry:
    name: str
    category: Literal["provider", "custom"]
    factory: ToolFactory


class ToolRegistry:
    """Keyed collection of tool factories."""

    def __init__(self) -> None:
        self._entries: Dict[str, ToolEntry] = {}

    def register_tool(self, key: str, entry: ToolEntry) -> None:
        if key in self._entries:
            raise IntentestError(f"Tool with key '{key}' already registered")
        self._entries[key] = entry

    def get_entry(self, key: str) -> Optional[ToolEntry]:
        return self._entries.get(key)

    @staticmethod
    def tool_entry_key(provider: str, tool_kind: str, version: str) -> str:
        return f"{provider}_{tool_kind}_{version}"

    def get_tools(
        self, provider: str, model: str, browser: "BrowserTool"
    ) -> Dict[str, Tool]:
        """Tools for ``model``: resolved provider tools plus every custom tool."""
        tools: Dict[str, Tool] = {}
        tools.update(self._get_provider_tools(provider, model, browser))
        for entry in self._entries.values():
            if entry.category == "custom":
                tools[entry.name] = entry.factory(browser)
        return tools

    def _get_provider_tools(
        self, provider: str, model: str, browser: "BrowserTool"
    ) -> Dict[str, Tool]:
        tools: Dict[str, Tool] = {}
        resolver_and_kinds = PROVIDER_TOOL_KINDS.get(provider)
        if resolver_and_kinds is None:
            logger.debug("No provider tools for provider", extra={"provider": provider})
            return tools

        resolve_version, tool_kinds = resolver_and_kinds
        for tool_kind in tool_kinds:
            version = resolve_version(model, tool_kind)
            entry = (
                self._entries.get(self.tool_entry_key(provider, tool_kind, version))
                if version
                else None
            )
            if entry is None or entry.category != "provider":
                logger.debug(
                    "Provider tool not available for model, skipping",
                    extra={"provider": provider, "model": model, "tool_kind": tool_kind},
                )
                continue
            tools[entry.name] = entry.factory(browser)
        return tools


def create_tool_registry() -> ToolRegistry:
    """Registry with every built-in tool registered."""
    registry = ToolRegistry()
    entries = {
        "anthropic_computer_20241022": ToolEntry(
            "computer", "provider", anthropic.create_computer_20241022
        ),
        "anthropic_computer_20250124": ToolEntry(
            "computer", "provider", anthropic.create_computer_20250124
        ),
        "anthropic_bash_20241022": ToolEntry(
            "bash", "provider", anthropic.create_bash_20241022
        ),
        "anthropic_bash_20250124": ToolEntry(
            "bash", "provider", anthropic.create_bash_20250124
        ),
        "openai_computer_v1": ToolEntry("computer", "provider", openai.create_computer_v1),
        "check_email": ToolEntry("check_email", "custom", custom.create_check_email_tool),
        "github_login": ToolEntry("github_login", "custom", custom.create_github_login_tool),
        "navigate": ToolEntry("navigate", "custom", custom.create_navigate_tool),
        "sleep": ToolEntry("sleep", "custom", custom.create_sleep_tool),
        "run_callback": ToolEntry("run_callback", "custom", custom.create_run_callback_tool),
    }
    for key, entry in entries.items():
        registry.register_tool(key, entry)
    return registry
