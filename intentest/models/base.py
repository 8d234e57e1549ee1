"""Provider-neutral conversation model shared by the LLM clients."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Protocol

from intentest.agents.tools.base import Tool
from intentest.core.types import TokenUsage


class FinishReason(str, Enum):
    """Why a model turn ended."""

    STOP = "stop"
    LENGTH = "length"
    CONTENT_FILTER = "content-filter"
    TOOL_CALLS = "tool-calls"
    ERROR = "error"
    OTHER = "other"


@dataclass
class ToolCall:
    id: str
    name: str
    input: Dict[str, Any] = field(default_factory=dict)


@dataclass
class Message:
    """
    One conversation message.

    ``assistant`` messages may carry ``tool_calls``; each call is answered by a
    ``tool`` message with the matching ``tool_call_id`` and an optional
    screenshot in ``image_base64``.
    """

    role: str
    content: str = ""
    tool_calls: List[ToolCall] = field(default_factory=list)
    tool_call_id: Optional[str] = None
    image_base64: Optional[str] = None
    is_error: bool = False

    @classmethod
    def user(cls, content: str) -> "Message":
        return cls(role="user", content=content)

    @classmethod
    def tool_result(
        cls,
        tool_call_id: str,
        content: str,
        image_base64: Optional[str] = None,
        is_error: bool = False,
    ) -> "Message":
        return cls(
            role="tool",
            content=content,
            tool_call_id=tool_call_id,
            image_base64=image_base64,
            is_error=is_error,
        )


@dataclass
class Completion:
    text: str
    finish_reason: FinishReason
    usage: TokenUsage = field(default_factory=TokenUsage)
    tool_calls: List[ToolCall] = field(default_factory=list)

    def to_message(self) -> Message:
        return Message(role="assistant", content=self.text, tool_calls=list(self.tool_calls))


class LLMClient(Protocol):
    """Completion capability consumed by the action engine."""

    provider: str
    model: str

    async def complete(
        self,
        system: str,
        messages: List[Message],
        tools: Mapping[str, Tool],
        max_tokens: int,
    ) -> Completion:
        ...
