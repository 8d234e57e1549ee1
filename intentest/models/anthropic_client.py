"""Anthropic API client wrapper with computer-use tool support."""

import logging
from typing import Any, Dict, List, Mapping, Optional

from anthropic import AsyncAnthropic

from intentest.agents.tools.base import Tool
from intentest.core.types import TokenUsage
from intentest.error_handling import ConfigError
from intentest.models.base import Completion, FinishReason, Message, ToolCall

STOP_REASONS: Dict[Optional[str], FinishReason] = {
    "end_turn": FinishReason.STOP,
    "stop_sequence": FinishReason.STOP,
    "tool_use": FinishReason.TOOL_CALLS,
    "max_tokens": FinishReason.LENGTH,
    "refusal": FinishReason.CONTENT_FILTER,
}


class AnthropicClient:
    """Wrapper for Anthropic Messages API interactions."""

    provider = "anthropic"

    def __init__(
        self,
        model: str,
        api_key: Optional[str] = None,
        client: Optional[AsyncAnthropic] = None,
    ) -> None:
        """
        Initialize Anthropic client.

        Args:
            model: Model to use for completions
            api_key: API key for the Anthropic API
            client: Preconfigured SDK client (tests)
        """
        self.model = model
        self.logger = logging.getLogger("anthropic_client")

        if client is None:
            if not api_key:
                raise ConfigError(
                    "invalid-config",
                    "Anthropic API key not provided. Set ANTHROPIC_API_KEY environment variable.",
                )
            # Retries are owned by the action engine
            client = AsyncAnthropic(api_key=api_key, max_retries=0)
        self.client = client

    @staticmethod
    def _tool_spec(tool: Tool) -> Dict[str, Any]:
        if tool.definition is not None:
            return dict(tool.definition)
        return {
            "name": tool.name,
            "description": tool.description,
            "input_schema": tool.input_schema or {"type": "object", "properties": {}},
        }

    @staticmethod
    def _tool_result_block(message: Message) -> Dict[str, Any]:
        content: List[Dict[str, Any]] = []
        if message.content:
            content.append({"type": "text", "text": message.content})
        if message.image_base64:
            content.append(
                {
                    "type": "image",
                    "source": {
                        "type": "base64",
                        "media_type": "image/png",
                        "data": message.image_base64,
                    },
                }
            )
        block: Dict[str, Any] = {
            "type": "tool_result",
            "tool_use_id": message.tool_call_id,
            "content": content,
        }
        if message.is_error:
            block["is_error"] = True
        return block

    def _convert_messages(self, messages: List[Message]) -> List[Dict[str, Any]]:
        converted: List[Dict[str, Any]] = []
        for message in messages:
            if message.role == "tool":
                block = self._tool_result_block(message)
                # Consecutive tool results share one user turn
                previous = converted[-1] if converted else None
                if (
                    previous is not None
                    and previous["role"] == "user"
                    and isinstance(previous["content"], list)
                    and all(item.get("type") == "tool_result" for item in previous["content"])
                ):
                    previous["content"].append(block)
                else:
                    converted.append({"role": "user", "content": [block]})
            elif message.role == "assistant":
                blocks: List[Dict[str, Any]] = []
                if message.content:
                    blocks.append({"type": "text", "text": message.content})
                for call in message.tool_calls:
                    blocks.append(
                        {"type": "tool_use", "id": call.id, "name": call.name, "input": call.input}
                    )
                converted.append({"role": "assistant", "content": blocks})
            else:
                converted.append({"role": "user", "content": message.content})
        return converted

    async def complete(
        self,
        system: str,
        messages: List[Message],
        tools: Mapping[str, Tool],
        max_tokens: int,
    ) -> Completion:
        betas = sorted({tool.beta for tool in tools.values() if tool.beta})
        request: Dict[str, Any] = {
            "model": self.model,
            "max_tokens": max_tokens,
            "system": system,
            "messages": self._convert_messages(messages),
            "tools": [self._tool_spec(tool) for tool in tools.values()],
        }

        self.logger.debug(
            "Anthropic API call",
            extra={"model": self.model, "messages": len(messages), "betas": betas},
        )
        if betas:
            response = await self.client.beta.messages.create(betas=betas, **request)
        else:
            response = await self.client.messages.create(**request)

        text_parts: List[str] = []
        tool_calls: List[ToolCall] = []
        for block in response.content:
            if block.type == "text":
                text_parts.append(block.text)
            elif block.type == "tool_use":
                tool_calls.append(ToolCall(id=block.id, name=block.name, input=dict(block.input or {})))

        usage = TokenUsage(
            prompt_tokens=response.usage.input_tokens,
            completion_tokens=response.usage.output_tokens,
            total_tokens=response.usage.input_tokens + response.usage.output_tokens,
        )
        return Completion(
            text="".join(text_parts),
            finish_reason=STOP_REASONS.get(response.stop_reason, FinishReason.OTHER),
            usage=usage,
            tool_calls=tool_calls,
        )
