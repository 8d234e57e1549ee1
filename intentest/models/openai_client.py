"""OpenAI API client wrapper using chat completions with function tools."""

import json
import logging
from typing import Any, Dict, List, Mapping, Optional

from openai import AsyncOpenAI

from intentest.agents.tools.base import Tool
from intentest.core.types import TokenUsage
from intentest.error_handling import AIError, ConfigError
from intentest.models.base import Completion, FinishReason, Message, ToolCall

FINISH_REASONS: Dict[Optional[str], FinishReason] = {
    "stop": FinishReason.STOP,
    "tool_calls": FinishReason.TOOL_CALLS,
    "function_call": FinishReason.TOOL_CALLS,
    "length": FinishReason.LENGTH,
    "content_filter": FinishReason.CONTENT_FILTER,
}


class OpenAIClient:
    """Wrapper for OpenAI API interactions."""

    provider = "openai"

    def __init__(
        self,
        model: str = "gpt-4o",
        api_key: Optional[str] = None,
        request_timeout: float = 120.0,
        client: Optional[AsyncOpenAI] = None,
    ) -> None:
        """
        Initialize OpenAI client.

        Args:
            model: Model to use for completions
            api_key: API key for the OpenAI API
            request_timeout: Per-request timeout in seconds
            client: Preconfigured SDK client (tests)
        """
        self.model = model
        self.request_timeout = request_timeout
        self.logger = logging.getLogger("openai_client")

        if client is None:
            if not api_key:
                raise ConfigError(
                    "invalid-config",
                    "OpenAI API key not provided. Set OPENAI_API_KEY environment variable.",
                )
            # Retries are owned by the action engine
            client = AsyncOpenAI(api_key=api_key, max_retries=0)
        self.client = client

    def _tool_specs(self, tools: Mapping[str, Tool]) -> List[Dict[str, Any]]:
        specs = []
        for tool in tools.values():
            # Provider-native tools of other vendors cannot be expressed here
            if tool.input_schema is None:
                continue
            specs.append(
                {
                    "type": "function",
                    "function": {
                        "name": tool.name,
                        "description": tool.description,
                        "parameters": tool.input_schema,
                    },
                }
            )
        return specs

    def _convert_messages(self, system: str, messages: List[Message]) -> List[Dict[str, Any]]:
        converted: List[Dict[str, Any]] = [{"role": "system", "content": system}]
        pending_images: List[str] = []

        def flush_images() -> None:
            if not pending_images:
                return
            content: List[Dict[str, Any]] = [
                {"type": "text", "text": "Screenshot(s) captured by the previous tool calls."}
            ]
            for image in pending_images:
                content.append(
                    {"type": "image_url", "image_url": {"url": f"data:image/png;base64,{image}"}}
                )
            converted.append({"role": "user", "content": content})
            pending_images.clear()

        for message in messages:
            if message.role == "tool":
                converted.append(
                    {
                        "role": "tool",
                        "tool_call_id": message.tool_call_id,
                        "content": message.content or "",
                    }
                )
                if message.image_base64:
                    pending_images.append(message.image_base64)
                continue

            flush_images()
            if message.role == "assistant":
                entry: Dict[str, Any] = {"role": "assistant", "content": message.content or None}
                if message.tool_calls:
                    entry["tool_calls"] = [
                        {
                            "id": call.id,
                            "type": "function",
                            "function": {"name": call.name, "arguments": json.dumps(call.input)},
                        }
                        for call in message.tool_calls
                    ]
                converted.append(entry)
            else:
                converted.append({"role": "user", "content": message.content})

        flush_images()
        return converted

    async def complete(
        self,
        system: str,
        messages: List[Message],
        tools: Mapping[str, Tool],
        max_tokens: int,
    ) -> Completion:
        kwargs: Dict[str, Any] = {
            "model": self.model,
            "messages": self._convert_messages(system, messages),
            "max_completion_tokens": max_tokens,
        }
        tool_specs = self._tool_specs(tools)
        if tool_specs:
            kwargs["tools"] = tool_specs

        self.logger.debug(
            "OpenAI API call",
            extra={"model": self.model, "messages": len(kwargs["messages"])},
        )
        response = await self.client.chat.completions.create(
            timeout=self.request_timeout,
            **kwargs,
        )

        choice = response.choices[0]
        tool_calls: List[ToolCall] = []
        for call in choice.message.tool_calls or []:
            try:
                arguments = json.loads(call.function.arguments or "{}")
            except json.JSONDecodeError as exc:
                raise AIError(
                    "invalid-response",
                    f"Malformed arguments for tool '{call.function.name}'",
                    cause=exc,
                ) from exc
            tool_calls.append(ToolCall(id=call.id, name=call.function.name, input=arguments))

        usage = TokenUsage()
        if response.usage is not None:
            usage = TokenUsage(
                prompt_tokens=response.usage.prompt_tokens,
                completion_tokens=response.usage.completion_tokens,
                total_tokens=response.usage.total_tokens,
            )

        return Completion(
            text=choice.message.content or "",
            finish_reason=FINISH_REASONS.get(choice.finish_reason, FinishReason.OTHER),
            usage=usage,
            tool_calls=tool_calls,
        )
