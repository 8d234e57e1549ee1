"""
Unit tests for the Anthropic and OpenAI completion clients.
"""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from intentest.agents.tools import anthropic as anthropic_tools
from intentest.agents.tools import custom
from intentest.error_handling import AIError, ConfigError
from intentest.models.anthropic_client import AnthropicClient
from intentest.models.base import FinishReason, Message, ToolCall
from intentest.models.openai_client import OpenAIClient
from intentest.models.provider import create_llm_client

from conftest import make_settings

CONVERSATION = [
    Message.user("Test: login"),
    Message(
        role="assistant",
        content="Taking a screenshot",
        tool_calls=[
            ToolCall(id="call_0", name="computer", input={"action": "screenshot"}),
            ToolCall(id="call_1", name="navigate", input={"url": "/login"}),
        ],
    ),
    Message.tool_result("call_0", "", image_base64="aW1n"),
    Message.tool_result("call_1", "Navigation failed", is_error=True),
]


def anthropic_response(stop_reason="end_turn", content=None):
    return SimpleNamespace(
        content=content or [SimpleNamespace(type="text", text='{"status": "passed"}')],
        stop_reason=stop_reason,
        usage=SimpleNamespace(input_tokens=12, output_tokens=8),
    )


def openai_response(finish_reason="stop", content="done", tool_calls=None, usage=True):
    return SimpleNamespace(
        choices=[
            SimpleNamespace(
                finish_reason=finish_reason,
                message=SimpleNamespace(content=content, tool_calls=tool_calls),
            )
        ],
        usage=SimpleNamespace(prompt_tokens=7, completion_tokens=3, total_tokens=10)
        if usage
        else None,
    )


class TestAnthropicClient:
    """Request building and response mapping for the Messages API."""

    def test_requires_api_key(self):
        with pytest.raises(ConfigError, match="ANTHROPIC_API_KEY"):
            AnthropicClient(model="claude-3-5-sonnet-20241022")

    def test_message_conversion(self):
        client = AnthropicClient(model="m", client=MagicMock())

        converted = client._convert_messages(CONVERSATION)

        assert converted[0] == {"role": "user", "content": "Test: login"}
        assert converted[1]["role"] == "assistant"
        assert [block["type"] for block in converted[1]["content"]] == [
            "text",
            "tool_use",
            "tool_use",
        ]
        assert len(converted) == 3
        screenshot, failure = converted[2]["content"]
        assert screenshot["tool_use_id"] == "call_0"
        assert screenshot["content"][0]["source"]["data"] == "aW1n"
        assert failure["is_error"] is True
        assert failure["content"] == [{"type": "text", "text": "Navigation failed"}]

    @pytest.mark.asyncio
    async def test_beta_tools_use_beta_endpoint(self):
        sdk = MagicMock()
        sdk.beta.messages.create = AsyncMock(
            return_value=anthropic_response(
                "tool_use",
                [
                    SimpleNamespace(type="text", text="Clicking"),
                    SimpleNamespace(
                        type="tool_use", id="tu_1", name="computer", input={"action": "left_click"}
                    ),
                ],
            )
        )
        client = AnthropicClient(model="claude-3-5-sonnet-20241022", client=sdk)
        tools = {
            "computer": anthropic_tools.create_computer_20241022(MagicMock()),
            "navigate": custom.create_navigate_tool(MagicMock()),
        }

        completion = await client.complete("system", [Message.user("hi")], tools, 1024)

        kwargs = sdk.beta.messages.create.await_args.kwargs
        assert kwargs["betas"] == ["computer-use-2024-10-22"]
        assert kwargs["tools"][0]["type"] == "computer_20241022"
        assert kwargs["tools"][1]["name"] == "navigate"
        assert "input_schema" in kwargs["tools"][1]
        assert completion.finish_reason is FinishReason.TOOL_CALLS
        assert completion.text == "Clicking"
        assert completion.tool_calls == [
            ToolCall(id="tu_1", name="computer", input={"action": "left_click"})
        ]
        assert completion.usage.total_tokens == 20

    @pytest.mark.asyncio
    async def test_plain_endpoint_without_betas(self):
        sdk = MagicMock()
        sdk.messages.create = AsyncMock(return_value=anthropic_response())
        client = AnthropicClient(model="m", client=sdk)

        completion = await client.complete(
            "system", [Message.user("hi")], {"sleep": custom.create_sleep_tool(None)}, 10
        )

        sdk.messages.create.assert_awaited_once()
        assert completion.finish_reason is FinishReason.STOP

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "stop_reason, expected",
        [
            ("max_tokens", FinishReason.LENGTH),
            ("refusal", FinishReason.CONTENT_FILTER),
            ("stop_sequence", FinishReason.STOP),
            ("pause_turn", FinishReason.OTHER),
        ],
    )
    async def test_stop_reason_mapping(self, stop_reason, expected):
        sdk = MagicMock()
        sdk.messages.create = AsyncMock(return_value=anthropic_response(stop_reason))
        client = AnthropicClient(model="m", client=sdk)

        completion = await client.complete("system", [Message.user("hi")], {}, 10)

        assert completion.finish_reason is expected


class TestOpenAIClient:
    """Request building and response mapping for chat completions."""

    def test_requires_api_key(self):
        with pytest.raises(ConfigError, match="OPENAI_API_KEY"):
            OpenAIClient()

    def test_message_conversion(self):
        client = OpenAIClient(client=MagicMock())

        converted = client._convert_messages("system", CONVERSATION)

        assert [entry["role"] for entry in converted] == [
            "system",
            "user",
            "assistant",
            "tool",
            "tool",
            "user",
        ]
        assert converted[2]["tool_calls"][1]["function"] == {
            "name": "navigate",
            "arguments": '{"url": "/login"}',
        }
        assert converted[4]["content"] == "Navigation failed"
        assert converted[5]["content"][1]["image_url"]["url"] == "data:image/png;base64,aW1n"

    def test_provider_native_tools_skipped(self):
        client = OpenAIClient(client=MagicMock())
        tools = {
            "bash": anthropic_tools.create_bash_20241022(),
            "sleep": custom.create_sleep_tool(None),
        }

        specs = client._tool_specs(tools)

        assert [spec["function"]["name"] for spec in specs] == ["sleep"]

    @pytest.mark.asyncio
    async def test_tool_calls_parsed(self):
        sdk = MagicMock()
        sdk.chat.completions.create = AsyncMock(
            return_value=openai_response(
                "tool_calls",
                None,
                [
                    SimpleNamespace(
                        id="c1",
                        function=SimpleNamespace(name="navigate", arguments='{"url": "/"}'),
                    )
                ],
            )
        )
        client = OpenAIClient(client=sdk)

        completion = await client.complete(
            "system", [Message.user("hi")], {"navigate": custom.create_navigate_tool(None)}, 50
        )

        kwargs = sdk.chat.completions.create.await_args.kwargs
        assert kwargs["max_completion_tokens"] == 50
        assert kwargs["tools"][0]["function"]["name"] == "navigate"
        assert completion.finish_reason is FinishReason.TOOL_CALLS
        assert completion.text == ""
        assert completion.tool_calls == [ToolCall(id="c1", name="navigate", input={"url": "/"})]
        assert completion.usage.total_tokens == 10

    @pytest.mark.asyncio
    async def test_malformed_arguments(self):
        sdk = MagicMock()
        sdk.chat.completions.create = AsyncMock(
            return_value=openai_response(
                "tool_calls",
                None,
                [SimpleNamespace(id="c1", function=SimpleNamespace(name="sleep", arguments="{"))],
            )
        )
        client = OpenAIClient(client=sdk)

        with pytest.raises(AIError) as exc_info:
            await client.complete("system", [Message.user("hi")], {}, 50)
        assert exc_info.value.error_type == "invalid-response"

    @pytest.mark.asyncio
    async def test_no_tools_and_no_usage(self):
        sdk = MagicMock()
        sdk.chat.completions.create = AsyncMock(
            return_value=openai_response("content_filter", usage=False)
        )
        client = OpenAIClient(client=sdk)

        completion = await client.complete("system", [Message.user("hi")], {}, 50)

        assert "tools" not in sdk.chat.completions.create.await_args.kwargs
        assert completion.finish_reason is FinishReason.CONTENT_FILTER
        assert completion.usage.total_tokens == 0


class TestCreateLLMClient:
    def test_anthropic(self):
        client = create_llm_client(make_settings(api_key="key"))
        assert isinstance(client, AnthropicClient)
        assert client.model == "claude-3-5-sonnet-20241022"

    def test_openai(self):
        client = create_llm_client(
            make_settings(ai_provider="openai", ai_model="gpt-4o", api_key="key")
        )
        assert isinstance(client, OpenAIClient)

    def test_unsupported_provider(self):
        with pytest.raises(AIError) as exc_info:
            create_llm_client(make_settings(ai_provider="gemini", api_key="key"))
        assert exc_info.value.error_type == "unsupported-provider"

    def test_missing_key(self):
        with pytest.raises(ConfigError):
            create_llm_client(make_settings(api_key=None))
