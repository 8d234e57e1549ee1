"""LLM conversation loop that drives the browser to a pass/fail verdict."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Tuple

from intentest.agents.json_payload import extract_verdict
from intentest.agents.tools.base import Tool
from intentest.agents.tools.registry import ToolRegistry, create_tool_registry
from intentest.config.prompts import SYSTEM_PROMPT
from intentest.core.test_run import TestRun
from intentest.core.types import CacheAction, CacheStep, TokenUsage, ToolResult, Verdict
from intentest.error_handling import (
    AIError,
    IntentestError,
    as_intentest_error,
    get_error_details,
)
from intentest.models.base import Completion, FinishReason, LLMClient, Message, ToolCall

logger = logging.getLogger(__name__)

NON_RETRYABLE_STATUSES = frozenset({401, 403, 500})
RATE_LIMIT_STATUS = 429

FINISH_REASON_ERRORS: Dict[FinishReason, Tuple[str, str]] = {
    FinishReason.LENGTH: (
        "token-limit-exceeded",
        "Generation stopped because the maximum token length was reached.",
    ),
    FinishReason.CONTENT_FILTER: (
        "unsafe-content-detected",
        "Content filter violation: generation aborted.",
    ),
    FinishReason.ERROR: ("unknown", "An error occurred during generation."),
    FinishReason.OTHER: ("unknown", "Generation stopped for an unknown reason."),
}

COMPONENT_EXTRA_KEY = "componentStr"


def error_status(error: BaseException) -> Optional[int]:
    """HTTP-like status carried by a provider SDK error, if any."""
    for attribute in ("status_code", "status"):
        value = getattr(error, attribute, None)
        if isinstance(value, int):
            return value
    return None


def is_mouse_move(tool_input: Mapping[str, Any]) -> bool:
    coordinate = tool_input.get("coordinate")
    return tool_input.get("action") == "mouse_move" and bool(coordinate)


def is_screenshot(tool_input: Mapping[str, Any]) -> bool:
    return tool_input.get("action") == "screenshot"


@dataclass
class ActionResponse:
    verdict: Verdict
    usage: TokenUsage


class ActionEngine:
    """
    Runs one natural-language test intent against the browser.

    The engine keeps calling the model while it requests tool calls, executing
    each call and feeding results back, until the model answers with a verdict.
    Every executed action except screenshots is recorded on ``test_run`` so a
    passing run can later be replayed without the model.
    """

    def __init__(
        self,
        llm_client: LLMClient,
        browser_tool,
        test_run: TestRun,
        settings,
        tool_registry: Optional[ToolRegistry] = None,
        system_prompt: str = SYSTEM_PROMPT,
    ) -> None:
        self.llm_client = llm_client
        self.browser_tool = browser_tool
        self.test_run = test_run
        self.settings = settings
        self.system_prompt = system_prompt
        self.tool_registry = tool_registry or create_tool_registry()
        self.usage = TokenUsage()
        self.api_request_count = 0
        self._tools: Optional[Dict[str, Tool]] = None

    @property
    def tools(self) -> Dict[str, Tool]:
        if self._tools is None:
            self._tools = self.tool_registry.get_tools(
                self.llm_client.provider, self.llm_client.model, self.browser_tool
            )
            logger.debug("Resolved tools", extra={"tools": sorted(self._tools)})
        return self._tools

    async def run_action(self, prompt: str) -> ActionResponse:
        """
        Execute ``prompt`` to a verdict.

        Raises:
            AIError: ``max-retries-reached`` after the attempt budget is spent,
                or the domain error that ended the conversation
            IntentestError: Wrapping a non-retryable provider error
            ToolError, TestError: Raised by a tool; never retried
        """
        max_attempts = self.settings.ai_max_retries
        attempt = 0
        while attempt < max_attempts:
            try:
                return await self._run_conversation(prompt)
            except Exception as error:
                logger.error(
                    "Action failed",
                    extra={"attempt": attempt + 1, **get_error_details(error)},
                )
                if isinstance(error, IntentestError):
                    raise
                if self._is_non_retryable(error):
                    raise as_intentest_error(error) from error

                attempt += 1
                if attempt < max_attempts:
                    await asyncio.sleep(self.settings.ai_retry_backoff_seconds * attempt)

        raise AIError("max-retries-reached", "Max retries reached")

    @staticmethod
    def _is_non_retryable(error: BaseException) -> bool:
        if isinstance(error, IntentestError):
            return True
        return error_status(error) in NON_RETRYABLE_STATUSES

    async def _run_conversation(self, prompt: str) -> ActionResponse:
        messages: List[Message] = [Message.user(prompt)]

        while True:
            completion = await self._complete(messages)
            self.usage.add(completion.usage)
            messages.append(completion.to_message())

            logger.debug(
                "Model turn completed",
                extra={
                    "finish_reason": completion.finish_reason.value,
                    "tool_calls": [call.name for call in completion.tool_calls],
                },
            )

            self._raise_on_error_finish_reason(completion.finish_reason)

            if completion.finish_reason is FinishReason.TOOL_CALLS:
                messages.extend(await self._execute_tool_calls(completion))
                continue

            verdict = extract_verdict(completion.text)
            logger.info(
                "Model verdict",
                extra={"status": verdict.status, "reason": verdict.reason},
            )
            return ActionResponse(verdict=verdict, usage=self.usage.model_copy())

    async def _complete(self, messages: List[Message]) -> Completion:
        """One model call, paced, repeating after rate limits."""
        while True:
            await asyncio.sleep(self.settings.ai_pacing_delay_seconds)
            self.api_request_count += 1
            try:
                return await self.llm_client.complete(
                    system=self.system_prompt,
                    messages=messages,
                    tools=self.tools,
                    max_tokens=self.settings.ai_max_tokens,
                )
            except Exception as error:
                if error_status(error) != RATE_LIMIT_STATUS:
                    raise
                logger.warning(
                    "Rate limited by provider, backing off",
                    extra={"backoff_seconds": self.settings.ai_rate_limit_backoff_seconds},
                )
                await asyncio.sleep(self.settings.ai_rate_limit_backoff_seconds)

    @staticmethod
    def _raise_on_error_finish_reason(reason: FinishReason) -> None:
        error = FINISH_REASON_ERRORS.get(reason)
        if error is not None:
            error_type, message = error
            raise AIError(error_type, message)

    async def _execute_tool_calls(self, completion: Completion) -> List[Message]:
        """
        Run all calls of one turn concurrently; book-keep in call order.

        Framework errors raised by a tool (failed callbacks and assertions,
        invalid tool input) end the conversation. Any other exception is
        handed back to the model as an error tool result.
        """
        outcomes = await asyncio.gather(
            *(self._execute_tool_call(call) for call in completion.tool_calls)
        )

        messages: List[Message] = []
        for call, (message, step) in zip(completion.tool_calls, outcomes):
            messages.append(message)
            if step is not None:
                step.reasoning = completion.text
                self.test_run.add_step(step)
        return messages

    async def _execute_tool_call(
        self, call: ToolCall
    ) -> Tuple[Message, Optional[CacheStep]]:
        tool = self.tools.get(call.name)
        if tool is None:
            logger.warning("Model requested unknown tool", extra={"tool": call.name})
            return (
                Message.tool_result(call.id, f"Tool '{call.name}' is not available", is_error=True),
                None,
            )

        try:
            result = await tool.execute(call.input)
        except IntentestError:
            logger.exception("Tool raised, ending conversation", extra={"tool": call.name})
            raise
        except Exception as exc:
            logger.exception("Tool execution failed", extra={"tool": call.name})
            result = ToolResult(error=str(exc) or exc.__class__.__name__)

        step = None
        if not is_screenshot(call.input):
            step = await self._build_step(call, result)

        message = Message.tool_result(
            call.id,
            result.error or result.output or "",
            image_base64=result.base64_image,
            is_error=bool(result.error),
        )
        return message, step

    async def _build_step(self, call: ToolCall, result: ToolResult) -> CacheStep:
        extras: Dict[str, Any] = {}
        if is_mouse_move(call.input):
            x, y = call.input["coordinate"][:2]
            extras[COMPONENT_EXTRA_KEY] = (
                await self.browser_tool.get_normalized_component_string_by_coords(x, y)
            )
        return CacheStep(
            action=CacheAction(type="tool_use", name=call.name, input=dict(call.input)),
            result=result.error or result.output,
            extras=extras,
            timestamp=int(time.time() * 1000),
        )
