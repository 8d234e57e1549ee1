"""
LLM completion clients.
"""

from intentest.models.anthropic_client import AnthropicClient
from intentest.models.base import Completion, FinishReason, LLMClient, Message, ToolCall
from intentest.models.openai_client import OpenAIClient
from intentest.models.provider import create_llm_client

__all__ = [
    "AnthropicClient",
    "OpenAIClient",
    "create_llm_client",
    "Completion",
    "FinishReason",
    "LLMClient",
    "Message",
    "ToolCall",
]
