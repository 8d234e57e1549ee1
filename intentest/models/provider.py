"""Construct the LLM client for the configured provider."""

from intentest.error_handling import AIError, ConfigError
from intentest.models.anthropic_client import AnthropicClient
from intentest.models.base import LLMClient
from intentest.models.openai_client import OpenAIClient


def create_llm_client(settings) -> LLMClient:
    """
    Build the completion client named by ``settings.ai_provider``.

    Raises:
        AIError: Unknown provider
        ConfigError: No API key resolvable for the provider
    """
    provider = settings.ai_provider
    if provider not in ("anthropic", "openai"):
        raise AIError("unsupported-provider", f"AI provider '{provider}' is not supported")

    api_key = settings.api_key
    if not api_key:
        raise ConfigError("invalid-config", f"No API key configured for provider '{provider}'")

    if provider == "anthropic":
        return AnthropicClient(model=settings.ai_model, api_key=api_key)
    return OpenAIClient(model=settings.ai_model, api_key=api_key)
