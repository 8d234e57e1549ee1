"""Configuration management for intentest."""

import os
from functools import lru_cache
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


SUPPORTED_PROVIDERS = ("anthropic", "openai")

PROVIDER_API_KEY_ENV = {
    "anthropic": "ANTHROPIC_API_KEY",
    "openai": "OPENAI_API_KEY",
}

DEFAULT_MODELS = {
    "anthropic": "claude-3-5-sonnet-20241022",
    "openai": "gpt-4o",
}


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # AI Configuration
    ai_provider: str = Field(default="anthropic", description="LLM provider")
    ai_model: Optional[str] = Field(
        default=None, description="Model name (defaults per provider)"
    )
    anthropic_api_key: str = Field(default="", description="Anthropic API key")
    openai_api_key: str = Field(default="", description="OpenAI API key")
    ai_max_tokens: int = Field(
        default=1024, ge=1, description="Completion token limit per model call"
    )
    ai_max_retries: int = Field(
        default=3, ge=1, description="Attempts per action before giving up"
    )
    ai_pacing_delay_seconds: float = Field(
        default=1.0, ge=0.0, description="Delay before every model call"
    )
    ai_retry_backoff_seconds: float = Field(
        default=5.0, ge=0.0, description="Linear backoff unit between attempts"
    )
    ai_rate_limit_backoff_seconds: float = Field(
        default=60.0, ge=0.0, description="Wait after a rate limit response"
    )

    # Test Configuration
    base_url: str = Field(default="http://localhost:3000", description="Application URL")
    test_pattern: str = Field(
        default="**/*.test.py", description="Glob used to discover test files"
    )

    # Cache Configuration
    caching_enabled: bool = Field(default=True, description="Replay cached runs")
    cache_dir: Path = Field(
        default=Path(".intentest/cache"), description="Run cache directory"
    )
    replay_step_delay_seconds: float = Field(
        default=1.0, ge=0.0, description="Delay between replayed cache steps"
    )

    # Account Configuration
    github_totp_secret: str = Field(
        default="", description="Base32 TOTP secret for GitHub two-factor login"
    )
    mailosaur_api_key: str = Field(default="", description="Mailosaur API key")
    mailosaur_server_id: str = Field(default="", description="Mailosaur server id")

    # Browser Configuration
    browser_headless: bool = Field(
        default=False, description="Run browser in headless mode"
    )
    browser_timeout: int = Field(
        default=30000, ge=1000, description="Default browser timeout (ms)"
    )
    browser_viewport_width: int = Field(
        default=1920, ge=800, description="Browser viewport width"
    )
    browser_viewport_height: int = Field(
        default=1080, ge=600, description="Browser viewport height"
    )

    # Logging Configuration
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: str = Field(default="text", description="Log format (json or text)")
    log_file: Optional[str] = Field(default=None, description="Log file path")

    @field_validator("ai_provider")
    def validate_provider(cls, v: str) -> str:
        """Validate AI provider."""
        value = v.lower()
        if value not in SUPPORTED_PROVIDERS:
            raise ValueError(
                f"Invalid AI provider: {v}. Allowed values: {list(SUPPORTED_PROVIDERS)}"
            )
        return value

    @field_validator("log_level")
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Invalid log level: {v}")
        return v.upper()

    @field_validator("log_format")
    def validate_log_format(cls, v: str) -> str:
        """Validate log format."""
        if v not in ["json", "text"]:
            raise ValueError(f"Invalid log format: {v}")
        return v

    @model_validator(mode="after")
    def validate_mailosaur(self) -> "Settings":
        """Mailosaur needs both the api key and the server id."""
        if bool(self.mailosaur_api_key) != bool(self.mailosaur_server_id):
            raise ValueError("mailosaur requires both an api key and a server id")
        return self

    @model_validator(mode="after")
    def apply_default_model(self) -> "Settings":
        """Pick the provider's default model when none is configured."""
        if not self.ai_model:
            self.ai_model = DEFAULT_MODELS[self.ai_provider]
        return self

    @property
    def api_key(self) -> str:
        """API key for the configured provider, from settings or environment."""
        configured = getattr(self, f"{self.ai_provider}_api_key", "")
        return configured or os.environ.get(PROVIDER_API_KEY_ENV[self.ai_provider], "")

    def create_directories(self) -> None:
        """Create required directories if they don't exist."""
        self.cache_dir.mkdir(parents=True, exist_ok=True)


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    # Load .env file if it exists
    env_file = Path(".env")
    if env_file.exists():
        load_dotenv(env_file)

    return Settings()
