"""
Discovery and validation of the project configuration file.

A project carries exactly one of ``intentest.config.py`` (exposing a ``config``
dict) or ``intentest.config.json``. Values from the file are layered over the
environment-backed ``Settings`` defaults, and CLI overrides win over both.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional, Union

from dotenv import load_dotenv
from pydantic import ValidationError

from intentest.config.settings import PROVIDER_API_KEY_ENV, Settings
from intentest.core.compiler import load_module
from intentest.error_handling import ConfigError, IntentestError

logger = logging.getLogger(__name__)

CONFIG_FILENAMES = ("intentest.config.py", "intentest.config.json")

# nested config section -> settings field prefix
NESTED_SECTIONS = ("mailosaur",)

# CLI flag name -> settings field name
OVERRIDE_FIELDS = {
    "headless": "browser_headless",
    "base_url": "base_url",
    "test_pattern": "test_pattern",
}


def find_config_file(config_dir: Path) -> Path:
    """Return the single config file in ``config_dir``."""
    candidates = [config_dir / name for name in CONFIG_FILENAMES]
    found = [path for path in candidates if path.exists()]

    if not found:
        raise ConfigError(
            "no-config",
            "No config file found. Create one of: " + ", ".join(CONFIG_FILENAMES),
        )
    if len(found) > 1:
        raise ConfigError(
            "multiple-config",
            "Multiple config files found: "
            + ", ".join(path.name for path in found)
            + ". Please keep only one.",
        )
    return found[0]


def read_config_file(path: Path) -> Dict[str, Any]:
    """Read raw config values from a ``.py`` or ``.json`` config file."""
    if path.suffix == ".json":
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise ConfigError(
                "invalid-config", f"Invalid JSON in {path.name}: {exc}", cause=exc
            ) from exc
    else:
        try:
            module = load_module(path)
        except IntentestError as exc:
            raise ConfigError(
                "invalid-config", f"Failed to load {path.name}: {exc.message}", cause=exc
            ) from exc
        data = getattr(module, "config", None)

    if not isinstance(data, dict):
        raise ConfigError(
            "invalid-config", f"{path.name} must define a config mapping"
        )
    return flatten_sections(data)


def flatten_sections(data: Dict[str, Any]) -> Dict[str, Any]:
    """Turn ``{"mailosaur": {"api_key": ...}}`` into ``{"mailosaur_api_key": ...}``."""
    values = dict(data)
    for section in NESTED_SECTIONS:
        nested = values.pop(section, None)
        if nested is None:
            continue
        if not isinstance(nested, dict):
            raise ConfigError("invalid-config", f"{section} must be a mapping")
        for key, value in nested.items():
            values[f"{section}_{key}"] = value
    return values


def _format_validation_error(error: ValidationError) -> str:
    parts = []
    for item in error.errors():
        location = ".".join(str(part) for part in item["loc"]) or "config"
        parts.append(f"{location}: {item['msg']}")
    return "; ".join(parts)


def load_config(
    config_dir: Union[str, Path, None] = None,
    overrides: Optional[Dict[str, Any]] = None,
    config_path: Union[str, Path, None] = None,
) -> Settings:
    """
    Load and validate project configuration.

    Args:
        config_dir: Directory searched for a config file (defaults to cwd)
        overrides: CLI overrides (``headless``, ``base_url``, ``test_pattern``,
            ``no_cache``)
        config_path: Explicit config file, bypassing discovery

    Returns:
        Validated settings

    Raises:
        ConfigError: When the config is missing, ambiguous or invalid
    """
    root = Path(config_dir) if config_dir else Path.cwd()
    env_file = root / ".env"
    if env_file.exists():
        load_dotenv(env_file)

    if config_path:
        path = Path(config_path)
        if not path.is_absolute():
            path = root / path
        if not path.exists():
            raise ConfigError("file-not-found", f"Config file not found: {path}")
    else:
        path = find_config_file(root)

    logger.debug("Loading config", extra={"config_file": str(path)})
    values = read_config_file(path)

    for flag, value in (overrides or {}).items():
        if value is None:
            continue
        if flag == "no_cache":
            if value:
                values["caching_enabled"] = False
        elif flag in OVERRIDE_FIELDS:
            values[OVERRIDE_FIELDS[flag]] = value

    try:
        settings = Settings(**values)
    except ValidationError as exc:
        raise ConfigError(
            "invalid-config",
            f"Invalid config in {path.name}: {_format_validation_error(exc)}",
            cause=exc,
        ) from exc

    if not settings.api_key:
        env_name = PROVIDER_API_KEY_ENV[settings.ai_provider]
        raise ConfigError(
            "invalid-config",
            f"No API key for provider '{settings.ai_provider}'. "
            f"Set {settings.ai_provider}_api_key in {path.name} or {env_name} in the environment.",
        )

    return settings
