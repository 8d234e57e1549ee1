"""
Configuration module exports.
"""

from intentest.config.loader import CONFIG_FILENAMES, find_config_file, load_config
from intentest.config.prompts import SYSTEM_PROMPT
from intentest.config.settings import Settings, get_settings

__all__ = [
    "Settings",
    "get_settings",
    "load_config",
    "find_config_file",
    "CONFIG_FILENAMES",
    "SYSTEM_PROMPT",
]
