"""Configuration system for ramdisk-sync.

This module provides TOML-based configuration loading, validation,
and schema definitions for destination and schedule management.
"""

from .loader import ConfigurationError, find_config_file, load_config
from .schema import Config, DestinationConfig, GlobalConfig

__all__ = [
    "GlobalConfig",
    "DestinationConfig",
    "Config",
    "load_config",
    "find_config_file",
    "ConfigurationError",
]
