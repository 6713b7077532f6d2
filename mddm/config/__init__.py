"""Configuration management package.

Provides centralized configuration access with defaults, file loading,
and environment variable overrides.
"""

from mddm.config.config_models import (
    Config,
    DeviceConfig,
    LoggingConfig,
    LogLevel
)
from mddm.config.config_manager import ConfigManager

__all__ = [
    'ConfigManager',
    'Config',
    'DeviceConfig',
    'LoggingConfig',
    'LogLevel',
]
