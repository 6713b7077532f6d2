"""Configuration manager for the MD-DM bridge.

Provides singleton access to application configuration with support for
defaults, file loading and environment variable overrides.
"""

from copy import deepcopy
from pathlib import Path
from typing import Optional, Dict, Any
import logging
import os

import yaml

from mddm.config.config_models import (
    Config,
    DeviceConfig,
    LoggingConfig,
    LogLevel
)
from mddm.config.defaults import get_default_config
from mddm.config.config_schema import ConfigSchema

logger = logging.getLogger(__name__)

ENV_PREFIX = "MDDM_"


class ConfigManager:
    """Singleton configuration manager.

    Layered loading:
    1. Load defaults
    2. Load from file (YAML, or the legacy config.json; if one exists)
    3. Apply environment variable overrides
    4. Apply explicit overrides (command line)
    5. Validate configuration against JSON schema
    6. Return validated Config object
    """

    _instance: Optional['ConfigManager'] = None

    def __init__(self):
        """Private constructor. Use instance() or initialize() class methods."""
        if ConfigManager._instance is not None:
            raise RuntimeError("Use ConfigManager.instance() instead of constructor")
        self._config: Optional[Config] = None
        self._config_path: Optional[Path] = None

    @classmethod
    def instance(cls) -> 'ConfigManager':
        """Get singleton instance of ConfigManager.

        Raises:
            RuntimeError: If not yet initialized.
        """
        if cls._instance is None:
            raise RuntimeError("ConfigManager not initialized. Call initialize() first.")
        return cls._instance

    @classmethod
    def initialize(cls,
                   config_path: Optional[Path] = None,
                   overrides: Optional[Dict[str, Any]] = None,
                   skip_validation: bool = False) -> 'ConfigManager':
        """Initialize (or re-initialize) ConfigManager with configuration.

        Args:
            config_path: Optional path to a config file. If None, searches default paths.
            overrides: Section dictionaries applied last, e.g. {"device": {"address": "10.0.0.5"}}.
            skip_validation: Skip schema validation.

        Returns:
            ConfigManager: Initialized singleton instance.

        Raises:
            FileNotFoundError: An explicit config_path does not exist.
            ValueError: Configuration fails schema validation.
        """
        manager = cls.__new__(cls)
        manager._config = None
        manager._config_path = None

        config_dict = get_default_config().to_dict()

        if config_path is None:
            config_path = cls._search_config_paths()
        elif not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")

        if config_path is not None:
            file_config = cls._load_from_file(config_path)
            config_dict = cls._merge_configs(config_dict, file_config)
            manager._config_path = config_path
            logger.info("Using config: %s", config_path)

        env_overrides = cls._apply_env_overrides()
        if env_overrides:
            config_dict = cls._merge_configs(config_dict, env_overrides)

        if overrides:
            overrides = {
                section: {k: v for k, v in values.items() if v is not None}
                for section, values in overrides.items()
            }
            config_dict = cls._merge_configs(config_dict, overrides)

        if not skip_validation:
            is_valid, validation_errors = ConfigSchema.validate_config(config_dict, strict=False)
            if not is_valid:
                error_msg = "Configuration validation failed:\n" + "\n".join(
                    f"  - {error}" for error in validation_errors
                )
                raise ValueError(error_msg)

        manager._config = cls._dict_to_config(config_dict)
        cls._instance = manager
        return manager

    def get_config(self) -> Config:
        """Return the loaded configuration."""
        if self._config is None:
            raise RuntimeError("Configuration not loaded")
        return self._config

    @property
    def config_path(self) -> Optional[Path]:
        return self._config_path

    @staticmethod
    def _search_config_paths() -> Optional[Path]:
        """Search for a config file in standard locations.

        Search order:
            1. ./config.yaml
            2. ./config.json
            3. ~/.md-dm-api/config.yaml
        """
        search_paths = [
            Path("./config.yaml"),
            Path("./config.json"),
            Path.home() / ".md-dm-api" / "config.yaml"
        ]

        for path in search_paths:
            if path.exists() and path.is_file():
                return path

        return None

    @staticmethod
    def _load_from_file(path: Path) -> Dict[str, Any]:
        """Load configuration from a YAML (or JSON) file.

        Raises:
            yaml.YAMLError: If parsing fails.
            ValueError: If the document is not a mapping.
        """
        with open(path, 'r', encoding='utf-8') as f:
            config_dict = yaml.safe_load(f)

        if config_dict is None:
            return {}
        if not isinstance(config_dict, dict):
            raise ValueError(f"Config file {path} must contain a mapping")
        return config_dict

    @staticmethod
    def _apply_env_overrides() -> Dict[str, Any]:
        """Collect environment variable overrides.

        Environment variables use format: MDDM_SECTION_KEY
        Examples:
            MDDM_DEVICE_ADDRESS=192.168.1.50
            MDDM_DEVICE_COMMAND_TIMEOUT=2.5
            MDDM_LOGGING_TRAFFIC_LOG=true
        """
        overrides: Dict[str, Dict[str, Any]] = {}

        for env_name, env_value in os.environ.items():
            if not env_name.startswith(ENV_PREFIX):
                continue

            # MDDM_DEVICE_COMMAND_TIMEOUT -> ["device", "command_timeout"]
            parts = env_name[len(ENV_PREFIX):].lower().split('_', 1)
            if len(parts) != 2:
                continue

            section, key = parts
            overrides.setdefault(section, {})[key] = ConfigManager._parse_env_value(env_value)

        return overrides

    @staticmethod
    def _parse_env_value(value: str) -> Any:
        """Parse environment variable value to bool, int, float or str."""
        if value.lower() in ('true', 'yes', 'on'):
            return True
        if value.lower() in ('false', 'no', 'off'):
            return False

        try:
            return int(value)
        except ValueError:
            pass

        try:
            return float(value)
        except ValueError:
            pass

        return value

    @staticmethod
    def _merge_configs(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
        """Merge two configuration dictionaries (override takes precedence)."""
        merged = deepcopy(base)

        for section, section_values in override.items():
            if isinstance(section_values, dict) and isinstance(merged.get(section), dict):
                merged[section].update(section_values)
            else:
                merged[section] = section_values

        return merged

    @staticmethod
    def _dict_to_config(config_dict: Dict[str, Any]) -> Config:
        """Convert configuration dictionary to Config object."""
        device_dict = config_dict.get('device', {})
        device = DeviceConfig(
            address=device_dict.get('address'),
            port=device_dict.get('port', 23),
            command_timeout=float(device_dict.get('command_timeout', 1.0)),
            connect_timeout=float(device_dict.get('connect_timeout', 5.0))
        )

        logging_dict = config_dict.get('logging', {})
        level = logging_dict.get('level', LogLevel.INFO.value)
        logging_config = LoggingConfig(
            level=LogLevel(level.upper()) if isinstance(level, str) else LogLevel.INFO,
            console_output=logging_dict.get('console_output', True),
            traffic_log=logging_dict.get('traffic_log', False),
            log_file_path=logging_dict.get('log_file_path'),
            max_file_size_mb=logging_dict.get('max_file_size_mb', 10),
            backup_count=logging_dict.get('backup_count', 5)
        )

        return Config(device=device, logging=logging_config)
