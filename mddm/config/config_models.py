"""Configuration data models for the MD-DM bridge.

This module defines immutable configuration dataclasses with sensible defaults.
Only the device address has no usable default.
"""

from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Optional, Dict, Any


class LogLevel(Enum):
    """Logging level."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"


@dataclass(frozen=True)
class DeviceConfig:
    """Device connection configuration."""
    address: Optional[str] = None
    port: int = 23
    command_timeout: float = 1.0  # seconds
    connect_timeout: float = 5.0  # seconds


@dataclass(frozen=True)
class LoggingConfig:
    """Process and traffic logging configuration."""
    level: LogLevel = LogLevel.INFO
    console_output: bool = True
    traffic_log: bool = False
    log_file_path: Optional[str] = None
    max_file_size_mb: int = 10
    backup_count: int = 5


@dataclass(frozen=True)
class Config:
    """Complete configuration object with all sections."""
    device: DeviceConfig = field(default_factory=DeviceConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to a plain dictionary (enums as values)."""
        def convert_value(obj: Any) -> Any:
            if isinstance(obj, Enum):
                return obj.value
            elif isinstance(obj, dict):
                return {k: convert_value(v) for k, v in obj.items()}
            return obj

        return convert_value(asdict(self))
