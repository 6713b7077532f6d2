"""Default configuration values.

Lets the bridge run with nothing but a device address supplied.
"""

from mddm.config.config_models import (
    Config,
    DeviceConfig,
    LoggingConfig,
    LogLevel
)


def get_default_config() -> Config:
    """Get default configuration.

    Default Values:
        - Device: telnet port 23, 1s command window, 5s to first prompt
        - Logging: INFO level on the console, traffic log off
    """
    return Config(
        device=DeviceConfig(
            address=None,  # Must come from file, env or CLI
            port=23,
            command_timeout=1.0,
            connect_timeout=5.0
        ),
        logging=LoggingConfig(
            level=LogLevel.INFO,
            console_output=True,
            traffic_log=False,
            log_file_path=None,  # ~/.md-dm-api/logs/traffic.log when enabled
            max_file_size_mb=10,
            backup_count=5
        )
    )
