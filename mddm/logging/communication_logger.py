"""Device traffic log.

Every line sent to the device, every reply and every session event is written
to the dedicated ``mddm.traffic`` logger. It does not propagate, so traffic
never mixes with the process log on stderr unless the console destination is
enabled. The file destination rotates by size.

Lines look like::

    2026-01-12 10:30:15.234 DEBUG   192.168.1.50:23 >> SHOWHW
    2026-01-12 10:30:15.301 DEBUG   192.168.1.50:23 << '\\r\\nProcessor Type: ...' [SUCCESS 0.067s]
    2026-01-12 10:30:20.004 INFO    192.168.1.50:23 -- Connection closed session_duration_seconds=5.2
"""

from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Dict, List, Optional, Union
import logging
import sys

from mddm.config.config_models import LogLevel


TRAFFIC_LOGGER_NAME = "mddm.traffic"
TRAFFIC_FORMAT = "%(asctime)s.%(msecs)03d %(levelname)-7s %(device)s %(direction)s %(message)s"
TRAFFIC_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

SENT = ">>"
RECEIVED = "<<"
EVENT = "--"
FAILURE = "!!"


def _format_details(details: Optional[Dict[str, Any]]) -> str:
    if not details:
        return ""
    return " " + " ".join(f"{key}={value}" for key, value in details.items())


class CommunicationLogger:
    """Recorder for everything exchanged with the device.

    Only one traffic log should be open per process; its destinations are
    attached to the shared ``mddm.traffic`` logger until close().

    Example:
        >>> traffic = CommunicationLogger(
        ...     log_level=LogLevel.DEBUG,
        ...     enable_file=True,
        ...     enable_console=False,
        ...     log_file_path="~/.md-dm-api/logs/traffic.log"
        ... )
        >>> traffic.log_command(device="192.168.1.50:23", command="SHOWHW")
        >>> traffic.close()
    """

    def __init__(
        self,
        log_level: Union[LogLevel, str] = LogLevel.INFO,
        enable_file: bool = False,
        enable_console: bool = True,
        log_file_path: Optional[str] = None,
        max_file_size_mb: int = 10,
        backup_count: int = 5
    ):
        """Attach the requested destinations to the traffic logger.

        Args:
            log_level: Lowest level written (default: INFO; commands and
                successful replies are DEBUG)
            enable_file: Write to a rotating file (default: False)
            enable_console: Write to stderr (default: True)
            log_file_path: Traffic file, ``~`` expanded (required with enable_file)
            max_file_size_mb: Size at which the file rotates (default: 10)
            backup_count: Rotated files kept (default: 5)

        Raises:
            ValueError: enable_file without log_file_path
            OSError: Log directory or file cannot be created
        """
        if enable_file and not log_file_path:
            raise ValueError("log_file_path required when enable_file=True")

        level_name = log_level.value if isinstance(log_level, LogLevel) else str(log_level).upper()
        self.log_level = level_name
        self.log_file_path = log_file_path

        self._logger = logging.getLogger(TRAFFIC_LOGGER_NAME)
        self._logger.setLevel(logging.DEBUG)
        self._logger.propagate = False
        self._handlers: List[logging.Handler] = []

        if enable_file:
            path = Path(log_file_path).expanduser()
            path.parent.mkdir(parents=True, exist_ok=True)
            self._handlers.append(RotatingFileHandler(
                path,
                maxBytes=max_file_size_mb * 1024 * 1024,
                backupCount=backup_count,
                encoding="utf-8"
            ))
        if enable_console:
            self._handlers.append(logging.StreamHandler(sys.stderr))
        if not self._handlers:
            self._handlers.append(logging.NullHandler())

        formatter = logging.Formatter(TRAFFIC_FORMAT, datefmt=TRAFFIC_DATE_FORMAT)
        for handler in self._handlers:
            handler.setLevel(level_name)
            handler.setFormatter(formatter)
            self._logger.addHandler(handler)

    @property
    def closed(self) -> bool:
        return not self._handlers

    def log_command(self, device: str, command: str) -> None:
        """Record a command line written to the device."""
        self._emit(logging.DEBUG, device, SENT, command)

    def log_response(self, device: str, response: str, status: str, execution_time: float) -> None:
        """Record a reply; TIMEOUT is a WARNING, anything else DEBUG."""
        level = logging.DEBUG if status == "SUCCESS" else logging.WARNING
        self._emit(level, device, RECEIVED,
                   f"{response!r} [{status} {execution_time:.3f}s]")

    def log_connection_event(self,
                             event: str,
                             device: str,
                             details: Optional[Dict[str, Any]] = None,
                             level: str = "INFO") -> None:
        """Record a session event such as "Connection opened"."""
        self._emit(logging.getLevelName(level), device, EVENT, event + _format_details(details))

    def log_error(self, device: str, error: str) -> None:
        self._emit(logging.ERROR, device, FAILURE, error)

    def _emit(self, level: int, device: str, direction: str, message: str) -> None:
        if self.closed:
            return
        self._logger.log(level, message, extra={"device": device, "direction": direction})

    def close(self) -> None:
        """Detach and close every destination. Idempotent."""
        for handler in self._handlers:
            self._logger.removeHandler(handler)
            handler.close()
        self._handlers = []

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
