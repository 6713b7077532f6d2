"""Command execution layer.

This module sends one command line at a time over an open session and
captures the device's raw reply up to the shell prompt.
"""

from typing import Optional, TYPE_CHECKING
import time
import threading

from mddm.core.telnet_handler import TelnetHandler
from mddm.core.command_response import CommandResponse, ResponseStatus
from mddm.core.exceptions import CommandTimeoutError
from mddm.core.protocol import DEFAULT_COMMAND_TIMEOUT, RESPONSE_DELIMITER

if TYPE_CHECKING:
    from mddm.logging.communication_logger import CommunicationLogger


class CommandExecutor:
    """Serializes command/response exchanges on one session.

    The protocol carries no request identifiers, so a second caller waits
    for the first exchange to finish before its command is written.

    Example:
        >>> handler = TelnetHandler('192.168.1.50')
        >>> handler.open()
        >>> executor = CommandExecutor(handler, default_timeout=1.0)
        >>> response = executor.execute_command('VERsion')
        >>> print(response.raw_response)
        DM-MD8x8 Cntrl Eng [v1.3167.00026 (Oct 13 2015)
        >>> handler.close()
    """

    def __init__(self,
                 handler: TelnetHandler,
                 default_timeout: float = DEFAULT_COMMAND_TIMEOUT,
                 logger: Optional['CommunicationLogger'] = None):
        """Initialize executor with session handler and defaults.

        Args:
            handler: TelnetHandler instance for I/O
            default_timeout: Response window in seconds (default 1.0)
            logger: Optional CommunicationLogger for command traffic (default None)
        """
        self.handler = handler
        self.default_timeout = default_timeout
        self.logger = logger
        self._command_lock = threading.Lock()

    def execute_command(self,
                        command: str,
                        timeout: Optional[float] = None) -> CommandResponse:
        """Execute a single command and wait for the shell prompt.

        Args:
            command: Command line (e.g., "SHOWHW")
            timeout: Override default response window in seconds

        Returns:
            CommandResponse with the raw text, or TIMEOUT status

        Raises:
            TransportError: Session closed or socket failure

        Example:
            >>> response = executor.execute_command('SHOWHW')
            >>> assert response.is_successful()
        """
        timeout = timeout if timeout is not None else self.default_timeout

        with self._command_lock:
            if self.logger:
                self.logger.log_command(device=self._device(), command=command)

            start_time = time.time()

            # Drop any late reply from a previous timed-out command
            self.handler.flush_buffers()
            self.handler.write(command)

            try:
                text = self.handler.read_until(RESPONSE_DELIMITER, timeout=timeout)
            except CommandTimeoutError as e:
                response = CommandResponse(
                    command=command,
                    raw_response="",
                    status=ResponseStatus.TIMEOUT,
                    execution_time=time.time() - start_time,
                    error_message=str(e)
                )
            else:
                response = CommandResponse(
                    command=command,
                    raw_response=text,
                    status=ResponseStatus.SUCCESS,
                    execution_time=time.time() - start_time
                )

            if self.logger:
                self.logger.log_response(
                    device=self._device(),
                    response=response.raw_response,
                    status=response.status.name,
                    execution_time=response.execution_time
                )

            return response

    def send(self, command: str) -> None:
        """Write a command without awaiting any response.

        Raises:
            TransportError: Session closed or socket failure
        """
        with self._command_lock:
            if self.logger:
                self.logger.log_command(device=self._device(), command=command)
            self.handler.write(command)

    def poll(self) -> None:
        """Check the idle session; waits for any command in flight first.

        Raises:
            TransportError: Session closed by the device or socket failure
        """
        with self._command_lock:
            self.handler.poll()

    def _device(self) -> str:
        return f"{self.handler.host}:{self.handler.port}"

    def __repr__(self) -> str:
        """String representation of executor."""
        return (f"CommandExecutor(device={self._device()}, "
                f"timeout={self.default_timeout}s)")
