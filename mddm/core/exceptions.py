"""Custom exception hierarchy for the MD-DM bridge.

This module defines all custom exceptions raised by the connection layer,
providing structured error handling with relevant context for debugging.
"""

from typing import Optional


class MdDmError(Exception):
    """Base exception for all MD-DM bridge errors.

    All custom exceptions inherit from this base class to allow
    catching all bridge errors with a single except clause.
    """
    pass


class NotStartedError(MdDmError):
    """Connection manager was never started, or was stopped.

    Raised by guarded operations before any network interaction.
    """

    def __init__(self, message: str = "Connection to MD-DM not started"):
        super().__init__(message)


class NotConnectedError(MdDmError):
    """Socket is not open or the device has not identified itself yet.

    Raised by guarded operations before any network interaction.
    """

    def __init__(self, message: str = "Not currently connected to MD-DM"):
        super().__init__(message)


class TransportError(MdDmError):
    """Socket communication error.

    Raised when connect, send or receive fails at the networking layer.
    Captures the device address and underlying OS error for diagnostics.

    Attributes:
        host: Device address
        port: Device TCP port
        os_error: Original exception from pyserial or OS (if available)
    """

    def __init__(self, message: str, host: str, port: int,
                 os_error: Optional[Exception] = None):
        """Initialize TransportError.

        Args:
            message: Human-readable error description
            host: Device address
            port: Device TCP port
            os_error: Original exception from pyserial/OS
        """
        super().__init__(message)
        self.host = host
        self.port = port
        self.os_error = os_error

    def __str__(self) -> str:
        """Format error message with address context."""
        base_msg = super().__str__()
        if self.os_error:
            return f"{base_msg} (device: {self.host}:{self.port}, cause: {self.os_error})"
        return f"{base_msg} (device: {self.host}:{self.port})"


class CommandTimeoutError(MdDmError):
    """No response delimiter arrived within the command window.

    The transport is assumed unhealthy but is not closed by this alone.

    Attributes:
        command: Command line that timed out (None while waiting for the prompt)
        timeout: Window in seconds
    """

    def __init__(self, message: str, command: Optional[str] = None,
                 timeout: Optional[float] = None):
        super().__init__(message)
        self.command = command
        self.timeout = timeout

    def __str__(self) -> str:
        base_msg = super().__str__()
        if self.command:
            return f"{base_msg} (command: {self.command})"
        return base_msg


class ParseError(MdDmError):
    """Device response did not match the expected grammar.

    Raised by the response parser; never accompanied by partial data.

    Attributes:
        parser_name: Name of the parser that failed
        response: Raw offending text
    """

    def __init__(self, message: str, parser_name: str, response: str):
        """Initialize ParseError.

        Args:
            message: Human-readable error description
            parser_name: Name of the parser that failed
            response: Raw text that failed to parse
        """
        super().__init__(message)
        self.parser_name = parser_name
        self.response = response

    def __str__(self) -> str:
        """Format error message with parser details."""
        base_msg = super().__str__()
        return f"{base_msg} (parser: {self.parser_name}, response: {self.response!r})"


class RouteCommandError(MdDmError):
    """Route-setting command answered with diagnostic text.

    The message is exactly the device's (trimmed) reply.

    Attributes:
        command: Command line that was sent
        response: Trimmed device reply
    """

    def __init__(self, command: str, response: str):
        super().__init__(response)
        self.command = command
        self.response = response
