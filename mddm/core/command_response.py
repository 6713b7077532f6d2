"""Device command response data model.

This module defines the immutable CommandResponse dataclass and ResponseStatus enum,
providing a structured representation of one command/response exchange.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional
import time


class ResponseStatus(Enum):
    """Command exchange status.

    Indicates the outcome of command execution:
    - SUCCESS: Response delimiter (shell prompt) received
    - TIMEOUT: No delimiter within the command window
    """
    SUCCESS = "success"
    TIMEOUT = "timeout"


@dataclass(frozen=True)
class CommandResponse:
    """Immutable command response.

    Captures the command, the raw device text received before the shell
    prompt, timing and any error. The text is kept verbatim; trimming and
    decoding are left to the response parser.

    Attributes:
        command: Command line sent (e.g., "SHOWHW")
        raw_response: Text received before the response delimiter
        status: Success or timeout
        execution_time: Seconds from command send to response receive
        error_message: Human-readable error description (if applicable)
        timestamp: Unix timestamp when response was created
    """

    command: str
    raw_response: str
    status: ResponseStatus
    execution_time: float
    error_message: Optional[str] = None
    timestamp: float = field(default_factory=time.time)

    def is_successful(self) -> bool:
        """Check if the device answered within the window.

        Example:
            >>> response = CommandResponse(
            ...     command="VERsion",
            ...     raw_response="DM-MD8x8 [v1.2.3 (2020-01-01)",
            ...     status=ResponseStatus.SUCCESS,
            ...     execution_time=0.05
            ... )
            >>> response.is_successful()
            True
        """
        return self.status == ResponseStatus.SUCCESS

    def __str__(self) -> str:
        """Format response for display."""
        if self.status == ResponseStatus.SUCCESS:
            return f"[{self.status.value}] {self.command} -> {len(self.raw_response)} chars ({self.execution_time:.3f}s)"
        return f"[{self.status.value}] {self.command} ({self.error_message}, {self.execution_time:.3f}s)"
