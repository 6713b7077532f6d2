"""Core connection components.

This package provides the socket layer, command execution and the
connection state machine for the MD-DM device.
"""

from mddm.core.command_response import CommandResponse, ResponseStatus
from mddm.core.exceptions import (
    MdDmError,
    NotStartedError,
    NotConnectedError,
    TransportError,
    CommandTimeoutError,
    ParseError,
    RouteCommandError
)
from mddm.core.telnet_handler import TelnetHandler
from mddm.core.command_executor import CommandExecutor
from mddm.core.connection_manager import ConnectionManager, ConnectionState

__all__ = [
    'CommandResponse',
    'ResponseStatus',
    'TelnetHandler',
    'CommandExecutor',
    'ConnectionManager',
    'ConnectionState',
    'MdDmError',
    'NotStartedError',
    'NotConnectedError',
    'TransportError',
    'CommandTimeoutError',
    'ParseError',
    'RouteCommandError',
]
