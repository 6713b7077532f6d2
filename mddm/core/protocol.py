"""Wire constants for the DM-MD8x8 text protocol.

The device speaks a line-oriented shell over TCP: every command is one
``\\r\\n`` terminated line and every response ends with the shell prompt.
"""

DEFAULT_PORT = 23

SHELL_PROMPT = "DM-MD8x8>"
LINE_TERMINATOR = "\r\n"
RESPONSE_DELIMITER = LINE_TERMINATOR + SHELL_PROMPT

DEFAULT_COMMAND_TIMEOUT = 1.0  # seconds
DEFAULT_CONNECT_TIMEOUT = 5.0  # seconds
RECONNECT_DELAY = 5.0  # seconds, fixed
GREETING_WINDOW = 0.5  # seconds to wait for the unprompted greeting
IDLE_POLL_INTERVAL = 0.5  # seconds between idle session checks


class Command:
    """Device command vocabulary."""
    VERSION = "VERsion"
    BYE = "BYE"
    DUMP_ROUTES = "DUMPDMROUTEI"
    SHOW_HARDWARE = "SHOWHW"
    SET_AUDIO_ROUTE = "SETAUDIOROUTE"
    SET_VIDEO_ROUTE = "SETVIDEOROUTE"
    SET_USB_ROUTE = "SETUSBROUTE"
