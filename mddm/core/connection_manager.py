"""Connection lifecycle and typed operations for the MD-DM device.

This module owns the long-lived session: it connects, identifies the device,
reconnects after the socket closes and guards every typed operation.
"""

from dataclasses import replace
from enum import Enum
from typing import Callable, List, Optional, Union, TYPE_CHECKING
import logging
import re
import threading
import time

from mddm.core.command_executor import CommandExecutor
from mddm.core.exceptions import (
    CommandTimeoutError,
    MdDmError,
    NotConnectedError,
    NotStartedError,
    ParseError,
    RouteCommandError,
    TransportError,
)
from mddm.core.protocol import (
    Command,
    DEFAULT_COMMAND_TIMEOUT,
    DEFAULT_CONNECT_TIMEOUT,
    DEFAULT_PORT,
    GREETING_WINDOW,
    IDLE_POLL_INTERVAL,
    RECONNECT_DELAY,
    SHELL_PROMPT,
)
from mddm.core.telnet_handler import TelnetHandler
from mddm.parsers.device_model import Device, Hardware, RouteOutput
from mddm.parsers import response_parser

if TYPE_CHECKING:
    from mddm.logging.communication_logger import CommunicationLogger

logger = logging.getLogger(__name__)

NOT_A_NUMBER = "NaN"
_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


class ConnectionState(Enum):
    """Session state machine."""
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


def coerce_int(value: object) -> Union[int, str]:
    """Coerce a slot or input number the way the device API always has.

    Takes the leading integer of the value's text; anything else becomes the
    ``NaN`` sentinel, which is still sent to the device.

    Example:
        >>> coerce_int("3"), coerce_int(4.7), coerce_int("abc")
        (3, 4, 'NaN')
    """
    match = _LEADING_INT.match(str(value))
    if match is None:
        return NOT_A_NUMBER
    return int(match.group(1))


class ConnectionManager:
    """Owns the device session and the last-known Device record.

    State transitions:
        DISCONNECTED -> CONNECTING   start() or the reconnect timer
        CONNECTING   -> CONNECTED    prompt seen and VERsion parsed
        any          -> DISCONNECTED socket closed (handle_disconnect)

    While a session is open a watcher thread checks it between commands, so
    a device that hangs up is noticed without waiting for the next command.

    If VERsion cannot be parsed the session stays open in CONNECTING and
    every typed operation fails with NotConnectedError until the next
    disconnect/reconnect cycle.

    Example:
        >>> manager = ConnectionManager('192.168.1.50')
        >>> manager.start()
        >>> manager.wait_connected(timeout=10)
        True
        >>> [output.slot for output in manager.get_outputs()]
        [9, 10, 11, 12, 13, 14, 15, 16]
        >>> manager.set_video_route(9, 3)
        >>> manager.stop()
    """

    def __init__(self,
                 host: str,
                 port: int = DEFAULT_PORT,
                 command_timeout: float = DEFAULT_COMMAND_TIMEOUT,
                 connect_timeout: float = DEFAULT_CONNECT_TIMEOUT,
                 handler: Optional[TelnetHandler] = None,
                 traffic_logger: Optional['CommunicationLogger'] = None,
                 timer_factory: Callable[..., threading.Timer] = threading.Timer,
                 idle_poll_interval: float = IDLE_POLL_INTERVAL):
        """Initialize manager; nothing connects until start().

        Args:
            host: Device address
            port: Device TCP port (default 23)
            command_timeout: Response window per command in seconds (default 1.0)
            connect_timeout: Window for the first shell prompt in seconds (default 5.0)
            handler: Session handler (default: TelnetHandler for host/port)
            traffic_logger: Optional CommunicationLogger for device traffic
            timer_factory: Factory for the cancelable reconnect timer
            idle_poll_interval: Seconds between checks of the idle session (default 0.5)
        """
        self.host = host
        self.port = port
        self.connect_timeout = connect_timeout
        self.idle_poll_interval = idle_poll_interval
        self._handler = handler or TelnetHandler(host, port, logger=traffic_logger)
        self._executor = CommandExecutor(self._handler, default_timeout=command_timeout,
                                         logger=traffic_logger)
        self._timer_factory = timer_factory

        self._lock = threading.RLock()
        self._connect_lock = threading.Lock()
        self._connected_event = threading.Event()
        self._device = Device()
        self._state = ConnectionState.DISCONNECTED
        self._started = False
        # Bumped whenever the current session is replaced or lost
        self._session = 0
        self._reconnect_timer: Optional[threading.Timer] = None

    @property
    def device(self) -> Device:
        """Snapshot of the last-known device record."""
        with self._lock:
            return self._device

    @property
    def state(self) -> ConnectionState:
        with self._lock:
            return self._state

    @property
    def started(self) -> bool:
        with self._lock:
            return self._started

    def start(self) -> None:
        """Mark the manager started and begin connecting in the background.

        Calling start() on a live session reconnects to the same device.
        """
        with self._lock:
            self._cancel_reconnect()
            self._started = True
            self._session += 1
            self._state = ConnectionState.CONNECTING

        logger.info("Connecting to %s:%s...", self.host, self.port)
        thread = threading.Thread(target=self._connect, name="mddm-connect", daemon=True)
        thread.start()

    def stop(self) -> None:
        """Say BYE, stop, and suppress any further reconnection."""
        with self._lock:
            self._started = False
            self._cancel_reconnect()

        try:
            self._executor.send(Command.BYE)
        except MdDmError as e:
            logger.debug("BYE not delivered: %s", e)

        self.handle_disconnect()

    def wait_connected(self, timeout: Optional[float] = None) -> bool:
        """Block until the device has identified itself or timeout elapses."""
        return self._connected_event.wait(timeout)

    def handle_disconnect(self) -> None:
        """Socket-close event: reset connectivity and maybe schedule a reconnect.

        At most one reconnect is pending at any time.
        """
        with self._lock:
            self._session += 1
            session = self._session
            self._connected_event.clear()
            self._device = replace(self._device, connected=False)
            self._state = ConnectionState.DISCONNECTED

        # close() waits out a read in progress; keep the manager lock free meanwhile
        self._handler.close()

        with self._lock:
            if not self._started:
                logger.info("Telnet session closed.")
                return

            logger.warning("Telnet session closed.")
            if self._reconnect_timer is not None or session != self._session:
                return

            logger.info("Reconnecting to %s in %ss.", self.host, RECONNECT_DELAY)
            timer = self._timer_factory(RECONNECT_DELAY, self._reconnect)
            timer.daemon = True
            self._reconnect_timer = timer
            timer.start()

    def execute_command(self, name: str, *args: object) -> str:
        """Guarded command exchange used by every typed operation.

        Args:
            name: Command word (e.g., "SHOWHW")
            *args: Arguments, space-separated after the command word

        Returns:
            Raw response text

        Raises:
            NotStartedError: start() never called, or stop() called last
            NotConnectedError: Device has not identified itself yet
            CommandTimeoutError: No prompt within the command window
            TransportError: Socket failure; a disconnect is handled as well
        """
        self._check_ready(name)
        command = " ".join([name, *(str(arg) for arg in args)])

        try:
            response = self._executor.execute_command(command)
        except TransportError as e:
            logger.error("%s failed: %s", name, e)
            self.handle_disconnect()
            raise

        if not response.is_successful():
            logger.warning("%s timed out: %s", name, response.error_message)
            raise CommandTimeoutError(
                response.error_message or "Command timed out",
                command=command,
                timeout=self._executor.default_timeout
            )

        logger.debug("%s response: %s", name, response.raw_response)
        return response.raw_response

    def get_outputs(self) -> List[RouteOutput]:
        """Routing state of every output card (DUMPDMROUTEI)."""
        response = self.execute_command(Command.DUMP_ROUTES)
        try:
            return response_parser.parse_dm_route_outputs(response)
        except ParseError:
            logger.warning("Failed to parse response: %s", response)
            raise

    def get_output(self, slot: object) -> Optional[RouteOutput]:
        """Routing state of the output card in ``slot``, or None if there is none."""
        wanted = coerce_int(slot)
        for output in self.get_outputs():
            if output.slot == wanted:
                return output
        return None

    def get_hardware(self) -> Hardware:
        """Hardware inventory (SHOWHW)."""
        response = self.execute_command(Command.SHOW_HARDWARE)
        try:
            return response_parser.parse_hardware(response)
        except ParseError:
            logger.warning("Failed to parse response: %s", response)
            raise

    def set_audio_route(self, slot: object, input_: object) -> None:
        """Route the audio of input card ``input_`` to the output in ``slot``."""
        self._set_route(slot, input_, Command.SET_AUDIO_ROUTE)

    def set_video_route(self, slot: object, input_: object) -> None:
        """Route the video of input card ``input_`` to the output in ``slot``."""
        self._set_route(slot, input_, Command.SET_VIDEO_ROUTE)

    def set_usb_route(self, slot: object, input_: object) -> None:
        """Route the USB of input card ``input_`` to the output in ``slot``."""
        self._set_route(slot, input_, Command.SET_USB_ROUTE)

    def set_route(self,
                  slot: object,
                  audio: Optional[object] = None,
                  video: Optional[object] = None,
                  usb: Optional[object] = None) -> None:
        """Apply the given legs in order audio, video, USB; stop at the first failure.

        Raises:
            ValueError: No leg given
        """
        if audio is None and video is None and usb is None:
            raise ValueError("At least the video, audio or usb input must be given.")

        logger.info("Setting new route for slot %s", slot)
        if audio is not None:
            self.set_audio_route(slot, audio)
        if video is not None:
            self.set_video_route(slot, video)
        if usb is not None:
            self.set_usb_route(slot, usb)

    def _set_route(self, slot: object, input_: object, method: str) -> None:
        slot_number = coerce_int(slot)
        input_number = coerce_int(input_)

        response = self.execute_command(method, input_number, slot_number).strip()
        if response:
            logger.warning("%s %s %s rejected: %s", method, input_number, slot_number, response)
            raise RouteCommandError(f"{method} {input_number} {slot_number}", response)

    def _check_ready(self, name: str) -> None:
        with self._lock:
            if not self._started:
                logger.warning("%s refused: connection not started", name)
                raise NotStartedError()
            if not self._device.connected:
                logger.warning("%s refused: device not connected", name)
                raise NotConnectedError()

    def _connect(self) -> None:
        with self._connect_lock:
            with self._lock:
                if not self._started:
                    return
                self._session += 1
                session = self._session
                self._connected_event.clear()
                self._device = replace(self._device, connected=False)

            # start() on a live session drops it first
            self._handler.close()

            try:
                self._handler.open()
                self._await_prompt()
            except (TransportError, CommandTimeoutError) as e:
                logger.error("Failed to connect to %s:%s: %s", self.host, self.port, e)
                self.handle_disconnect()
                return

            logger.debug("Telnet connection ready!")
            self._identify(session)

            with self._lock:
                if session != self._session:
                    return
            watcher = threading.Thread(target=self._watch_session, args=(session,),
                                       name="mddm-watch", daemon=True)
            watcher.start()

    def _await_prompt(self) -> None:
        # pyserial drops input received while the socket opens, which can
        # swallow the greeting; an empty line makes the shell prompt again.
        try:
            self._handler.read_until(SHELL_PROMPT,
                                     timeout=min(GREETING_WINDOW, self.connect_timeout))
            return
        except CommandTimeoutError:
            logger.debug("No greeting from %s, asking for a prompt.", self.host)

        self._handler.write("")
        self._handler.read_until(SHELL_PROMPT, timeout=self.connect_timeout)

    def _watch_session(self, session: int) -> None:
        while True:
            time.sleep(self.idle_poll_interval)
            with self._lock:
                if session != self._session:
                    return
            try:
                self._executor.poll()
            except TransportError as e:
                with self._lock:
                    if session != self._session:
                        return
                logger.error("Lost connection to %s: %s", self.host, e)
                self.handle_disconnect()
                return

    def _identify(self, session: int) -> None:
        logger.info("Obtaining version from MD-DM at %s...", self.host)
        try:
            response = self._executor.execute_command(Command.VERSION)
            if not response.is_successful():
                raise CommandTimeoutError(
                    response.error_message or "Command timed out",
                    command=Command.VERSION
                )
            device = response_parser.parse_version(response.raw_response)
        except TransportError as e:
            logger.error("Failed to get version from MD-DM: %s", e)
            self.handle_disconnect()
            return
        except MdDmError as e:
            logger.error("Failed to get version from MD-DM: %s", e)
            return

        with self._lock:
            if not self._started or session != self._session:
                return
            self._device = replace(device, connected=True)
            self._state = ConnectionState.CONNECTED
            self._connected_event.set()

        logger.info("Connected to %s, running %s.", device.name, device.firmware.version)

    def _reconnect(self) -> None:
        with self._lock:
            self._reconnect_timer = None
            if not self._started:
                return
            self._state = ConnectionState.CONNECTING

        logger.info("Connecting to %s:%s...", self.host, self.port)
        self._connect()

    def _cancel_reconnect(self) -> None:
        # Caller must hold self._lock
        if self._reconnect_timer is not None:
            self._reconnect_timer.cancel()
            self._reconnect_timer = None

    def __repr__(self) -> str:
        return (f"ConnectionManager(device='{self.host}:{self.port}', "
                f"state={self.state.value}, started={self.started})")
