"""Telnet socket I/O handler for the MD-DM command shell.

This module provides the raw TCP session to the device on top of pyserial's
``socket://`` URL handler, with telnet option refusal and robust error
wrapping.
"""

from typing import List, Optional, Tuple, TYPE_CHECKING
import codecs
import threading
import time

import serial

from mddm.core.exceptions import TransportError, CommandTimeoutError
from mddm.core.protocol import DEFAULT_PORT, LINE_TERMINATOR

# Avoid circular import for type hints
if TYPE_CHECKING:
    from mddm.logging.communication_logger import CommunicationLogger


IAC = 255
DONT = 254
DO = 253
WONT = 252
WILL = 251
SB = 250
SE = 240


class NegotiationFilter:
    """Strips telnet IAC sequences from the inbound byte stream.

    Every DO request is answered with WONT and every WILL with DONT, so the
    session stays a plain NVT text stream. Sequences split across reads are
    carried over to the next call to ``feed``.
    """

    def __init__(self) -> None:
        self._carry = b""
        self._in_subnegotiation = False

    def feed(self, data: bytes) -> Tuple[bytes, List[bytes]]:
        """Filter one chunk.

        Returns:
            Tuple of (payload bytes, negotiation replies to send back)
        """
        data = self._carry + data
        self._carry = b""
        payload = bytearray()
        replies: List[bytes] = []
        i = 0

        while i < len(data):
            byte = data[i]

            if self._in_subnegotiation:
                if byte == IAC:
                    if i + 1 >= len(data):
                        self._carry = data[i:]
                        break
                    if data[i + 1] == SE:
                        self._in_subnegotiation = False
                    i += 2
                    continue
                i += 1
                continue

            if byte != IAC:
                payload.append(byte)
                i += 1
                continue

            if i + 1 >= len(data):
                self._carry = data[i:]
                break

            verb = data[i + 1]
            if verb == IAC:
                # Escaped 0xFF data byte
                payload.append(IAC)
                i += 2
            elif verb in (DO, DONT, WILL, WONT):
                if i + 2 >= len(data):
                    self._carry = data[i:]
                    break
                option = data[i + 2]
                if verb == DO:
                    replies.append(bytes([IAC, WONT, option]))
                elif verb == WILL:
                    replies.append(bytes([IAC, DONT, option]))
                i += 3
            elif verb == SB:
                self._in_subnegotiation = True
                i += 2
            else:
                # NOP, GA, AYT and friends carry no payload
                i += 2

        return bytes(payload), replies


class TelnetHandler:
    """Manages the TCP session lifecycle and raw line I/O.

    Provides the low-level command shell interface with thread safety.
    Wraps pyserial and socket exceptions in custom types.

    Example:
        >>> handler = TelnetHandler('192.168.1.50')
        >>> handler.open()
        >>> handler.read_until('DM-MD8x8>', timeout=5.0)
        >>> handler.write('VERsion')
        >>> text = handler.read_until('\\r\\nDM-MD8x8>', timeout=1.0)
        >>> handler.close()
    """

    def __init__(self,
                 host: str,
                 port: int = DEFAULT_PORT,
                 poll_interval: float = 0.05,
                 logger: Optional['CommunicationLogger'] = None):
        """Initialize handler with device address.

        Args:
            host: Device address (hostname or IP)
            port: Device TCP port (default 23)
            poll_interval: Socket read granularity in seconds (default 0.05)
            logger: Optional CommunicationLogger for connection events (default None)
        """
        self.host = host
        self.port = port
        self.poll_interval = poll_interval
        self.logger = logger
        self._serial: Optional[serial.SerialBase] = None
        self._lock = threading.Lock()
        self._pending = ""
        self._filter = NegotiationFilter()
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._open_time: Optional[float] = None  # Track session duration

    @property
    def url(self) -> str:
        """pyserial URL for the device session."""
        return f"socket://{self.host}:{self.port}"

    @property
    def address(self) -> str:
        return f"{self.host}:{self.port}"

    def open(self) -> None:
        """Open the TCP session.

        Raises:
            TransportError: Connection refused, unreachable host, DNS failure
        """
        with self._lock:
            if self._serial is not None and self._serial.is_open:
                return  # Already open

            try:
                self._serial = serial.serial_for_url(self.url, timeout=self.poll_interval)
            except (serial.SerialException, OSError, ValueError) as e:
                if self.logger:
                    self.logger.log_error(self.address, f"Failed to connect: {e}")
                raise TransportError(
                    f"Failed to connect to {self.address}: {e}",
                    self.host,
                    self.port,
                    e
                )

            self._pending = ""
            self._filter = NegotiationFilter()
            self._decoder.reset()
            self._open_time = time.time()

            if self.logger:
                self.logger.log_connection_event(
                    event="Connection opened",
                    device=self.address,
                    details={"poll_interval": self.poll_interval},
                    level="INFO"
                )

    def close(self) -> None:
        """Close the session and release resources.

        Safe to call multiple times; does nothing if already closed.
        """
        with self._lock:
            if self._serial is not None and self._serial.is_open:
                try:
                    self._serial.close()

                    if self.logger:
                        session_duration = None
                        if self._open_time:
                            session_duration = time.time() - self._open_time

                        self.logger.log_connection_event(
                            event="Connection closed",
                            device=self.address,
                            details={
                                "session_duration_seconds": session_duration
                            } if session_duration else None,
                            level="INFO"
                        )
                except (serial.SerialException, OSError) as e:
                    if self.logger:
                        self.logger.log_error(self.address, f"Error closing connection: {e}")
                finally:
                    self._open_time = None
            self._pending = ""

    def write(self, data: str) -> int:
        """Write one command line.

        Automatically appends the \\r\\n terminator to the data.

        Args:
            data: Command line (terminator added automatically)

        Returns:
            Number of bytes written

        Raises:
            TransportError: Session not open or write failed
        """
        with self._lock:
            self._ensure_open("Cannot write to closed connection")

            try:
                message = f"{data}{LINE_TERMINATOR}"
                return self._serial.write(message.encode('utf-8'))
            except (serial.SerialException, OSError) as e:
                raise TransportError(
                    f"Failed to write to {self.address}: {e}",
                    self.host,
                    self.port,
                    e
                )

    def read_until(self, delimiter: str, timeout: float) -> str:
        """Read until the delimiter or timeout.

        Text received after the delimiter is kept for the next read.

        Args:
            delimiter: Stop reading when the stream contains this
            timeout: Maximum time to wait in seconds

        Returns:
            Text received before the delimiter, verbatim

        Raises:
            CommandTimeoutError: Delimiter not seen within timeout
            TransportError: Session not open, closed by peer, or read failed
        """
        with self._lock:
            self._ensure_open("Cannot read from closed connection")

            buffer = self._pending
            start_time = time.time()

            try:
                while True:
                    index = buffer.find(delimiter)
                    if index >= 0:
                        self._pending = buffer[index + len(delimiter):]
                        return buffer[:index]

                    elapsed = time.time() - start_time
                    if elapsed > timeout:
                        self._pending = ""
                        raise CommandTimeoutError(
                            f"Read timeout after {elapsed:.2f}s waiting for {delimiter!r}",
                            timeout=timeout
                        )

                    chunk = self._serial.read(self._serial.in_waiting or 1)
                    if not chunk:
                        continue

                    payload, replies = self._filter.feed(chunk)
                    for reply in replies:
                        self._serial.write(reply)
                    buffer += self._decoder.decode(payload)

            except (serial.SerialException, OSError) as e:
                self._pending = ""
                raise TransportError(
                    f"Failed to read from {self.address}: {e}",
                    self.host,
                    self.port,
                    e
                )

    def poll(self) -> None:
        """Take in whatever the device sent while no command was running.

        Never blocks. Option requests are refused as in read_until() and
        text is kept for the next read. A socket the device has closed
        selects as readable but yields no data, which pyserial reports as
        a disconnect.

        Raises:
            TransportError: Session not open, closed by peer, or read failed
        """
        with self._lock:
            self._ensure_open("Cannot poll a closed connection")

            try:
                while self._serial.in_waiting:
                    chunk = self._serial.read(self._serial.in_waiting)
                    payload, replies = self._filter.feed(chunk)
                    for reply in replies:
                        self._serial.write(reply)
                    self._pending += self._decoder.decode(payload)
            except (serial.SerialException, OSError) as e:
                raise TransportError(
                    f"Connection to {self.address} lost: {e}",
                    self.host,
                    self.port,
                    e
                )

    def is_connected(self) -> bool:
        """Check if the session is currently open."""
        with self._lock:
            return self._serial is not None and self._serial.is_open

    def flush_buffers(self) -> None:
        """Discard any unread input, including text kept from the last read.

        Raises:
            TransportError: Session not open or flush failed
        """
        with self._lock:
            self._ensure_open("Cannot flush buffers on closed connection")

            try:
                self._serial.reset_input_buffer()
            except (serial.SerialException, OSError) as e:
                raise TransportError(
                    f"Failed to flush buffers on {self.address}: {e}",
                    self.host,
                    self.port,
                    e
                )
            self._pending = ""

    def _ensure_open(self, message: str) -> None:
        # Caller must hold self._lock
        if self._serial is None or not self._serial.is_open:
            raise TransportError(message, self.host, self.port, None)

    def __enter__(self):
        """Context manager entry: open session."""
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit: close session."""
        self.close()
        return False

    def __repr__(self) -> str:
        """String representation of handler."""
        status = "open" if self.is_connected() else "closed"
        return f"TelnetHandler(device='{self.address}', status={status})"
