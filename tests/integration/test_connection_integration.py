"""Integration tests against an in-process fake DM-MD8x8 shell.

The fake device listens on a localhost TCP port and greets immediately on
accept with a telnet option request and a prompt, the way the real shell
does. It answers each command line with a scripted reply followed by
"\\r\\nDM-MD8x8>" and an empty line with just the prompt. The real
TelnetHandler (pyserial socket://) talks to it end to end.
"""

import socket
import socketserver
import threading
import time
from unittest.mock import Mock

import pytest

from mddm.config.config_models import LogLevel
from mddm.core import ConnectionManager, ConnectionState
from mddm.core.exceptions import NotConnectedError, RouteCommandError, TransportError
from mddm.core.protocol import RESPONSE_DELIMITER
from mddm.core.telnet_handler import IAC, DO, WONT
from mddm.logging import CommunicationLogger


TERMINAL_TYPE = 24
OPTION_REQUEST = bytes([IAC, DO, TERMINAL_TYPE])
REFUSAL = bytes([IAC, WONT, TERMINAL_TYPE])
GREETING = OPTION_REQUEST + b"Welcome\r\nDM-MD8x8>"


class FakeShellHandler(socketserver.BaseRequestHandler):
    """One telnet session with the fake device."""

    def handle(self):
        server = self.server
        server.sessions.append(self.request)
        self.request.sendall(GREETING)

        buffer = b""
        while True:
            try:
                data = self.request.recv(1024)
            except OSError:
                return
            if not data:
                return

            server.refusals += data.count(REFUSAL)
            buffer += data.replace(REFUSAL, b"")

            while b"\r\n" in buffer:
                line, buffer = buffer.split(b"\r\n", 1)
                command = line.decode("ascii").strip()
                if not command:
                    self.request.sendall(RESPONSE_DELIMITER.encode("ascii"))
                    continue

                server.commands.append(command)
                if command == "BYE":
                    return

                reply = server.replies.get(command.split(" ")[0], "")
                self.request.sendall(
                    server.reply_prefix + (reply + RESPONSE_DELIMITER).encode("ascii")
                )


def wait_for(predicate, timeout=5.0):
    deadline = time.time() + timeout
    while time.time() < deadline:
        if predicate():
            return True
        time.sleep(0.02)
    return predicate()


def fast_timer(interval, function):
    return threading.Timer(0.1, function)


@pytest.fixture
def fake_device(version_reply, hardware_dump, route_dump):
    server = socketserver.ThreadingTCPServer(("127.0.0.1", 0), FakeShellHandler)
    server.daemon_threads = True
    server.commands = []
    server.sessions = []
    server.refusals = 0
    server.reply_prefix = b""
    server.replies = {
        "VERsion": version_reply,
        "SHOWHW": hardware_dump,
        "DUMPDMROUTEI": route_dump,
    }
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()

    yield server

    server.shutdown()
    server.server_close()


@pytest.fixture
def managers():
    created = []

    def factory(port, **kwargs):
        manager = ConnectionManager("127.0.0.1", port=port, **kwargs)
        created.append(manager)
        return manager

    yield factory

    for manager in created:
        manager.stop()


class TestConnectionIntegration:
    """End-to-end session against the fake device."""

    def test_connects_despite_immediate_greeting(self, fake_device, managers):
        manager = managers(fake_device.server_address[1])

        manager.start()

        assert manager.wait_connected(timeout=5.0) is True
        assert manager.state == ConnectionState.CONNECTED
        assert manager.device.name == "DM-MD8x8 Cntrl Eng"
        assert manager.device.firmware.version == "v1.3167.00026"
        assert fake_device.commands == ["VERsion"]

    def test_refuses_option_requests(self, fake_device, managers):
        fake_device.reply_prefix = OPTION_REQUEST
        manager = managers(fake_device.server_address[1])

        manager.start()

        assert manager.wait_connected(timeout=5.0) is True
        assert manager.device.name == "DM-MD8x8 Cntrl Eng"
        assert wait_for(lambda: fake_device.refusals >= 1)

    def test_queries(self, fake_device, managers, tmp_path):
        log_file = tmp_path / "traffic.log"
        traffic = CommunicationLogger(log_level=LogLevel.DEBUG, enable_file=True,
                                      enable_console=False, log_file_path=str(log_file))
        try:
            manager = managers(fake_device.server_address[1], traffic_logger=traffic)
            manager.start()
            assert manager.wait_connected(timeout=5.0)

            hardware = manager.get_hardware()
            outputs = manager.get_outputs()

            assert [card.slot for card in hardware.cards] == [1, 10, 17]
            assert [output.slot for output in outputs] == [17, 18]
            assert manager.get_output(18).usb.slot == 4
        finally:
            traffic.close()

        content = log_file.read_text(encoding="utf-8")
        assert "127.0.0.1:%d -- Connection opened" % fake_device.server_address[1] in content
        assert ">> SHOWHW" in content
        assert ">> DUMPDMROUTEI" in content

    def test_set_route(self, fake_device, managers):
        manager = managers(fake_device.server_address[1])
        manager.start()
        assert manager.wait_connected(timeout=5.0)

        manager.set_route(17, audio=3, video=2)

        assert fake_device.commands[-2:] == ["SETAUDIOROUTE 3 17", "SETVIDEOROUTE 2 17"]

    def test_route_rejected(self, fake_device, managers):
        fake_device.replies["SETUSBROUTE"] = "\r\nUSB routing not available"
        manager = managers(fake_device.server_address[1])
        manager.start()
        assert manager.wait_connected(timeout=5.0)

        with pytest.raises(RouteCommandError) as exc_info:
            manager.set_usb_route(17, 4)

        assert str(exc_info.value) == "USB routing not available"
        assert manager.state == ConnectionState.CONNECTED

    def test_stop_says_bye(self, fake_device, managers):
        manager = managers(fake_device.server_address[1])
        manager.start()
        assert manager.wait_connected(timeout=5.0)

        manager.stop()

        assert wait_for(lambda: "BYE" in fake_device.commands)
        assert manager.state == ConnectionState.DISCONNECTED

    def test_hangup_while_idle_reconnects(self, fake_device, managers):
        manager = managers(fake_device.server_address[1], timer_factory=fast_timer,
                           idle_poll_interval=0.05)
        manager.start()
        assert manager.wait_connected(timeout=5.0)

        fake_device.sessions[0].shutdown(socket.SHUT_RDWR)

        assert wait_for(lambda: manager.device.connected is False)
        with pytest.raises(NotConnectedError):
            manager.get_hardware()
        assert wait_for(lambda: len(fake_device.sessions) == 2)
        assert manager.wait_connected(timeout=5.0) is True
        assert fake_device.commands == ["VERsion", "VERsion"]

    def test_command_on_dropped_session_reconnects(self, fake_device, managers):
        manager = managers(fake_device.server_address[1], timer_factory=fast_timer,
                           idle_poll_interval=60)
        manager.start()
        assert manager.wait_connected(timeout=5.0)

        fake_device.sessions[0].shutdown(socket.SHUT_RDWR)

        with pytest.raises(TransportError):
            manager.get_hardware()

        assert manager.wait_connected(timeout=5.0) is True
        assert len(fake_device.sessions) == 2
        assert manager.get_hardware().processor_type == "PPC405"


class TestConnectionRefused:
    """Connect failures schedule a reconnect instead of raising."""

    def test_refused_schedules_reconnect(self, managers):
        spare = socket.socket()
        spare.bind(("127.0.0.1", 0))
        port = spare.getsockname()[1]
        spare.close()

        timer_factory = Mock()
        manager = managers(port, timer_factory=timer_factory)
        manager.start()

        assert wait_for(lambda: timer_factory.called)
        assert timer_factory.call_args.args[0] == 5.0
        assert wait_for(lambda: timer_factory.return_value.start.called)
        assert manager.state == ConnectionState.DISCONNECTED
