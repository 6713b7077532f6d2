"""Unit tests for CommunicationLogger."""

import logging

import pytest

from mddm.logging.communication_logger import CommunicationLogger, TRAFFIC_LOGGER_NAME
from mddm.config.config_models import LogLevel


DEVICE = "10.0.0.5:23"


@pytest.fixture
def log_file(tmp_path):
    return tmp_path / "logs" / "traffic.log"


@pytest.fixture
def traffic_to_file(log_file):
    opened = []

    def factory(level=LogLevel.DEBUG, **kwargs):
        traffic = CommunicationLogger(
            log_level=level,
            enable_file=True,
            enable_console=False,
            log_file_path=str(log_file),
            **kwargs
        )
        opened.append(traffic)
        return traffic

    yield factory

    for traffic in opened:
        traffic.close()


def read_lines(traffic, log_file):
    traffic.close()
    return log_file.read_text(encoding="utf-8").splitlines()


class TestCommunicationLogger:
    """Test suite for CommunicationLogger class."""

    def test_creates_log_directory(self, traffic_to_file, log_file):
        traffic = traffic_to_file(LogLevel.INFO)

        assert traffic.log_level == "INFO"
        assert traffic.log_file_path == str(log_file)
        assert log_file.exists()

    def test_no_file_path_raises(self):
        with pytest.raises(ValueError):
            CommunicationLogger(enable_file=True, log_file_path=None)

    def test_command_and_response_lines(self, traffic_to_file, log_file):
        traffic = traffic_to_file()

        traffic.log_command(device=DEVICE, command="VERsion")
        traffic.log_response(DEVICE, "\r\nDM-MD8x8 Cntrl Eng", "SUCCESS", 0.05)

        sent, received = read_lines(traffic, log_file)
        assert sent.endswith(" DEBUG   10.0.0.5:23 >> VERsion")
        assert received.endswith(" 10.0.0.5:23 << '\\r\\nDM-MD8x8 Cntrl Eng' [SUCCESS 0.050s]")

    def test_timeout_is_a_warning(self, traffic_to_file, log_file):
        traffic = traffic_to_file(LogLevel.WARNING)

        traffic.log_command(DEVICE, "SHOWHW")
        traffic.log_response(DEVICE, "PPC405", "SUCCESS", 0.05)
        traffic.log_response(DEVICE, "", "TIMEOUT", 1.0)

        lines = read_lines(traffic, log_file)
        assert len(lines) == 1
        assert " WARNING " in lines[0]
        assert lines[0].endswith("<< '' [TIMEOUT 1.000s]")

    def test_connection_event_details(self, traffic_to_file, log_file):
        traffic = traffic_to_file(LogLevel.INFO)

        traffic.log_connection_event(event="Connection opened", device=DEVICE,
                                     details={"poll_interval": 0.05})

        line, = read_lines(traffic, log_file)
        assert line.endswith(" INFO    10.0.0.5:23 -- Connection opened poll_interval=0.05")

    def test_error_line(self, traffic_to_file, log_file):
        traffic = traffic_to_file(LogLevel.ERROR)

        traffic.log_connection_event(event="Connection closed", device=DEVICE)
        traffic.log_error(DEVICE, "Failed to connect: refused")

        line, = read_lines(traffic, log_file)
        assert line.endswith(" ERROR   10.0.0.5:23 !! Failed to connect: refused")

    def test_console_output(self, capsys):
        with CommunicationLogger(log_level=LogLevel.INFO, enable_console=True) as traffic:
            traffic.log_connection_event(event="Connection closed", device=DEVICE)

        assert "10.0.0.5:23 -- Connection closed" in capsys.readouterr().err

    def test_does_not_reach_process_log(self, traffic_to_file, caplog):
        traffic = traffic_to_file()

        with caplog.at_level(logging.DEBUG):
            traffic.log_command(DEVICE, "SHOWHW")

        assert caplog.records == []

    def test_rotation(self, traffic_to_file, log_file):
        traffic = traffic_to_file(max_file_size_mb=0, backup_count=2)
        traffic._handlers[0].maxBytes = 200

        for i in range(20):
            traffic.log_command(DEVICE, f"SETVIDEOROUTE {i} 17")
        traffic.close()

        assert (log_file.parent / "traffic.log.1").exists()
        assert (log_file.parent / "traffic.log.2").exists()
        assert not (log_file.parent / "traffic.log.3").exists()

    def test_close_detaches_destinations(self, traffic_to_file, log_file):
        traffic = traffic_to_file()
        destinations = list(traffic._handlers)
        traffic.close()
        traffic.close()

        traffic.log_command(DEVICE, "SHOWHW")

        assert traffic.closed is True
        attached = logging.getLogger(TRAFFIC_LOGGER_NAME).handlers
        assert not any(handler in attached for handler in destinations)
        assert log_file.read_text(encoding="utf-8") == ""

    def test_without_destinations(self, capsys):
        traffic = CommunicationLogger(enable_console=False)

        traffic.log_error(DEVICE, "boom")
        traffic.close()

        assert capsys.readouterr().err == ""
