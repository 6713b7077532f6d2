"""Unit tests for the md-dm-api command line."""

import json
import os
from unittest.mock import Mock, patch

import pytest

import main
from mddm.config import ConfigManager
from mddm.core.exceptions import NotConnectedError, RouteCommandError
from mddm.parsers.device_model import Device, Firmware, RouteLeg, RouteOutput


OUTPUT_17 = RouteOutput(
    slot=17,
    video=RouteLeg(True, 3),
    audio=RouteLeg(True, 3),
    usb=RouteLeg(False),
    hotplug="Active",
    out=1,
    in_=3
)


@pytest.fixture(autouse=True)
def isolated(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HOME", str(tmp_path))
    for name in list(os.environ):
        if name.startswith("MDDM_"):
            monkeypatch.delenv(name)
    yield tmp_path
    ConfigManager._instance = None


@pytest.fixture
def manager():
    with patch("main.ConnectionManager") as manager_cls:
        instance = manager_cls.return_value
        instance.wait_connected.return_value = True
        instance.device = Device("DM-MD8x8", Firmware("v1.0", "today"), True)
        instance.get_outputs.return_value = [OUTPUT_17]
        instance.get_output.return_value = OUTPUT_17
        yield instance


class TestArguments:
    """Test argument validation."""

    def test_operation_required(self):
        with pytest.raises(SystemExit):
            main.main([])

    def test_route_needs_a_leg(self, manager):
        with pytest.raises(SystemExit) as exc_info:
            main.main(["--address", "10.0.0.5", "route", "17"])

        assert exc_info.value.code == 2
        manager.start.assert_not_called()

    def test_missing_address(self, manager, capsys):
        assert main.main(["status"]) == 1
        assert "No device address" in capsys.readouterr().err

    def test_invalid_config(self, isolated, capsys):
        (isolated / "config.yaml").write_text("device:\n  port: 0\n", encoding="utf-8")

        assert main.main(["--address", "10.0.0.5", "status"]) == 1
        assert "Configuration validation failed" in capsys.readouterr().err


class TestOperations:
    """Test each operation prints JSON and closes the session."""

    def test_status(self, manager, capsys):
        assert main.main(["--address", "10.0.0.5", "status"]) == 0

        result = json.loads(capsys.readouterr().out)
        assert result == {
            "name": "DM-MD8x8",
            "firmware": {"version": "v1.0", "date": "today"},
            "connected": True
        }
        manager.start.assert_called_once()
        manager.stop.assert_called_once()

    def test_connection_settings_passed(self, manager):
        with patch("main.ConnectionManager") as manager_cls:
            manager_cls.return_value = manager
            main.main(["--address", "dm.local", "--port", "2323", "--timeout", "2.5", "status"])

        args, kwargs = manager_cls.call_args
        assert args == ("dm.local",)
        assert kwargs["port"] == 2323
        assert kwargs["command_timeout"] == 2.5
        assert kwargs["connect_timeout"] == 5.0
        assert kwargs["traffic_logger"] is None

    def test_outputs(self, manager, capsys):
        assert main.main(["--address", "10.0.0.5", "outputs"]) == 0

        result = json.loads(capsys.readouterr().out)
        assert [output["slot"] for output in result] == [17]
        assert result[0]["in"] == 3

    def test_output_missing_prints_null(self, manager, capsys):
        manager.get_output.return_value = None

        assert main.main(["--address", "10.0.0.5", "output", "5"]) == 0
        assert json.loads(capsys.readouterr().out) is None
        manager.get_output.assert_called_once_with("5")

    def test_route(self, manager, capsys):
        assert main.main(["--address", "10.0.0.5", "route", "17", "--video", "3"]) == 0

        manager.set_route.assert_called_once_with("17", audio=None, video="3", usb=None)
        assert json.loads(capsys.readouterr().out)["slot"] == 17

    def test_device_error_exit_code(self, manager, capsys):
        manager.set_route.side_effect = RouteCommandError("SETVIDEOROUTE 3 17", "Invalid input")

        assert main.main(["--address", "10.0.0.5", "route", "17", "--video", "3"]) == 1
        assert "Error: Invalid input" in capsys.readouterr().err
        manager.stop.assert_called_once()

    def test_not_connected(self, manager, capsys):
        manager.wait_connected.return_value = False
        manager.get_hardware.side_effect = NotConnectedError()

        assert main.main(["--address", "10.0.0.5", "hardware"]) == 1
        assert "Not currently connected to MD-DM" in capsys.readouterr().err


class TestTrafficLog:
    """Test the device traffic log option."""

    def test_traffic_log_written(self, manager, isolated):
        log_file = isolated / "traffic.log"

        with patch("main.ConnectionManager") as manager_cls:
            manager_cls.return_value = manager
            main.main(["--address", "10.0.0.5", "--traffic-log", str(log_file), "status"])

        traffic_logger = manager_cls.call_args.kwargs["traffic_logger"]
        assert traffic_logger is not None
        assert traffic_logger.log_file_path == str(log_file)
        assert traffic_logger.closed is True

    def test_traffic_log_unwritable(self, manager, isolated, capsys):
        blocker = isolated / "blocker"
        blocker.write_text("not a directory")

        with patch("main.ConnectionManager") as manager_cls:
            code = main.main(["--address", "10.0.0.5", "--traffic-log",
                              str(blocker / "traffic.log"), "status"])

        assert code == 1
        assert "Cannot open traffic log" in capsys.readouterr().err
        manager_cls.assert_not_called()

    def test_traffic_log_from_config(self, isolated, monkeypatch):
        default_path = isolated / "logs" / "traffic.log"
        monkeypatch.setattr(main, "DEFAULT_TRAFFIC_LOG", default_path)
        config = ConfigManager.initialize(overrides={"logging": {"traffic_log": True}}).get_config()

        traffic_logger = main.create_traffic_logger(config, None)

        assert traffic_logger.log_file_path == str(default_path)
        assert default_path.exists()
        traffic_logger.close()

    def test_no_traffic_log_by_default(self):
        config = ConfigManager.initialize().get_config()
        assert main.create_traffic_logger(config, None) is None


def test_unknown_operation():
    with pytest.raises(ValueError):
        main.run_operation(Mock(), Mock(operation="reboot"))
