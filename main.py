"""md-dm-api - command-line client for the DM-MD8x8 routing matrix.

Connects to the device, runs one operation and prints the result as JSON.
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Optional

from mddm.config import ConfigManager
from mddm.config.config_models import Config
from mddm.core import ConnectionManager, MdDmError
from mddm.core.protocol import GREETING_WINDOW
from mddm.logging import CommunicationLogger

logger = logging.getLogger("mddm")

DEFAULT_TRAFFIC_LOG = Path.home() / ".md-dm-api" / "logs" / "traffic.log"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="md-dm-api",
        description="DM-MD8x8 routing matrix client",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s --address 192.168.1.50 status
  %(prog)s --address 192.168.1.50 hardware
  %(prog)s outputs                                   # address from config.yaml
  %(prog)s output 9
  %(prog)s route 9 --video 3 --audio 3
  %(prog)s --traffic-log ~/mddm.log --log-level DEBUG route 10 --usb 2
        """
    )

    parser.add_argument(
        '--config',
        type=Path,
        help='Path to config file (default: search ./config.yaml, ./config.json, ~/.md-dm-api/config.yaml)'
    )

    parser.add_argument(
        '--address',
        type=str,
        help='Device hostname or IP address'
    )

    parser.add_argument(
        '--port',
        type=int,
        help='Device telnet port (default: 23)'
    )

    parser.add_argument(
        '--timeout',
        type=float,
        help='Command timeout in seconds (default: 1.0)'
    )

    parser.add_argument(
        '--log-level',
        type=str,
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
        help='Process log level (default: INFO)'
    )

    parser.add_argument(
        '--traffic-log',
        type=str,
        metavar='PATH',
        help='Record every command and response to PATH'
    )

    subparsers = parser.add_subparsers(dest='operation', metavar='OPERATION')
    subparsers.required = True

    subparsers.add_parser('status', help='Show device identity and connectivity')
    subparsers.add_parser('hardware', help='Show the hardware inventory')
    subparsers.add_parser('outputs', help='Show routing for every output card')

    output_parser = subparsers.add_parser('output', help='Show routing for one output card')
    output_parser.add_argument('slot', help='Output card slot')

    route_parser = subparsers.add_parser('route', help='Route inputs to an output card')
    route_parser.add_argument('slot', help='Output card slot')
    route_parser.add_argument('--audio', help='Input card slot for audio')
    route_parser.add_argument('--video', help='Input card slot for video')
    route_parser.add_argument('--usb', help='Input card slot for USB')

    return parser


def configure_logging(config: Config) -> None:
    """Set up the process log on stderr."""
    logging.basicConfig(
        level=getattr(logging, config.logging.level.value),
        format="%(asctime)s %(levelname)s: %(message)s",
        stream=sys.stderr
    )


def create_traffic_logger(config: Config, path: Optional[str]) -> Optional[CommunicationLogger]:
    """Build the device traffic log if requested on the command line or in config."""
    if path is None and not config.logging.traffic_log:
        return None

    log_file_path = path or config.logging.log_file_path or str(DEFAULT_TRAFFIC_LOG)
    return CommunicationLogger(
        log_level=config.logging.level,
        enable_file=True,
        enable_console=False,
        log_file_path=log_file_path,
        max_file_size_mb=config.logging.max_file_size_mb,
        backup_count=config.logging.backup_count
    )


def run_operation(manager: ConnectionManager, args: argparse.Namespace) -> Any:
    """Run the selected operation and return a JSON-ready result."""
    if args.operation == 'status':
        return manager.device.to_dict()

    if args.operation == 'hardware':
        return manager.get_hardware().to_dict()

    if args.operation == 'outputs':
        return [output.to_dict() for output in manager.get_outputs()]

    if args.operation == 'output':
        output = manager.get_output(args.slot)
        return output.to_dict() if output is not None else None

    if args.operation == 'route':
        manager.set_route(args.slot, audio=args.audio, video=args.video, usb=args.usb)
        output = manager.get_output(args.slot)
        return output.to_dict() if output is not None else None

    raise ValueError(f"Unknown operation: {args.operation}")


def main(argv: Optional[list] = None) -> int:
    """Main entry point.

    Returns:
        Exit code (0 for success, 1 for error)
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.operation == 'route' and args.audio is None and args.video is None and args.usb is None:
        parser.error("route needs at least one of --audio, --video or --usb")

    overrides = {
        'device': {
            'address': args.address,
            'port': args.port,
            'command_timeout': args.timeout
        },
        'logging': {
            'level': args.log_level
        }
    }

    try:
        config = ConfigManager.initialize(config_path=args.config, overrides=overrides).get_config()
    except (OSError, ValueError) as e:
        print(f"Error: Failed to load configuration: {e}", file=sys.stderr)
        return 1

    configure_logging(config)

    if not config.device.address:
        print("Error: No device address (use --address, config file or MDDM_DEVICE_ADDRESS)",
              file=sys.stderr)
        return 1

    try:
        traffic_logger = create_traffic_logger(config, args.traffic_log)
    except OSError as e:
        print(f"Error: Cannot open traffic log: {e}", file=sys.stderr)
        return 1

    manager = ConnectionManager(
        config.device.address,
        port=config.device.port,
        command_timeout=config.device.command_timeout,
        connect_timeout=config.device.connect_timeout,
        traffic_logger=traffic_logger
    )

    try:
        manager.start()
        ready_timeout = GREETING_WINDOW + config.device.connect_timeout + config.device.command_timeout
        if not manager.wait_connected(timeout=ready_timeout):
            logger.warning("Device did not identify itself within %.1fs", ready_timeout)

        result = run_operation(manager, args)
        print(json.dumps(result, indent=2))
        return 0

    except MdDmError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    finally:
        manager.stop()
        if traffic_logger is not None:
            traffic_logger.close()


if __name__ == "__main__":
    sys.exit(main())
