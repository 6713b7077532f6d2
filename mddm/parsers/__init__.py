"""Parser layer for MD-DM responses.

Pure decoders that turn the device's fixed-format text into typed records.
"""

from .device_model import (
    Card,
    CardType,
    Device,
    Firmware,
    Hardware,
    RouteLeg,
    RouteOutput,
)
from .response_parser import (
    classify_card_line,
    parse_dm_route_outputs,
    parse_hardware,
    parse_version,
)

__all__ = [
    "Card",
    "CardType",
    "Device",
    "Firmware",
    "Hardware",
    "RouteLeg",
    "RouteOutput",
    "classify_card_line",
    "parse_dm_route_outputs",
    "parse_hardware",
    "parse_version",
]
