"""Data models for device identity, hardware inventory and routing.

This module defines immutable dataclasses decoded from the device's text
responses. Each model renders to the JSON shape served to API clients via
``to_dict()``.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple


class CardType(Enum):
    """Card direction as printed by SHOWHW."""
    INPUT = "Input"
    OUTPUT = "Output"

    @classmethod
    def from_label(cls, label: str) -> 'CardType':
        """Map "Input Card"/"Output Card" to the enum.

        Raises:
            ValueError: Label is neither card type
        """
        for member in cls:
            if label == f"{member.value} Card":
                return member
        raise ValueError(f"Unknown card type: {label!r}")


@dataclass(frozen=True)
class Firmware:
    """Firmware identification from VERsion."""
    version: str
    date: str

    def to_dict(self) -> Dict[str, Any]:
        return {"version": self.version, "date": self.date}


@dataclass(frozen=True)
class Device:
    """Last-known device identity and connectivity.

    ``Device()`` is the record held before the first successful handshake.
    """
    name: Optional[str] = None
    firmware: Optional[Firmware] = None
    connected: bool = False

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the status document; unknown identity is omitted."""
        result: Dict[str, Any] = {}
        if self.name is not None:
            result["name"] = self.name
        if self.firmware is not None:
            result["firmware"] = self.firmware.to_dict()
        result["connected"] = self.connected
        return result


@dataclass(frozen=True)
class Card:
    """A card occupying one chassis slot."""
    slot: int
    name: str
    type: CardType
    version: str
    checksum: str
    stream: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "slot": self.slot,
            "name": self.name,
            "type": self.type.value,
            "version": self.version,
            "checksum": self.checksum,
            "stream": self.stream,
        }


@dataclass(frozen=True)
class Hardware:
    """Hardware inventory from SHOWHW.

    Cards keep the order in which the device listed them.
    """
    processor_type: str
    compact_flash: str
    ybus_slots: int
    zbus_slots: int
    cards: Tuple[Card, ...] = field(default_factory=tuple)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "processorType": self.processor_type,
            "compactFlash": self.compact_flash,
            "ybusSlots": self.ybus_slots,
            "zbusSlots": self.zbus_slots,
            "cards": [card.to_dict() for card in self.cards],
        }


@dataclass(frozen=True)
class RouteLeg:
    """One signal leg (video, audio or USB) of an output route.

    ``slot`` carries no meaning when ``connected`` is False.
    """
    connected: bool
    slot: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {"connected": self.connected, "slot": self.slot}


@dataclass(frozen=True)
class RouteOutput:
    """Routing state of one output card from DUMPDMROUTEI."""
    slot: int
    video: RouteLeg
    audio: RouteLeg
    usb: RouteLeg
    hotplug: str
    out: int
    in_: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "slot": self.slot,
            "video": self.video.to_dict(),
            "audio": self.audio.to_dict(),
            "usb": self.usb.to_dict(),
            "hotplug": self.hotplug,
            "out": self.out,
            "in": self.in_,
        }
