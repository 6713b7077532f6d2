"""Parsers for the device's fixed-format text responses.

Every function here is a pure text -> record transform. The column offsets
and templates below are the device's wire format and must not drift: any
deviation raises ParseError carrying the offending text, never partial data.
"""

import logging
import re
from typing import List, Optional

from mddm.core.exceptions import ParseError
from mddm.parsers.device_model import (
    Card,
    CardType,
    Device,
    Firmware,
    Hardware,
    RouteLeg,
    RouteOutput,
)

logger = logging.getLogger(__name__)


# VERsion: "<name> [<version> (<date>)"
VERSION_TEMPLATE = re.compile(r"(.*) \[(v.*) \((.*)\)", re.IGNORECASE)

# SHOWHW layout: one header line, four "<label><value>" lines with the value
# starting at column 21, then one card per line with the slot in columns 0-3
# and ':' in column 4.
HARDWARE_HEADER_LINES = 1
HARDWARE_VALUE_COLUMN = 21
CARD_SLOT_COLUMNS = slice(0, 4)
CARD_SEPARATOR_COLUMN = 4
CARD_TEMPLATE = re.compile(
    r"(\d+): (.+) (Input Card|Output Card) \[(v.*), (.*)\] Stream:(.*)"
)

# DUMPDMROUTEI: one section per output card
ROUTE_SECTION_DELIMITER = "Routing Information for Output Card at "
ROUTE_TEMPLATE = re.compile(
    r"Slot (?P<slot>\d+)\s*"
    r"(?P<video> Video.* slot (?P<video_slot>\d+)|No Video.*)\s*"
    r"(?P<audio> Audio.* slot (?P<audio_slot>\d+)|No Audio.*)\s*"
    r"(?P<usb> USB.* slot (?P<usb_slot>\d+)|No USB.*)\s*"
    r" Hot plug is (?P<hotplug>.*)\s*"
    r"VideoSwitch - Out(?P<out>\d+)->In(?P<in>\d+)"
)


def parse_version(text: str) -> Device:
    """Decode the VERsion reply.

    Args:
        text: Raw response text

    Returns:
        Device with name and firmware; ``connected`` is left False

    Raises:
        ParseError: Reply does not match "<name> [<version> (<date>)"

    Example:
        >>> parse_version("DM-MD8x8 [v1.2.3 (2020-01-01)")
        Device(name='DM-MD8x8', firmware=Firmware(version='v1.2.3', date='2020-01-01'), connected=False)
    """
    match = VERSION_TEMPLATE.search(text.strip())
    if match is None:
        raise ParseError("Unrecognized version response", "version", text)

    return Device(
        name=match.group(1),
        firmware=Firmware(version=match.group(2), date=match.group(3)),
    )


def parse_hardware(text: str) -> Hardware:
    """Decode the SHOWHW inventory dump.

    The card scan starts on the line after the Z-Bus count and stops at the
    first following line without ':' in column 4 (or at the end of the
    text). Lines inside the scan window that are not cards are skipped.

    Raises:
        ParseError: Header lines missing or bus slot counts not integers
    """
    lines = text.split("\n")
    index = HARDWARE_HEADER_LINES

    processor_type = _column_value(lines, index, text)
    compact_flash = _column_value(lines, index + 1, text)
    ybus_slots = _column_int(lines, index + 2, text)
    zbus_slots = _column_int(lines, index + 3, text)
    index += 4

    cards: List[Card] = []
    while index < len(lines):
        card = classify_card_line(lines[index])
        if card is not None:
            cards.append(card)
        else:
            logger.debug("Skipping non-card line: %r", lines[index])

        index += 1
        if index >= len(lines) or not _has_card_separator(lines[index]):
            break

    return Hardware(
        processor_type=processor_type,
        compact_flash=compact_flash,
        ybus_slots=ybus_slots,
        zbus_slots=zbus_slots,
        cards=tuple(cards),
    )


def classify_card_line(line: str) -> Optional[Card]:
    """Decode one SHOWHW card line, or None if the line is not a card.

    Example:
        >>> classify_card_line("   1: DMC-HD Input Card [v1.2345, 0x1A2B] Stream:0").type
        <CardType.INPUT: 'Input'>
    """
    try:
        slot = int(line[CARD_SLOT_COLUMNS].strip())
    except ValueError:
        return None

    match = CARD_TEMPLATE.search(line)
    if match is None:
        return None

    return Card(
        slot=slot,
        name=match.group(2).strip(),
        type=CardType.from_label(match.group(3)),
        version=match.group(4).strip(),
        checksum=match.group(5).strip(),
        stream=match.group(6).strip(),
    )


def parse_dm_route_outputs(text: str) -> List[RouteOutput]:
    """Decode the DUMPDMROUTEI routing dump.

    Text before the first section delimiter is discarded. One RouteOutput
    is produced per section, in order.

    Raises:
        ParseError: Any section does not match the route template
    """
    sections = text.split(ROUTE_SECTION_DELIMITER)[1:]
    outputs = []

    for section in sections:
        match = ROUTE_TEMPLATE.search(section)
        if match is None:
            raise ParseError("Unrecognized routing section", "dm_route_outputs", section)

        outputs.append(RouteOutput(
            slot=int(match.group("slot")),
            video=_route_leg(match, "video", "Video"),
            audio=_route_leg(match, "audio", "Audio"),
            usb=_route_leg(match, "usb", "USB"),
            hotplug=match.group("hotplug").strip(),
            out=int(match.group("out")),
            in_=int(match.group("in")),
        ))

    return outputs


def _route_leg(match: "re.Match[str]", group: str, leg_name: str) -> RouteLeg:
    phrase = match.group(group).strip().lower()
    if phrase.startswith(f"no {leg_name.lower()} connection"):
        return RouteLeg(connected=False)

    slot = match.group(f"{group}_slot")
    return RouteLeg(connected=True, slot=int(slot) if slot is not None else 0)


def _column_value(lines: List[str], index: int, text: str) -> str:
    if index >= len(lines):
        raise ParseError(f"Hardware dump truncated at line {index}", "hardware", text)
    return lines[index][HARDWARE_VALUE_COLUMN:].strip()


def _column_int(lines: List[str], index: int, text: str) -> int:
    value = _column_value(lines, index, text)
    try:
        return int(value)
    except ValueError:
        raise ParseError(f"Expected slot count on line {index}, got {value!r}", "hardware", text)


def _has_card_separator(line: str) -> bool:
    return len(line) > CARD_SEPARATOR_COLUMN and line[CARD_SEPARATOR_COLUMN] == ":"
