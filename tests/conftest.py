"""Shared device reply fixtures.

Replies are what the device prints between the command line and the next
shell prompt, with the device's \\r\\n line endings.
"""

import pytest


VERSION_REPLY = "\r\nDM-MD8x8 Cntrl Eng [v1.3167.00026 (Oct 13 2015)"

HARDWARE_DUMP = "\r\n".join([
    "System Hardware:",
    f"{'Processor Type:':<21}PPC405",
    f"{'Compact Flash:':<21}CF 1GB",
    f"{'Y-Bus Slots:':<21}16",
    f"{'Z-Bus Slots:':<21}0",
    "   1: DMC-HD Input Card [v1.2345, 0x1A2B] Stream:0",
    "   3: Empty slot",
    "  10: DMC-C-DSP Input Card [v2.0001, 0x0F0F] Stream:1",
    "  17: DMCO-11 Output Card [v1.0700, 0xBEEF] Stream:2",
    "",
])

ROUTE_DUMP = "\r\n".join([
    "",
    "Routing Information for Output Card at Slot 17",
    " Video routed from Input Card at slot 3",
    " Audio routed from Input Card at slot 3",
    "No USB connection",
    " Hot plug is Active",
    "VideoSwitch - Out1->In3",
    "Routing Information for Output Card at Slot 18",
    "No Video connection",
    " Audio routed from Input Card at slot 12",
    " USB routed from Input Card at slot 4",
    " Hot plug is Inactive",
    "VideoSwitch - Out2->In0",
])


@pytest.fixture
def version_reply():
    return VERSION_REPLY


@pytest.fixture
def hardware_dump():
    return HARDWARE_DUMP


@pytest.fixture
def route_dump():
    return ROUTE_DUMP
