"""Shared fixtures: the sample sensor set and a RAWv2 payload builder."""

import struct
from datetime import datetime, timezone

import pytest

from ruuvi_decode import MacAddress
from sensor_registry import SensorEntry, SensorRegistry

SAMPLE_HEX = "05 01 9C 00 28 C7 00 14 00 01 FF CE 00 0F C5 9C 02 C7 E6 99 94 26 C5 C3"
MASTER_BEDROOM = MacAddress(bytes.fromhex("E6999426C5C3"))
OBSERVED_AT = datetime(2024, 11, 2, 7, 30, tzinfo=timezone.utc)

_LAYOUT = struct.Struct(">BhHHhhhHBH6s")


def build_payload(temperature=412, humidity=10192, pressure=51028,
                  acc=(0, 0, 1000), power_info=0xC59C, movement=7, sequence=300,
                  mac=MASTER_BEDROOM, fmt=5):
    return _LAYOUT.pack(fmt, temperature, humidity, pressure, *acc,
                        power_info, movement, sequence, bytes(mac))


@pytest.fixture
def sample_payload():
    return bytes.fromhex(SAMPLE_HEX.replace(" ", ""))


@pytest.fixture
def registry():
    return SensorRegistry([
        SensorEntry("Family room", MacAddress.parse("E0:E7:CD:59:5D:74")),
        SensorEntry("Office", MacAddress.parse("D4:7A:AA:C9:5D:D6")),
        SensorEntry("Master bedroom", MacAddress.parse("E6:99:94:26:C5:C3")),
        SensorEntry("Garage", MacAddress.parse("D7:44:78:0F:A5:65")),
        SensorEntry("Kitchen", MacAddress.parse("F6:8C:F2:8D:6E:A3")),
    ])


class FakeInfluxClient:
    """Records what would have been written."""

    def __init__(self, fail=None):
        self.records = []
        self.fail = fail
        self.closed = False

    def write(self, record=None, **kwargs):
        if self.fail is not None:
            raise self.fail
        self.records.append(record)

    def close(self):
        self.closed = True


@pytest.fixture
def fake_client():
    return FakeInfluxClient()
