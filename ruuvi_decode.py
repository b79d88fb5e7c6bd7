"""Decode Ruuvi manufacturer data advertisements.

Only data format 5 (RAWv2) is understood, see
https://github.com/ruuvi/ruuvi-sensor-protocols/blob/master/dataformat_05.md

Layout after the format byte, all big-endian:
  temperature      int16   0.005 degC
  humidity         uint16  0.0025 %RH
  pressure         uint16  Pa, offset -50000
  accel x/y/z      int16   mG
  power info       uint16  11 bits battery mV above 1600, 5 bits tx power
  movement counter uint8
  measurement seq  uint16
  mac              6 bytes
"""

from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import Optional
import re
import struct


_RAWV2 = struct.Struct(">hHHhhhHBH6s")
RAWV2_LENGTH = 1 + _RAWV2.size  # 24

_MAC_RE = re.compile(r"[0-9A-Fa-f]{2}(?::[0-9A-Fa-f]{2}){5}")


class FormatVersion(Enum):
    RAWV2 = 5


class DecodeError(ValueError):
    pass


class Truncated(DecodeError):
    pass


class MacAddress(bytes):
    """Six raw address bytes. Compared byte-for-byte, never normalised."""

    def __new__(cls, value):
        value = bytes(value)
        if len(value) != 6:
            raise ValueError(f"MAC address must be 6 bytes, got {len(value)}")
        return super().__new__(cls, value)

    @classmethod
    def parse(cls, text: str) -> "MacAddress":
        if not isinstance(text, str) or not _MAC_RE.fullmatch(text):
            raise ValueError(f"malformed MAC address: {text!r}")
        return cls(bytes.fromhex(text.replace(":", "")))

    def __str__(self) -> str:
        return ":".join(f"{b:02X}" for b in self)

    def __repr__(self) -> str:
        return f"MacAddress('{self}')"


@dataclass(frozen=True)
class RawReading:
    temperature: int
    humidity: int
    pressure: int
    acceleration_x: int
    acceleration_y: int
    acceleration_z: int
    power_info: int
    movement_counter: int
    measurement_sequence: int
    mac: MacAddress


@dataclass(frozen=True)
class Measurements:
    temperature_c: float
    humidity_pct: float
    pressure_kpa: float
    battery_voltage_v: float
    tx_power_dbm: float


def detect(payload: bytes) -> Optional[FormatVersion]:
    """Return the layout announced by the first byte, or None if unsupported."""
    if not payload:
        return None
    if payload[0] == FormatVersion.RAWV2.value:
        return FormatVersion.RAWV2
    return None


def decode(payload: bytes, fmt: FormatVersion) -> RawReading:
    """Unpack a payload already identified by detect().

    Raises Truncated if the payload is shorter than the fixed layout. Bytes
    past the layout are ignored. Values are returned exactly as sent,
    including the 0x8000 / 0xFFFF "not available" markers.
    """
    if fmt is not FormatVersion.RAWV2:
        raise DecodeError(f"unsupported format: {fmt!r}")
    if len(payload) < RAWV2_LENGTH:
        raise Truncated(f"RAWv2 payload needs {RAWV2_LENGTH} bytes, got {len(payload)}")

    (temperature, humidity, pressure,
     acc_x, acc_y, acc_z,
     power_info, movement_counter, sequence, mac) = _RAWV2.unpack_from(payload, 1)

    return RawReading(
        temperature=temperature,
        humidity=humidity,
        pressure=pressure,
        acceleration_x=acc_x,
        acceleration_y=acc_y,
        acceleration_z=acc_z,
        power_info=power_info,
        movement_counter=movement_counter,
        measurement_sequence=sequence,
        mac=MacAddress(mac),
    )


def convert(raw: RawReading) -> Measurements:
    return Measurements(
        temperature_c=raw.temperature * 0.005,
        humidity_pct=raw.humidity * 0.0025,
        pressure_kpa=(raw.pressure + 50000) / 1000.0,
        battery_voltage_v=battery_voltage(raw.power_info),
        tx_power_dbm=tx_power_dbm(raw.power_info),
    )


def battery_voltage(power_info: int) -> float:
    """Upper 11 bits: millivolts above 1600."""
    return ((power_info >> 5) + 1600) / 1000.0


def tx_power_dbm(power_info: int) -> float:
    """Lower 5 bits: 2 dBm steps from -40."""
    return -40.0 + 2 * (power_info & 0x1F)
