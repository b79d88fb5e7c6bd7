"""Per-packet path from a manufacturer data record to a labelled reading.

vendor guard -> detect -> decode -> convert -> match -> assemble -> sink.
The caller stamps the observation time; nothing here reads the clock.
"""

from __future__ import annotations
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Iterable, Optional

from ruuvi_decode import Measurements, DecodeError, convert, decode, detect
from sensor_registry import SensorEntry, match

logger = logging.getLogger(__name__)

RUUVI_COMPANY_ID = 1177  # 0x0499, Ruuvi Innovations Ltd.


@dataclass(frozen=True)
class PhysicalReading:
    sensor_name: str
    temperature_c: float
    humidity_pct: float
    pressure_kpa: float
    battery_voltage_v: float
    tx_power_dbm: float
    captured_at: datetime
    rssi_dbm: Optional[float] = None


def assemble(measurements: Measurements, sensor: SensorEntry, captured_at: datetime,
             rssi: Optional[float] = None) -> PhysicalReading:
    return PhysicalReading(
        sensor_name=sensor.location,
        temperature_c=measurements.temperature_c,
        humidity_pct=measurements.humidity_pct,
        pressure_kpa=measurements.pressure_kpa,
        battery_voltage_v=measurements.battery_voltage_v,
        tx_power_dbm=measurements.tx_power_dbm,
        captured_at=captured_at,
        rssi_dbm=float(rssi) if rssi is not None else None,
    )


def process_advertisement(
    vendor_id: int,
    payload: bytes,
    registry: Iterable[SensorEntry],
    sink: Optional[Callable[[PhysicalReading], None]] = None,
    *,
    observed_at: datetime,
    rssi: Optional[float] = None,
) -> Optional[PhysicalReading]:
    """Turn one manufacturer data record into a reading for a known sensor.

    Returns None, without raising, when the packet is from another vendor,
    uses a format we don't decode, is too short, or comes from a sensor not
    in the registry. Otherwise the reading is passed to `sink` once and
    returned.
    """
    if vendor_id != RUUVI_COMPANY_ID:
        return None

    fmt = detect(payload)
    if fmt is None:
        logger.debug("Ignoring unrecognized format %s", f"0x{payload[0]:02x}" if payload else "<empty>")
        return None

    try:
        raw = decode(payload, fmt)
    except DecodeError as e:
        logger.debug("Dropping packet: %s", e)
        return None

    sensor = match(registry, raw.mac)
    if sensor is None:
        logger.debug("No sensor configured for %s", raw.mac)
        return None

    reading = assemble(convert(raw), sensor, observed_at, rssi=rssi)
    logger.info("Got data from %s", sensor.location)
    logger.debug("  %s: temp=%.3f degC hum=%.4f %% pressure=%.3f kPa batt=%.3f V tx=%.0f dBm rssi=%s",
                 sensor.location, reading.temperature_c, reading.humidity_pct, reading.pressure_kpa,
                 reading.battery_voltage_v, reading.tx_power_dbm, reading.rssi_dbm)

    if sink is not None:
        sink(reading)
    return reading
