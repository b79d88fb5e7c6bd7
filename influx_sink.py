"""Write readings to InfluxDB 3, one point per reading.

Point layout: measurement (default "Sensor data"), tag `location`, fields
temperature, humidity, atmosphere_pressure, battery_voltage and rssi when
the scanner reported one.
"""

from __future__ import annotations
import logging
from typing import Optional

from influxdb_client_3 import InfluxDBClient3, Point

from ruuvi_pipeline import PhysicalReading
from sensor_registry import DEFAULT_MEASUREMENT, InfluxConfig

logger = logging.getLogger(__name__)


class SinkError(RuntimeError):
    pass


def to_point(reading: PhysicalReading, measurement: str = DEFAULT_MEASUREMENT) -> Point:
    """One line per reading: location tag, environment fields, rssi when known."""
    point = (
        Point(measurement)
        .tag("location", reading.sensor_name)
        .field("temperature", reading.temperature_c)
        .field("humidity", reading.humidity_pct)
        .field("atmosphere_pressure", reading.pressure_kpa)
        .field("battery_voltage", reading.battery_voltage_v)
        .time(reading.captured_at)
    )
    if reading.rssi_dbm is not None:
        point = point.field("rssi", reading.rssi_dbm)
    return point


class InfluxSink:
    def __init__(self, client, measurement: str = DEFAULT_MEASUREMENT):
        self.client = client
        self.measurement = measurement
        self.written = 0

    @classmethod
    def from_config(cls, cfg: InfluxConfig) -> "InfluxSink":
        client = InfluxDBClient3(
            host=cfg.url,
            token=cfg.token,
            org=cfg.org,
            database=cfg.bucket,
        )
        logger.info("Writing to InfluxDB %s, database %r", cfg.url, cfg.bucket)
        return cls(client, measurement=cfg.measurement)

    def write(self, reading: PhysicalReading) -> None:
        try:
            self.client.write(record=to_point(reading, self.measurement))
        except Exception as e:
            logger.error("Failed to write data point for %s: %s", reading.sensor_name, e)
            raise SinkError(f"write data point for {reading.sensor_name}: {e}") from e
        self.written += 1

    __call__ = write

    def close(self) -> None:
        self.client.close()


class LogSink:
    """Stand-in used by --dry-run: logs the line protocol instead of writing it."""

    def __init__(self, measurement: Optional[str] = None):
        self.measurement = measurement or DEFAULT_MEASUREMENT
        self.written = 0

    def write(self, reading: PhysicalReading) -> None:
        logger.info("[dry-run] %s", to_point(reading, self.measurement).to_line_protocol())
        self.written += 1

    __call__ = write

    def close(self) -> None:
        pass
