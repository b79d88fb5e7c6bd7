"""Known sensors and the JSON config that lists them.

Config file layout:

    {
      "influxdb": {"url": "...", "token": "...", "org": "...", "bucket": "..."},
      "bluetooth": {"controller": "hci0"},
      "sensors": [
        {"location": "Family room", "address": "E0:E7:CD:59:5D:74"},
        ...
      ]
    }
"""

from __future__ import annotations
import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple

from ruuvi_decode import MacAddress

logger = logging.getLogger(__name__)

DEFAULT_MEASUREMENT = "Sensor data"
DEFAULT_CONTROLLER = "hci0"


class ConfigError(ValueError):
    pass


@dataclass(frozen=True)
class SensorEntry:
    location: str
    address: MacAddress


class SensorRegistry:
    """Ordered, read-only list of sensors we report on."""

    __slots__ = ("_entries",)

    def __init__(self, entries: Iterable[SensorEntry] = ()):
        self._entries: Tuple[SensorEntry, ...] = tuple(entries)

    @classmethod
    def from_config(cls, items: List[Dict[str, Any]]) -> "SensorRegistry":
        if not isinstance(items, list):
            raise ConfigError("'sensors' must be a list")

        entries: List[SensorEntry] = []
        seen: Dict[MacAddress, str] = {}
        for i, item in enumerate(items):
            if not isinstance(item, dict):
                raise ConfigError(f"sensors[{i}] must be an object")
            location = item.get("location")
            address = item.get("address")
            if not isinstance(location, str) or not location:
                raise ConfigError(f"sensors[{i}]: 'location' must be a non-empty string")
            try:
                mac = MacAddress.parse(address)
            except ValueError as e:
                raise ConfigError(f"sensors[{i}] ({location}): {e}") from e

            if mac in seen:
                logger.warning("Address %s listed for both %r and %r; readings go to %r",
                               mac, seen[mac], location, seen[mac])
            else:
                seen[mac] = location
            entries.append(SensorEntry(location=location, address=mac))
        return cls(entries)

    def __iter__(self) -> Iterator[SensorEntry]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return f"SensorRegistry({list(self._entries)!r})"


def match(registry: Iterable[SensorEntry], address: bytes) -> Optional[SensorEntry]:
    """First entry whose address equals `address`, in configured order."""
    for sensor in registry:
        if sensor.address == address:
            return sensor
    return None


@dataclass(frozen=True)
class InfluxConfig:
    url: str
    token: str
    org: str
    bucket: str
    measurement: str = DEFAULT_MEASUREMENT


@dataclass(frozen=True)
class BluetoothConfig:
    controller: str = DEFAULT_CONTROLLER


@dataclass(frozen=True)
class Config:
    sensors: SensorRegistry
    bluetooth: BluetoothConfig
    influxdb: Optional[InfluxConfig] = None


def _influx_from_dict(data: Any) -> InfluxConfig:
    if not isinstance(data, dict):
        raise ConfigError("'influxdb' must be an object")
    values = {}
    for key in ("url", "token", "org", "bucket"):
        v = data.get(key)
        if not isinstance(v, str) or not v:
            raise ConfigError(f"influxdb.{key} must be a non-empty string")
        values[key] = v
    measurement = data.get("measurement", DEFAULT_MEASUREMENT)
    if not isinstance(measurement, str) or not measurement:
        raise ConfigError("influxdb.measurement must be a non-empty string")
    return InfluxConfig(measurement=measurement, **values)


def parse_config(data: Dict[str, Any]) -> Config:
    if not isinstance(data, dict):
        raise ConfigError("config root must be an object")

    bt = data.get("bluetooth") or {}
    if not isinstance(bt, dict):
        raise ConfigError("'bluetooth' must be an object")
    controller = bt.get("controller", DEFAULT_CONTROLLER)
    if not isinstance(controller, str) or not controller:
        raise ConfigError("bluetooth.controller must be a non-empty string")

    influx = data.get("influxdb")
    return Config(
        sensors=SensorRegistry.from_config(data.get("sensors", [])),
        bluetooth=BluetoothConfig(controller=controller),
        influxdb=_influx_from_dict(influx) if influx is not None else None,
    )


def load_config(path: str) -> Config:
    p = Path(path)
    try:
        with p.open("r", encoding="utf-8") as f:
            data = json.load(f)
    except OSError as e:
        raise ConfigError(f"cannot read config file {path}: {e}") from e
    except json.JSONDecodeError as e:
        raise ConfigError(f"invalid JSON in {path}: {e}") from e

    config = parse_config(data)
    logger.info("Loaded %d sensor(s) from %s", len(config.sensors), path)
    return config
