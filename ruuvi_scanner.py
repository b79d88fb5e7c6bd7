#!/usr/bin/env python3
"""
Ruuvi BLE scanner
Listens for Ruuvi manufacturer data (company 0x0499), decodes RAWv2 frames
from the sensors listed in the config file and writes them to InfluxDB.

Usage:
    python ruuvi_scanner.py -c config.json [--verbose] [--dry-run]
"""

import argparse
import asyncio
import logging
import sys
from datetime import datetime, timezone
from typing import Optional

from bleak import BleakScanner
from bleak.backends.device import BLEDevice
from bleak.backends.scanner import AdvertisementData

from influx_sink import InfluxSink, LogSink, SinkError
from ruuvi_pipeline import RUUVI_COMPANY_ID, process_advertisement
from sensor_registry import ConfigError, SensorRegistry, load_config

logger = logging.getLogger(__name__)


class RuuviBLEScanner:
    def __init__(self, registry: SensorRegistry, sink):
        self.registry = registry
        self.sink = sink
        self.scan_count = 0
        self.ruuvi_count = 0
        self.emitted_count = 0

    def detection_callback(self, device: BLEDevice, advertisement_data: AdvertisementData):
        self.scan_count += 1
        observed_at = datetime.now(timezone.utc)

        for company_id, data in (advertisement_data.manufacturer_data or {}).items():
            if company_id == RUUVI_COMPANY_ID:
                self.ruuvi_count += 1
            try:
                reading = process_advertisement(
                    company_id,
                    bytes(data),
                    self.registry,
                    self.sink,
                    rssi=advertisement_data.rssi,
                    observed_at=observed_at,
                )
            except SinkError:
                # already logged by the sink; keep scanning
                continue
            if reading is not None:
                self.emitted_count += 1

    async def scan(self, adapter: str, duration: Optional[float] = None):
        scanner = BleakScanner(detection_callback=self.detection_callback, adapter=adapter)
        await scanner.start()
        logger.info("scanning on %s...", adapter)
        try:
            if duration is None:
                while True:
                    await asyncio.sleep(3600)
            else:
                await asyncio.sleep(duration)
        finally:
            await scanner.stop()
            logger.info("Scan stopped. Adverts: %d, Ruuvi frames: %d, readings written: %d",
                        self.scan_count, self.ruuvi_count, self.emitted_count)


def build_arg_parser():
    p = argparse.ArgumentParser(description="Forward Ruuvi sensor readings to InfluxDB")
    p.add_argument("-c", "--config", required=True, help="JSON config file")
    p.add_argument("--verbose", "-verbose", action="store_true", help="Log every decoded reading")
    p.add_argument("--adapter", default=None, help="HCI adapter (overrides bluetooth.controller)")
    p.add_argument("--dry-run", action="store_true", help="Log line protocol instead of writing to InfluxDB")
    p.add_argument("--seconds", type=float, default=None, help="Stop after this many seconds")
    return p


async def main(argv=None):
    args = build_arg_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    # bleak is chatty at DEBUG
    logging.getLogger("bleak").setLevel(logging.INFO)

    try:
        config = load_config(args.config)
    except ConfigError as e:
        logger.error("failed to load config: %s", e)
        return 2

    if args.dry_run:
        sink = LogSink(config.influxdb.measurement if config.influxdb else None)
    elif config.influxdb is None:
        logger.error("config has no 'influxdb' section (use --dry-run to scan without one)")
        return 2
    else:
        sink = InfluxSink.from_config(config.influxdb)

    adapter = args.adapter or config.bluetooth.controller
    try:
        await RuuviBLEScanner(config.sensors, sink).scan(adapter, args.seconds)
    finally:
        sink.close()
    return 0


def run():
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    run()
