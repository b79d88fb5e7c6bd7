#!/usr/bin/env python3
"""
Decode Ruuvi manufacturer data payloads given as hex, without a radio.
Handy for checking captures from adv dumps or bluetoothctl.

    python ruuvi_dump.py "05 01 9C 00 28 C7 00 14 00 01 FF CE 00 0F C5 9C 02 C7 E6 99 94 26 C5 C3"
    python ruuvi_dump.py -c config.json 0501...
"""

import argparse
import json
from dataclasses import asdict
from typing import Any, Dict, Optional

from ruuvi_decode import DecodeError, convert, decode, detect
from sensor_registry import ConfigError, SensorRegistry, load_config, match


def dump_payload(hex_payload: str, registry: Optional[SensorRegistry] = None) -> Dict[str, Any]:
    out: Dict[str, Any] = {"payload": hex_payload}
    try:
        payload = bytes.fromhex(hex_payload.replace(" ", ""))
    except ValueError as e:
        out["error"] = f"not hex: {e}"
        return out
    out["length"] = len(payload)

    fmt = detect(payload)
    if fmt is None:
        out["error"] = "unrecognized format"
        return out
    out["format"] = fmt.name

    try:
        raw = decode(payload, fmt)
    except DecodeError as e:
        out["error"] = str(e)
        return out

    out["raw"] = asdict(raw)
    out["raw"]["mac"] = str(raw.mac)
    out["converted"] = asdict(convert(raw))

    if registry is not None:
        sensor = match(registry, raw.mac)
        out["location"] = sensor.location if sensor else None
    return out


def main(argv=None):
    ap = argparse.ArgumentParser(description="Decode Ruuvi RAWv2 payloads from hex")
    ap.add_argument("payloads", nargs="+", help="Manufacturer data hex (spaces allowed)")
    ap.add_argument("-c", "--config", help="Config file to resolve sensor locations")
    args = ap.parse_args(argv)

    registry = None
    if args.config:
        try:
            registry = load_config(args.config).sensors
        except ConfigError as e:
            ap.error(str(e))

    for p in args.payloads:
        print(json.dumps(dump_payload(p, registry), indent=2))


if __name__ == "__main__":
    main()
