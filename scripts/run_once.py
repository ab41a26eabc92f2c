#!/usr/bin/env python3
"""Run a single measurement cycle against the live Tesla APIs.

Configuration comes from ``TESLA_*`` environment variables (see
``ExporterConfig.from_env``).  Previous measurements are read from and
written back to a JSON state file so consecutive runs keep the counters
increasing.

Examples::

    TESLA_REFRESH_TOKEN=... python scripts/run_once.py --state state.json
    python scripts/run_once.py --idle-config idle.json --state idle-state.json
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

_repo = Path(__file__).resolve().parent.parent
_src = _repo / "src"
if _src.is_dir():
    sys.path.insert(0, str(_src))

from tesla_exporter import ExporterConfig, IdleClient, IdleConfig, TeslaError, TeslaExporter, run_cycle  # noqa: E402
from tesla_exporter.sinks import InMemoryMeasurementStore, JsonFileMeasurementStore  # noqa: E402


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run one tesla-exporter measurement cycle.")
    parser.add_argument(
        "--state",
        type=Path,
        default=None,
        help="JSON file holding the previous cycle's measurements; updated after a successful cycle.",
    )
    parser.add_argument(
        "--idle-config",
        type=Path,
        default=None,
        help="Write an idle measurement from this JSON config instead of querying the vehicle API.",
    )
    parser.add_argument(
        "--schema",
        choices=("full", "minimal"),
        default=None,
        help="Streaming field schema (overrides TESLA_STREAMING_SCHEMA).",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable DEBUG logging.")
    return parser.parse_args()


async def _run_idle(args: argparse.Namespace) -> int:
    assert args.idle_config is not None  # noqa: S101
    config = IdleConfig.from_dict(json.loads(args.idle_config.read_text("utf-8")))
    store = JsonFileMeasurementStore(args.state) if args.state else InMemoryMeasurementStore()
    last = await store.get_last_measurements()
    measurement = IdleClient().get_measurement(config, last[0] if last else None)
    await store.store_measurements([measurement])
    print(json.dumps(measurement.model_dump(mode="json", by_alias=True), indent=2))
    return 0


async def _run(args: argparse.Namespace) -> int:
    if args.idle_config is not None:
        return await _run_idle(args)

    overrides = {"streaming_schema": args.schema} if args.schema else {}
    config = ExporterConfig.from_env(**overrides)
    store = JsonFileMeasurementStore(args.state) if args.state else InMemoryMeasurementStore()
    sink = InMemoryMeasurementStore()

    try:
        measurements = await run_cycle(TeslaExporter(), config, store, sink)
    except TeslaError as exc:
        logging.getLogger("run_once").error("Cycle failed: %s", exc)
        return 1

    print(json.dumps([m.model_dump(mode="json", by_alias=True) for m in measurements], indent=2))
    return 0


def main() -> int:
    args = _parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        return asyncio.run(_run(args))
    except TeslaError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    raise SystemExit(main())
