#!/usr/bin/env python3
"""Watch a live radar server session from the terminal.

Connects, prints zone occupancy transitions, fall alerts and connection
changes as they are applied to the session store.

Usage
-----
::

    export SENTINEL_HOST="192.168.1.10"
    python scripts/watch_session.py --duration 120

Options::

    --host HOST        Override SENTINEL_HOST
    --port PORT        Override SENTINEL_PORT
    --duration SECS    Stop after this many seconds (default: run until Ctrl+C)
    --verbose / -v     Enable debug logging
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import signal
import sys
from pathlib import Path
from typing import Any

# Allow running from the repo root without installing the package.
_repo = Path(__file__).resolve().parent.parent
_src = _repo / "src"
if _src.is_dir():
    sys.path.insert(0, str(_src))

from pysentinel import SentinelClient, SentinelConfig, SentinelError  # noqa: E402
from pysentinel.state.events import (  # noqa: E402
    ConnectionChanged,
    FallAlertRaised,
    OccupancyUpdated,
    ServerErrorReceived,
    StoreEvent,
    ZonesReplaced,
)

_LOG = logging.getLogger("watch_session")


def _print_event(event: StoreEvent) -> None:
    stamp = event.observed_at.strftime("%H:%M:%S")
    if isinstance(event, ConnectionChanged):
        status = event.status
        print(f"[{stamp}] connection: {status.label}")
    elif isinstance(event, ZonesReplaced):
        names = ", ".join(zone.name or zone.id for zone in event.zones) or "-"
        print(f"[{stamp}] zones: {names}")
    elif isinstance(event, OccupancyUpdated):
        for zone_id, entries in event.entries.items():
            for entry in entries:
                print(f"[{stamp}] zone {zone_id}: {entry.type} ({entry.target_count} target(s))")
    elif isinstance(event, FallAlertRaised):
        print(f"[{stamp}] FALL DETECTED: {event.event.raw}")
    elif isinstance(event, ServerErrorReceived):
        print(f"[{stamp}] server error: {event.message}")


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Watch a live pysentinel session")
    parser.add_argument("--host", default=None, help="Radar server host (default: SENTINEL_HOST)")
    parser.add_argument("--port", type=int, default=None, help="Radar server port (default: SENTINEL_PORT)")
    parser.add_argument("--duration", type=float, default=None, help="Seconds to run before exiting")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    return parser.parse_args()


async def _run(args: argparse.Namespace) -> int:
    overrides: dict[str, Any] = {}
    if args.host:
        overrides["host"] = args.host
    if args.port:
        overrides["port"] = args.port
    try:
        config = SentinelConfig.from_env(**overrides)
    except SentinelError as exc:
        print(f"Invalid configuration: {exc}", file=sys.stderr)
        return 2

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop.set)

    _LOG.info("Watching %s", config.url)
    async with SentinelClient(config) as client:
        client.store.subscribe(_print_event)
        try:
            await asyncio.wait_for(stop.wait(), args.duration)
        except TimeoutError:
            pass
        store = client.store
        print(f"Zones: {len(store.zones)}, active: {sorted(store.active_zone_ids)}, falls: {len(store.fall_logs)}")
    return 0


def main() -> int:
    args = _parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )
    return asyncio.run(_run(args))


if __name__ == "__main__":
    raise SystemExit(main())
