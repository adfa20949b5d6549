#!/usr/bin/env python3
"""Replay recorded readings through a subscription and print each outcome.

Usage
-----
    python scripts/replay_readings.py readings.jsonl
    python scripts/replay_readings.py --snapshot sub.json readings.jsonl
    python scripts/replay_readings.py --min-accuracy 50 --min-distance 10 --single readings.jsonl

Each line of the readings file is a JSON object with ``timestamp``,
``accuracy``, ``x``, ``y`` and optionally ``heading``. The interval
filter measures time using the reading timestamps, so a recording
replays the same way it was captured.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from datetime import datetime
from pathlib import Path

from pyheading import (
    Accepted,
    DecodeError,
    Discarded,
    FilterConfig,
    InvalidConfigError,
    Reading,
    Subscription,
    SubscriptionMode,
)


class _ReplayClock:
    """Clock that reports the timestamp of the reading being replayed."""

    def __init__(self) -> None:
        self.now: datetime | None = None

    def __call__(self) -> datetime:
        if self.now is None:
            raise RuntimeError("clock read before the first reading")
        return self.now


def _load_readings(path: Path) -> list[Reading]:
    readings: list[Reading] = []
    for line_no, line in enumerate(path.read_text().splitlines(), start=1):
        if not line.strip():
            continue
        try:
            readings.append(Reading.model_validate_json(line))
        except ValueError as exc:
            raise SystemExit(f"{path}:{line_no}: invalid reading: {exc}") from exc
    return readings


def _build_subscription(args: argparse.Namespace, clock: _ReplayClock) -> Subscription:
    if args.snapshot:
        return Subscription.from_snapshot(Path(args.snapshot).read_text(), clock=clock)
    return Subscription(
        FilterConfig(
            min_accuracy=args.min_accuracy,
            min_distance_delta=args.min_distance,
            min_time_interval=args.min_interval,
        ),
        mode=SubscriptionMode.SINGLE if args.single else SubscriptionMode.CONTINUOUS,
        clock=clock,
    )


def main() -> None:
    parser = argparse.ArgumentParser(description="Replay readings through a subscription.")
    parser.add_argument("readings", help="JSON-lines file of readings")
    parser.add_argument("--snapshot", help="Subscription snapshot JSON to replay against")
    parser.add_argument("--min-accuracy", type=float, default=None, help="Accuracy filter")
    parser.add_argument("--min-distance", type=float, default=0.0, help="Distance filter (0 disables)")
    parser.add_argument("--min-interval", type=float, default=None, help="Interval filter in seconds")
    parser.add_argument("--single", action="store_true", help="Use single mode")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    args = parser.parse_args()

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")

    clock = _ReplayClock()
    try:
        subscription = _build_subscription(args, clock)
    except (DecodeError, InvalidConfigError) as exc:
        print(f"Invalid configuration: {exc}", file=sys.stderr)
        sys.exit(2)

    accepted = 0
    for index, reading in enumerate(_load_readings(Path(args.readings))):
        clock.now = reading.timestamp
        outcome = subscription.validate(reading)
        if isinstance(outcome, Accepted):
            accepted += 1
            detail = f"pos=({reading.x:g}, {reading.y:g}) accuracy={reading.accuracy:g}"
        elif isinstance(outcome, Discarded):
            detail = outcome.reason.value
        else:
            detail = outcome.cause.value
        print(f"{index:5d}  {reading.timestamp.isoformat()}  {outcome.kind:<9}  {detail}")
        if subscription.is_evicted:
            print(f"subscription evicted after {index + 1} readings")
            break

    print(f"accepted {accepted} reading(s)")


if __name__ == "__main__":
    main()
