#!/usr/bin/env python3
"""
SmokeArrow - Live arrow to the nearest smoking spot

Usage:
    python -m smokearrow [options]

Options:
    --lat LAT          Fixed latitude (for testing without GPS)
    --lon LON          Fixed longitude (for testing without GPS)
    --heading DEG      Fixed compass heading to use with --lat/--lon
    --playback FILE    Play back a recorded location trace
    --speed FACTOR     Playback speed multiplier (default: 1.0)
    --record FILE      Record the location trace to a JSON file
    --offline FILE     Answer searches from a JSON file instead of Nominatim
    --cafe             Include smoking-friendly cafes from the start
    --duration SEC     Stop after this many seconds (default: run until Ctrl+C)
    --locale LOCALE    Display language: ja or en
    --log FILE         Log file path (default: smokearrow_TIMESTAMP.log)
"""

import argparse
import asyncio
import sys
import time
from datetime import datetime
from pathlib import Path
from typing import Optional

from .config import CONFIG
from .engine import GuidanceEngine
from .geo import bearing_degrees, bearing_to_compass
from .location import (
    LocationProvider,
    StaticLocationProvider,
    TermuxLocationProvider,
    TracePlayback,
    TraceRecorder,
)
from .logger import Logger
from .models import GuidanceSnapshot
from .search import NominatimSearchProvider, SpotSearchService, StaticSearchProvider


async def run_engine(engine: GuidanceEngine, logger: Logger,
                     duration: Optional[float] = None,
                     recorder: Optional[TraceRecorder] = None,
                     cafe: bool = False):
    """Drive the engine until the duration elapses or playback finishes"""
    provider = engine.location_provider
    engine.start()
    if cafe:
        engine.enable_cafe_search()

    started = time.monotonic()
    try:
        while duration is None or time.monotonic() - started < duration:
            if recorder:
                recorder.sample()
            if isinstance(provider, TracePlayback) and provider.is_finished() and not engine.is_searching:
                logger.log("Playback finished")
                break
            await asyncio.sleep(engine.tick_interval())
    finally:
        await engine.stop()


def _describe(snapshot: GuidanceSnapshot, provider: LocationProvider) -> dict:
    data = snapshot.to_dict()
    location = provider.location
    if snapshot.target and location:
        bearing = bearing_degrees(location.coordinate, snapshot.target.coordinate)
        data["compass"] = bearing_to_compass(bearing)
    if snapshot.status_message:
        data["status"] = snapshot.status_message
    if snapshot.cafe_fallback_message:
        data["notice"] = snapshot.cafe_fallback_message
    return data


def main():
    parser = argparse.ArgumentParser(
        description="SmokeArrow - Live arrow to the nearest smoking spot"
    )
    parser.add_argument("--lat", type=float, metavar="LAT",
                        help="Fixed latitude (for testing without GPS)")
    parser.add_argument("--lon", type=float, metavar="LON",
                        help="Fixed longitude (for testing without GPS)")
    parser.add_argument("--heading", type=float, metavar="DEG",
                        help="Fixed compass heading to use with --lat/--lon")
    parser.add_argument("--playback", metavar="FILE",
                        help="Play back a recorded location trace")
    parser.add_argument("--speed", type=float, default=1.0,
                        help="Playback speed multiplier (default: 1.0)")
    parser.add_argument("--record", metavar="FILE",
                        help="Record the location trace to a JSON file")
    parser.add_argument("--offline", metavar="FILE",
                        help="Answer searches from a JSON file instead of Nominatim")
    parser.add_argument("--cafe", action="store_true",
                        help="Include smoking-friendly cafes from the start")
    parser.add_argument("--duration", type=float, metavar="SEC",
                        help="Stop after this many seconds")
    parser.add_argument("--locale", choices=["ja", "en"], default=CONFIG["locale"],
                        help="Display language (default: %(default)s)")
    parser.add_argument("--log", metavar="FILE",
                        help="Log file path (default: smokearrow_TIMESTAMP.log)")

    args = parser.parse_args()

    # Validate lat/lon - must provide both or neither
    if (args.lat is None) != (args.lon is None):
        parser.error("--lat and --lon must be used together")
    if args.heading is not None and args.lat is None:
        parser.error("--heading requires --lat and --lon")
    if args.playback and args.lat is not None:
        parser.error("--playback cannot be combined with --lat/--lon")

    log_path = args.log
    if not log_path:
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        log_path = f"smokearrow_{timestamp}.log"

    # Location source
    if args.playback:
        if not Path(args.playback).exists():
            print(f"Playback file not found: {args.playback}")
            sys.exit(1)
        provider: LocationProvider = TracePlayback(args.playback, args.speed)
    elif args.lat is not None:
        provider = StaticLocationProvider(args.lat, args.lon, heading=args.heading)
    else:
        provider = TermuxLocationProvider()
    recorder = TraceRecorder(provider, args.record) if args.record else None

    # Search provider
    if args.offline:
        if not Path(args.offline).exists():
            print(f"Offline spots file not found: {args.offline}")
            sys.exit(1)
        search_provider = StaticSearchProvider.from_file(args.offline)
    else:
        search_provider = NominatimSearchProvider()

    config = {"locale": args.locale}
    logger = Logger(log_path)
    engine = GuidanceEngine(
        provider,
        SpotSearchService(search_provider, config=config, logger=logger),
        config=config,
        logger=logger,
    )

    last_logged = {}

    def on_change(snapshot: GuidanceSnapshot):
        # Arrow jitter alone is not worth a log line
        described = _describe(snapshot, provider)
        comparable = {k: v for k, v in described.items() if k != "arrow"}
        if comparable != last_logged.get("data"):
            last_logged["data"] = comparable
            logger.log("STATE", described)

    engine.on_change = on_change

    print("\n=== SmokeArrow ===")
    if isinstance(provider, TracePlayback):
        print(f"Playback mode: {provider.speed}x speed")
    print("Press Ctrl+C to stop\n")

    try:
        asyncio.run(run_engine(engine, logger, args.duration, recorder, args.cafe))
    except KeyboardInterrupt:
        print("\nStopped")
        logger.log("Interrupted by user")
    finally:
        if recorder:
            recorder.save()

        snapshot = engine.current_state()
        summary = {
            "state": snapshot.state.value,
            "target": snapshot.target_display_name,
            "distance": snapshot.distance_detail,
            "failures": engine.session.consecutive_failures,
        }
        logger.log("Summary", summary)

        print("\nSummary:")
        print(f"  State: {summary['state']}")
        print(f"  Target: {summary['target'] or '-'}")
        print(f"  Distance: {summary['distance']}")
        logger.close()


if __name__ == "__main__":
    main()
