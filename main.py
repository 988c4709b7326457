"""Command line entry point for field navigation and activity-log sync."""
import argparse
import json
import sys
from pathlib import Path
from typing import List

from loguru import logger

from configurations.config import Config
from core.blackboard import Blackboard
from models.navigation import LocationPoint
from routing.directions import DirectionsProvider
from routing.geo import format_distance
from services.activity_log_cache import ActivityLogCache
from services.activity_log_client import ActivityLogApiError, ActivityLogClient, ActivityLogQuery
from tracking.arrival import ArrivalTracker, TrackerState
from tracking.location import LocationPermissionError, ReplayLocationSource
from tracking.voice import DistanceAnnouncer, VoiceSettings
from visualization.route_map import RouteMapGenerator

def parse_point(value: str) -> LocationPoint:
    try:
        lat, lng = (float(part) for part in value.split(","))
        return LocationPoint(lat, lng)
    except ValueError:
        raise argparse.ArgumentTypeError(f"Expected 'lat,lng', got {value!r}")

def load_track(path: str) -> List[LocationPoint]:
    return [LocationPoint.from_dict(item) for item in json.loads(Path(path).read_text())]

def interpolate_track(start: LocationPoint, end: LocationPoint, steps: int) -> List[LocationPoint]:
    """Evenly spaced points from start to end, inclusive."""
    steps = max(steps, 1)
    return [
        LocationPoint(
            start.latitude + (end.latitude - start.latitude) * i / steps,
            start.longitude + (end.longitude - start.longitude) * i / steps
        )
        for i in range(steps + 1)
    ]

def run_route(args) -> int:
    provider = DirectionsProvider()
    route = provider.get_route(args.origin, args.destination, args.mode)

    print(f"Distance: {format_distance(route.distance_meters)}")
    print(f"Duration: {route.duration_label}")
    print(f"Points: {len(route.coordinates)} ({route.source.value})")
    if route.error_reason:
        print(f"Fallback reason: {route.error_reason}")

    if args.map:
        generator = RouteMapGenerator()
        generator.save_map(generator.create_route_map(route), args.map)
        print(f"Interactive map: {args.map}")
    return 0

def run_track(args) -> int:
    if args.track:
        track = load_track(args.track)
    elif args.start:
        track = interpolate_track(args.start, args.target, args.steps)
    else:
        logger.error("Either --track or --start is required")
        return 2

    source = ReplayLocationSource(track)
    announcer = DistanceAnnouncer(settings=VoiceSettings(enabled=args.voice))
    tracker = ArrivalTracker(source, announcer=announcer, blackboard=Blackboard(), label=args.label)

    try:
        tracker.start_tracking(args.target, args.threshold)
    except LocationPermissionError as e:
        logger.error(f"Cannot track: {e}")
        return 1

    delivered = source.play()
    arrived = tracker.state == TrackerState.ARRIVED
    tracker.stop_tracking()

    print(f"Positions processed: {delivered}")
    if tracker.current_distance is not None:
        print(f"Final distance: {format_distance(tracker.current_distance)}")
    print("Arrived" if arrived else "Not arrived")
    return 0 if arrived else 3

def run_logs(args) -> int:
    cache = ActivityLogCache(ActivityLogClient(base_url=args.base_url))
    query = ActivityLogQuery(limit=args.limit, offset=args.offset, type=args.type,
                             user_id=args.user_id, status=args.status)
    try:
        page = cache.fetch(query)
    except ActivityLogApiError as e:
        logger.error(f"Failed to fetch activity logs: {e.message}")
        return 1

    print(f"{len(page.records)} of {page.total_count} activity logs")
    for record in page.records:
        print(f"{record.id}\t{record.status.value}\t{record.priority.value}\t"
              f"{record.bin_id or '-'}\t{record.assigned_janitor_name or '-'}")
    return 0

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Smart waste field navigation and activity-log sync")
    parser.add_argument("--api", action="store_true", help="Start FastAPI server instead")
    parser.add_argument("--port", type=int, default=Config.API_PORT, help="Port for FastAPI server")
    parser.add_argument("--log-level", default=Config.LOG_LEVEL, help="Log level")
    subparsers = parser.add_subparsers(dest="command")

    route = subparsers.add_parser("route", help="Compute a route between two points")
    route.add_argument("origin", type=parse_point, help="Origin as lat,lng")
    route.add_argument("destination", type=parse_point, help="Destination as lat,lng")
    route.add_argument("--mode", default="driving", choices=["driving", "walking", "transit", "bicycling"])
    route.add_argument("--map", help="Write an HTML map to this path")
    route.set_defaults(func=run_route)

    track = subparsers.add_parser("track", help="Replay positions against a target and report arrival")
    track.add_argument("target", type=parse_point, help="Target as lat,lng")
    track.add_argument("--track", help="JSON file with a list of {latitude, longitude} points")
    track.add_argument("--start", type=parse_point, help="Synthesize a straight walk from this lat,lng")
    track.add_argument("--steps", type=int, default=20, help="Points in a synthesized walk")
    track.add_argument("--threshold", type=float, default=Config.ARRIVAL_THRESHOLD_METERS)
    track.add_argument("--label", default="bin")
    track.add_argument("--voice", action="store_true", help="Log spoken announcements")
    track.set_defaults(func=run_track)

    logs = subparsers.add_parser("logs", help="Fetch activity logs through the cache")
    logs.add_argument("--base-url", default=Config.ACTIVITY_API_BASE_URL)
    logs.add_argument("--limit", type=int, default=100)
    logs.add_argument("--offset", type=int, default=0)
    logs.add_argument("--type")
    logs.add_argument("--user-id")
    logs.add_argument("--status")
    logs.set_defaults(func=run_logs)

    return parser

def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logger.remove()
    logger.add(sys.stderr, level=args.log_level.upper())

    if args.api:
        import uvicorn
        from api.app import app
        logger.info(f"Starting FastAPI server on port {args.port}...")
        try:
            uvicorn.run(app, host=Config.API_HOST, port=args.port)
        except OSError as e:
            logger.error(f"Server startup failed: {e}")
            return 1
        return 0

    if not args.command:
        parser.error("a command is required when not using --api")
    return args.func(args)

if __name__ == "__main__":
    sys.exit(main())
