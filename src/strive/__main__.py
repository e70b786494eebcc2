"""
Command-line entrypoint for inspecting and exercising the recording core.

Usage:
    python -m strive status                       # show the persisted session
    python -m strive discard                      # wipe any persisted session
    python -m strive replay track.csv             # record a CSV track, print summary
    python -m strive replay track.csv --activity cycling --save
                                                  # ...and upload it to the activity API
"""
import argparse
import asyncio
import logging
import sys

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(name)s %(levelname)s %(message)s",
)
logger = logging.getLogger(__name__)


def _open_store():
    from strive.db.engine import get_engine
    from strive.db.kv import SqlKeyValueStore
    from strive.tracking.store import SessionStore

    return SessionStore(SqlKeyValueStore(get_engine()))


async def _status() -> int:
    store = _open_store()
    record = await store.read_session()
    if record is None:
        print("No recording in progress.")
        return 0
    points = await store.read_points()
    state = "paused" if record.is_paused else "recording"
    if not record.is_active:
        state = "inactive"
    print(f"Session:   {record.activity_type.value} ({state})")
    print(f"Started:   {record.start_time.isoformat() if record.start_time else '-'}")
    print(f"Paused:    {record.paused_duration}s")
    print(f"Points:    {len(points)}")
    return 0


async def _discard() -> int:
    store = _open_store()
    await store.clear()
    logger.info("Persisted session cleared")
    return 0


class _DryRunApi:
    """Stands in for the activity API when --save is not given."""

    async def create_activity(self, summary) -> str:
        return "dry-run"


async def _replay(csv_path: str, activity: str, save: bool) -> int:
    from strive.api.client import ActivityApiClient
    from strive.config import get_settings
    from strive.tracking.controller import SessionController
    from strive.tracking.errors import InsufficientData, TrackingError
    from strive.tracking.formatting import format_distance, format_duration, format_speed
    from strive.tracking.replay import ReplayLocationProvider

    settings = get_settings()
    provider = ReplayLocationProvider.from_csv(csv_path)
    if not provider.fixes:
        logger.error("No usable fixes in %s", csv_path)
        return 1

    api = ActivityApiClient.from_settings(settings) if save else _DryRunApi()
    controller = SessionController(
        provider, _open_store(), api, settings=settings, clock=provider.clock
    )
    try:
        await controller.start(activity)
        await provider.exhausted.wait()
        saved = await controller.save()
    except InsufficientData as exc:
        logger.error("%s", exc)
        await controller.discard()
        return 1
    except TrackingError as exc:
        logger.error("Replay failed: %s", exc)
        await controller.discard()
        return 1
    finally:
        controller.close()
        if save:
            await api.aclose()

    summary = saved.summary
    print(f"Activity:  {summary.activity_type.label} ({saved.activity_id})")
    print(f"Points:    {len(summary.points)} of {len(provider.fixes)} fixes")
    print(f"Distance:  {format_distance(summary.distance_meters)}")
    print(f"Duration:  {format_duration(summary.duration_seconds)}")
    print(f"Avg speed: {format_speed(summary.avg_speed_kmh)}")
    return 0


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(prog="strive", description="GPS recording core")
    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("status", help="Show the persisted recording session")
    sub.add_parser("discard", help="Clear the persisted recording session")
    replay = sub.add_parser("replay", help="Record a session from a CSV track")
    replay.add_argument("csv", help="Track CSV (timestamp,latitude,longitude,...)")
    replay.add_argument(
        "--activity",
        default="running",
        choices=["running", "cycling", "walking", "hiking"],
        help="Activity type (default: running)",
    )
    replay.add_argument(
        "--save", action="store_true", help="Upload the summary to the activity API"
    )
    args = parser.parse_args(argv)

    if args.command == "status":
        return asyncio.run(_status())
    if args.command == "discard":
        return asyncio.run(_discard())
    return asyncio.run(_replay(args.csv, args.activity, args.save))


if __name__ == "__main__":
    sys.exit(main())
