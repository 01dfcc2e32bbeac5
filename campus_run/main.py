"""Command-line runner: replay a recorded track through the session store.

Usage:
    python -m campus_run track.json [--recap-file recap.xlsx]

The track file is a JSON array of location samples
(``latitude``/``longitude``/``timestamp`` plus optional ``altitude``,
``speed`` and ``accuracy``).
"""

from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from . import config
from .errors import CampusRunError
from .geodesy import polygon_area_km2
from .location import ReplayLocationProvider
from .models import Coordinate, coordinates_from_dicts
from .persistence import JsonFileKeyValueStore, KeyValueStore, MemoryKeyValueStore
from .positioning import PositioningSession
from .recap import build_recap, write_run_history
from .remote_client import create_remote
from .route_analysis import analyze_route, get_route_map_region
from .store import SessionStore

LOGGER = logging.getLogger(__name__)


def _setup_logging(level: str = "INFO") -> None:
    if not logging.getLogger().hasHandlers():
        logging.basicConfig(
            level=getattr(logging, level),
            format="[%(asctime)s] %(levelname)s %(name)s: %(message)s",
        )


class _TrackClock:
    """Clock that follows the timestamps of the track being replayed."""

    def __init__(self, provider: ReplayLocationProvider) -> None:
        self._provider = provider

    def __call__(self) -> float:
        sample = self._provider.get_current_position()
        return sample.timestamp / 1000.0 if sample is not None else 0.0


def load_track(path: Path) -> List[Coordinate]:
    with path.open("r", encoding="utf-8") as handle:
        rows = json.load(handle)
    if not isinstance(rows, list):
        raise ValueError(f"{path} must contain a JSON array of samples")
    return sorted(coordinates_from_dicts(rows), key=lambda s: s.timestamp)


def replay_track(
    samples: Sequence[Coordinate],
    storage: KeyValueStore,
    *,
    offline: Optional[bool] = None,
    interval_s: float = 0.0,
) -> Dict[str, Any]:
    """Run ``samples`` through a full start/stop cycle and summarise the result."""

    provider = ReplayLocationProvider(samples, interval_s=interval_s)
    clock = _TrackClock(provider)
    session = PositioningSession(provider, clock=clock)
    store = SessionStore(
        session,
        create_remote(offline),
        storage,
        live_tick_interval_s=None,
        clock=clock,
    )
    try:
        if not store.start_run():
            raise CampusRunError("Location tracking could not be started")
        provider.wait_until_drained()
        live = store.tick()
        run = store.stop_run()
    finally:
        store.close()

    analysis = analyze_route(samples)
    region = get_route_map_region(samples)
    return {
        "run": run.to_dict() if run is not None else None,
        "live": {"distance": live.distance, "pace": live.pace, "cadence": live.cadence},
        "analysis": None
        if analysis is None
        else {
            "totalDistance": analysis.total_distance,
            "averageSpeed": analysis.average_speed,
            "maxSpeed": analysis.max_speed,
            "elevationGain": analysis.elevation_gain,
            "elevationLoss": analysis.elevation_loss,
            "routeType": analysis.route_type.value,
            "difficulty": analysis.difficulty.value,
        },
        "areaKm2": polygon_area_km2(samples),
        "region": None
        if region is None
        else {
            "latitude": region.latitude,
            "longitude": region.longitude,
            "latitudeDelta": region.latitude_delta,
            "longitudeDelta": region.longitude_delta,
        },
        "history": store.get_run_history(),
    }


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Replay a recorded track and record it as a completed run"
    )
    parser.add_argument("track", type=Path, help="JSON file with location samples")
    parser.add_argument(
        "--storage",
        default=config.STORAGE_PATH,
        help="JSON file used for run history (default: %(default)s)",
    )
    parser.add_argument(
        "--no-persist",
        action="store_true",
        help="Keep run history in memory only",
    )
    parser.add_argument(
        "--online",
        action="store_true",
        help="Use the HTTP backend at CAMPUS_RUN_API_URL instead of demo data",
    )
    parser.add_argument(
        "--interval",
        type=float,
        default=0.0,
        help="Seconds between replayed samples (default: as fast as possible)",
    )
    parser.add_argument(
        "--recap-file",
        type=Path,
        help="Write the run-history recap workbook (.xlsx) to this path",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Python logging level",
    )
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = _build_parser().parse_args(argv)
    _setup_logging(args.log_level)

    try:
        samples = load_track(args.track)
    except (OSError, ValueError, KeyError) as exc:
        LOGGER.error("Failed to load track '%s': %s", args.track, exc)
        return 1

    storage: KeyValueStore = (
        MemoryKeyValueStore() if args.no_persist else JsonFileKeyValueStore(args.storage)
    )
    try:
        result = replay_track(
            samples,
            storage,
            offline=False if args.online else None,
            interval_s=args.interval,
        )
    except CampusRunError as exc:
        LOGGER.error("Replay failed: %s", exc)
        return 1

    history = result.pop("history")
    summary = build_recap(history)
    result["recap"] = {
        "runs": summary.run_count,
        "totalDistance": round(summary.total_distance, 2),
        "totalDuration": summary.total_duration,
        "averagePace": round(summary.average_pace, 1),
        "totalCalories": summary.total_calories,
        "recommendedBpm": summary.recommended_bpm,
    }
    if result["run"] is not None:
        result["run"].pop("coordinates", None)
    print(json.dumps(result, indent=2))

    if args.recap_file:
        write_run_history(args.recap_file, history)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
