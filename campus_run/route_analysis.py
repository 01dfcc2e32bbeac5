"""Qualitative route properties derived from a sample buffer.

Everything here is stateless with respect to the positioning session: the
functions take the samples they analyse, so they work equally on a live
buffer snapshot, a stopped session or a game participant's route.
"""

from __future__ import annotations

from typing import List, Optional, Sequence

from . import config
from .geodesy import haversine_km, leg_distances_km, path_distance_km
from .metrics import elevation_changes
from .models import Coordinate, Difficulty, MapRegion, RouteAnalysis, RouteType


def classify_route(
    samples: Sequence[Coordinate], total_distance_km: float | None = None
) -> RouteType:
    if len(samples) < 2:
        return RouteType.POINT_TO_POINT
    total = path_distance_km(samples) if total_distance_km is None else total_distance_km
    gap = haversine_km(samples[0], samples[-1])
    if gap < config.LOOP_CLOSURE_KM:
        return RouteType.LOOP
    if gap < total * config.OUT_AND_BACK_RATIO:
        return RouteType.OUT_AND_BACK
    return RouteType.POINT_TO_POINT


def rate_difficulty(total_distance_km: float, elevation_gain_m: float) -> Difficulty:
    if (
        total_distance_km > config.HARD_DISTANCE_KM
        or elevation_gain_m > config.HARD_ELEVATION_GAIN_M
    ):
        return Difficulty.HARD
    if (
        total_distance_km > config.MODERATE_DISTANCE_KM
        or elevation_gain_m > config.MODERATE_ELEVATION_GAIN_M
    ):
        return Difficulty.MODERATE
    return Difficulty.EASY


def is_closed_loop(samples: Sequence[Coordinate]) -> bool:
    """True when the route has an area and ends near where it started."""

    return len(samples) >= 3 and classify_route(samples) is RouteType.LOOP


def analyze_route(samples: Sequence[Coordinate]) -> Optional[RouteAnalysis]:
    """Summarise a route, or ``None`` when it has fewer than two samples."""

    if len(samples) < 2:
        return None

    total = path_distance_km(samples)
    timestamps = [s.timestamp for s in samples]
    # Timestamps may arrive out of order; use the overall span.
    span_hours = (max(timestamps) - min(timestamps)) / 1000.0 / 3600.0
    average_speed = total / span_hours if span_hours > 0 else 0.0

    speeds = [s.speed for s in samples if s.speed is not None]
    # Some platforms report -1 for an invalid speed reading.
    max_speed = max(max(speeds) * 3.6, 0.0) if speeds else 0.0

    gain, loss = elevation_changes(s.altitude for s in samples if s.altitude is not None)

    return RouteAnalysis(
        total_distance=total,
        average_speed=average_speed,
        max_speed=max_speed,
        elevation_gain=gain,
        elevation_loss=loss,
        route_type=classify_route(samples, total),
        difficulty=rate_difficulty(total, gain),
    )


def get_simplified_route(
    samples: Sequence[Coordinate],
    max_points: int = config.SIMPLIFIED_ROUTE_MAX_POINTS,
) -> List[Coordinate]:
    """Down-sample by a fixed stride, always keeping the first and final points."""

    if max_points <= 0 or len(samples) <= max_points:
        return list(samples)
    step = len(samples) // max_points
    simplified = list(samples[::step])
    if simplified[-1] is not samples[-1]:
        simplified.append(samples[-1])
    return simplified


def generate_waypoints(
    samples: Sequence[Coordinate], target_distance_km: float
) -> List[Coordinate]:
    """Emit a waypoint every ``target_distance_km`` along the route plus the end."""

    if not samples:
        return []
    waypoints: List[Coordinate] = []
    accumulated = 0.0
    last_index = 0
    for index, leg in enumerate(leg_distances_km(samples), start=1):
        accumulated += float(leg)
        if accumulated >= target_distance_km:
            waypoints.append(samples[index])
            accumulated = 0.0
            last_index = index
    if last_index < len(samples) - 1:
        waypoints.append(samples[-1])
    return waypoints


def get_route_map_region(
    samples: Sequence[Coordinate],
    padding: float = config.MAP_REGION_PADDING_DEG,
) -> Optional[MapRegion]:
    """Bounding region that shows the whole route."""

    if not samples:
        return None
    lats = [s.latitude for s in samples]
    lngs = [s.longitude for s in samples]
    min_lat, max_lat = min(lats), max(lats)
    min_lng, max_lng = min(lngs), max(lngs)
    return MapRegion(
        latitude=(min_lat + max_lat) / 2,
        longitude=(min_lng + max_lng) / 2,
        latitude_delta=max(max_lat - min_lat + padding, config.MAP_REGION_MIN_DELTA_DEG),
        longitude_delta=max(max_lng - min_lng + padding, config.MAP_REGION_MIN_DELTA_DEG),
    )


__all__ = [
    "analyze_route",
    "classify_route",
    "rate_difficulty",
    "is_closed_loop",
    "get_simplified_route",
    "generate_waypoints",
    "get_route_map_region",
]
