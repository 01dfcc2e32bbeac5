"""Geodesy primitives: great-circle distance and enclosed route area.

All functions are total over numeric input. Degenerate inputs (too few
points) return 0 rather than raising, and out-of-range latitudes/longitudes
are not validated.
"""

from __future__ import annotations

import math
from typing import Sequence

import numpy as np
from numpy.typing import NDArray

from .models import Coordinate

EARTH_RADIUS_KM = 6371.0
# Metres per degree of latitude in the local equirectangular projection.
METERS_PER_DEGREE = 111_320.0

MetricArray = NDArray[np.float64]


def to_radians(degrees: float) -> float:
    return degrees * (math.pi / 180.0)


def haversine_km(a: Coordinate, b: Coordinate) -> float:
    """Great-circle distance between two samples in kilometres."""

    d_lat = to_radians(b.latitude - a.latitude)
    d_lon = to_radians(b.longitude - a.longitude)
    lat1 = to_radians(a.latitude)
    lat2 = to_radians(b.latitude)
    h = (
        math.sin(d_lat / 2) ** 2
        + math.sin(d_lon / 2) ** 2 * math.cos(lat1) * math.cos(lat2)
    )
    c = 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))
    return EARTH_RADIUS_KM * c


def haversine_m(a: Coordinate, b: Coordinate) -> float:
    return haversine_km(a, b) * 1000.0


def _latlon_array(samples: Sequence[Coordinate]) -> MetricArray:
    return np.array([(s.latitude, s.longitude) for s in samples], dtype=float).reshape(
        -1, 2
    )


def leg_distances_km(samples: Sequence[Coordinate]) -> MetricArray:
    """Vectorised haversine distance for each consecutive pair of samples."""

    if len(samples) < 2:
        return np.zeros(0, dtype=float)
    rad = np.radians(_latlon_array(samples))
    lat1, lat2 = rad[:-1, 0], rad[1:, 0]
    d_lat = lat2 - lat1
    d_lon = rad[1:, 1] - rad[:-1, 1]
    h = np.sin(d_lat / 2) ** 2 + np.sin(d_lon / 2) ** 2 * np.cos(lat1) * np.cos(lat2)
    # Guard against tiny negative values from floating point error.
    h = np.clip(h, 0.0, 1.0)
    c = 2 * np.arctan2(np.sqrt(h), np.sqrt(1 - h))
    return EARTH_RADIUS_KM * c


def path_distance_km(samples: Sequence[Coordinate]) -> float:
    """Total path length of an ordered sample sequence in kilometres."""

    if len(samples) < 2:
        return 0.0
    return float(np.sum(leg_distances_km(samples)))


def project_to_local_meters(samples: Sequence[Coordinate]) -> MetricArray:
    """Equirectangular projection of lat/lng into planar metres (x, y)."""

    latlon = _latlon_array(samples)
    lat = latlon[:, 0]
    lng = latlon[:, 1]
    x = lng * METERS_PER_DEGREE * np.cos(np.radians(lat))
    y = lat * METERS_PER_DEGREE
    return np.column_stack((x, y))


def polygon_area_km2(samples: Sequence[Coordinate]) -> float:
    """Area enclosed by a route, treated as a closed polygon, in km².

    The route is implicitly closed (last point joins the first). Points are
    projected to local metres before applying the shoelace sum, so the
    result does not depend on point order beyond its discarded sign.
    Self-intersecting routes yield the plain shoelace value.
    """

    if len(samples) < 3:
        return 0.0
    points = project_to_local_meters(samples)
    # Shoelace is translation invariant; centring keeps the products small.
    points = points - points.mean(axis=0)
    x = points[:, 0]
    y = points[:, 1]
    x_next = np.roll(x, -1)
    y_next = np.roll(y, -1)
    twice_area = float(np.sum(x * y_next - x_next * y))
    return abs(twice_area) / 2.0 / 1_000_000.0


def is_within_radius(point: Coordinate, center: Coordinate, radius_m: float) -> bool:
    """Check whether a point is inside or on the boundary of a circle geofence."""

    return haversine_m(point, center) <= radius_m


__all__ = [
    "EARTH_RADIUS_KM",
    "METERS_PER_DEGREE",
    "to_radians",
    "haversine_km",
    "haversine_m",
    "leg_distances_km",
    "path_distance_km",
    "project_to_local_meters",
    "polygon_area_km2",
    "is_within_radius",
]
