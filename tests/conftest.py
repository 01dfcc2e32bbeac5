"""Global pytest fixtures & helpers.

Adds project root to path and provides reusable sample tracks, providers,
stores and remotes so the positioning, geometry and store tests share setup.
"""
from __future__ import annotations

import os
import sys

import pytest

ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from campus_run.geodesy import METERS_PER_DEGREE
from campus_run.location import ReplayLocationProvider
from campus_run.models import Coordinate
from campus_run.persistence import MemoryKeyValueStore
from campus_run.remote_client import InMemoryRemoteDataSource, demo_seed

BASE_LAT = 40.0
BASE_LNG = -74.0
BASE_TS = 1_700_000_000_000


# --- Factory helpers -------------------------------------------------
def north_of(meters: float, lat: float = BASE_LAT) -> float:
    return lat + meters / METERS_PER_DEGREE


def make_walk_north(count=3, step_m=10.0, speed=2.0, interval_ms=1000, altitudes=None):
    """Samples ``step_m`` metres apart heading due north."""

    samples = []
    for i in range(count):
        samples.append(
            Coordinate(
                latitude=north_of(step_m * i),
                longitude=BASE_LNG,
                timestamp=BASE_TS + i * interval_ms,
                speed=speed,
                altitude=None if altitudes is None else altitudes[i],
            )
        )
    return samples


def make_square(side_m=1000.0, lat=BASE_LAT, lng=BASE_LNG, close=False):
    """Corners of a ``side_m`` square whose south-west corner is (lat, lng)."""

    import math

    dlat = side_m / METERS_PER_DEGREE
    dlng = side_m / (METERS_PER_DEGREE * math.cos(math.radians(lat + dlat / 2)))
    corners = [
        (lat, lng),
        (lat + dlat, lng),
        (lat + dlat, lng + dlng),
        (lat, lng + dlng),
    ]
    if close:
        corners.append(corners[0])
    return [
        Coordinate(latitude=a, longitude=b, timestamp=BASE_TS + i * 60_000)
        for i, (a, b) in enumerate(corners)
    ]


class FakeClock:
    """Manually advanced clock returning POSIX seconds."""

    def __init__(self, start=BASE_TS / 1000.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


# --- Fixtures --------------------------------------------------------
@pytest.fixture
def walk_north():
    return make_walk_north()


@pytest.fixture
def square_km():
    return make_square()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def provider():
    """Replay provider without a preloaded track; tests push samples manually."""

    return ReplayLocationProvider()


@pytest.fixture
def memory_store():
    return MemoryKeyValueStore()


@pytest.fixture
def remote():
    return InMemoryRemoteDataSource(**demo_seed())
