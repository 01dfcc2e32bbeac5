"""Stateless run metrics computed from sample sequences.

The cadence and calorie figures are deliberately simple linear heuristics.
Their constants live on :class:`MetricsPolicy` so callers can tune them
without touching the formulas.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable, Sequence, Tuple

from . import config
from .geodesy import path_distance_km
from .models import Coordinate


@dataclass(frozen=True, slots=True)
class MetricsPolicy:
    step_speed_threshold_mps: float = config.STEP_SPEED_THRESHOLD_MPS
    step_debounce_ms: int = config.STEP_DEBOUNCE_MS
    calories_per_km: float = config.CALORIES_PER_KM
    calories_per_elevation_m: float = config.CALORIES_PER_ELEVATION_M
    cadence_speed_factor: float = config.CADENCE_SPEED_FACTOR
    cadence_base_spm: float = config.CADENCE_BASE_SPM
    cadence_min_samples: int = config.CADENCE_MIN_SAMPLES


DEFAULT_POLICY = MetricsPolicy()


def calculate_distance(samples: Sequence[Coordinate]) -> float:
    """Path distance in km; 0 for fewer than two samples."""

    return path_distance_km(samples)


def calculate_pace(distance_km: float, duration_s: float) -> float:
    """Minutes per km. Returns 0 when no distance has been covered."""

    if distance_km <= 0 or duration_s <= 0:
        return 0.0
    return (duration_s / 60.0) / distance_km


def calculate_average_speed(distance_km: float, duration_s: float) -> float:
    """Average speed in km/h (0 for a zero-length duration)."""

    if duration_s <= 0 or distance_km <= 0:
        return 0.0
    return distance_km / (duration_s / 3600.0)


def calculate_cadence(
    samples: Sequence[Coordinate],
    duration_s: float,
    policy: MetricsPolicy = DEFAULT_POLICY,
) -> int:
    """Estimate steps per minute from average speed.

    Placeholder until step-level sensor data is available:
    ``floor(avg_kmh * factor + base)``. Short routes report 0.
    """

    if duration_s <= 0 or len(samples) < policy.cadence_min_samples:
        return 0
    avg_kmh = calculate_average_speed(calculate_distance(samples), duration_s)
    return int(math.floor(avg_kmh * policy.cadence_speed_factor + policy.cadence_base_spm))


def elevation_changes(altitudes: Iterable[float]) -> Tuple[float, float]:
    """Return (gain, loss) in metres over consecutive altitude readings."""

    gain = 0.0
    loss = 0.0
    previous: float | None = None
    for value in altitudes:
        if previous is not None:
            diff = value - previous
            if diff > 0:
                gain += diff
            else:
                loss += -diff
        previous = value
    return gain, loss


def calculate_elevation_gain(samples: Sequence[Coordinate]) -> float:
    gain, _ = elevation_changes(s.altitude for s in samples if s.altitude is not None)
    return gain


def calculate_calories(
    distance_km: float,
    elevation_gain_m: float,
    policy: MetricsPolicy = DEFAULT_POLICY,
) -> int:
    return int(
        round(
            distance_km * policy.calories_per_km
            + elevation_gain_m * policy.calories_per_elevation_m
        )
    )


__all__ = [
    "MetricsPolicy",
    "DEFAULT_POLICY",
    "calculate_distance",
    "calculate_pace",
    "calculate_average_speed",
    "calculate_cadence",
    "elevation_changes",
    "calculate_elevation_gain",
    "calculate_calories",
]
