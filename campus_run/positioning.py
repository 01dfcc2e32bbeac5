"""Stateful tracker for a single positioning session.

Samples are pushed by a :class:`~campus_run.location.LocationProvider` on an
arbitrary thread. The handler only does arithmetic under the session lock, so
the live tick and metric reads always see a consistent set of accumulators.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable, List, Optional

from . import config
from .errors import LocationUnavailableError
from .geodesy import haversine_km
from .location import (
    LocationCallback,
    LocationProvider,
    PermissionStatus,
    SubscriptionHandle,
    SubscriptionOptions,
)
from .metrics import (
    DEFAULT_POLICY,
    MetricsPolicy,
    calculate_calories,
    calculate_pace,
    elevation_changes,
)
from .models import Coordinate, RunMetrics

LOGGER = logging.getLogger(__name__)

Clock = Callable[[], float]


class PositioningSession:
    """Owns the lifecycle and running totals of one tracking episode."""

    def __init__(
        self,
        provider: LocationProvider,
        *,
        policy: MetricsPolicy = DEFAULT_POLICY,
        subscription: SubscriptionOptions | None = None,
        clock: Clock = time.time,
    ) -> None:
        self._provider = provider
        self._policy = policy
        self._subscription_options = subscription or SubscriptionOptions()
        self._clock = clock
        self._lock = threading.RLock()
        self._handle: Optional[SubscriptionHandle] = None
        self._observer: Optional[LocationCallback] = None
        self._tracking = False
        self._suspended = False
        self._coordinates: List[Coordinate] = []
        self._elevation_points: List[float] = []
        self._total_distance = 0.0
        self._step_count = 0
        self._last_step_ms: Optional[float] = None
        self._start_time = 0.0

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def start(self, on_update: Optional[LocationCallback] = None) -> bool:
        """Begin tracking. Returns False when location access is refused."""

        with self._lock:
            if self._tracking:
                return True

        status = self._request_permission()
        if status is not PermissionStatus.GRANTED:
            LOGGER.warning("Location permission %s; tracking not started", status.value)
            return False

        with self._lock:
            if self._tracking:
                return True
            self._reset_accumulators()
            self._observer = on_update
            self._start_time = self._clock()
            self._tracking = True
            try:
                self._handle = self._provider.subscribe(
                    self._on_sample, self._subscription_options
                )
            except LocationUnavailableError as exc:
                self._rollback_start()
                LOGGER.warning("Location service unavailable: %s", exc)
                return False
            except Exception as exc:
                self._rollback_start()
                LOGGER.error("Location subscription failed: %s", exc)
                raise
        LOGGER.info("Location tracking started")
        return True

    def _rollback_start(self) -> None:
        self._tracking = False
        self._observer = None
        self._handle = None

    def stop(self) -> List[Coordinate]:
        """Stop tracking and return a copy of every recorded sample."""

        with self._lock:
            handle = self._handle
            self._handle = None
            was_tracking = self._tracking
            self._tracking = False
            self._suspended = False
            self._observer = None
            result = list(self._coordinates)
            distance = self._total_distance
        if handle is not None:
            self._provider.unsubscribe(handle)
        if was_tracking:
            LOGGER.info(
                "Location tracking stopped after %d samples (%.3f km)",
                len(result),
                distance,
            )
        return result

    def reset(self) -> None:
        """Stop tracking and discard all accumulated data."""

        self.stop()
        with self._lock:
            self._reset_accumulators()
            self._start_time = 0.0

    def suspend_accumulation(self) -> None:
        """Ignore incoming samples while keeping the subscription alive."""

        with self._lock:
            if self._tracking:
                self._suspended = True

    def resume_accumulation(self) -> None:
        with self._lock:
            self._suspended = False

    def get_current_position(
        self,
        *,
        timeout_s: float = config.POSITION_TIMEOUT_SECONDS,
        maximum_age_s: float = config.POSITION_MAX_AGE_SECONDS,
    ) -> Optional[Coordinate]:
        if self._request_permission() is not PermissionStatus.GRANTED:
            return None
        return self._provider.get_current_position(
            timeout_s=timeout_s, maximum_age_s=maximum_age_s
        )

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------
    @property
    def is_tracking(self) -> bool:
        with self._lock:
            return self._tracking

    @property
    def is_suspended(self) -> bool:
        with self._lock:
            return self._suspended

    @property
    def step_count(self) -> int:
        with self._lock:
            return self._step_count

    @property
    def total_distance(self) -> float:
        with self._lock:
            return self._total_distance

    @property
    def start_time(self) -> float:
        with self._lock:
            return self._start_time

    def get_coordinates(self) -> List[Coordinate]:
        with self._lock:
            return list(self._coordinates)

    def get_current_metrics(self) -> RunMetrics:
        with self._lock:
            elapsed_min = max(0.0, self._clock() - self._start_time) / 60.0
            distance = self._total_distance
            steps = self._step_count
            elevation, _ = elevation_changes(self._elevation_points)
        pace = calculate_pace(distance, elapsed_min * 60.0)
        cadence = steps / elapsed_min if elapsed_min > 0 else 0.0
        return RunMetrics(
            distance=distance,
            pace=pace,
            cadence=cadence,
            elevation=elevation,
            calories=calculate_calories(distance, elevation, self._policy),
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _request_permission(self) -> PermissionStatus:
        try:
            return self._provider.request_permission()
        except LocationUnavailableError as exc:
            LOGGER.warning("Location permission request failed: %s", exc)
            return PermissionStatus.UNAVAILABLE

    def _reset_accumulators(self) -> None:
        self._coordinates = []
        self._elevation_points = []
        self._total_distance = 0.0
        self._step_count = 0
        self._last_step_ms = None
        self._suspended = False

    def _on_sample(self, sample: Coordinate) -> None:
        with self._lock:
            if not self._tracking:
                return
            observer = self._observer
            if not self._suspended:
                self._accumulate(sample)
        if observer is not None:
            try:
                observer(sample)
            except Exception:
                LOGGER.exception("Location observer raised")

    def _accumulate(self, sample: Coordinate) -> None:
        if self._coordinates:
            self._total_distance += haversine_km(self._coordinates[-1], sample)
        self._coordinates.append(sample)
        if sample.altitude is not None:
            self._elevation_points.append(sample.altitude)
        if (
            sample.speed is not None
            and sample.speed > self._policy.step_speed_threshold_mps
        ):
            now_ms = self._clock() * 1000.0
            if (
                self._last_step_ms is None
                or now_ms - self._last_step_ms >= self._policy.step_debounce_ms
            ):
                self._step_count += 1
                self._last_step_ms = now_ms
        LOGGER.debug(
            "Sample %d lat=%.6f lng=%.6f total=%.4f km",
            len(self._coordinates),
            sample.latitude,
            sample.longitude,
            self._total_distance,
        )


__all__ = ["PositioningSession"]
