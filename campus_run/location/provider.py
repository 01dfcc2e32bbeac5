"""Abstract location capability consumed by the positioning session.

The core never branches on host platform. A concrete provider wraps whatever
the host offers (native service, browser geolocation, a recorded track) and
reports denial or absence through :class:`PermissionStatus`.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Hashable, Optional

from .. import config
from ..errors import LocationUnavailableError
from ..models import Coordinate

LocationCallback = Callable[[Coordinate], None]


class PermissionStatus(str, Enum):
    GRANTED = "granted"
    DENIED = "denied"
    UNAVAILABLE = "unavailable"


@dataclass(frozen=True, slots=True)
class SubscriptionOptions:
    accuracy: str = config.LOCATION_ACCURACY
    min_interval_ms: int = config.LOCATION_MIN_INTERVAL_MS
    min_distance_m: float = config.LOCATION_MIN_DISTANCE_M


@dataclass(frozen=True, slots=True)
class SubscriptionHandle:
    """Opaque token returned by :meth:`LocationProvider.subscribe`."""

    token: Hashable


class LocationProvider(ABC):
    @abstractmethod
    def request_permission(self) -> PermissionStatus:
        """Ask the host for location access."""

    @abstractmethod
    def get_current_position(
        self,
        *,
        timeout_s: float = config.POSITION_TIMEOUT_SECONDS,
        maximum_age_s: float = config.POSITION_MAX_AGE_SECONDS,
    ) -> Optional[Coordinate]:
        """Return a single fix, or ``None`` when no fix is available in time."""

    @abstractmethod
    def subscribe(
        self, callback: LocationCallback, options: SubscriptionOptions
    ) -> SubscriptionHandle:
        """Start pushing samples to ``callback``.

        May raise :class:`~campus_run.errors.LocationUnavailableError` when the
        host has no usable location service.
        """

    @abstractmethod
    def unsubscribe(self, handle: SubscriptionHandle) -> None:
        """Stop a subscription. Unknown handles are ignored."""


class UnavailableLocationProvider(LocationProvider):
    """Provider for hosts without any location hardware or API."""

    def request_permission(self) -> PermissionStatus:
        return PermissionStatus.UNAVAILABLE

    def get_current_position(
        self,
        *,
        timeout_s: float = config.POSITION_TIMEOUT_SECONDS,
        maximum_age_s: float = config.POSITION_MAX_AGE_SECONDS,
    ) -> Optional[Coordinate]:
        return None

    def subscribe(
        self, callback: LocationCallback, options: SubscriptionOptions
    ) -> SubscriptionHandle:
        raise LocationUnavailableError("No location service on this host")

    def unsubscribe(self, handle: SubscriptionHandle) -> None:
        return None


__all__ = [
    "LocationCallback",
    "LocationProvider",
    "PermissionStatus",
    "SubscriptionHandle",
    "SubscriptionOptions",
    "UnavailableLocationProvider",
]
