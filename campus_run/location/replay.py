"""Simulated-data location provider.

Feeds a recorded or synthetic track to subscribers, either on a background
thread (``interval_s`` apart) or manually through :meth:`push`. Used when the
real location capability is denied and the caller opts into simulated data,
and throughout the tests.
"""

from __future__ import annotations

import itertools
import logging
import threading
from typing import Dict, List, Optional, Sequence

from .. import config
from ..models import Coordinate
from .provider import (
    LocationCallback,
    LocationProvider,
    PermissionStatus,
    SubscriptionHandle,
    SubscriptionOptions,
)

LOGGER = logging.getLogger(__name__)


class _Playback:
    def __init__(self) -> None:
        self.stop = threading.Event()
        self.done = threading.Event()
        self.thread: Optional[threading.Thread] = None


class ReplayLocationProvider(LocationProvider):
    def __init__(
        self,
        samples: Sequence[Coordinate] = (),
        *,
        permission: PermissionStatus = PermissionStatus.GRANTED,
        interval_s: float = 0.0,
    ) -> None:
        self._samples: List[Coordinate] = list(samples)
        self._permission = permission
        self._interval_s = max(0.0, interval_s)
        self._lock = threading.Lock()
        self._callbacks: Dict[int, LocationCallback] = {}
        self._playbacks: Dict[int, _Playback] = {}
        self._ids = itertools.count(1)
        self._last: Optional[Coordinate] = None
        self.options_seen: List[SubscriptionOptions] = []

    @property
    def active_subscriptions(self) -> int:
        with self._lock:
            return len(self._callbacks)

    def request_permission(self) -> PermissionStatus:
        return self._permission

    def get_current_position(
        self,
        *,
        timeout_s: float = config.POSITION_TIMEOUT_SECONDS,
        maximum_age_s: float = config.POSITION_MAX_AGE_SECONDS,
    ) -> Optional[Coordinate]:
        if self._permission is not PermissionStatus.GRANTED:
            return None
        with self._lock:
            if self._last is not None:
                return self._last
        return self._samples[0] if self._samples else None

    def subscribe(
        self, callback: LocationCallback, options: SubscriptionOptions
    ) -> SubscriptionHandle:
        token = next(self._ids)
        with self._lock:
            self._callbacks[token] = callback
            self.options_seen.append(options)
        if self._samples:
            playback = _Playback()
            playback.thread = threading.Thread(
                target=self._play,
                args=(token, callback, playback),
                name=f"replay-location-{token}",
                daemon=True,
            )
            with self._lock:
                self._playbacks[token] = playback
            playback.thread.start()
        LOGGER.debug("Replay subscription %s opened (%d samples)", token, len(self._samples))
        return SubscriptionHandle(token)

    def unsubscribe(self, handle: SubscriptionHandle) -> None:
        with self._lock:
            self._callbacks.pop(handle.token, None)
            playback = self._playbacks.pop(handle.token, None)
        if playback is not None:
            playback.stop.set()
            if playback.thread is not None and playback.thread is not threading.current_thread():
                playback.thread.join(timeout=1.0)
        LOGGER.debug("Replay subscription %s closed", handle.token)

    def push(self, sample: Coordinate) -> None:
        """Deliver one sample to every active subscriber."""

        with self._lock:
            self._last = sample
            callbacks = list(self._callbacks.values())
        for callback in callbacks:
            callback(sample)

    def wait_until_drained(self, timeout: Optional[float] = None) -> bool:
        """Block until every running playback has delivered its samples."""

        with self._lock:
            playbacks = list(self._playbacks.values())
        return all(p.done.wait(timeout) for p in playbacks)

    def _play(self, token: int, callback: LocationCallback, playback: _Playback) -> None:
        try:
            for sample in self._samples:
                if playback.stop.is_set():
                    break
                with self._lock:
                    if token not in self._callbacks:
                        break
                    self._last = sample
                callback(sample)
                if self._interval_s and playback.stop.wait(self._interval_s):
                    break
        finally:
            playback.done.set()


__all__ = ["ReplayLocationProvider"]
