"""Read cache for remote collections with staleness windows.

Each registered query has a fetcher and a :class:`QueryPolicy`. A value is
*fresh* for ``stale_time_s`` after a successful fetch; reads inside that
window are served from memory. Writes never patch cached data, they only
invalidate it, so the next read goes back to the authoritative source.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from cachetools import TTLCache

from . import config
from .errors import RemoteAPIError

LOGGER = logging.getLogger(__name__)

Fetcher = Callable[[], Any]
Timer = Callable[[], float]


@dataclass(frozen=True, slots=True)
class QueryPolicy:
    stale_time_s: float
    refetch_interval_s: float


@dataclass(slots=True)
class _Query:
    fetcher: Fetcher
    policy: QueryPolicy
    freshness: TTLCache
    fetch_lock: threading.Lock
    data: Any = None
    has_data: bool = False
    fetched_at: Optional[float] = None
    loading: bool = False
    last_error: Optional[Exception] = None
    generation: int = 0


class QueryCache:
    """Thread-safe keyed cache of remote collections."""

    def __init__(self, *, timer: Timer = time.monotonic) -> None:
        self._timer = timer
        self._lock = threading.RLock()
        self._queries: Dict[str, _Query] = {}

    def register(self, key: str, fetcher: Fetcher, policy: QueryPolicy) -> None:
        with self._lock:
            self._queries[key] = _Query(
                fetcher=fetcher,
                policy=policy,
                freshness=TTLCache(maxsize=1, ttl=policy.stale_time_s, timer=self._timer),
                fetch_lock=threading.Lock(),
            )

    def keys(self) -> List[str]:
        with self._lock:
            return list(self._queries)

    def _query(self, key: str) -> _Query:
        with self._lock:
            try:
                return self._queries[key]
            except KeyError:
                raise KeyError(f"Unknown query {key!r}") from None

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    def get(self, key: str, *, force: bool = False) -> Any:
        """Return cached data when fresh, otherwise fetch and cache it.

        Fetch failures propagate; previously cached data is left untouched.
        """

        query = self._query(key)
        if not force:
            with self._lock:
                if key in query.freshness:
                    return query.data
        # One fetch per key at a time; later callers reuse its result.
        with query.fetch_lock:
            if not force:
                with self._lock:
                    if key in query.freshness:
                        return query.data
            return self._fetch(key, query)

    def refresh(self, key: str) -> Any:
        return self.get(key, force=True)

    def peek(self, key: str) -> Any:
        """Last successfully fetched value (possibly stale), or ``None``."""

        query = self._query(key)
        with self._lock:
            return query.data if query.has_data else None

    def _fetch(self, key: str, query: _Query) -> Any:
        with self._lock:
            query.loading = True
            generation = query.generation
        started = time.perf_counter()
        try:
            data = query.fetcher()
        except Exception as exc:
            with self._lock:
                query.loading = False
                query.last_error = exc
            raise
        with self._lock:
            query.data = data
            query.has_data = True
            query.fetched_at = self._timer()
            # Stays stale if invalidated while the fetch was in flight.
            if query.generation == generation:
                query.freshness[key] = True
            query.loading = False
            query.last_error = None
        LOGGER.debug(
            "Fetched query %s in %.3fs (%s items)",
            key,
            time.perf_counter() - started,
            len(data) if hasattr(data, "__len__") else "?",
        )
        return data

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------
    def invalidate(self, key: str) -> None:
        """Mark ``key`` stale so the next read refetches; cached data is kept."""

        query = self._query(key)
        with self._lock:
            query.generation += 1
            query.freshness.pop(key, None)
        LOGGER.info("Invalidated query %s", key)

    def is_stale(self, key: str) -> bool:
        query = self._query(key)
        with self._lock:
            return key not in query.freshness

    def is_loading(self, key: str) -> bool:
        query = self._query(key)
        with self._lock:
            return query.loading

    def last_error(self, key: str) -> Optional[Exception]:
        query = self._query(key)
        with self._lock:
            return query.last_error

    def due_for_refetch(self, key: str) -> bool:
        query = self._query(key)
        with self._lock:
            if query.fetched_at is None:
                return True
            return self._timer() - query.fetched_at >= query.policy.refetch_interval_s


class BackgroundRefresher:
    """Daemon thread that refetches queries once their refetch interval passes."""

    def __init__(
        self,
        cache: QueryCache,
        *,
        poll_interval_s: float = config.BACKGROUND_REFRESH_POLL_SECONDS,
    ) -> None:
        self._cache = cache
        self._poll_interval_s = poll_interval_s
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(
            target=self._run, name="query-refresher", daemon=True
        )
        self._thread.start()
        LOGGER.info("Background refresh started (poll %.1fs)", self._poll_interval_s)

    def stop(self, timeout: float | None = 5.0) -> None:
        self._stop.set()
        thread = self._thread
        self._thread = None
        if thread is not None:
            thread.join(timeout)

    def run_once(self) -> List[str]:
        """Refresh every due query; returns the keys that were refreshed."""

        refreshed: List[str] = []
        for key in self._cache.keys():
            if not self._cache.due_for_refetch(key):
                continue
            try:
                self._cache.refresh(key)
            except RemoteAPIError as exc:
                LOGGER.warning("Background refresh of %s failed: %s", key, exc)
                continue
            refreshed.append(key)
        return refreshed

    def _run(self) -> None:
        while True:
            self.run_once()
            if self._stop.wait(self._poll_interval_s):
                break


__all__ = ["QueryPolicy", "QueryCache", "BackgroundRefresher"]
