"""Session store: the single in-progress run plus remote-backed collections.

The store is constructed once with its collaborators (positioning session,
remote data source, key-value storage) and handed to whatever needs it. It
owns the only run context, so at most one positioning session is ever live.
"""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

from . import config
from .errors import RemoteAPIError, RemoteNotFoundError
from .games import build_completion_update, ensure_can_complete, ensure_can_start
from .geodesy import polygon_area_km2
from .metrics import (
    DEFAULT_POLICY,
    MetricsPolicy,
    calculate_average_speed,
    calculate_cadence,
    calculate_calories,
    calculate_distance,
    calculate_elevation_gain,
    calculate_pace,
)
from .models import (
    Coordinate,
    GaitTest,
    GroupRun,
    LiveStats,
    Run,
    Task,
    TeamRunGame,
)
from .persistence import KeyValueStore, RunHistoryRepository
from .positioning import PositioningSession
from .query_cache import BackgroundRefresher, QueryCache, QueryPolicy
from .remote_client import Payload, RemoteDataSource
from .utils import iso_date

LOGGER = logging.getLogger(__name__)

GROUP_RUNS = "groupRuns"
TASKS = "tasks"
TEAM_RUN_GAMES = "teamRunGames"

DEFAULT_QUERY_POLICIES: Dict[str, QueryPolicy] = {
    GROUP_RUNS: QueryPolicy(
        config.GROUP_RUNS_STALE_SECONDS, config.GROUP_RUNS_REFETCH_SECONDS
    ),
    TASKS: QueryPolicy(config.TASKS_STALE_SECONDS, config.TASKS_REFETCH_SECONDS),
    TEAM_RUN_GAMES: QueryPolicy(
        config.TEAM_GAMES_STALE_SECONDS, config.TEAM_GAMES_REFETCH_SECONDS
    ),
}

LiveStatsListener = Callable[[LiveStats], None]


@dataclass(slots=True)
class RunContext:
    """Bookkeeping for the run currently in progress."""

    start_time: float
    live: LiveStats = field(default_factory=LiveStats)
    paused: bool = False


class LiveTicker:
    """Calls ``tick`` at a fixed interval on a daemon thread until stopped."""

    def __init__(self, tick: Callable[[], Any], interval_s: float) -> None:
        self._tick = tick
        self._interval_s = interval_s
        self._stop = threading.Event()
        self._thread = threading.Thread(target=self._run, name="live-ticker", daemon=True)

    def start(self) -> None:
        self._thread.start()

    def stop(self, timeout: float | None = 2.0) -> None:
        self._stop.set()
        if self._thread.is_alive() and self._thread is not threading.current_thread():
            self._thread.join(timeout)

    def _run(self) -> None:
        while not self._stop.wait(self._interval_s):
            try:
                self._tick()
            except Exception:  # pragma: no cover - keep ticking after a bad frame
                LOGGER.exception("Live tick failed")


class SessionStore:
    """Coordinates the run lifecycle, run history and remote collections."""

    def __init__(
        self,
        session: PositioningSession,
        remote: RemoteDataSource,
        storage: KeyValueStore,
        *,
        policy: MetricsPolicy = DEFAULT_POLICY,
        query_policies: Optional[Mapping[str, QueryPolicy]] = None,
        live_tick_interval_s: Optional[float] = config.LIVE_TICK_SECONDS,
        clock: Callable[[], float] = time.time,
        timer: Callable[[], float] = time.monotonic,
        on_live_stats: Optional[LiveStatsListener] = None,
    ) -> None:
        self._session = session
        self._remote = remote
        self._history = RunHistoryRepository(storage)
        self._policy = policy
        self._live_tick_interval_s = live_tick_interval_s
        self._clock = clock
        self._on_live_stats = on_live_stats
        self._lock = threading.RLock()
        self._current_run: Optional[RunContext] = None
        self._live_stats = LiveStats()
        self._ticker: Optional[LiveTicker] = None
        self._runs: List[Run] = self._history.load_runs()
        self._gait_tests: List[GaitTest] = self._history.load_gait_tests()

        policies = dict(DEFAULT_QUERY_POLICIES)
        policies.update(query_policies or {})
        self._queries = QueryCache(timer=timer)
        self._queries.register(GROUP_RUNS, remote.fetch_group_runs, policies[GROUP_RUNS])
        self._queries.register(TASKS, remote.fetch_tasks, policies[TASKS])
        self._queries.register(
            TEAM_RUN_GAMES, remote.fetch_team_run_games, policies[TEAM_RUN_GAMES]
        )
        self._refresher: Optional[BackgroundRefresher] = None
        LOGGER.info(
            "Session store ready with %d runs and %d gait tests",
            len(self._runs),
            len(self._gait_tests),
        )

    # ------------------------------------------------------------------
    # Run lifecycle
    # ------------------------------------------------------------------
    @property
    def is_running(self) -> bool:
        with self._lock:
            return self._current_run is not None

    @property
    def current_run(self) -> Optional[RunContext]:
        with self._lock:
            return self._current_run

    def start_run(self) -> bool:
        """Start tracking a new run. Returns False when location is unavailable."""

        with self._lock:
            if self._current_run is not None:
                LOGGER.info("start_run ignored; a run is already in progress")
                return True
            if not self._session.start():
                return False
            self._current_run = RunContext(start_time=self._session.start_time)
            self._live_stats = LiveStats()
            if self._live_tick_interval_s:
                self._ticker = LiveTicker(self.tick, self._live_tick_interval_s)
                self._ticker.start()
        LOGGER.info("Run started")
        return True

    def stop_run(self) -> Optional[Run]:
        """Finish the run in progress and record it; ``None`` when idle."""

        with self._lock:
            context = self._current_run
            if context is None:
                return None
            self._current_run = None
            ticker = self._ticker
            self._ticker = None
        if ticker is not None:
            ticker.stop()

        samples = self._session.stop()
        ended = self._clock()
        duration = max(0, int(ended - context.start_time))
        distance = calculate_distance(samples)
        gain = calculate_elevation_gain(samples)
        run = Run(
            id=str(int(ended * 1000)),
            date=iso_date(ended),
            duration=duration,
            distance=round(distance, 2),
            pace=round(calculate_pace(distance, duration), 1),
            calories=calculate_calories(distance, gain, self._policy),
            type="solo",
            route=config.RUN_ROUTE_LABEL,
            coordinates=samples,
            cadence=calculate_cadence(samples, duration, self._policy),
            avg_speed=round(calculate_average_speed(distance, duration), 1),
        )

        with self._lock:
            self._runs = [run, *self._runs]
            runs = list(self._runs)
            self._live_stats = LiveStats()
        self._history.save_runs(runs)
        LOGGER.info(
            "Run %s saved: %.2f km in %ss (%d samples)",
            run.id,
            run.distance,
            run.duration,
            len(samples),
        )
        return run

    def pause_run(self) -> None:
        """Freeze accumulation while keeping the location subscription alive."""

        with self._lock:
            if self._current_run is None:
                return
            self._current_run.paused = True
            self._session.suspend_accumulation()
        LOGGER.info("Run paused")

    def resume_run(self) -> None:
        with self._lock:
            if self._current_run is None:
                return
            self._current_run.paused = False
            self._session.resume_accumulation()
        LOGGER.info("Run resumed")

    def tick(self) -> LiveStats:
        """Recompute live stats from the session buffer (read-only projection)."""

        with self._lock:
            context = self._current_run
            if context is None:
                return self._live_stats
            samples = self._session.get_coordinates()
            elapsed = max(0.0, self._clock() - context.start_time)
            distance = calculate_distance(samples)
            stats = LiveStats(
                distance=distance,
                pace=calculate_pace(distance, elapsed),
                cadence=calculate_cadence(samples, elapsed, self._policy),
            )
            context.live = stats
            self._live_stats = stats
            listener = self._on_live_stats
        if listener is not None:
            listener(stats)
        return stats

    def get_live_stats(self) -> LiveStats:
        with self._lock:
            return self._live_stats

    # ------------------------------------------------------------------
    # Local history
    # ------------------------------------------------------------------
    def get_run_history(self) -> List[Run]:
        with self._lock:
            return list(self._runs)

    def get_gait_tests(self) -> List[GaitTest]:
        with self._lock:
            return list(self._gait_tests)

    def add_gait_test(
        self,
        score: float,
        feedback: str,
        improvements: Sequence[str] = (),
        *,
        date: Optional[str] = None,
    ) -> GaitTest:
        now = self._clock()
        test = GaitTest(
            id=str(int(now * 1000)),
            date=date or iso_date(now),
            score=score,
            feedback=feedback,
            improvements=list(improvements),
        )
        with self._lock:
            self._gait_tests = [test, *self._gait_tests]
            tests = list(self._gait_tests)
        self._history.save_gait_tests(tests)
        return test

    def calculate_route_area(self, samples: Sequence[Coordinate]) -> float:
        return polygon_area_km2(samples)

    # ------------------------------------------------------------------
    # Remote collections
    # ------------------------------------------------------------------
    def _read(self, key: str) -> list:
        try:
            return self._queries.get(key)
        except RemoteAPIError as exc:
            LOGGER.warning("Fetching %s failed: %s", key, exc)
            return self._queries.peek(key) or []

    def group_runs(self) -> List[GroupRun]:
        return self._read(GROUP_RUNS)

    def tasks(self) -> List[Task]:
        return self._read(TASKS)

    def team_run_games(self) -> List[TeamRunGame]:
        return self._read(TEAM_RUN_GAMES)

    def is_loading(self, key: str) -> bool:
        return self._queries.is_loading(key)

    def refresh_group_runs(self) -> List[GroupRun]:
        return self._queries.refresh(GROUP_RUNS)

    def refresh_tasks(self) -> List[Task]:
        return self._queries.refresh(TASKS)

    def refresh_team_run_games(self) -> List[TeamRunGame]:
        return self._queries.refresh(TEAM_RUN_GAMES)

    def refresh_all(self) -> Dict[str, bool]:
        """Refetch every collection in parallel; returns success per key."""

        keys = self._queries.keys()
        results: Dict[str, bool] = {}
        workers = max(1, min(config.REFRESH_MAX_PARALLELISM, len(keys)))
        with ThreadPoolExecutor(max_workers=workers) as executor:
            future_map = {executor.submit(self._queries.refresh, key): key for key in keys}
            for future in as_completed(future_map):
                key = future_map[future]
                try:
                    future.result()
                except RemoteAPIError as exc:
                    LOGGER.warning("Refreshing %s failed: %s", key, exc)
                    results[key] = False
                else:
                    results[key] = True
        return results

    def start_background_refresh(
        self, poll_interval_s: float = config.BACKGROUND_REFRESH_POLL_SECONDS
    ) -> None:
        with self._lock:
            if self._refresher is None:
                self._refresher = BackgroundRefresher(
                    self._queries, poll_interval_s=poll_interval_s
                )
            self._refresher.start()

    def close(self) -> None:
        """Stop background threads and release the location subscription."""

        with self._lock:
            refresher = self._refresher
            self._refresher = None
            running = self._current_run is not None
        if refresher is not None:
            refresher.stop()
        if running:
            self.stop_run()

    # ------------------------------------------------------------------
    # Mutators: write, then invalidate on success
    # ------------------------------------------------------------------
    def _mutate(self, key: str, context: str, operation: Callable[[], Any]) -> Any:
        try:
            result = operation()
        except RemoteAPIError as exc:
            LOGGER.error("%s failed: %s", context, exc)
            raise
        self._queries.invalidate(key)
        return result

    def create_group_run(self, draft: Payload) -> GroupRun:
        return self._mutate(
            GROUP_RUNS, "Create group run", lambda: self._remote.create_group_run(draft)
        )

    def join_group_run(self, group_run_id: str) -> GroupRun:
        return self._mutate(
            GROUP_RUNS,
            f"Join group run {group_run_id}",
            lambda: self._remote.join_group_run(group_run_id),
        )

    def update_group_run(self, group_run_id: str, updates: Payload) -> GroupRun:
        return self._mutate(
            GROUP_RUNS,
            f"Update group run {group_run_id}",
            lambda: self._remote.update_group_run(group_run_id, updates),
        )

    def delete_group_run(self, group_run_id: str) -> None:
        self._mutate(
            GROUP_RUNS,
            f"Delete group run {group_run_id}",
            lambda: self._remote.delete_group_run(group_run_id),
        )

    def complete_task(self, task_id: str, completed: bool = True) -> Task:
        return self._mutate(
            TASKS,
            f"Complete task {task_id}",
            lambda: self._remote.update_task_completion(task_id, completed),
        )

    def create_team_run_game(self, draft: Payload) -> TeamRunGame:
        return self._mutate(
            TEAM_RUN_GAMES,
            "Create team run game",
            lambda: self._remote.create_team_run_game(draft),
        )

    def join_team_run_game(self, game_id: str, participant_name: str) -> TeamRunGame:
        return self._mutate(
            TEAM_RUN_GAMES,
            f"Join team run game {game_id}",
            lambda: self._remote.join_team_run_game(game_id, participant_name),
        )

    def start_team_run_game(self, game_id: str, requested_by: str) -> TeamRunGame:
        ensure_can_start(self._find_game(game_id), requested_by)
        return self._mutate(
            TEAM_RUN_GAMES,
            f"Start team run game {game_id}",
            lambda: self._remote.start_team_run_game(game_id),
        )

    def submit_game_photo(
        self, game_id: str, participant_id: str, photo: Payload
    ) -> None:
        self._mutate(
            TEAM_RUN_GAMES,
            f"Submit photo for game {game_id}",
            lambda: self._remote.submit_game_photo(game_id, participant_id, photo),
        )

    def update_game_participant(
        self, game_id: str, participant_id: str, updates: Payload
    ) -> None:
        self._mutate(
            TEAM_RUN_GAMES,
            f"Update participant {participant_id} in game {game_id}",
            lambda: self._remote.update_game_participant(game_id, participant_id, updates),
        )

    def finish_game_route(
        self,
        game_id: str,
        participant_id: str,
        samples: Sequence[Coordinate],
        completion_time_s: int,
    ) -> Dict[str, Any]:
        """Score a participant's route and record it as their final result."""

        game = self._find_game(game_id)
        participant = game.participant(participant_id)
        if participant is None:
            raise RemoteNotFoundError(
                f"Participant {participant_id} not found in team run game {game_id}"
            )
        ensure_can_complete(participant)
        update = build_completion_update(samples, completion_time_s=completion_time_s)
        self.update_game_participant(game_id, participant_id, update)
        LOGGER.info(
            "Participant %s finished game %s with %.3f km²",
            participant_id,
            game_id,
            update["area"],
        )
        return update

    def _find_game(self, game_id: str) -> TeamRunGame:
        for game in self._queries.get(TEAM_RUN_GAMES):
            if game.id == game_id:
                return game
        raise RemoteNotFoundError(f"Team run game {game_id} not found")


__all__ = [
    "GROUP_RUNS",
    "TASKS",
    "TEAM_RUN_GAMES",
    "DEFAULT_QUERY_POLICIES",
    "LiveTicker",
    "RunContext",
    "SessionStore",
]
