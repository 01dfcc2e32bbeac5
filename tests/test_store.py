import json
import logging

import pytest

from campus_run.errors import GameStateError, RemoteAPIError, RemoteNotFoundError
from campus_run.location import PermissionStatus, ReplayLocationProvider
from campus_run.models import LiveStats, Run
from campus_run.persistence import MemoryKeyValueStore
from campus_run.positioning import PositioningSession
from campus_run.query_cache import QueryPolicy
from campus_run.remote_client import InMemoryRemoteDataSource, demo_seed
from campus_run.store import GROUP_RUNS, TASKS, SessionStore

from conftest import make_square, make_walk_north

DRAFT = {
    "title": "Library Loop",
    "date": "2024-02-10",
    "time": "8:00 AM",
    "distance": 3.0,
    "pace": "6:00",
    "maxParticipants": 5,
    "location": "Library",
    "difficulty": "easy",
}


class FlakyRemote(InMemoryRemoteDataSource):
    """Fake backend whose writes can be switched to fail."""

    def __init__(self, **seed):
        super().__init__(**seed)
        self.fail_writes = False

    def create_group_run(self, draft):
        if self.fail_writes:
            raise RemoteAPIError("backend unavailable")
        return super().create_group_run(draft)

    def fetch_tasks(self):
        if self.fail_writes:
            raise RemoteAPIError("backend unavailable")
        return super().fetch_tasks()


@pytest.fixture
def store(provider, clock, remote, memory_store):
    session = PositioningSession(provider, clock=clock)
    store = SessionStore(
        session, remote, memory_store, clock=clock, live_tick_interval_s=None
    )
    yield store
    store.close()


def test_run_lifecycle_records_and_persists(store, provider, clock, memory_store):
    assert store.start_run() is True
    assert store.is_running
    for sample in make_walk_north(count=12, step_m=50.0, speed=3.0, altitudes=[10.0 + i for i in range(12)]):
        provider.push(sample)
        clock.advance(10.0)

    run = store.stop_run()

    assert not store.is_running
    assert run.type == "solo"
    assert run.route == "GPS Tracked Run"
    assert run.duration == 120
    assert run.distance == pytest.approx(0.55, abs=0.01)
    assert run.pace == round(run.pace, 1)
    assert run.avg_speed == pytest.approx(16.5, abs=0.2)
    assert run.cadence > 0
    # 0.549 km and 11 m of climbing.
    assert run.calories == 37
    assert run.id == str(int(clock() * 1000))
    assert store.get_run_history()[0] == run
    assert store.get_live_stats() == LiveStats()
    saved = json.loads(memory_store.get("runs"))
    assert saved[0]["id"] == run.id
    assert saved[0]["avgSpeed"] == run.avg_speed
    assert provider.active_subscriptions == 0


def test_new_runs_are_prepended(store, provider, clock):
    ids = []
    for _ in range(2):
        store.start_run()
        provider.push(make_walk_north(count=1)[0])
        clock.advance(5.0)
        ids.append(store.stop_run().id)
    assert [run.id for run in store.get_run_history()] == list(reversed(ids))


def test_stop_when_idle_is_noop(store, memory_store):
    assert store.stop_run() is None
    assert memory_store.get("runs") is None


def test_zero_duration_run_has_zero_speed(store, provider):
    store.start_run()
    provider.push(make_walk_north(count=1)[0])
    run = store.stop_run()
    assert run.duration == 0
    assert run.avg_speed == 0.0
    assert run.pace == 0.0


def test_denied_start_does_not_transition(clock, remote, memory_store):
    provider = ReplayLocationProvider(permission=PermissionStatus.DENIED)
    store = SessionStore(
        PositioningSession(provider, clock=clock), remote, memory_store, live_tick_interval_s=None
    )
    assert store.start_run() is False
    assert not store.is_running
    assert provider.active_subscriptions == 0
    assert store.stop_run() is None


def test_second_start_keeps_active_run(store, provider, clock):
    assert store.start_run()
    provider.push(make_walk_north(count=1)[0])
    context = store.current_run
    clock.advance(5.0)
    assert store.start_run() is True
    assert store.current_run is context
    assert provider.active_subscriptions == 1
    assert len(store.stop_run().coordinates) == 1


def test_live_tick_projects_buffer(store, provider, clock):
    published = []
    store._on_live_stats = published.append
    assert store.tick() == LiveStats()
    store.start_run()
    for sample in make_walk_north(count=3, step_m=100.0):
        provider.push(sample)
        clock.advance(30.0)
    stats = store.tick()
    assert stats.distance == pytest.approx(0.2, rel=0.01)
    assert stats.pace == pytest.approx(1.5 / 0.2, rel=0.01)
    assert stats.cadence == 0
    assert store.get_live_stats() == stats
    assert published == [stats]


def test_pause_freezes_accumulation(store, provider, clock):
    walk = make_walk_north(count=3, step_m=100.0)
    store.start_run()
    provider.push(walk[0])
    store.pause_run()
    assert store.current_run.paused
    provider.push(walk[1])
    store.resume_run()
    provider.push(walk[2])
    clock.advance(60.0)
    run = store.stop_run()
    assert len(run.coordinates) == 2
    assert run.distance == pytest.approx(0.2, abs=0.01)


def test_history_loaded_from_storage(provider, clock, remote):
    existing = Run(id="1", date="2024-01-01", duration=600, distance=2.0, pace=5.0, calories=130)
    storage = MemoryKeyValueStore({"runs": json.dumps([existing.to_dict()]), "gaitTests": "oops"})
    store = SessionStore(
        PositioningSession(provider, clock=clock), remote, storage, live_tick_interval_s=None
    )
    assert store.get_run_history() == [existing]
    assert store.get_gait_tests() == []


def test_add_gait_test_prepends_and_persists(store, memory_store, clock):
    first = store.add_gait_test(80, "Solid", ["Relax shoulders"])
    clock.advance(1.0)
    second = store.add_gait_test(85, "Better")
    assert store.get_gait_tests() == [second, first]
    saved = json.loads(memory_store.get("gaitTests"))
    assert [row["id"] for row in saved] == [second.id, first.id]


def test_route_area_matches_geodesy(store):
    assert store.calculate_route_area(make_square()) == pytest.approx(1.0, rel=0.05)
    assert store.calculate_route_area(make_walk_north(count=2)) == 0.0


def test_create_group_run_visible_on_next_fetch(store):
    before = store.group_runs()
    created = store.create_group_run(DRAFT)
    after = store.group_runs()
    assert created.id not in {r.id for r in before}
    assert created.id in {r.id for r in after}


def test_reads_are_cached_within_stale_window(store, remote):
    store.group_runs()
    store.group_runs()
    assert remote.calls.count("fetch_group_runs") == 1


def test_failed_write_leaves_cache_untouched(provider, clock, memory_store, caplog):
    remote = FlakyRemote(**demo_seed())
    store = SessionStore(
        PositioningSession(provider, clock=clock), remote, memory_store, live_tick_interval_s=None
    )
    cached = store.group_runs()
    remote.fail_writes = True
    with caplog.at_level(logging.ERROR):
        with pytest.raises(RemoteAPIError):
            store.create_group_run(DRAFT)
    assert "Create group run failed" in caplog.text
    assert store._queries.is_stale(GROUP_RUNS) is False
    assert store.group_runs() == cached


def test_failed_read_falls_back_to_last_good(provider, clock, memory_store):
    remote = FlakyRemote(**demo_seed())
    store = SessionStore(
        PositioningSession(provider, clock=clock),
        remote,
        memory_store,
        live_tick_interval_s=None,
        query_policies={TASKS: QueryPolicy(0.001, 60.0)},
    )
    tasks = store.tasks()
    remote.fail_writes = True
    assert store.tasks() == tasks
    with pytest.raises(RemoteAPIError):
        store.refresh_tasks()


def test_refresh_all_reports_each_collection(store):
    assert store.refresh_all() == {"groupRuns": True, "tasks": True, "teamRunGames": True}
    assert not store.is_loading(GROUP_RUNS)


def test_complete_task_and_join_group_run(store):
    assert store.complete_task("1").completed is True
    assert [t.completed for t in store.tasks() if t.id == "1"] == [True]
    joined = store.join_group_run("1")
    assert joined.participants == 4
    store.delete_group_run("2")
    assert [r.id for r in store.group_runs()] == ["1"]


def test_start_team_game_requires_creator(store):
    with pytest.raises(GameStateError):
        store.start_team_run_game("1", "Not Alex")
    started = store.start_team_run_game("1", "Alex Runner")
    assert started.status.value == "active"
    with pytest.raises(RemoteNotFoundError):
        store.start_team_run_game("missing", "Alex Runner")


def test_finish_game_route_scores_once(store):
    game = store.join_team_run_game("1", "Robin")
    participant = game.participants[-1]
    update = store.finish_game_route("1", participant.id, make_square(close=True), 1500)
    assert update["area"] == pytest.approx(1.0, rel=0.05)
    refreshed = [g for g in store.team_run_games() if g.id == "1"][0]
    assert refreshed.participant(participant.id).completed
    with pytest.raises(GameStateError):
        store.finish_game_route("1", participant.id, make_square(), 10)


def test_submit_photo_invalidates_games(store):
    store.team_run_games()
    store.submit_game_photo(
        "2",
        "p3",
        {"checkpointId": "cp5", "uri": "file://tower.jpg", "timestamp": 5, "latitude": 40.758, "longitude": -73.9855},
    )
    game = [g for g in store.team_run_games() if g.id == "2"][0]
    assert game.participant("p3").photos[0].uri == "file://tower.jpg"


def test_live_ticker_thread_runs_while_running(provider, remote, memory_store):
    import threading

    ticked = threading.Event()
    store = SessionStore(
        PositioningSession(provider),
        remote,
        memory_store,
        live_tick_interval_s=0.01,
        on_live_stats=lambda _stats: ticked.set(),
    )
    store.start_run()
    assert ticked.wait(2.0)
    store.stop_run()
    store.close()
