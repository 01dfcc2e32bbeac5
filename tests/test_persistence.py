import json
import logging

import pytest

from campus_run.errors import StorageError
from campus_run.models import Coordinate, GaitTest, Run
from campus_run.persistence import (
    JsonFileKeyValueStore,
    MemoryKeyValueStore,
    RunHistoryRepository,
)


def _run(run_id="1", **overrides):
    data = dict(
        id=run_id,
        date="2024-01-15",
        duration=1500,
        distance=5.0,
        pace=5.0,
        calories=325,
        route="GPS Tracked Run",
        coordinates=[Coordinate(40.0, -74.0, 1, altitude=12.5)],
        cadence=165,
        avg_speed=12.0,
    )
    data.update(overrides)
    return Run(**data)


def test_memory_store_get_set():
    store = MemoryKeyValueStore()
    assert store.get("runs") is None
    store.set("runs", "[]")
    assert store.get("runs") == "[]"


def test_runs_persist_with_camel_case_keys(memory_store):
    repo = RunHistoryRepository(memory_store)
    repo.save_runs([_run("2"), _run("1")])

    raw = json.loads(memory_store.get("runs"))
    assert [row["id"] for row in raw] == ["2", "1"]
    assert raw[0]["avgSpeed"] == 12.0
    assert raw[0]["coordinates"][0] == {
        "latitude": 40.0,
        "longitude": -74.0,
        "timestamp": 1,
        "altitude": 12.5,
    }
    assert repo.load_runs() == [_run("2"), _run("1")]


def test_gait_tests_use_their_own_key(memory_store):
    repo = RunHistoryRepository(memory_store)
    test = GaitTest(id="g1", date="2024-01-10", score=82, feedback="Good", improvements=["Lean"])
    repo.save_gait_tests([test])
    assert memory_store.get("runs") is None
    assert repo.load_gait_tests() == [test]


@pytest.mark.parametrize("raw", ["{not json", '{"id": 1}', '[{"date": "2024"}]'])
def test_corrupt_snapshot_is_treated_as_empty(memory_store, caplog, raw):
    memory_store.set("runs", raw)
    repo = RunHistoryRepository(memory_store)
    with caplog.at_level(logging.WARNING):
        assert repo.load_runs() == []
    assert "Discarding corrupt runs snapshot" in caplog.text


def test_json_file_store_round_trips_and_replaces_atomically(tmp_path):
    path = tmp_path / "nested" / "store.json"
    store = JsonFileKeyValueStore(path)
    assert store.get("runs") is None
    store.set("runs", "[1]")
    store.set("gaitTests", "[]")

    reopened = JsonFileKeyValueStore(path)
    assert reopened.get("runs") == "[1]"
    assert reopened.get("gaitTests") == "[]"
    assert not path.with_suffix(".tmp").exists()


def test_json_file_store_ignores_unreadable_file(tmp_path, caplog):
    path = tmp_path / "store.json"
    path.write_text("garbage", encoding="utf-8")
    store = JsonFileKeyValueStore(path)
    with caplog.at_level(logging.ERROR):
        assert store.get("runs") is None
    assert "Failed reading store file" in caplog.text


def test_json_file_store_write_failure_raises_storage_error(tmp_path):
    blocker = tmp_path / "blocker"
    blocker.write_text("", encoding="utf-8")
    store = JsonFileKeyValueStore(blocker / "store.json")
    with pytest.raises(StorageError):
        store.set("runs", "[]")
