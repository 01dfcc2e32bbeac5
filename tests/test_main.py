import importlib
import json

import pytest

main_mod = importlib.import_module("campus_run.main")
from campus_run.models import coordinates_to_dicts
from campus_run.persistence import MemoryKeyValueStore

from conftest import make_square, make_walk_north


def test_replay_track_uses_track_time():
    samples = make_walk_north(count=12, step_m=50.0, speed=3.0, interval_ms=10_000)
    result = main_mod.replay_track(samples, MemoryKeyValueStore(), offline=True)
    run = result["run"]
    assert run["duration"] == 110
    assert run["distance"] == pytest.approx(0.55, abs=0.01)
    assert result["analysis"]["routeType"] == "point-to-point"
    assert len(result["history"]) == 1


def test_main_writes_summary_and_recap(tmp_path, capsys):
    track = tmp_path / "track.json"
    track.write_text(json.dumps(coordinates_to_dicts(make_square(close=True))), encoding="utf-8")
    recap = tmp_path / "recap.xlsx"
    storage = tmp_path / "store.json"

    code = main_mod.main([str(track), "--storage", str(storage), "--recap-file", str(recap)])

    assert code == 0
    out = json.loads(capsys.readouterr().out)
    assert out["analysis"]["routeType"] == "loop"
    assert out["areaKm2"] == pytest.approx(1.0, rel=0.05)
    assert "coordinates" not in out["run"]
    assert out["recap"]["runs"] == 1
    assert recap.exists()
    assert json.loads(json.loads(storage.read_text(encoding="utf-8"))["runs"])[0]["id"] == out["run"]["id"]


def test_main_reports_bad_track(tmp_path):
    track = tmp_path / "bad.json"
    track.write_text("{}", encoding="utf-8")
    assert main_mod.main([str(track), "--no-persist"]) == 1
