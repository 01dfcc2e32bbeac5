import json
import logging

import pytest
import requests

from campus_run.errors import (
    RemoteAPIError,
    RemoteConflictError,
    RemoteNotFoundError,
    RemotePermissionError,
)
from campus_run.remote_client import HttpRemoteDataSource
from campus_run.remote_client.http import decode_route, encode_route
from campus_run.remote_client.response_handling import extract_error

BASE = "https://api.example.test"


class FakeResp:
    """Minimal fake response matching needed parts of requests.Response."""

    def __init__(self, status_code=200, data=None, raw_text=None):
        self.status_code = status_code
        self._data = data
        self._raw_text = raw_text
        self.url = BASE

    def json(self):
        if self._raw_text is not None:
            raise ValueError("not json")
        return self._data

    @property
    def text(self):
        if self._raw_text is not None:
            return self._raw_text
        return "" if self._data is None else json.dumps(self._data)

    @property
    def content(self):
        return self.text.encode()


class FakeSession:
    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    def request(self, method, url, json=None, timeout=None):
        self.calls.append({"method": method, "url": url, "json": json, "timeout": timeout})
        result = self.responses.pop(0)
        if isinstance(result, Exception):
            raise result
        return result


def _client(*responses, retries=3):
    session = FakeSession(*responses)
    sleeps = []
    client = HttpRemoteDataSource(
        BASE, session=session, max_retries=retries, sleep=sleeps.append
    )
    return client, session, sleeps


GROUP_RUN = {
    "id": "7",
    "title": "Hill Repeats",
    "date": "2024-02-02",
    "time": "7:00 AM",
    "distance": 6.0,
    "pace": "5:45",
    "participants": 2,
    "maxParticipants": 6,
    "location": "North Gate",
    "organizer": "Kai",
    "difficulty": "hard",
}


def test_fetch_group_runs_parses_models():
    client, session, _ = _client(FakeResp(200, [GROUP_RUN]))
    runs = client.fetch_group_runs()
    assert runs[0].max_participants == 6
    assert session.calls[0]["method"] == "GET"
    assert session.calls[0]["url"] == f"{BASE}/group-runs"


def test_retries_server_errors_with_backoff():
    client, session, sleeps = _client(
        FakeResp(503, {"message": "busy"}),
        FakeResp(429),
        FakeResp(200, [GROUP_RUN]),
    )
    assert len(client.fetch_group_runs()) == 1
    assert sleeps == [1.0, 2.0]
    assert len(session.calls) == 3


def test_network_errors_raise_after_retries(caplog):
    client, _, sleeps = _client(
        requests.ConnectionError("a"), requests.ConnectionError("b"), retries=2
    )
    with caplog.at_level(logging.ERROR):
        with pytest.raises(RemoteAPIError):
            client.fetch_tasks()
    assert sleeps == [1.0]
    assert "network error" in caplog.text


@pytest.mark.parametrize(
    "status,error",
    [
        (401, RemotePermissionError),
        (403, RemotePermissionError),
        (404, RemoteNotFoundError),
        (409, RemoteConflictError),
        (400, RemoteAPIError),
    ],
)
def test_status_mapping(status, error):
    client, _, sleeps = _client(FakeResp(status, {"message": "nope"}))
    with pytest.raises(error) as info:
        client.join_group_run("7")
    assert "nope" in str(info.value)
    assert sleeps == []


def test_server_error_on_last_attempt_raises():
    client, _, _ = _client(FakeResp(500), FakeResp(502), retries=2)
    with pytest.raises(RemoteAPIError):
        client.fetch_team_run_games()


def test_non_json_success_raises():
    client, _, _ = _client(FakeResp(200, raw_text="<html>"))
    with pytest.raises(RemoteAPIError):
        client.fetch_group_runs()


def test_wrong_payload_shape_raises():
    client, _, _ = _client(FakeResp(200, {"items": []}))
    with pytest.raises(RemoteAPIError):
        client.fetch_group_runs()


def test_writes_send_json_bodies():
    client, session, _ = _client(
        FakeResp(200, {**GROUP_RUN, "title": "Renamed"}),
        FakeResp(200, {"id": "3", "title": "T", "completed": True}),
        FakeResp(204),
    )
    assert client.update_group_run("7", {"title": "Renamed"}).title == "Renamed"
    assert client.update_task_completion("3", True).completed is True
    client.delete_group_run("7")
    assert [c["method"] for c in session.calls] == ["PATCH", "PATCH", "DELETE"]
    assert session.calls[1]["json"] == {"completed": True}
    assert session.calls[2]["url"] == f"{BASE}/group-runs/7"


def test_participant_update_adds_encoded_route():
    route = [
        {"latitude": 38.5, "longitude": -120.2, "timestamp": 1},
        {"latitude": 40.7, "longitude": -120.95, "timestamp": 2},
        {"latitude": 43.252, "longitude": -126.453, "timestamp": 3},
    ]
    client, session, _ = _client(FakeResp(204))
    client.update_game_participant("g1", "p1", {"route": route, "completed": True})
    body = session.calls[0]["json"]
    assert body["routePolyline"] == "_p~iF~ps|U_ulLnnqC_mqNvxq`@"
    assert session.calls[0]["url"] == f"{BASE}/team-run-games/g1/participants/p1"


def test_games_expand_encoded_routes():
    encoded = encode_route([{"latitude": 40.0, "longitude": -74.0}, {"latitude": 40.001, "longitude": -74.0}])
    game = {
        "id": "g1",
        "title": "Capture",
        "createdBy": "Alex",
        "status": "active",
        "gameArea": {"center": {"latitude": 40.0, "longitude": -74.0}, "radius": 500},
        "participants": [{"id": "p1", "name": "A", "routePolyline": encoded}],
    }
    client, _, _ = _client(FakeResp(200, [game]))
    parsed = client.fetch_team_run_games()[0]
    route = parsed.participant("p1").route
    assert [(c.latitude, c.longitude) for c in route] == [(40.0, -74.0), (40.001, -74.0)]
    assert decode_route(encoded)[0]["timestamp"] == 0


def test_extract_error_prefers_json_fields_then_text():
    resp = FakeResp(422, {"message": "Invalid", "errors": [{"field": "title", "code": "missing"}]})
    assert extract_error(resp) == "Invalid | title:missing"
    assert extract_error(FakeResp(500, raw_text="  upstream failed  ")) == "upstream failed"
    assert extract_error(None) is None


def test_writes_are_not_resent_after_timeout():
    client, session, sleeps = _client(
        requests.ReadTimeout("slow"), FakeResp(200, GROUP_RUN)
    )
    with pytest.raises(RemoteAPIError):
        client.create_group_run({"title": "Hill Repeats"})
    assert [c["method"] for c in session.calls] == ["POST"]
    assert sleeps == []


def test_writes_are_not_resent_after_server_error():
    client, session, _ = _client(FakeResp(503), FakeResp(200, {"id": "3", "completed": True}))
    with pytest.raises(RemoteAPIError):
        client.update_task_completion("3", True)
    assert [c["method"] for c in session.calls] == ["PATCH"]


def test_deletes_are_retried():
    client, session, sleeps = _client(requests.ConnectionError("reset"), FakeResp(204))
    client.delete_group_run("7")
    assert [c["method"] for c in session.calls] == ["DELETE", "DELETE"]
    assert sleeps == [1.0]
