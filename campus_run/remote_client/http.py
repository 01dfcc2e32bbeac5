"""REST implementation of :class:`RemoteDataSource` over ``requests``."""

from __future__ import annotations

import logging
import time
from typing import Any, Dict, List, Mapping, Optional

import requests
from polyline import decode as polyline_decode
from polyline import encode as polyline_encode

from ..config import REMOTE_BACKOFF_MAX_SECONDS, REMOTE_MAX_RETRIES, REQUEST_TIMEOUT
from ..errors import RemoteAPIError
from ..models import GroupRun, Task, TeamRunGame
from .base import Payload, RemoteDataSource
from .response_handling import classify_response_status
from .session import IDEMPOTENT_METHODS, create_default_session

LOGGER = logging.getLogger(__name__)

ROUTE_POLYLINE_KEY = "routePolyline"


def encode_route(route: List[Mapping[str, Any]]) -> str:
    """Encode a wire route as a Google polyline (lat/lng only)."""

    return polyline_encode([(float(p["latitude"]), float(p["longitude"])) for p in route])


def decode_route(encoded: str) -> List[Dict[str, Any]]:
    return [
        {"latitude": lat, "longitude": lng, "timestamp": 0}
        for lat, lng in polyline_decode(encoded)
    ]


class HttpRemoteDataSource(RemoteDataSource):
    """Talks to the campus backend with retries, backoff and typed errors."""

    def __init__(
        self,
        base_url: str,
        *,
        session: requests.Session | None = None,
        timeout: int = REQUEST_TIMEOUT,
        max_retries: int = REMOTE_MAX_RETRIES,
        sleep=time.sleep,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._session = session or create_default_session()
        self._timeout = timeout
        self._max_retries = max(1, max_retries)
        self._sleep = sleep

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------
    def _request(
        self,
        method: str,
        path: str,
        context: str,
        *,
        payload: Optional[Mapping[str, Any]] = None,
    ) -> Any:
        url = f"{self._base_url}{path}"
        backoff = 1.0
        attempt = 0
        while True:
            attempt += 1
            can_retry = method in IDEMPOTENT_METHODS and attempt < self._max_retries
            try:
                response = self._session.request(
                    method,
                    url,
                    json=dict(payload) if payload is not None else None,
                    timeout=self._timeout,
                )
            except requests.RequestException as exc:
                if can_retry:
                    LOGGER.warning(
                        "%s network error attempt=%s err=%s; retrying in %.1fs",
                        context,
                        attempt,
                        exc.__class__.__name__,
                        backoff,
                    )
                    self._sleep(backoff)
                    backoff = min(backoff * 2, REMOTE_BACKOFF_MAX_SECONDS)
                    continue
                message = f"{context} network error: {exc.__class__.__name__}"
                LOGGER.error(message)
                raise RemoteAPIError(message) from exc

            action, error = classify_response_status(
                response,
                context,
                attempt=attempt,
                backoff=backoff,
                can_retry=can_retry,
            )
            if action == "retry":
                self._sleep(backoff)
                backoff = min(backoff * 2, REMOTE_BACKOFF_MAX_SECONDS)
                continue
            if action == "raise" and error is not None:
                raise error

            if response.status_code == 204 or not response.content:
                return None
            try:
                return response.json()
            except ValueError as exc:
                message = f"{context} returned non-JSON payload"
                LOGGER.error(message)
                raise RemoteAPIError(message) from exc

    def _expect_list(self, data: Any, context: str) -> List[Mapping[str, Any]]:
        if not isinstance(data, list):
            raise RemoteAPIError(f"{context} expected a list, got {type(data).__name__}")
        return data

    def _expect_object(self, data: Any, context: str) -> Mapping[str, Any]:
        if not isinstance(data, dict):
            raise RemoteAPIError(
                f"{context} expected an object, got {type(data).__name__}"
            )
        return data

    # Group runs -------------------------------------------------------
    def fetch_group_runs(self) -> List[GroupRun]:
        context = "Group runs fetch"
        rows = self._expect_list(self._request("GET", "/group-runs", context), context)
        return [GroupRun.from_dict(row) for row in rows]

    def create_group_run(self, draft: Payload) -> GroupRun:
        context = "Group run create"
        data = self._request("POST", "/group-runs", context, payload=draft)
        return GroupRun.from_dict(self._expect_object(data, context))

    def update_group_run(self, group_run_id: str, updates: Payload) -> GroupRun:
        context = f"Group run {group_run_id} update"
        data = self._request(
            "PATCH", f"/group-runs/{group_run_id}", context, payload=updates
        )
        return GroupRun.from_dict(self._expect_object(data, context))

    def delete_group_run(self, group_run_id: str) -> None:
        self._request(
            "DELETE", f"/group-runs/{group_run_id}", f"Group run {group_run_id} delete"
        )

    def join_group_run(self, group_run_id: str) -> GroupRun:
        context = f"Group run {group_run_id} join"
        data = self._request("POST", f"/group-runs/{group_run_id}/join", context)
        return GroupRun.from_dict(self._expect_object(data, context))

    # Tasks --------------------------------------------------------------
    def fetch_tasks(self) -> List[Task]:
        context = "Tasks fetch"
        rows = self._expect_list(self._request("GET", "/tasks", context), context)
        return [Task.from_dict(row) for row in rows]

    def update_task_completion(self, task_id: str, completed: bool) -> Task:
        context = f"Task {task_id} completion"
        data = self._request(
            "PATCH", f"/tasks/{task_id}", context, payload={"completed": bool(completed)}
        )
        return Task.from_dict(self._expect_object(data, context))

    # Team run games -----------------------------------------------------
    def fetch_team_run_games(self) -> List[TeamRunGame]:
        context = "Team run games fetch"
        rows = self._expect_list(self._request("GET", "/team-run-games", context), context)
        return [_game_from_wire(row) for row in rows]

    def create_team_run_game(self, draft: Payload) -> TeamRunGame:
        context = "Team run game create"
        data = self._request("POST", "/team-run-games", context, payload=draft)
        return _game_from_wire(self._expect_object(data, context))

    def join_team_run_game(self, game_id: str, participant_name: str) -> TeamRunGame:
        context = f"Team run game {game_id} join"
        data = self._request(
            "POST",
            f"/team-run-games/{game_id}/join",
            context,
            payload={"participantName": participant_name},
        )
        return _game_from_wire(self._expect_object(data, context))

    def start_team_run_game(self, game_id: str) -> TeamRunGame:
        context = f"Team run game {game_id} start"
        data = self._request("POST", f"/team-run-games/{game_id}/start", context)
        return _game_from_wire(self._expect_object(data, context))

    def submit_game_photo(
        self, game_id: str, participant_id: str, photo: Payload
    ) -> None:
        self._request(
            "POST",
            f"/team-run-games/{game_id}/participants/{participant_id}/photos",
            f"Team run game {game_id} photo",
            payload=photo,
        )

    def update_game_participant(
        self, game_id: str, participant_id: str, updates: Payload
    ) -> None:
        body = dict(updates)
        route = body.get("route")
        if route:
            body[ROUTE_POLYLINE_KEY] = encode_route(route)
        self._request(
            "PATCH",
            f"/team-run-games/{game_id}/participants/{participant_id}",
            f"Team run game {game_id} participant {participant_id} update",
            payload=body,
        )


def _game_from_wire(row: Mapping[str, Any]) -> TeamRunGame:
    """Parse a game, expanding participants that only carry an encoded route."""

    participants = []
    for participant in row.get("participants") or []:
        encoded = participant.get(ROUTE_POLYLINE_KEY)
        if encoded and not participant.get("route"):
            participant = {**participant, "route": decode_route(encoded)}
        participants.append(participant)
    return TeamRunGame.from_dict({**row, "participants": participants})


__all__ = ["HttpRemoteDataSource", "encode_route", "decode_route"]
