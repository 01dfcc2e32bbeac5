"""Thread-safe in-memory backend used for offline/demo mode and tests."""

from __future__ import annotations

import copy
import itertools
import logging
import threading
from typing import Any, Dict, List, Mapping, Optional

from ..errors import RemoteConflictError, RemoteNotFoundError
from ..models import GamePhoto, GameStatus, GroupRun, Task, TeamRunGame
from ..utils import now_ms
from .base import Payload, RemoteDataSource

LOGGER = logging.getLogger(__name__)


class InMemoryRemoteDataSource(RemoteDataSource):
    """Keeps wire dictionaries in memory and applies writes immediately.

    Stored payloads are copied on the way in and out so callers never share
    mutable state with the backend, mirroring a real network boundary.
    """

    def __init__(
        self,
        *,
        group_runs: Optional[List[Payload]] = None,
        tasks: Optional[List[Payload]] = None,
        team_run_games: Optional[List[Payload]] = None,
        current_user: str = "You",
    ) -> None:
        self._lock = threading.RLock()
        self._ids = itertools.count(1)
        self._current_user = current_user
        self._group_runs: Dict[str, Dict[str, Any]] = _index(group_runs)
        self._tasks: Dict[str, Dict[str, Any]] = _index(tasks)
        self._games: Dict[str, Dict[str, Any]] = _index(team_run_games)
        self.calls: List[str] = []

    def _new_id(self) -> str:
        return f"{now_ms()}-{next(self._ids)}"

    def _record(self, name: str) -> None:
        self.calls.append(name)
        LOGGER.debug("In-memory remote call: %s", name)

    # Group runs -------------------------------------------------------
    def fetch_group_runs(self) -> List[GroupRun]:
        with self._lock:
            self._record("fetch_group_runs")
            return [GroupRun.from_dict(row) for row in self._group_runs.values()]

    def create_group_run(self, draft: Payload) -> GroupRun:
        with self._lock:
            self._record("create_group_run")
            row = copy.deepcopy(dict(draft))
            row.update(
                {"id": self._new_id(), "participants": 1, "organizer": self._current_user}
            )
            created = GroupRun.from_dict(row)
            self._group_runs[created.id] = created.to_dict()
            return GroupRun.from_dict(self._group_runs[created.id])

    def update_group_run(self, group_run_id: str, updates: Payload) -> GroupRun:
        with self._lock:
            self._record("update_group_run")
            row = self._require(self._group_runs, group_run_id, "Group run")
            merged = {**row, **copy.deepcopy(dict(updates)), "id": group_run_id}
            self._group_runs[group_run_id] = GroupRun.from_dict(merged).to_dict()
            return GroupRun.from_dict(self._group_runs[group_run_id])

    def delete_group_run(self, group_run_id: str) -> None:
        with self._lock:
            self._record("delete_group_run")
            self._require(self._group_runs, group_run_id, "Group run")
            del self._group_runs[group_run_id]

    def join_group_run(self, group_run_id: str) -> GroupRun:
        with self._lock:
            self._record("join_group_run")
            row = self._require(self._group_runs, group_run_id, "Group run")
            run = GroupRun.from_dict(row)
            if run.max_participants and run.participants >= run.max_participants:
                raise RemoteConflictError(f"Group run {group_run_id} is full")
            run.participants += 1
            self._group_runs[group_run_id] = run.to_dict()
            return GroupRun.from_dict(self._group_runs[group_run_id])

    # Tasks --------------------------------------------------------------
    def fetch_tasks(self) -> List[Task]:
        with self._lock:
            self._record("fetch_tasks")
            return [Task.from_dict(row) for row in self._tasks.values()]

    def update_task_completion(self, task_id: str, completed: bool) -> Task:
        with self._lock:
            self._record("update_task_completion")
            row = self._require(self._tasks, task_id, "Task")
            row["completed"] = bool(completed)
            return Task.from_dict(row)

    # Team run games -----------------------------------------------------
    def fetch_team_run_games(self) -> List[TeamRunGame]:
        with self._lock:
            self._record("fetch_team_run_games")
            return [TeamRunGame.from_dict(row) for row in self._games.values()]

    def create_team_run_game(self, draft: Payload) -> TeamRunGame:
        with self._lock:
            self._record("create_team_run_game")
            row = copy.deepcopy(dict(draft))
            row.update(
                {
                    "id": self._new_id(),
                    "participants": [],
                    "status": GameStatus.PENDING.value,
                }
            )
            row.setdefault("createdBy", self._current_user)
            game = TeamRunGame.from_dict(row)
            self._games[game.id] = game.to_dict()
            return TeamRunGame.from_dict(self._games[game.id])

    def join_team_run_game(self, game_id: str, participant_name: str) -> TeamRunGame:
        with self._lock:
            self._record("join_team_run_game")
            game = TeamRunGame.from_dict(self._require(self._games, game_id, "Team run game"))
            if game.status is GameStatus.COMPLETED:
                raise RemoteConflictError(f"Team run game {game_id} has finished")
            row = self._games[game_id]
            row["participants"].append(
                {
                    "id": self._new_id(),
                    "name": participant_name,
                    "route": [],
                    "photos": [],
                    "area": 0,
                    "distance": 0,
                    "completionTime": 0,
                    "completed": False,
                }
            )
            return TeamRunGame.from_dict(row)

    def start_team_run_game(self, game_id: str) -> TeamRunGame:
        with self._lock:
            self._record("start_team_run_game")
            row = self._require(self._games, game_id, "Team run game")
            if row.get("status") != GameStatus.PENDING.value:
                raise RemoteConflictError(
                    f"Team run game {game_id} is {row.get('status')}, not pending"
                )
            row["status"] = GameStatus.ACTIVE.value
            row["startTime"] = now_ms()
            return TeamRunGame.from_dict(row)

    def submit_game_photo(
        self, game_id: str, participant_id: str, photo: Payload
    ) -> None:
        with self._lock:
            self._record("submit_game_photo")
            participant = self._participant(game_id, participant_id)
            stored = GamePhoto.from_dict({**dict(photo), "id": self._new_id()})
            participant.setdefault("photos", []).append(stored.to_dict())

    def update_game_participant(
        self, game_id: str, participant_id: str, updates: Payload
    ) -> None:
        with self._lock:
            self._record("update_game_participant")
            participant = self._participant(game_id, participant_id)
            participant.update(copy.deepcopy(dict(updates)))
            participant["id"] = participant_id

    # Helpers ------------------------------------------------------------
    def _participant(self, game_id: str, participant_id: str) -> Dict[str, Any]:
        row = self._require(self._games, game_id, "Team run game")
        for participant in row.get("participants", []):
            if participant.get("id") == participant_id:
                return participant
        raise RemoteNotFoundError(
            f"Participant {participant_id} not found in team run game {game_id}"
        )

    @staticmethod
    def _require(
        table: Dict[str, Dict[str, Any]], entity_id: str, label: str
    ) -> Dict[str, Any]:
        row = table.get(entity_id)
        if row is None:
            raise RemoteNotFoundError(f"{label} {entity_id} not found")
        return row


def _index(rows: Optional[List[Mapping[str, Any]]]) -> Dict[str, Dict[str, Any]]:
    return {str(row["id"]): copy.deepcopy(dict(row)) for row in rows or []}


def demo_seed() -> Dict[str, List[Dict[str, Any]]]:
    """Sample campus data for the offline demo backend."""

    return {
        "group_runs": [
            {
                "id": "1",
                "title": "Morning Campus Loop",
                "date": "2024-01-15",
                "time": "7:00 AM",
                "distance": 5.2,
                "pace": "5:30",
                "participants": 3,
                "maxParticipants": 8,
                "location": "Main Campus Entrance",
                "organizer": "Sarah Chen",
                "difficulty": "medium",
            },
            {
                "id": "2",
                "title": "Sunset River Trail",
                "date": "2024-01-15",
                "time": "6:30 PM",
                "distance": 7.1,
                "pace": "6:00",
                "participants": 5,
                "maxParticipants": 10,
                "location": "River Trail Start",
                "organizer": "Mike Johnson",
                "difficulty": "easy",
            },
        ],
        "tasks": [
            {
                "id": "1",
                "title": "Find the Hidden Garden",
                "description": "Discover the botanical garden behind the library.",
                "location": "University Library Area",
                "distance": 2.1,
                "reward": 50,
                "difficulty": "easy",
                "completed": False,
                "type": "exploration",
            },
            {
                "id": "2",
                "title": "Sprint Challenge",
                "description": "Complete 5 x 100m sprints with 30-second rests.",
                "location": "Athletic Track",
                "distance": 0.5,
                "reward": 75,
                "difficulty": "hard",
                "completed": False,
                "type": "challenge",
            },
        ],
        "team_run_games": [
            {
                "id": "1",
                "title": "Campus Explorer Challenge",
                "description": "Visit all checkpoints and enclose the largest area.",
                "date": "2024-01-16",
                "time": "2:00 PM",
                "createdBy": "Alex Runner",
                "status": "pending",
                "checkpoints": [
                    {"id": "cp1", "latitude": 40.7589, "longitude": -73.9851, "name": "Library Entrance"},
                    {"id": "cp2", "latitude": 40.7614, "longitude": -73.9776, "name": "Student Center"},
                    {"id": "cp3", "latitude": 40.7505, "longitude": -73.9934, "name": "Athletic Complex"},
                ],
                "participants": [],
                "gameArea": {
                    "center": {"latitude": 40.7549, "longitude": -73.9840},
                    "radius": 2000,
                },
            },
            {
                "id": "2",
                "title": "Weekend Warriors Route Race",
                "description": "Design your route and maximize your area.",
                "date": "2024-01-20",
                "time": "9:00 AM",
                "createdBy": "Emma Davis",
                "status": "active",
                "startTime": now_ms() - 30 * 60 * 1000,
                "checkpoints": [
                    {"id": "cp5", "latitude": 40.7580, "longitude": -73.9855, "name": "Clock Tower"},
                    {"id": "cp6", "latitude": 40.7520, "longitude": -73.9800, "name": "Science Building"},
                    {"id": "cp7", "latitude": 40.7600, "longitude": -73.9780, "name": "Art Gallery"},
                ],
                "participants": [
                    {"id": "p3", "name": "You", "route": [], "photos": [], "area": 0, "distance": 0, "completionTime": 0, "completed": False},
                    {"id": "p4", "name": "Jordan Smith", "route": [], "photos": [], "area": 1.2, "distance": 3.4, "completionTime": 0, "completed": False},
                    {"id": "p5", "name": "Taylor Brown", "route": [], "photos": [], "area": 0.8, "distance": 2.1, "completionTime": 0, "completed": False},
                ],
                "gameArea": {
                    "center": {"latitude": 40.7560, "longitude": -73.9820},
                    "radius": 1500,
                },
            },
        ],
    }


__all__ = ["InMemoryRemoteDataSource", "demo_seed"]
