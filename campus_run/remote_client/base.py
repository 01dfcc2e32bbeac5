"""Remote data collaborator contract: eventually-consistent lists plus CRUD.

Drafts and partial updates use the wire (camelCase) keys produced by the
model ``to_dict`` methods. Every call may raise
:class:`~campus_run.errors.RemoteAPIError`.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, List, Mapping

from ..models import GroupRun, Task, TeamRunGame

Payload = Mapping[str, Any]


class RemoteDataSource(ABC):
    # Group runs -------------------------------------------------------
    @abstractmethod
    def fetch_group_runs(self) -> List[GroupRun]: ...

    @abstractmethod
    def create_group_run(self, draft: Payload) -> GroupRun: ...

    @abstractmethod
    def update_group_run(self, group_run_id: str, updates: Payload) -> GroupRun: ...

    @abstractmethod
    def delete_group_run(self, group_run_id: str) -> None: ...

    @abstractmethod
    def join_group_run(self, group_run_id: str) -> GroupRun: ...

    # Tasks --------------------------------------------------------------
    @abstractmethod
    def fetch_tasks(self) -> List[Task]: ...

    @abstractmethod
    def update_task_completion(self, task_id: str, completed: bool) -> Task: ...

    # Team run games -----------------------------------------------------
    @abstractmethod
    def fetch_team_run_games(self) -> List[TeamRunGame]: ...

    @abstractmethod
    def create_team_run_game(self, draft: Payload) -> TeamRunGame: ...

    @abstractmethod
    def join_team_run_game(self, game_id: str, participant_name: str) -> TeamRunGame: ...

    @abstractmethod
    def start_team_run_game(self, game_id: str) -> TeamRunGame: ...

    @abstractmethod
    def submit_game_photo(
        self, game_id: str, participant_id: str, photo: Payload
    ) -> None: ...

    @abstractmethod
    def update_game_participant(
        self, game_id: str, participant_id: str, updates: Payload
    ) -> None: ...


__all__ = ["Payload", "RemoteDataSource"]
