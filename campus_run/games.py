"""Rules for team area-capture games.

Participants run a closed route; the enclosed area is their score. These
helpers stay pure so the store can apply them before issuing remote writes.
"""

from __future__ import annotations

from typing import Any, Dict, List, Sequence

from . import config
from .errors import GameStateError
from .geodesy import is_within_radius, path_distance_km, polygon_area_km2
from .models import (
    Coordinate,
    GameCheckpoint,
    GameParticipant,
    GameStatus,
    TeamRunGame,
    coordinates_to_dicts,
)


def leaderboard(game: TeamRunGame) -> List[GameParticipant]:
    """Completed participants ranked by enclosed area, largest first."""

    finished = [p for p in game.participants if p.completed]
    return sorted(finished, key=lambda p: p.area, reverse=True)


def ensure_can_start(game: TeamRunGame, requested_by: str) -> None:
    if game.created_by != requested_by:
        raise GameStateError(
            f"Only {game.created_by!r} can start game {game.id}, not {requested_by!r}"
        )
    if game.status is not GameStatus.PENDING:
        raise GameStateError(f"Game {game.id} is {game.status.value}, not pending")


def ensure_can_complete(participant: GameParticipant) -> None:
    if participant.completed:
        raise GameStateError(f"Participant {participant.id} already completed the game")


def build_completion_update(
    route: Sequence[Coordinate], *, completion_time_s: int
) -> Dict[str, Any]:
    """Wire payload that records a participant's finished route and score."""

    return {
        "route": coordinates_to_dicts(route),
        "area": polygon_area_km2(route),
        "distance": path_distance_km(route),
        "completionTime": max(0, int(completion_time_s)),
        "completed": True,
    }


def _as_coordinate(checkpoint: GameCheckpoint) -> Coordinate:
    return Coordinate(
        latitude=checkpoint.latitude, longitude=checkpoint.longitude, timestamp=0
    )


def checkpoint_reached(
    checkpoint: GameCheckpoint,
    sample: Coordinate,
    radius_m: float = config.CHECKPOINT_RADIUS_M,
) -> bool:
    return is_within_radius(sample, _as_coordinate(checkpoint), radius_m)


def visited_checkpoints(
    game: TeamRunGame,
    samples: Sequence[Coordinate],
    radius_m: float = config.CHECKPOINT_RADIUS_M,
) -> List[GameCheckpoint]:
    """Checkpoints passed within ``radius_m`` by any sample, in game order."""

    return [
        checkpoint
        for checkpoint in game.checkpoints
        if any(checkpoint_reached(checkpoint, s, radius_m) for s in samples)
    ]


def within_game_area(game: TeamRunGame, sample: Coordinate) -> bool:
    area = game.game_area
    center = Coordinate(latitude=area.latitude, longitude=area.longitude, timestamp=0)
    return is_within_radius(sample, center, area.radius)


__all__ = [
    "leaderboard",
    "ensure_can_start",
    "ensure_can_complete",
    "build_completion_update",
    "checkpoint_reached",
    "visited_checkpoints",
    "within_game_area",
]
