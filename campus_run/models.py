"""Dataclasses for location samples, runs, group runs, tasks and team games.

Wire and persisted dictionaries use the application's camelCase keys so the
``runs`` snapshot and remote payloads stay compatible with the mobile client.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Sequence


def _opt_float(value: Any) -> Optional[float]:
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


@dataclass(frozen=True, slots=True)
class Coordinate:
    """One location sample. Optional readings are ``None`` when absent."""

    latitude: float
    longitude: float
    timestamp: int
    accuracy: Optional[float] = None
    altitude: Optional[float] = None
    speed: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "latitude": self.latitude,
            "longitude": self.longitude,
            "timestamp": self.timestamp,
        }
        for key in ("accuracy", "altitude", "speed"):
            value = getattr(self, key)
            if value is not None:
                data[key] = value
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Coordinate":
        return cls(
            latitude=float(data["latitude"]),
            longitude=float(data["longitude"]),
            timestamp=int(data.get("timestamp", 0)),
            accuracy=_opt_float(data.get("accuracy")),
            altitude=_opt_float(data.get("altitude")),
            speed=_opt_float(data.get("speed")),
        )


def coordinates_to_dicts(samples: Sequence[Coordinate]) -> List[Dict[str, Any]]:
    return [sample.to_dict() for sample in samples]


def coordinates_from_dicts(rows: Sequence[Mapping[str, Any]] | None) -> List[Coordinate]:
    return [Coordinate.from_dict(row) for row in rows or []]


@dataclass(frozen=True, slots=True)
class RunMetrics:
    distance: float  # km
    pace: float  # min/km
    cadence: float  # steps/min
    elevation: float  # m gained
    calories: int


@dataclass(frozen=True, slots=True)
class LiveStats:
    distance: float = 0.0
    pace: float = 0.0
    cadence: float = 0.0


class RouteType(str, Enum):
    LOOP = "loop"
    OUT_AND_BACK = "out-and-back"
    POINT_TO_POINT = "point-to-point"


class Difficulty(str, Enum):
    EASY = "easy"
    MODERATE = "moderate"
    HARD = "hard"


@dataclass(frozen=True, slots=True)
class RouteAnalysis:
    total_distance: float  # km
    average_speed: float  # km/h
    max_speed: float  # km/h
    elevation_gain: float  # m
    elevation_loss: float  # m
    route_type: RouteType
    difficulty: Difficulty


@dataclass(frozen=True, slots=True)
class MapRegion:
    latitude: float
    longitude: float
    latitude_delta: float
    longitude_delta: float


@dataclass(frozen=True, slots=True)
class Run:
    """Summary of a completed tracking session."""

    id: str
    date: str
    duration: int  # seconds
    distance: float  # km
    pace: float  # min/km
    calories: int
    type: str = "solo"
    route: Optional[str] = None
    coordinates: Optional[List[Coordinate]] = None
    cadence: Optional[float] = None
    avg_speed: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.id,
            "date": self.date,
            "duration": self.duration,
            "distance": self.distance,
            "pace": self.pace,
            "calories": self.calories,
            "type": self.type,
        }
        if self.route is not None:
            data["route"] = self.route
        if self.coordinates is not None:
            data["coordinates"] = coordinates_to_dicts(self.coordinates)
        if self.cadence is not None:
            data["cadence"] = self.cadence
        if self.avg_speed is not None:
            data["avgSpeed"] = self.avg_speed
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Run":
        coords = data.get("coordinates")
        return cls(
            id=str(data["id"]),
            date=str(data.get("date", "")),
            duration=int(data.get("duration", 0)),
            distance=float(data.get("distance", 0.0)),
            pace=float(data.get("pace", 0.0)),
            calories=int(data.get("calories", 0)),
            type=str(data.get("type", "solo")),
            route=data.get("route"),
            coordinates=coordinates_from_dicts(coords) if coords is not None else None,
            cadence=_opt_float(data.get("cadence")),
            avg_speed=_opt_float(data.get("avgSpeed")),
        )


@dataclass(frozen=True, slots=True)
class GaitTest:
    id: str
    date: str
    score: float
    feedback: str
    improvements: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "date": self.date,
            "score": self.score,
            "feedback": self.feedback,
            "improvements": list(self.improvements),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "GaitTest":
        return cls(
            id=str(data["id"]),
            date=str(data.get("date", "")),
            score=float(data.get("score", 0)),
            feedback=str(data.get("feedback", "")),
            improvements=[str(item) for item in data.get("improvements") or []],
        )


@dataclass(slots=True)
class GroupRun:
    id: str
    title: str
    date: str
    time: str
    distance: float
    pace: str
    participants: int
    max_participants: int
    location: str
    organizer: str
    difficulty: str = "easy"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "date": self.date,
            "time": self.time,
            "distance": self.distance,
            "pace": self.pace,
            "participants": self.participants,
            "maxParticipants": self.max_participants,
            "location": self.location,
            "organizer": self.organizer,
            "difficulty": self.difficulty,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "GroupRun":
        return cls(
            id=str(data["id"]),
            title=str(data.get("title", "")),
            date=str(data.get("date", "")),
            time=str(data.get("time", "")),
            distance=float(data.get("distance", 0.0)),
            pace=str(data.get("pace", "")),
            participants=int(data.get("participants", 0)),
            max_participants=int(data.get("maxParticipants", 0)),
            location=str(data.get("location", "")),
            organizer=str(data.get("organizer", "")),
            difficulty=str(data.get("difficulty", "easy")),
        )


@dataclass(slots=True)
class Task:
    id: str
    title: str
    description: str
    location: str
    distance: float
    reward: int
    difficulty: str = "easy"
    completed: bool = False
    type: str = "exploration"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "location": self.location,
            "distance": self.distance,
            "reward": self.reward,
            "difficulty": self.difficulty,
            "completed": self.completed,
            "type": self.type,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Task":
        return cls(
            id=str(data["id"]),
            title=str(data.get("title", "")),
            description=str(data.get("description", "")),
            location=str(data.get("location", "")),
            distance=float(data.get("distance", 0.0)),
            reward=int(data.get("reward", 0)),
            difficulty=str(data.get("difficulty", "easy")),
            completed=bool(data.get("completed", False)),
            type=str(data.get("type", "exploration")),
        )


@dataclass(frozen=True, slots=True)
class GameCheckpoint:
    id: str
    latitude: float
    longitude: float
    name: str
    description: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.id,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "name": self.name,
        }
        if self.description is not None:
            data["description"] = self.description
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "GameCheckpoint":
        return cls(
            id=str(data["id"]),
            latitude=float(data["latitude"]),
            longitude=float(data["longitude"]),
            name=str(data.get("name", "")),
            description=data.get("description"),
        )


@dataclass(frozen=True, slots=True)
class GamePhoto:
    id: str
    checkpoint_id: str
    uri: str
    timestamp: int
    latitude: float
    longitude: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "checkpointId": self.checkpoint_id,
            "uri": self.uri,
            "timestamp": self.timestamp,
            "latitude": self.latitude,
            "longitude": self.longitude,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "GamePhoto":
        return cls(
            id=str(data.get("id", "")),
            checkpoint_id=str(data["checkpointId"]),
            uri=str(data.get("uri", "")),
            timestamp=int(data.get("timestamp", 0)),
            latitude=float(data.get("latitude", 0.0)),
            longitude=float(data.get("longitude", 0.0)),
        )


@dataclass(slots=True)
class GameParticipant:
    id: str
    name: str
    route: List[Coordinate] = field(default_factory=list)
    photos: List[GamePhoto] = field(default_factory=list)
    area: float = 0.0  # km²
    distance: float = 0.0  # km
    completion_time: int = 0  # seconds
    completed: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "route": coordinates_to_dicts(self.route),
            "photos": [photo.to_dict() for photo in self.photos],
            "area": self.area,
            "distance": self.distance,
            "completionTime": self.completion_time,
            "completed": self.completed,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "GameParticipant":
        return cls(
            id=str(data["id"]),
            name=str(data.get("name", "")),
            route=coordinates_from_dicts(data.get("route")),
            photos=[GamePhoto.from_dict(p) for p in data.get("photos") or []],
            area=float(data.get("area", 0.0)),
            distance=float(data.get("distance", 0.0)),
            completion_time=int(data.get("completionTime", 0)),
            completed=bool(data.get("completed", False)),
        )


class GameStatus(str, Enum):
    PENDING = "pending"
    ACTIVE = "active"
    COMPLETED = "completed"


@dataclass(frozen=True, slots=True)
class GameArea:
    latitude: float
    longitude: float
    radius: float  # metres

    def to_dict(self) -> Dict[str, Any]:
        return {
            "center": {"latitude": self.latitude, "longitude": self.longitude},
            "radius": self.radius,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "GameArea":
        center = data.get("center") or {}
        return cls(
            latitude=float(center.get("latitude", 0.0)),
            longitude=float(center.get("longitude", 0.0)),
            radius=float(data.get("radius", 0.0)),
        )


@dataclass(slots=True)
class TeamRunGame:
    id: str
    title: str
    date: str
    time: str
    created_by: str
    game_area: GameArea
    status: GameStatus = GameStatus.PENDING
    checkpoints: List[GameCheckpoint] = field(default_factory=list)
    participants: List[GameParticipant] = field(default_factory=list)
    description: Optional[str] = None
    start_time: Optional[int] = None
    end_time: Optional[int] = None

    def participant(self, participant_id: str) -> Optional[GameParticipant]:
        for item in self.participants:
            if item.id == participant_id:
                return item
        return None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.id,
            "title": self.title,
            "date": self.date,
            "time": self.time,
            "createdBy": self.created_by,
            "status": self.status.value,
            "checkpoints": [cp.to_dict() for cp in self.checkpoints],
            "participants": [p.to_dict() for p in self.participants],
            "gameArea": self.game_area.to_dict(),
        }
        if self.description is not None:
            data["description"] = self.description
        if self.start_time is not None:
            data["startTime"] = self.start_time
        if self.end_time is not None:
            data["endTime"] = self.end_time
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "TeamRunGame":
        return cls(
            id=str(data["id"]),
            title=str(data.get("title", "")),
            date=str(data.get("date", "")),
            time=str(data.get("time", "")),
            created_by=str(data.get("createdBy", "")),
            game_area=GameArea.from_dict(data.get("gameArea") or {}),
            status=GameStatus(data.get("status", GameStatus.PENDING.value)),
            checkpoints=[GameCheckpoint.from_dict(c) for c in data.get("checkpoints") or []],
            participants=[
                GameParticipant.from_dict(p) for p in data.get("participants") or []
            ],
            description=data.get("description"),
            start_time=data.get("startTime"),
            end_time=data.get("endTime"),
        )


__all__ = [
    "Coordinate",
    "RunMetrics",
    "LiveStats",
    "RouteType",
    "Difficulty",
    "RouteAnalysis",
    "MapRegion",
    "Run",
    "GaitTest",
    "GroupRun",
    "Task",
    "GameCheckpoint",
    "GamePhoto",
    "GameParticipant",
    "GameStatus",
    "GameArea",
    "TeamRunGame",
    "coordinates_to_dicts",
    "coordinates_from_dicts",
]
