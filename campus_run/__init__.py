"""Campus run positioning, geometry and session-sync core."""

from .main import main
from .models import Coordinate, GroupRun, Run, Task, TeamRunGame
from .positioning import PositioningSession
from .store import SessionStore
from .errors import CampusRunError, GameStateError, RemoteAPIError

__all__ = [
    "main",
    "Coordinate",
    "GroupRun",
    "Run",
    "Task",
    "TeamRunGame",
    "PositioningSession",
    "SessionStore",
    "CampusRunError",
    "GameStateError",
    "RemoteAPIError",
]
