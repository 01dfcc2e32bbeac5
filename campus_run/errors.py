"""Central error types used across the application."""

from __future__ import annotations


class CampusRunError(RuntimeError):
    """Base error for the campus run core."""


class RemoteAPIError(CampusRunError):
    """Base error for remote data source failures."""


class RemotePermissionError(RemoteAPIError):
    """Raised when the backend rejects the caller (HTTP 401/403)."""


class RemoteNotFoundError(RemoteAPIError):
    """Raised when a group run, task, game or participant does not exist."""


class RemoteConflictError(RemoteAPIError):
    """Raised when the backend refuses a write because of entity state."""


class GameStateError(CampusRunError):
    """Raised when a team game transition is not allowed."""


class LocationUnavailableError(CampusRunError):
    """Raised by location providers when the host has no usable location API."""


class StorageError(CampusRunError):
    """Raised when the local key-value store cannot be written."""


__all__ = [
    "CampusRunError",
    "RemoteAPIError",
    "RemotePermissionError",
    "RemoteNotFoundError",
    "RemoteConflictError",
    "GameStateError",
    "LocationUnavailableError",
    "StorageError",
]
