"""Remote collections backend: contract, HTTP client and in-memory fake."""

from __future__ import annotations

from .. import config
from .base import Payload, RemoteDataSource
from .http import HttpRemoteDataSource
from .memory import InMemoryRemoteDataSource, demo_seed


def create_remote(offline: bool | None = None) -> RemoteDataSource:
    """Build the configured backend: seeded fake when offline, HTTP otherwise."""

    use_offline = config.REMOTE_OFFLINE_MODE if offline is None else offline
    if use_offline:
        return InMemoryRemoteDataSource(**demo_seed())
    return HttpRemoteDataSource(config.REMOTE_BASE_URL)


__all__ = [
    "Payload",
    "RemoteDataSource",
    "HttpRemoteDataSource",
    "InMemoryRemoteDataSource",
    "create_remote",
    "demo_seed",
]
