"""Local key-value persistence for run and gait-test history."""

from __future__ import annotations

import json
import logging
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, TypeVar

from . import config
from .errors import StorageError
from .models import GaitTest, Run

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")


class KeyValueStore(ABC):
    """String store with ``get``/``set`` semantics, keyed by fixed names."""

    @abstractmethod
    def get(self, key: str) -> Optional[str]: ...

    @abstractmethod
    def set(self, key: str, value: str) -> None: ...


class MemoryKeyValueStore(KeyValueStore):
    def __init__(self, initial: Optional[Dict[str, str]] = None) -> None:
        self._lock = threading.Lock()
        self._values: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._values.get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            self._values[key] = value


class JsonFileKeyValueStore(KeyValueStore):
    """All keys live in one JSON object on disk, rewritten atomically."""

    def __init__(self, path: str | Path = config.STORAGE_PATH) -> None:
        self._path = Path(path)
        self._lock = threading.Lock()

    @property
    def path(self) -> Path:
        return self._path

    def _read_all(self) -> Dict[str, str]:
        try:
            with self._path.open("r", encoding="utf-8") as handle:
                payload = json.load(handle)
        except FileNotFoundError:
            return {}
        except (OSError, ValueError) as exc:
            LOGGER.error("Failed reading store file %s: %s", self._path, exc)
            return {}
        if not isinstance(payload, dict):
            LOGGER.error("Store file %s does not hold an object; ignoring", self._path)
            return {}
        return {str(k): v for k, v in payload.items() if isinstance(v, str)}

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._read_all().get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            values = self._read_all()
            values[key] = value
            temp_path = self._path.with_suffix(".tmp")
            try:
                self._path.parent.mkdir(parents=True, exist_ok=True)
                with temp_path.open("w", encoding="utf-8") as handle:
                    json.dump(values, handle, ensure_ascii=True, indent=2)
                temp_path.replace(self._path)
            except OSError as exc:
                raise StorageError(f"Failed writing {self._path}: {exc}") from exc
        LOGGER.debug("Stored key %s in %s", key, self._path)


class RunHistoryRepository:
    """Serialises run and gait-test histories as JSON arrays."""

    def __init__(
        self,
        store: KeyValueStore,
        *,
        runs_key: str = config.RUNS_KEY,
        gait_tests_key: str = config.GAIT_TESTS_KEY,
    ) -> None:
        self._store = store
        self._runs_key = runs_key
        self._gait_tests_key = gait_tests_key

    def load_runs(self) -> List[Run]:
        return self._load(self._runs_key, Run.from_dict)

    def save_runs(self, runs: List[Run]) -> None:
        self._save(self._runs_key, [run.to_dict() for run in runs])

    def load_gait_tests(self) -> List[GaitTest]:
        return self._load(self._gait_tests_key, GaitTest.from_dict)

    def save_gait_tests(self, tests: List[GaitTest]) -> None:
        self._save(self._gait_tests_key, [test.to_dict() for test in tests])

    def _load(self, key: str, parse: Callable[[Dict[str, Any]], T]) -> List[T]:
        raw = self._store.get(key)
        if raw is None:
            return []
        try:
            rows = json.loads(raw)
            if not isinstance(rows, list):
                raise ValueError(f"expected a list, got {type(rows).__name__}")
            return [parse(row) for row in rows]
        except (ValueError, KeyError, TypeError) as exc:
            LOGGER.warning("Discarding corrupt %s snapshot: %s", key, exc)
            return []

    def _save(self, key: str, rows: List[Dict[str, Any]]) -> None:
        self._store.set(key, json.dumps(rows, ensure_ascii=True))
        LOGGER.debug("Persisted %d %s entries", len(rows), key)


__all__ = [
    "KeyValueStore",
    "MemoryKeyValueStore",
    "JsonFileKeyValueStore",
    "RunHistoryRepository",
]
