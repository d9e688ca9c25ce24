"""
Persistent key-value state for Commit Watch.

Provides pluggable state backends behind one narrow interface:
- Memory: process-local dictionary, used in tests and ephemeral runs
- File: JSON document on disk, durable across restarts
"""

import asyncio
import copy
import json
import logging
import os
from abc import ABC, abstractmethod
from collections.abc import Iterable
from pathlib import Path
from typing import Any

from ..exceptions import StorageError
from ..models import Platform

logger = logging.getLogger(__name__)


class StorageKeys:
    """Names of the top-level entries kept in the state store."""

    SETTINGS = "settings"
    LAST_COMMITS = "last_commits"
    LAST_RELEASES = "last_releases"
    LAST_SWEEP_TIME = "last_sweep_time"
    LAST_ERROR = "last_error"
    NOTIFICATION_HISTORY = "notification_history"
    UNREAD_COUNT = "unread_count"
    SCHEMA_VERSION = "schema_version"
    SEEN_NOTIFICATIONS = "seen_notifications"

    @staticmethod
    def token(platform: Platform) -> str:
        return f"{platform.value}_token"

    @staticmethod
    def identity(platform: Platform) -> str:
        return f"{platform.value}_identity"

    @staticmethod
    def repositories(platform: Platform) -> str:
        return f"{platform.value}_repositories"

    @staticmethod
    def rate_limit(platform: Platform) -> str:
        return f"{platform.value}_rate_limit"


def _normalize_keys(keys: str | Iterable[str]) -> list[str]:
    if isinstance(keys, str):
        return [keys]
    return list(keys)


class StateStore(ABC):
    """Abstract base class for the persistent key-value store."""

    @abstractmethod
    async def get(self, keys: str | Iterable[str]) -> dict[str, Any]:
        """
        Read one or more keys.

        Args:
            keys: A key or an iterable of keys

        Returns:
            Mapping of the requested keys that exist to their values
        """
        pass

    @abstractmethod
    async def set(self, items: dict[str, Any]) -> None:
        """
        Write several keys at once.

        Args:
            items: Mapping of keys to JSON-serializable values
        """
        pass

    @abstractmethod
    async def remove(self, keys: str | Iterable[str]) -> None:
        """
        Delete keys; missing keys are ignored.

        Args:
            keys: A key or an iterable of keys
        """
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """
        Check if the state backend is healthy.

        Returns:
            True if healthy, False otherwise
        """
        pass

    async def get_value(self, key: str, default: Any = None) -> Any:
        """Read a single key, returning ``default`` when it is absent."""
        values = await self.get(key)
        return values.get(key, default)

    def get_stats(self) -> dict[str, Any]:
        """Get storage statistics."""
        return {"keys_count": 0}


class InMemoryStateStore(StateStore):
    """Dictionary-backed state store."""

    def __init__(self, initial: dict[str, Any] | None = None) -> None:
        self._data: dict[str, Any] = copy.deepcopy(initial) if initial else {}

    async def get(self, keys: str | Iterable[str]) -> dict[str, Any]:
        return {
            key: copy.deepcopy(self._data[key])
            for key in _normalize_keys(keys)
            if key in self._data
        }

    async def set(self, items: dict[str, Any]) -> None:
        # Copy so callers cannot mutate stored values afterwards
        self._data.update(copy.deepcopy(items))
        logger.debug(f"Stored keys: {sorted(items)}")

    async def remove(self, keys: str | Iterable[str]) -> None:
        for key in _normalize_keys(keys):
            self._data.pop(key, None)

    async def health_check(self) -> bool:
        """Check if in-memory state is healthy (always true for memory)."""
        return True

    def get_stats(self) -> dict[str, Any]:
        return {"keys_count": len(self._data)}


class JsonFileStateStore(StateStore):
    """
    State store persisted as a single JSON document.

    The document is loaded lazily and rewritten in full on every change via a
    temporary file and ``os.replace``, so a crash never leaves a truncated
    file behind.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path).expanduser()
        self._data: dict[str, Any] | None = None
        self._lock = asyncio.Lock()

    def _load(self) -> dict[str, Any]:
        if self._data is not None:
            return self._data

        if not self.path.exists():
            self._data = {}
            return self._data

        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise StorageError(
                f"Failed to read state file {self.path}: {e}",
                context={"path": str(self.path)},
            ) from e

        if not isinstance(data, dict):
            raise StorageError(f"State file {self.path} does not contain an object")

        self._data = data
        logger.info(f"Loaded state from {self.path} ({len(data)} keys)")
        return self._data

    def _flush(self) -> None:
        data = self._load()
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, sort_keys=True)
            os.replace(tmp_path, self.path)
        except (OSError, TypeError, ValueError) as e:
            raise StorageError(
                f"Failed to write state file {self.path}: {e}",
                context={"path": str(self.path)},
            ) from e

    async def get(self, keys: str | Iterable[str]) -> dict[str, Any]:
        async with self._lock:
            data = self._load()
            return {
                key: copy.deepcopy(data[key])
                for key in _normalize_keys(keys)
                if key in data
            }

    async def set(self, items: dict[str, Any]) -> None:
        async with self._lock:
            self._load().update(copy.deepcopy(items))
            self._flush()

    async def remove(self, keys: str | Iterable[str]) -> None:
        async with self._lock:
            data = self._load()
            removed = [key for key in _normalize_keys(keys) if data.pop(key, None) is not None]
            if removed:
                self._flush()

    async def health_check(self) -> bool:
        try:
            async with self._lock:
                self._load()
            return True
        except StorageError as e:
            logger.error(f"State file health check failed: {e}")
            return False

    def get_stats(self) -> dict[str, Any]:
        return {
            "keys_count": len(self._data or {}),
            "path": str(self.path),
        }


class StateStoreFactory:
    """Factory for creating the configured state store backend."""

    @staticmethod
    def create_state_store(backend: str, path: str | Path | None = None) -> StateStore:
        """
        Create a state store instance.

        Args:
            backend: Backend name ('memory' or 'file')
            path: JSON file location, required for the file backend

        Returns:
            StateStore instance

        Raises:
            ValueError: If backend is not supported or the path is missing
        """
        backend = backend.lower()

        if backend == "memory":
            logger.info("Creating in-memory state store")
            return InMemoryStateStore()
        elif backend == "file":
            if not path:
                raise ValueError("The file state backend requires a path")
            logger.info(f"Creating JSON file state store at {path}")
            return JsonFileStateStore(path)
        else:
            raise ValueError(
                f"Unknown state backend: {backend}. Supported backends: 'memory', 'file'"
            )

    @staticmethod
    def get_supported_backends() -> list[str]:
        """Get list of supported backends."""
        return ["memory", "file"]
