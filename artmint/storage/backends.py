"""
Key-Value Storage Backends

The listing store persists whole values under well-known keys, overwriting
the previous value on every write. Backends only need get/set/delete of
JSON-compatible values:

- MemoryStorageBackend: process-local, for tests and throwaway sessions
- FileStorageBackend: a JSON document on disk, shared by every process
  that points at the same path
- RedisStorageBackend: a Redis server, shared across hosts
"""

from __future__ import annotations

import asyncio
import json
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

import structlog

logger = structlog.get_logger(__name__)


class StorageBackend(ABC):
    """Abstract async key-value store holding JSON-compatible values."""

    @abstractmethod
    async def get(self, key: str) -> Any | None:
        """Return the value stored under key, or None."""
        pass

    @abstractmethod
    async def set(self, key: str, value: Any) -> None:
        """Overwrite the value stored under key."""
        pass

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove key; absent keys are ignored."""
        pass

    async def close(self) -> None:
        """Release backend resources."""
        return None


class MemoryStorageBackend(StorageBackend):
    """In-process backend. Values are deep-copied through JSON like the others."""

    def __init__(self) -> None:
        self._data: dict[str, str] = {}

    async def get(self, key: str) -> Any | None:
        raw = self._data.get(key)
        return json.loads(raw) if raw is not None else None

    async def set(self, key: str, value: Any) -> None:
        self._data[key] = json.dumps(value)

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)


class FileStorageBackend(StorageBackend):
    """
    JSON file backend.

    Every read goes to disk so values written by other processes are seen
    immediately. Writes go to a temporary file in the same directory and are
    moved into place with os.replace, so readers never observe a partially
    written document.
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        self._lock = asyncio.Lock()

    @property
    def path(self) -> Path:
        return self._path

    def _read_document(self) -> dict[str, Any]:
        try:
            text = self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        if not text.strip():
            return {}
        try:
            document = json.loads(text)
        except json.JSONDecodeError as e:
            logger.error("storage_file_corrupt", path=str(self._path), error=str(e))
            raise
        if not isinstance(document, dict):
            raise ValueError(f"Storage file {self._path} does not hold a JSON object")
        return document

    def _write_document(self, document: dict[str, Any]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(
            dir=self._path.parent, prefix=f".{self._path.name}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(document, fh, ensure_ascii=False)
            os.replace(tmp_path, self._path)
        except BaseException:
            Path(tmp_path).unlink(missing_ok=True)
            raise

    async def get(self, key: str) -> Any | None:
        document = await asyncio.to_thread(self._read_document)
        return document.get(key)

    async def set(self, key: str, value: Any) -> None:
        async with self._lock:
            document = await asyncio.to_thread(self._read_document)
            document[key] = value
            await asyncio.to_thread(self._write_document, document)

    async def delete(self, key: str) -> None:
        async with self._lock:
            document = await asyncio.to_thread(self._read_document)
            if key in document:
                del document[key]
                await asyncio.to_thread(self._write_document, document)


class RedisStorageBackend(StorageBackend):
    """Redis backend storing each key as a JSON string under a namespace."""

    def __init__(self, redis_client: Any, namespace: str = "artmint:") -> None:
        self._redis = redis_client
        self._namespace = namespace

    def _key(self, key: str) -> str:
        return f"{self._namespace}{key}"

    async def get(self, key: str) -> Any | None:
        raw = await self._redis.get(self._key(key))
        if raw is None:
            return None
        return json.loads(raw)

    async def set(self, key: str, value: Any) -> None:
        await self._redis.set(self._key(key), json.dumps(value))

    async def delete(self, key: str) -> None:
        await self._redis.delete(self._key(key))

    async def close(self) -> None:
        await self._redis.aclose()
