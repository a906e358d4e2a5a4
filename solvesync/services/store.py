"""Async key/value persistence and per-key serialized writes.

The store contract mirrors a browser extension's local storage: ``get`` takes
a list of keys and returns the subset that exists, ``set`` writes a mapping,
``remove`` deletes keys.  There are no transactions, so every read-modify-write
against a record goes through :class:`KeyedWriteQueue`, which holds one
``asyncio.Lock`` per key and applies writers in arrival order.
"""
from __future__ import annotations

import asyncio
import copy
import json
import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator, Awaitable, Callable, Iterable, Protocol

from solvesync.services.errors import StorageError

logger = logging.getLogger(__name__)

RECORD_PREFIX = "problem_data_"
CODE_DATA_KEY = "code_data"
SESSION_RESTARTED_KEY = "browser_session_restarted"
AUTH_TOKEN_KEY = "auth_token"


def record_key(problem_url: str) -> str:
    return f"{RECORD_PREFIX}{problem_url}"


class PersistentStore(Protocol):
    async def get(self, keys: Iterable[str]) -> dict[str, Any]: ...

    async def set(self, items: dict[str, Any]) -> None: ...

    async def remove(self, keys: Iterable[str]) -> None: ...


class MemoryStore:
    """In-process store.  Values are deep-copied in and out, like a real backend."""

    def __init__(self, initial: dict[str, Any] | None = None) -> None:
        self._data: dict[str, Any] = copy.deepcopy(initial) if initial else {}

    async def get(self, keys: Iterable[str]) -> dict[str, Any]:
        await asyncio.sleep(0)
        return {k: copy.deepcopy(self._data[k]) for k in keys if k in self._data}

    async def set(self, items: dict[str, Any]) -> None:
        await asyncio.sleep(0)
        for key, value in items.items():
            self._data[key] = copy.deepcopy(value)

    async def remove(self, keys: Iterable[str]) -> None:
        await asyncio.sleep(0)
        for key in keys:
            self._data.pop(key, None)


class JsonFileStore:
    """Store backed by a single JSON document on disk.

    File I/O is blocking, so it runs in the default executor.
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)

    def _load(self) -> dict[str, Any]:
        if not self._path.exists():
            return {}
        try:
            return json.loads(self._path.read_text(encoding="utf-8") or "{}")
        except (OSError, json.JSONDecodeError) as exc:
            raise StorageError(f"Cannot read store {self._path}: {exc}") from exc

    def _dump(self, data: dict[str, Any]) -> None:
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp = self._path.with_suffix(self._path.suffix + ".tmp")
            tmp.write_text(json.dumps(data, indent=2), encoding="utf-8")
            tmp.replace(self._path)
        except (OSError, TypeError) as exc:
            raise StorageError(f"Cannot write store {self._path}: {exc}") from exc

    def _get(self, keys: list[str]) -> dict[str, Any]:
        data = self._load()
        return {k: data[k] for k in keys if k in data}

    def _set(self, items: dict[str, Any]) -> None:
        data = self._load()
        data.update(items)
        self._dump(data)

    def _remove(self, keys: list[str]) -> None:
        data = self._load()
        for key in keys:
            data.pop(key, None)
        self._dump(data)

    async def get(self, keys: Iterable[str]) -> dict[str, Any]:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._get, list(keys))

    async def set(self, items: dict[str, Any]) -> None:
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, self._set, dict(items))

    async def remove(self, keys: Iterable[str]) -> None:
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, self._remove, list(keys))


Mutator = Callable[[dict[str, Any]], "dict[str, Any] | Awaitable[dict[str, Any]]"]


class KeyedWriteQueue:
    """Serializes read-modify-write cycles per storage key.

    ``update`` reads the current value, hands a copy to ``mutate`` and writes
    the returned dict back, all while holding the key's lock.  Writers on
    different keys do not block each other.  A key's lock lives only while
    some caller holds or waits on it.
    """

    def __init__(self, store: PersistentStore) -> None:
        self._store = store
        self._locks: dict[str, asyncio.Lock] = {}
        self._users: dict[str, int] = {}

    @property
    def store(self) -> PersistentStore:
        return self._store

    @property
    def active_keys(self) -> list[str]:
        return list(self._locks)

    @asynccontextmanager
    async def _locked(self, key: str) -> AsyncIterator[None]:
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        self._users[key] = self._users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[key] -= 1
            if not self._users[key]:
                del self._users[key]
                del self._locks[key]

    async def _get(self, key: str) -> dict[str, Any]:
        try:
            return (await self._store.get([key])).get(key) or {}
        except StorageError:
            raise
        except Exception as exc:
            raise StorageError(f"read of {key!r} failed: {exc}") from exc

    async def update(self, key: str, mutate: Mutator) -> dict[str, Any]:
        """Apply ``mutate`` to the stored value of ``key`` atomically.

        Raises :class:`StorageError` if the store fails; the lock is always
        released so the next writer proceeds.
        """
        async with self._locked(key):
            current = await self._get(key)
            updated = mutate(dict(current))
            if asyncio.iscoroutine(updated):
                updated = await updated

            try:
                await self._store.set({key: updated})
            except StorageError:
                raise
            except Exception as exc:
                raise StorageError(f"write of {key!r} failed: {exc}") from exc
            logger.debug("Wrote %s (%d fields)", key, len(updated))
            return updated

    async def read(self, key: str) -> dict[str, Any]:
        """Read ``key`` after any queued writes to it have landed."""
        async with self._locked(key):
            return await self._get(key)

    async def discard(
        self, key: str, predicate: Callable[[dict[str, Any]], bool] | None = None
    ) -> bool:
        """Remove ``key`` if it exists and ``predicate`` accepts its value."""
        async with self._locked(key):
            current = await self._get(key)
            if not current or (predicate is not None and not predicate(current)):
                return False
            try:
                await self._store.remove([key])
            except StorageError:
                raise
            except Exception as exc:
                raise StorageError(f"remove of {key!r} failed: {exc}") from exc
            logger.debug("Removed %s", key)
            return True


def build_store(path: Path | None) -> PersistentStore:
    if path is None:
        logger.info("Using in-memory store")
        return MemoryStore()
    logger.info("Using JSON file store at %s", path)
    return JsonFileStore(path)
