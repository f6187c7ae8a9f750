"""Key/value persistence for the background process.

Contract (mirrors a browser extension's local storage area):
- Inputs: JSON-serializable values under string keys
- Outputs: ``dict`` of the requested keys that exist
- Side Effects: Writes publish ``storage.changed`` on the Bus from a separate task
- Errors: OSError for disk issues, TypeError for unserializable values

Implementations:
- MemoryStore: process-lifetime dict
- JsonFileStore: one JSON document on disk, replaced atomically on write
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import tempfile
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable, Iterable, Mapping
from pathlib import Path
from typing import Any

from ..bus import Bus
from ..events import StorageChanged, StorageChangedProps

logger = logging.getLogger(__name__)

Keys = str | Iterable[str] | None


def _normalize_keys(keys: Keys) -> list[str] | None:
    if keys is None:
        return None
    if isinstance(keys, str):
        return [keys]
    return list(keys)


class KeyValueStore(ABC):
    """Async key/value store.

    Each operation is a read-modify-write of the whole document, guarded by a
    per-store lock, so individual operations never interleave.
    """

    area = "local"

    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._notices: set[asyncio.Task[None]] = set()

    async def get(self, keys: Keys = None) -> dict[str, Any]:
        """Return the requested keys that exist (everything when keys is None)."""
        wanted = _normalize_keys(keys)
        async with self._lock:
            document = await self._read()
        if wanted is None:
            result = document
        else:
            result = {key: document[key] for key in wanted if key in document}
        logger.debug(f"Retrieved from storage: {sorted(result)}")
        return result

    async def set(self, items: Mapping[str, Any]) -> None:
        """Write several keys at once."""
        if not items:
            return
        async with self._lock:
            document = await self._read()
            document.update(items)
            await self._write(document)
        logger.debug(f"Saved to storage: {sorted(items)}")
        self._announce(list(items))

    async def remove(self, keys: str | Iterable[str]) -> None:
        """Delete keys. Missing keys are ignored."""
        doomed = _normalize_keys(keys) or []
        async with self._lock:
            document = await self._read()
            removed = [key for key in doomed if key in document]
            for key in removed:
                del document[key]
            if removed:
                await self._write(document)
        logger.debug(f"Removed from storage: {removed}")
        self._announce(removed)

    async def clear(self) -> None:
        """Delete every key."""
        async with self._lock:
            document = await self._read()
            await self._write({})
        logger.debug("Storage cleared")
        self._announce(list(document))

    async def drain(self) -> None:
        """Wait until every pending change notification has been delivered."""
        while self._notices:
            await asyncio.gather(*list(self._notices), return_exceptions=True)

    def _announce(self, keys: list[str]) -> None:
        # Writers may hold a lock a subscriber needs; never deliver inline.
        if not keys:
            return
        notice = asyncio.create_task(
            Bus.publish(StorageChanged, StorageChangedProps(keys=keys, area=self.area))
        )
        self._notices.add(notice)
        notice.add_done_callback(self._notice_done)

    def _notice_done(self, notice: asyncio.Task[None]) -> None:
        self._notices.discard(notice)
        if not notice.cancelled() and notice.exception() is not None:
            logger.error(f"Failed to publish storage change: {notice.exception()}")

    @abstractmethod
    async def _read(self) -> dict[str, Any]:
        """Load the whole document (a private copy)."""
        ...

    @abstractmethod
    async def _write(self, document: dict[str, Any]) -> None:
        """Replace the whole document."""
        ...


class MemoryStore(KeyValueStore):
    """In-memory store. Values are JSON-copied in and out."""

    def __init__(self, initial: Mapping[str, Any] | None = None) -> None:
        super().__init__()
        self._document: dict[str, Any] = json.loads(json.dumps(dict(initial or {})))

    async def _read(self) -> dict[str, Any]:
        return json.loads(json.dumps(self._document))

    async def _write(self, document: dict[str, Any]) -> None:
        self._document = json.loads(json.dumps(document))


class JsonFileStore(KeyValueStore):
    """Store persisted as a single JSON file.

    Writes go to a temporary file in the same directory which then replaces
    the target, so a crash never leaves a half-written document. An
    unreadable file is treated as empty (and logged).
    """

    def __init__(self, path: Path | str) -> None:
        super().__init__()
        self.path = Path(path).expanduser()
        self.path.parent.mkdir(parents=True, exist_ok=True)

    async def _read(self) -> dict[str, Any]:
        return await asyncio.to_thread(self._read_sync)

    async def _write(self, document: dict[str, Any]) -> None:
        content = json.dumps(document, indent=2, ensure_ascii=False)
        await asyncio.to_thread(self._write_sync, content)

    def _read_sync(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Failed to load storage file {self.path}: {e}")
            return {}
        if not isinstance(data, dict):
            logger.warning(f"Ignoring storage file {self.path}: top level is not an object")
            return {}
        return data

    def _write_sync(self, content: str) -> None:
        fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=f".{self.path.name}.")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(content)
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise


async def on_storage_changed(
    callback: Callable[[dict[str, Any]], Awaitable[None]],
) -> Callable[[], None]:
    """Subscribe to storage changes. Returns an unsubscribe function.

    The callback receives ``{"type": "storage.changed", "properties":
    {"keys": [...], "area": "local"}}``.
    """
    return await Bus.subscribe(StorageChanged, callback)
