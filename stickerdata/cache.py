"""Durable per-pack cache of partial records."""

from __future__ import annotations

import json
import logging
import threading
from pathlib import Path
from typing import Protocol

from .records import PartialRecord, json_default, record_from_payload, record_to_payload, validate_pack_id

LOGGER = logging.getLogger(__name__)


class CacheEntryNotFound(LookupError):
    """Raised when no cache entry exists for a pack."""


class CacheEntryCorrupt(ValueError):
    """Raised when a cache entry cannot be decoded into a partial record."""


class CacheWriteError(OSError):
    """Raised when a cache entry cannot be persisted."""


class CacheStore(Protocol):
    def exists(self, pack_id: str) -> bool:
        ...

    def read(self, pack_id: str) -> PartialRecord:
        ...

    def write(self, pack_id: str, record: PartialRecord) -> None:
        ...


class DiskCacheStore:
    """Stores one JSON document per pack under a cache directory.

    Entries are trusted indefinitely: nothing here updates or expires a file
    once it has been written.
    """

    def __init__(self, directory: Path) -> None:
        self._directory = Path(directory)
        self._directory.mkdir(parents=True, exist_ok=True)

    def path_for(self, pack_id: str) -> Path:
        return self._directory / f"{validate_pack_id(pack_id)}.json"

    def exists(self, pack_id: str) -> bool:
        return self.path_for(pack_id).is_file()

    def read(self, pack_id: str) -> PartialRecord:
        path = self.path_for(pack_id)
        try:
            raw = path.read_bytes()
        except FileNotFoundError as exc:
            raise CacheEntryNotFound(f"No cache entry for pack {pack_id}") from exc

        try:
            return record_from_payload(json.loads(raw.decode("utf-8")))
        except ValueError as exc:
            raise CacheEntryCorrupt(f"Cache entry for pack {pack_id} is corrupt: {exc}") from exc

    def write(self, pack_id: str, record: PartialRecord) -> None:
        path = self.path_for(pack_id)
        tmp_path = path.with_suffix(".json.tmp")
        payload = json.dumps(record_to_payload(record), ensure_ascii=False, default=json_default)
        try:
            tmp_path.write_text(payload, encoding="utf-8")
            tmp_path.replace(path)
        except OSError as exc:
            tmp_path.unlink(missing_ok=True)
            raise CacheWriteError(f"Failed to write cache entry for pack {pack_id}: {exc}") from exc
        LOGGER.debug("Cached pack %s at %s", pack_id, path)


class MemoryCacheStore:
    """In-process cache used where persistence is not wanted."""

    def __init__(self) -> None:
        self._entries: dict[str, str] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def exists(self, pack_id: str) -> bool:
        with self._lock:
            return pack_id in self._entries

    def read(self, pack_id: str) -> PartialRecord:
        with self._lock:
            raw = self._entries.get(pack_id)
        if raw is None:
            raise CacheEntryNotFound(f"No cache entry for pack {pack_id}")
        try:
            return record_from_payload(json.loads(raw))
        except ValueError as exc:
            raise CacheEntryCorrupt(f"Cache entry for pack {pack_id} is corrupt: {exc}") from exc

    def write(self, pack_id: str, record: PartialRecord) -> None:
        payload = json.dumps(record_to_payload(record), ensure_ascii=False, default=json_default)
        with self._lock:
            self._entries[pack_id] = payload

    def put_raw(self, pack_id: str, raw: str) -> None:
        with self._lock:
            self._entries[pack_id] = raw
