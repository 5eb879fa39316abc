"""Fetch, cache and assemble partial records for every configured sticker pack."""

from __future__ import annotations

import logging
import math
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, Optional, Sequence

from .cache import CacheEntryCorrupt, CacheEntryNotFound, CacheStore
from .config import DEFAULT_CONCURRENCY, RetryConfig
from .http_client import ManifestFetcher
from .records import InputRecord, PartialRecord, project_manifest, validate_pack_id
from .retry import call_with_retry
from .scheduler import BoundedScheduler

LOGGER = logging.getLogger(__name__)

ProgressCallback = Callable[[PartialRecord], None]


def _percentage(part: int, total: int) -> int:
    if total <= 0:
        return 0
    return int(math.floor(part * 100 / total + 0.5))


@dataclass(slots=True)
class CacheCounters:
    hits: int = 0
    misses: int = 0
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def record_hit(self) -> None:
        with self._lock:
            self.hits += 1

    def record_miss(self) -> None:
        with self._lock:
            self.misses += 1

    @property
    def total(self) -> int:
        return self.hits + self.misses

    @property
    def hit_rate(self) -> int:
        return _percentage(self.hits, self.total)

    @property
    def miss_rate(self) -> int:
        return _percentage(self.misses, self.total)

    def summary(self) -> str:
        return (
            f"Cache hits: {self.hits} ({self.hit_rate}%). "
            f"Cache misses: {self.misses} ({self.miss_rate}%)."
        )


class ResultAssembler:
    """Collect per-pack results as tasks complete.

    Packs are reported most recently appended first. Each record is stored in
    the slot of its input position, so the final order depends only on the
    input order and never on which task happened to finish first.
    """

    def __init__(self, total: int, on_progress: Optional[ProgressCallback] = None) -> None:
        self._total = total
        self._on_progress = on_progress
        self._slots: dict[int, PartialRecord] = {}
        self._lock = threading.Lock()
        self.counters = CacheCounters()

    def record(self, index: int, partial: PartialRecord, *, cache_hit: bool) -> None:
        if not 0 <= index < self._total:
            raise IndexError(f"Result index {index} outside 0..{self._total - 1}")
        with self._lock:
            if index in self._slots:
                raise ValueError(f"Result for index {index} recorded twice")
            self._slots[index] = partial
        if cache_hit:
            self.counters.record_hit()
        else:
            self.counters.record_miss()
        if self._on_progress is not None:
            self._on_progress(partial)

    def results(self) -> list[PartialRecord]:
        with self._lock:
            if len(self._slots) != self._total:
                raise RuntimeError(
                    f"Only {len(self._slots)} of {self._total} sticker packs have completed"
                )
            return [self._slots[index] for index in reversed(range(self._total))]


@dataclass(slots=True)
class StickerPackResults:
    packs: list[PartialRecord]
    counters: CacheCounters


def _resolve_pack(
    record: InputRecord,
    *,
    fetcher: ManifestFetcher,
    cache: CacheStore,
    retry: RetryConfig,
    sleep: Callable[[float], None],
) -> tuple[PartialRecord, bool]:
    if cache.exists(record.pack_id):
        try:
            return cache.read(record.pack_id), True
        except CacheEntryNotFound:
            LOGGER.debug("Cache entry for pack %s disappeared; fetching", record.pack_id)
        except CacheEntryCorrupt as exc:
            LOGGER.warning("Ignoring unreadable cache entry: %s", exc)

    manifest = call_with_retry(
        lambda: fetcher.fetch(record.pack_id, record.pack_key),
        retry,
        description=f"Fetching manifest for pack {record.pack_id}",
        sleep=sleep,
    )
    partial = project_manifest(record, manifest)
    cache.write(record.pack_id, partial)
    return partial, False


def fetch_all_sticker_packs(
    records: Sequence[InputRecord],
    fetcher: ManifestFetcher,
    cache: CacheStore,
    *,
    concurrency: int = DEFAULT_CONCURRENCY,
    retry: RetryConfig | None = None,
    on_progress: Optional[ProgressCallback] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> StickerPackResults:
    """Build a partial record for every input record.

    Cached packs are read from ``cache``; the rest are fetched through
    ``fetcher`` with bounded retries and written back to ``cache``. Any pack
    that still fails aborts the whole run with that pack's error.
    """

    seen: set[str] = set()
    for record in records:
        validate_pack_id(record.pack_id)
        if record.pack_id in seen:
            raise ValueError(f"Duplicate sticker pack id {record.pack_id!r}")
        seen.add(record.pack_id)

    retry_policy = retry or RetryConfig()
    assembler = ResultAssembler(len(records), on_progress=on_progress)

    def _build_task(index: int, record: InputRecord) -> Callable[[], None]:
        def _task() -> None:
            partial, cache_hit = _resolve_pack(
                record,
                fetcher=fetcher,
                cache=cache,
                retry=retry_policy,
                sleep=sleep,
            )
            assembler.record(index, partial, cache_hit=cache_hit)

        return _task

    LOGGER.info("Downloading sticker pack manifests for %d packs", len(records))
    tasks = [_build_task(index, record) for index, record in enumerate(records)]
    BoundedScheduler(concurrency).run_all(tasks)

    packs = assembler.results()
    LOGGER.info("Done. %s", assembler.counters.summary())
    return StickerPackResults(packs=packs, counters=assembler.counters)
