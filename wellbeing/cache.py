# Copyright (c) 2026 Nenad Vasic. All rights reserved.
# Licensed under the Business Source License 1.1 (BSL-1.1)
# See LICENSE file in the project root for full license text.

"""
Dashboard cache store — keyed time-series payloads with fetch timestamps.

Pure data access, no refresh policy:
  - dict {Dimension: CacheEntry} + threading.Lock for hot reads
  - write-through to a local key-value store so entries survive restarts;
    put(persist=False) + persist() lets callers move the write off the
    event loop
  - lazy population from the key-value store on first miss
  - corrupt persisted payloads are dropped and read as absent
  - entries past the absolute age ceiling read as absent

Last-writer-wins correctness is NOT handled here: callers check the
RequestArbiter generation before put().
"""

import logging
import threading
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, Optional

from pydantic import ValidationError

from wellbeing.schemas import CacheCorruption, CacheEntry, SeriesRecord
from wellbeing.staleness import MAX_AGE_HOURS, is_expired
from wellbeing.windows import Dimension

logger = logging.getLogger("deite.cache")

_KEY_PREFIX = "emotional_wellbeing_"


class CacheStore:
    """
    Cache of committed dashboard series, one entry per dimension.

    Thread-safe via threading.Lock. All in-memory operations are O(1);
    invalidate_user() scans the persisted keys.
    """

    def __init__(
        self,
        kv=None,
        clock: Callable[[], datetime] = datetime.now,
        max_age_hours: float = MAX_AGE_HOURS,
    ):
        if kv is None:
            from wellbeing.kvstore import MemoryKeyValueStore
            kv = MemoryKeyValueStore()
        self._kv = kv
        self._clock = clock
        self._max_age_hours = max_age_hours
        self._store: Dict[Dimension, CacheEntry] = {}
        self._lock = threading.Lock()
        # Serializes key-value writes against each other and invalidation
        self._persist_lock = threading.Lock()
        self._hits = 0
        self._misses = 0
        self._invalidations = 0
        self._corrupted = 0

    def get(self, dimension: Dimension) -> Optional[CacheEntry]:
        """Get a cached entry. Returns None on miss, corruption or expiry."""
        with self._lock:
            entry = self._store.get(dimension)
            if entry is None:
                entry = self._load_persisted(dimension)
                if entry is not None:
                    self._store[dimension] = entry
            if entry is None:
                self._misses += 1
                return None
            if is_expired(entry.fetched_at, self._clock(), self._max_age_hours):
                logger.debug("Cache entry for %s past age ceiling, dropping", dimension)
                self._drop(dimension)
                self._misses += 1
                return None
            self._hits += 1
            return entry

    def put(
        self,
        dimension: Dimension,
        records: Iterable[SeriesRecord],
        persist: bool = True,
    ) -> CacheEntry:
        """
        Store records with fetched_at = now, replacing any prior entry.

        With persist=False only memory is updated; call persist() (from a
        worker thread if the key-value store blocks) to write it through.
        """
        entry = CacheEntry(
            key=dimension.storage_key,
            user_id=dimension.user_id,
            metric_kind=dimension.metric_kind,
            window=dimension.window,
            records=list(records),
            fetched_at=self._clock(),
        )
        with self._lock:
            self._store[dimension] = entry
        logger.debug("Cached %d records for %s", len(entry.records), dimension)
        if persist:
            self.persist(dimension)
        return entry

    def persist(self, dimension: Dimension) -> bool:
        """
        Write the current in-memory entry for a dimension to the key-value
        store. Returns False if there is nothing to write (never cached,
        or invalidated since).
        """
        with self._persist_lock:
            with self._lock:
                entry = self._store.get(dimension)
            if entry is None:
                return False
            self._kv.set(dimension.storage_key, entry.model_dump(mode="json"))
            return True

    def invalidate(self, dimension: Dimension) -> bool:
        """Remove one entry. Returns True if anything was removed."""
        with self._persist_lock, self._lock:
            removed = self._drop(dimension)
            if removed:
                self._invalidations += 1
        if removed:
            logger.debug("Cache invalidated: %s", dimension)
        return removed

    def invalidate_user(self, user_id: str) -> int:
        """Remove every entry belonging to a user. Returns count removed."""
        removed = 0
        with self._persist_lock, self._lock:
            for dim in [d for d in self._store if d.user_id == user_id]:
                del self._store[dim]
            for key in self._kv.keys(_KEY_PREFIX):
                if self._belongs_to(key, self._kv.get(key), user_id):
                    self._kv.delete(key)
                    removed += 1
            self._invalidations += removed
        if removed:
            logger.info("Cache cleared for user %s (%d entries)", user_id, removed)
        return removed

    def stats(self) -> Dict[str, Any]:
        """Cache statistics."""
        with self._lock:
            total = self._hits + self._misses
            return {
                "entries": len(self._store),
                "hits": self._hits,
                "misses": self._misses,
                "hit_rate": round(self._hits / total, 3) if total > 0 else 0.0,
                "invalidations": self._invalidations,
                "corrupted": self._corrupted,
            }

    # --- internals (caller holds the lock) ---

    def _drop(self, dimension: Dimension) -> bool:
        in_memory = self._store.pop(dimension, None) is not None
        persisted = self._kv.delete(dimension.storage_key)
        return in_memory or persisted

    def _load_persisted(self, dimension: Dimension) -> Optional[CacheEntry]:
        raw = self._kv.get(dimension.storage_key)
        if raw is None:
            return None
        try:
            return self._deserialize(raw)
        except CacheCorruption as e:
            logger.warning("Dropping corrupt cache entry %s: %s", dimension.storage_key, e)
            self._kv.delete(dimension.storage_key)
            self._corrupted += 1
            return None

    @staticmethod
    def _deserialize(raw: Any) -> CacheEntry:
        try:
            return CacheEntry.model_validate(raw)
        except ValidationError as e:
            raise CacheCorruption(f"{e.error_count()} validation error(s)") from e

    @staticmethod
    def _belongs_to(key: str, raw: Any, user_id: str) -> bool:
        if isinstance(raw, dict) and "user_id" in raw:
            return raw["user_id"] == user_id
        return key.endswith(f"_{user_id}")
