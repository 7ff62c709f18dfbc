#!/usr/bin/env python3
# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""
Time-boxed two-tier cache (memory + persistent store).

Tiers:
- memory:     dict of CacheEntry objects (hot path; never touches the store on a live hit)
- persistent: a string key/value store (see cache_store.py), every key namespaced
              under a prefix, value = JSON {"data": ..., "timestamp": <epoch s>, "expiry": <ttl s>}

Expiry is lazy: an entry is live while `now - timestamp < expiry` and is evicted
the next time it is read after that. There is no background sweep.

Persistent-tier failures never reach the caller. They are logged, counted in
`stats.storage_errors`, and reported through the returned result objects
(`CacheWriteResult.persisted`, `CacheLookupResult.degraded`) so callers and tests
can tell "served from memory only" from a real miss.
"""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass
from threading import Lock
from typing import Any, Callable, Dict, Optional, Tuple

from cache.cache_store import StorageUnavailable
from common import CACHE_KEY_PREFIX, DEFAULT_CACHE_TTL_S

_logger = logging.getLogger(__name__)

TIER_MEMORY = "memory"
TIER_PERSISTENT = "persistent"


@dataclass
class BaseCacheStats:
    """Basic cache statistics tracked automatically by TimeBoxedCache."""
    hit: int = 0
    promote: int = 0
    miss: int = 0
    expired: int = 0
    write: int = 0
    storage_errors: int = 0


@dataclass(frozen=True)
class CacheEntry:
    key: str
    value: Any
    created_at: float
    ttl_s: float

    def is_live(self, now: float) -> bool:
        return (now - self.created_at) < self.ttl_s

    def to_record(self) -> Dict[str, Any]:
        """Persisted layout."""
        return {"data": self.value, "timestamp": self.created_at, "expiry": self.ttl_s}

    @classmethod
    def from_record(cls, key: str, record: Any) -> "CacheEntry":
        """Parse a persisted record; raises ValueError if it is not a cache record."""
        if not isinstance(record, dict) or "data" not in record:
            raise ValueError(f"not a cache record: {type(record).__name__}")
        try:
            created_at = float(record["timestamp"])
            ttl_s = float(record["expiry"])
        except (KeyError, TypeError, ValueError) as e:
            raise ValueError(f"bad cache record timestamps: {e}") from e
        return cls(key=key, value=record["data"], created_at=created_at, ttl_s=ttl_s)


@dataclass(frozen=True)
class CacheLookupResult:
    """Outcome of TimeBoxedCache.lookup().

    tier is the tier that served the value (None on a miss). degraded is True when
    the persistent tier could not be consulted, so a miss may not be authoritative.
    """

    value: Any = None
    tier: Optional[str] = None
    degraded: bool = False
    error: Optional[str] = None

    @property
    def hit(self) -> bool:
        return self.tier is not None


@dataclass(frozen=True)
class CacheWriteResult:
    """Outcome of a write. The memory tier always succeeds; persisted reports the store."""

    persisted: bool
    error: Optional[str] = None

    @property
    def degraded(self) -> bool:
        return self.error is not None


class TimeBoxedCache:
    """Expiring key/value cache with a memory tier and an optional persistent tier.

    Args:
        store: persistent-tier backend (JsonFileStore, MemoryStore, ...). None means memory only.
        prefix: namespace prefix for persistent keys; clear() only touches keys with this prefix.
        default_ttl_s: TTL used by set() when none is given.
        clock: returns "now" in epoch seconds (injectable for tests).

    Example:
        cache = TimeBoxedCache(store=JsonFileStore(path=resolve_cache_path("github_cache.json")))
        cache.set("github_projects_data", projects)
        cache.get("github_projects_data")
    """

    def __init__(
        self,
        *,
        store: Optional[Any] = None,
        prefix: str = CACHE_KEY_PREFIX,
        default_ttl_s: float = DEFAULT_CACHE_TTL_S,
        clock: Callable[[], float] = time.time,
    ):
        self._mu = Lock()
        self._store = store
        self._prefix = str(prefix)
        self._default_ttl_s = float(default_ttl_s)
        self._clock = clock
        self._memory: Dict[str, CacheEntry] = {}
        self.stats = BaseCacheStats()

    @property
    def default_ttl_s(self) -> float:
        return self._default_ttl_s

    def _store_key(self, key: str) -> str:
        return f"{self._prefix}{key}"

    def _storage_failed(self, what: str, key: str, err: Exception) -> str:
        self.stats.storage_errors += 1
        msg = f"{type(err).__name__}: {err}"
        _logger.warning("Failed to %s persistent cache entry %r: %s", what, key, msg)
        return msg

    def set(self, key: str, value: Any, ttl_s: Optional[float] = None) -> CacheWriteResult:
        """Store value in memory and best-effort mirror it to the persistent tier."""
        ttl = self._default_ttl_s if ttl_s is None else float(ttl_s)
        entry = CacheEntry(key=key, value=value, created_at=float(self._clock()), ttl_s=ttl)

        with self._mu:
            self._memory[key] = entry
            self.stats.write += 1

            if self._store is None:
                return CacheWriteResult(persisted=False)
            try:
                payload = json.dumps(entry.to_record(), separators=(",", ":"))
                self._store.set_item(self._store_key(key), payload)
            except (StorageUnavailable, TypeError, ValueError) as e:
                return CacheWriteResult(persisted=False, error=self._storage_failed("store", key, e))
            return CacheWriteResult(persisted=True)

    def lookup(self, key: str) -> CacheLookupResult:
        """Read key: memory first, then the persistent tier (promoting live entries)."""
        now = float(self._clock())

        with self._mu:
            entry = self._memory.get(key)
            if entry is not None:
                if entry.is_live(now):
                    self.stats.hit += 1
                    return CacheLookupResult(value=entry.value, tier=TIER_MEMORY)
                del self._memory[key]
                self.stats.expired += 1

            if self._store is None:
                self.stats.miss += 1
                return CacheLookupResult()

            store_key = self._store_key(key)
            try:
                raw = self._store.get_item(store_key)
                if raw is None:
                    self.stats.miss += 1
                    return CacheLookupResult()
                persisted = CacheEntry.from_record(key, json.loads(raw))
            except (StorageUnavailable, ValueError) as e:
                err = self._storage_failed("read", key, e)
                self.stats.miss += 1
                return CacheLookupResult(degraded=True, error=err)

            if persisted.is_live(now):
                self._memory[key] = persisted
                self.stats.promote += 1
                _logger.debug("Promoted %r from persistent tier", key)
                return CacheLookupResult(value=persisted.value, tier=TIER_PERSISTENT)

            self.stats.expired += 1
            self.stats.miss += 1
            try:
                self._store.remove_item(store_key)
            except StorageUnavailable as e:
                err = self._storage_failed("remove expired", key, e)
                return CacheLookupResult(degraded=True, error=err)
            return CacheLookupResult()

    def get(self, key: str) -> Optional[Any]:
        """Return the live value for key, or None."""
        return self.lookup(key).value

    def has(self, key: str) -> bool:
        return self.lookup(key).hit

    def delete(self, key: str) -> CacheWriteResult:
        """Evict key from both tiers."""
        with self._mu:
            self._memory.pop(key, None)
            if self._store is None:
                return CacheWriteResult(persisted=False)
            try:
                self._store.remove_item(self._store_key(key))
            except StorageUnavailable as e:
                return CacheWriteResult(persisted=False, error=self._storage_failed("remove", key, e))
            return CacheWriteResult(persisted=True)

    def clear(self) -> CacheWriteResult:
        """Empty the memory tier and drop every persistent key in this cache's namespace."""
        with self._mu:
            self._memory.clear()
            if self._store is None:
                return CacheWriteResult(persisted=False)
            try:
                for store_key in self._store.keys():
                    if store_key.startswith(self._prefix):
                        self._store.remove_item(store_key)
            except StorageUnavailable as e:
                return CacheWriteResult(persisted=False, error=self._storage_failed("clear", "*", e))
            return CacheWriteResult(persisted=True)

    def drop_memory_tier(self) -> None:
        """Forget the memory tier only (what a process restart does)."""
        with self._mu:
            self._memory.clear()

    def get_cache_sizes(self) -> Tuple[int, int]:
        """Return (mem_count, persistent_count) for this cache's namespace.

        persistent_count is 0 when the store is missing or unreadable.
        """
        with self._mu:
            mem_count = len(self._memory)
            if self._store is None:
                return (mem_count, 0)
            try:
                disk_count = sum(1 for k in self._store.keys() if k.startswith(self._prefix))
            except StorageUnavailable:
                disk_count = 0
            return (mem_count, disk_count)
