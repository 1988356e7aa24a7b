"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Module: cache/memory.py.
"""

from __future__ import annotations

import json
import logging
import threading
import time
from collections import OrderedDict
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from .base import CacheConfig, CacheItem, CacheMetrics, CacheStats, HotItem

logger = logging.getLogger("steadycall.cache")

T = TypeVar("T")

# Sweep opportunistically on `set` once the store is this full.
_CLEANUP_FILL_RATIO = 0.8


def estimate_size(data: Any) -> int:
    """Rough byte estimate used for reporting only."""
    if data is None:
        return 8
    if isinstance(data, bool):
        return 4
    if isinstance(data, (int, float)):
        return 8
    if isinstance(data, str):
        return len(data) * 2
    if isinstance(data, (dict, list, tuple)):
        try:
            return len(json.dumps(data)) * 2
        except (TypeError, ValueError, RecursionError):
            return 1024
    return 64


class MemoryCache:
    """
    Process-local LRU cache with per-item TTL and hit/miss metrics.

    The ordered mapping doubles as the access-order index: the first key is
    the least recently used, the last the most recently used. Every operation
    holds one lock over both, so the cache is safe to share between threads
    and coroutines. Expiry is lazy; `cleanup` is only a throttled sweep.
    """

    def __init__(
        self,
        config: CacheConfig | None = None,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.config = config or CacheConfig()
        self._clock = clock
        self._items: OrderedDict[str, CacheItem] = OrderedDict()
        self._lock = threading.RLock()
        self._hits = 0
        self._misses = 0
        self._evictions = 0
        self._last_cleanup: float | None = None

    def get(self, key: str) -> Any | None:
        with self._lock:
            item = self._items.get(key)
            if item is None:
                self._record_miss()
                return None
            if item.is_expired(self._clock()):
                del self._items[key]
                self._record_miss()
                return None
            self._items.move_to_end(key)
            item.hit_count += 1
            if self.config.enable_metrics:
                self._hits += 1
            return item.data

    def set(self, key: str, value: Any, ttl_s: float | None = None) -> None:
        ttl = self.config.default_ttl_s if ttl_s is None else ttl_s
        size = estimate_size(value)
        with self._lock:
            now = self._clock()
            if key in self._items:
                del self._items[key]
            else:
                if len(self._items) >= self.config.max_size * _CLEANUP_FILL_RATIO:
                    self._sweep(now)
                if len(self._items) >= self.config.max_size:
                    self._evict_lru()
            self._items[key] = CacheItem(
                data=value,
                timestamp=now,
                ttl_s=ttl,
                size_estimate_bytes=size,
            )

    def has(self, key: str) -> bool:
        with self._lock:
            item = self._items.get(key)
            if item is None:
                return False
            if item.is_expired(self._clock()):
                del self._items[key]
                return False
            return True

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._items.pop(key, None) is not None

    def clear(self) -> None:
        with self._lock:
            self._items.clear()
            self._hits = 0
            self._misses = 0
            self._evictions = 0
            self._last_cleanup = None

    def destroy(self) -> None:
        """Release all entries on shutdown."""
        self.clear()

    def cleanup(self, *, force: bool = False) -> int:
        """
        Remove expired items, at most once per `cleanup_interval_s`.

        Returns the number of items removed. `force=True` skips throttling.
        """
        with self._lock:
            return self._sweep(self._clock(), force=force)

    def size(self) -> int:
        with self._lock:
            return len(self._items)

    def keys(self) -> list[str]:
        """Keys from least to most recently used."""
        with self._lock:
            return list(self._items)

    def __len__(self) -> int:
        return self.size()

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and self.has(key)

    def get_metrics(self) -> CacheMetrics:
        with self._lock:
            return CacheMetrics(
                hits=self._hits,
                misses=self._misses,
                evictions=self._evictions,
                size=len(self._items),
                hit_rate=self._hit_rate(),
            )

    def get_stats(self) -> CacheStats:
        with self._lock:
            return CacheStats(
                size=len(self._items),
                max_size=self.config.max_size,
                hit_rate=self._hit_rate(),
                total_hits=self._hits,
                total_misses=self._misses,
                evictions=self._evictions,
                memory_usage_bytes=sum(i.size_estimate_bytes for i in self._items.values()),
            )

    def get_hot_items(self, limit: int = 10) -> list[HotItem]:
        """Most frequently read keys, highest first."""
        with self._lock:
            rows = [HotItem(key=k, hits=i.hit_count) for k, i in self._items.items()]
        rows.sort(key=lambda row: row.hits, reverse=True)
        return rows[: max(0, limit)]

    async def get_or_set(
        self,
        key: str,
        factory: Callable[[], Awaitable[T]],
        ttl_s: float | None = None,
    ) -> T:
        """Return cached value or await `factory` and store its non-None result."""
        cached = self.get(key)
        if cached is not None:
            return cached
        value = await factory()
        if value is not None:
            self.set(key, value, ttl_s)
        return value

    def _record_miss(self) -> None:
        if self.config.enable_metrics:
            self._misses += 1

    def _hit_rate(self) -> float:
        total = self._hits + self._misses
        return self._hits / total if total > 0 else 0.0

    def _evict_lru(self) -> None:
        if not self._items:
            return
        key, _ = self._items.popitem(last=False)
        self._evictions += 1
        logger.debug("Evicted least recently used key %s", key)

    def _sweep(self, now: float, *, force: bool = False) -> int:
        if (
            not force
            and self._last_cleanup is not None
            and now - self._last_cleanup < self.config.cleanup_interval_s
        ):
            return 0
        self._last_cleanup = now
        expired = [key for key, item in self._items.items() if item.is_expired(now)]
        for key in expired:
            del self._items[key]
        if expired:
            logger.debug("Cache sweep removed %d expired items", len(expired))
        return len(expired)
