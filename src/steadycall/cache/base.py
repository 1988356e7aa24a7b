"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Module: cache/base.py.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol

from ..errors import ConfigurationError


@dataclass(frozen=True, slots=True)
class CacheConfig:
    """Bounded in-memory cache controls."""

    max_size: int = 200
    default_ttl_s: float = 300.0
    cleanup_interval_s: float = 60.0
    enable_metrics: bool = True

    def __post_init__(self) -> None:
        if self.max_size < 1:
            raise ConfigurationError("max_size must be >= 1")
        if self.default_ttl_s < 0:
            raise ConfigurationError("default_ttl_s must be >= 0")
        if self.cleanup_interval_s < 0:
            raise ConfigurationError("cleanup_interval_s must be >= 0")


@dataclass(slots=True)
class CacheItem:
    """One cached row with expiry and access bookkeeping."""

    data: Any
    timestamp: float
    ttl_s: float
    hit_count: int = 0
    size_estimate_bytes: int = 0

    def is_expired(self, now: float) -> bool:
        return now - self.timestamp > self.ttl_s


@dataclass(frozen=True, slots=True)
class CacheMetrics:
    """Running hit/miss/eviction counters."""

    hits: int = 0
    misses: int = 0
    evictions: int = 0
    size: int = 0
    hit_rate: float = 0.0


@dataclass(frozen=True, slots=True)
class CacheStats:
    """Capacity and memory snapshot for diagnostics."""

    size: int
    max_size: int
    hit_rate: float
    total_hits: int
    total_misses: int
    evictions: int
    memory_usage_bytes: int


@dataclass(frozen=True, slots=True)
class HotItem:
    """Key with its read count."""

    key: str
    hits: int


class CacheBackend(Protocol):
    """Protocol implemented by caches consumed by the resilient client."""

    def get(self, key: str) -> Any | None: ...

    def set(self, key: str, value: Any, ttl_s: float | None = None) -> None: ...

    def has(self, key: str) -> bool: ...

    def delete(self, key: str) -> bool: ...

    def clear(self) -> None: ...
