"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Module: cache/__init__.py.
"""

from .base import CacheBackend, CacheConfig, CacheItem, CacheMetrics, CacheStats, HotItem
from .keys import hash_cache_key, make_cache_key
from .memory import MemoryCache, estimate_size

__all__ = [
    "CacheBackend",
    "CacheConfig",
    "CacheItem",
    "CacheMetrics",
    "CacheStats",
    "HotItem",
    "MemoryCache",
    "estimate_size",
    "make_cache_key",
    "hash_cache_key",
]
