"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Module: runtime/rate_limit.py.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from ..errors import ConfigurationError
from .contracts import RateLimitPolicy


@dataclass(slots=True)
class _Bucket:
    """Token count for one key as of `updated_at_s`."""

    tokens: float
    updated_at_s: float

    def refill(self, now: float, policy: RateLimitPolicy) -> None:
        elapsed = max(0.0, now - self.updated_at_s)
        self.tokens = min(float(policy.burst), self.tokens + elapsed * policy.requests_per_second)
        self.updated_at_s = now


class RateLimiter:
    """
    Token bucket limiter keyed by dependency, e.g. `gemini:generate`.

    Buckets start full at `policy.burst` and refill continuously at
    `policy.requests_per_second`. A policy with a non-positive rate disables
    limiting for that call.
    """

    def __init__(
        self,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._buckets: dict[str, _Bucket] = {}
        self._lock = asyncio.Lock()
        self._clock = clock
        self._sleep = sleep

    def _bucket(self, key: str, policy: RateLimitPolicy, now: float) -> _Bucket:
        bucket = self._buckets.get(key)
        if bucket is None:
            bucket = _Bucket(tokens=float(policy.burst), updated_at_s=now)
            self._buckets[key] = bucket
        else:
            bucket.refill(now, policy)
        return bucket

    def _take(self, key: str, policy: RateLimitPolicy, cost: float) -> float:
        """Spend `cost` tokens, or return the seconds until they exist."""
        if cost > policy.burst:
            raise ConfigurationError(
                f"Cannot take {cost} tokens from '{key}' with burst {policy.burst}"
            )
        bucket = self._bucket(key, policy, self._clock())
        if bucket.tokens >= cost:
            bucket.tokens -= cost
            return 0.0
        return (cost - bucket.tokens) / policy.requests_per_second

    async def acquire(self, key: str, policy: RateLimitPolicy, cost: float = 1.0) -> None:
        """Wait until `cost` tokens for `key` are available, then spend them."""
        if policy.requests_per_second <= 0:
            return
        while True:
            async with self._lock:
                wait_s = self._take(key, policy, cost)
            if wait_s <= 0:
                return
            await self._sleep(max(wait_s, 0.001))

    def try_acquire(self, key: str, policy: RateLimitPolicy, cost: float = 1.0) -> bool:
        """Spend `cost` tokens if available without waiting."""
        if policy.requests_per_second <= 0:
            return True
        return self._take(key, policy, cost) <= 0

    def available(self, key: str, policy: RateLimitPolicy) -> float:
        bucket = self._buckets.get(key)
        if bucket is None:
            return float(policy.burst)
        elapsed = max(0.0, self._clock() - bucket.updated_at_s)
        return min(float(policy.burst), bucket.tokens + elapsed * policy.requests_per_second)

    def reset(self, key: str | None = None) -> None:
        if key is None:
            self._buckets.clear()
        else:
            self._buckets.pop(key, None)

    def keys(self) -> list[str]:
        return sorted(self._buckets)
