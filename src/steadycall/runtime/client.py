"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Module: runtime/client.py.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Mapping, Sequence
from typing import Any, TypeVar

from ..cache.base import CacheBackend
from ..cache.memory import MemoryCache
from ..observability.events import (
    CACHE_HIT,
    CACHE_MISS,
    ResilienceEvent,
    ResilienceObserver,
    emit,
)
from ..settings import ResilienceSettings
from ..utils import run_sync
from .circuit_breaker import CircuitBreaker, CircuitBreakerRegistry
from .coalescing import RequestCoalescer
from .contracts import RateLimitPolicy, RetryConfig, TimeoutPolicy
from .rate_limit import RateLimiter
from .retry import RetryEngine
from .timeouts import with_timeout

logger = logging.getLogger("steadycall.client")

T = TypeVar("T")


class ResilientClient:
    """
    Cache → circuit breaker → retry → call, for one outbound operation.

    Every collaborator is injected; missing ones are built from `settings`.
    Breakers are per dependency, so a failing provider only trips its own.
    """

    def __init__(
        self,
        *,
        settings: ResilienceSettings | None = None,
        cache: CacheBackend | None = None,
        retry: RetryEngine | None = None,
        breakers: CircuitBreakerRegistry | None = None,
        rate_limiter: RateLimiter | None = None,
        observers: Sequence[ResilienceObserver] | None = None,
        coalesce: bool = True,
    ) -> None:
        self.settings = settings or ResilienceSettings()
        self._observers = list(observers or [])
        self.cache: CacheBackend = (
            cache if cache is not None else MemoryCache(self.settings.cache_config())
        )
        self.retry = retry or RetryEngine(
            self.settings.retry_config(),
            observers=self._observers,
        )
        self.breakers = breakers or CircuitBreakerRegistry(
            self.settings.breaker_config(),
            observers=self._observers,
        )
        self.rate_limiter = rate_limiter or RateLimiter()
        self._timeout_policy = self.settings.timeout_policy()
        self._rate_limit_policy = self.settings.rate_limit_policy()
        self._coalescer = RequestCoalescer() if coalesce else None

    def breaker(self, dependency: str) -> CircuitBreaker:
        """Return the breaker guarding `dependency`."""
        return self.breakers.get_or_create(dependency)

    async def call(
        self,
        key: str | None,
        operation: Callable[[], Awaitable[T]],
        *,
        dependency: str,
        name: str | None = None,
        ttl_s: float | None = None,
        retry_config: RetryConfig | Mapping[str, Any] | None = None,
        timeout: TimeoutPolicy | None = None,
        rate_limit: RateLimitPolicy | None = None,
        use_cache: bool = True,
    ) -> T:
        """
        Execute one logical operation with caching and fault tolerance.

        Args:
            key: Cache key (`service:namespace:id`); `None` bypasses the cache.
            operation: Zero-arg factory performing the real network call.
            dependency: Downstream identifier selecting the circuit breaker.
            name: Operation name for logs/events; defaults to key or dependency.
            ttl_s: Cache lifetime override for this result.
            retry_config: Full config or partial overrides for this call.
            timeout: Per-attempt timeout override.
            rate_limit: Token bucket override for this dependency.
            use_cache: Set False to force a fresh call.

        Raises:
            CircuitOpenError: The dependency's breaker is rejecting calls.
            Exception: The last error of the operation when retries fail.
        """
        op_name = name or key or dependency
        cacheable = use_cache and key is not None

        if cacheable:
            cached = self.cache.get(key)
            if cached is not None:
                self._emit(CACHE_HIT, op_name)
                return cached
            self._emit(CACHE_MISS, op_name)

        timeout_policy = timeout or self._timeout_policy
        limit_policy = rate_limit or self._rate_limit_policy
        bounded = with_timeout(operation, timeout_policy.request_timeout_s)

        async def _attempt() -> T:
            await self.rate_limiter.acquire(dependency, limit_policy)
            return await bounded()

        async def _guarded() -> T:
            breaker = self.breaker(dependency)
            result = await breaker.execute(
                lambda: self.retry.with_retry(_attempt, op_name, retry_config)
            )
            if cacheable and result is not None:
                self.cache.set(key, result, ttl_s)
            return result

        if cacheable and self._coalescer is not None:
            return await self._coalescer.run(f"{dependency}|{key}", _guarded)
        return await _guarded()

    def call_sync(
        self,
        key: str | None,
        operation: Callable[[], Awaitable[T]],
        **kwargs: Any,
    ) -> T:
        """Synchronous wrapper around `call`."""
        return run_sync(self.call(key, operation, **kwargs))

    def invalidate(self, key: str) -> bool:
        """Drop one cached result."""
        return self.cache.delete(key)

    def _emit(self, event_type: str, name: str) -> None:
        if self._observers:
            emit(self._observers, ResilienceEvent(type=event_type, name=name))
