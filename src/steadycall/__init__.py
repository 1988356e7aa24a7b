"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Module: __init__.py.
"""

from __future__ import annotations

from .errors import (
    CircuitOpenError,
    ConfigurationError,
    FailureKind,
    HttpStatusError,
    ResilienceError,
    TransportError,
)
from .cache import (
    CacheConfig,
    CacheMetrics,
    CacheStats,
    HotItem,
    MemoryCache,
    hash_cache_key,
    make_cache_key,
)
from .observability import (
    InMemoryObserver,
    MetricsObserver,
    PrometheusResilienceMetrics,
    ResilienceEvent,
    ResilienceObserver,
)
from .runtime import (
    CircuitBreaker,
    CircuitBreakerConfig,
    CircuitBreakerRegistry,
    CircuitBreakerSnapshot,
    CircuitState,
    RateLimitPolicy,
    RateLimiter,
    ResilientClient,
    RetryConfig,
    RetryEngine,
    RetryOperation,
    RetryResult,
    TimeoutPolicy,
    classify_error,
    compute_delay,
)
from .settings import ResilienceSettings
from .messages import FailureCategory, FailureNotice, describe_failure, describe_result


def create_resilient_client(
    *,
    settings: ResilienceSettings | None = None,
    observers: list[ResilienceObserver] | None = None,
) -> ResilientClient:
    """Create a client with collaborators built from explicit or env settings."""
    return ResilientClient(
        settings=settings or ResilienceSettings.from_env(),
        observers=observers,
    )


__all__ = [
    "create_resilient_client",
    "ResilientClient",
    "ResilienceSettings",
    "MemoryCache",
    "CacheConfig",
    "CacheMetrics",
    "CacheStats",
    "HotItem",
    "make_cache_key",
    "hash_cache_key",
    "RetryEngine",
    "RetryConfig",
    "RetryOperation",
    "RetryResult",
    "classify_error",
    "compute_delay",
    "CircuitBreaker",
    "CircuitBreakerConfig",
    "CircuitBreakerRegistry",
    "CircuitBreakerSnapshot",
    "CircuitState",
    "RateLimiter",
    "RateLimitPolicy",
    "TimeoutPolicy",
    "ResilienceError",
    "ConfigurationError",
    "TransportError",
    "HttpStatusError",
    "CircuitOpenError",
    "FailureKind",
    "ResilienceEvent",
    "ResilienceObserver",
    "InMemoryObserver",
    "MetricsObserver",
    "PrometheusResilienceMetrics",
    "FailureCategory",
    "FailureNotice",
    "describe_failure",
    "describe_result",
]
