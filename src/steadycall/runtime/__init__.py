"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Module: runtime/__init__.py.
"""

from .contracts import (
    DEFAULT_RETRYABLE_ERRORS,
    DEFAULT_RETRYABLE_STATUS_CODES,
    CircuitBreakerConfig,
    RateLimitPolicy,
    RetryConfig,
    TimeoutPolicy,
)
from .circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerRegistry,
    CircuitBreakerSnapshot,
    CircuitState,
)
from .coalescing import RequestCoalescer
from .rate_limit import RateLimiter
from .retry import (
    ErrorClassification,
    RetryEngine,
    RetryOperation,
    RetryResult,
    classify_error,
    compute_delay,
    is_transient_failure,
)
from .timeouts import await_with_timeout, with_timeout
from .client import ResilientClient

__all__ = [
    "ResilientClient",
    "RetryConfig",
    "CircuitBreakerConfig",
    "RateLimitPolicy",
    "TimeoutPolicy",
    "DEFAULT_RETRYABLE_ERRORS",
    "DEFAULT_RETRYABLE_STATUS_CODES",
    "CircuitBreaker",
    "CircuitBreakerRegistry",
    "CircuitBreakerSnapshot",
    "CircuitState",
    "RequestCoalescer",
    "RateLimiter",
    "RetryEngine",
    "RetryOperation",
    "RetryResult",
    "ErrorClassification",
    "classify_error",
    "compute_delay",
    "is_transient_failure",
    "await_with_timeout",
    "with_timeout",
]
