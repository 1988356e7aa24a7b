"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Typed runtime policies for resilient outbound calls.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, fields, replace
from typing import Any

from ..errors import ConfigurationError

DEFAULT_RETRYABLE_ERRORS: frozenset[str] = frozenset(
    {
        "econnreset",
        "econnrefused",
        "etimedout",
        "enotfound",
        "eai_again",
        "connection reset",
        "connection refused",
        "connection aborted",
        "name or service not known",
        "temporary failure in name resolution",
        "network error",
        "failed to fetch",
        "timeout",
        "timed out",
        "rate limit",
        "rate_limit",
        "too many requests",
        "quota exceeded",
        "service unavailable",
    }
)

DEFAULT_RETRYABLE_STATUS_CODES: frozenset[int] = frozenset({408, 429, 500, 502, 503, 504})


@dataclass(frozen=True, slots=True)
class RetryConfig:
    """Retry semantics for one logical operation."""

    max_attempts: int = 3
    base_delay_s: float = 1.0
    max_delay_s: float = 30.0
    backoff_factor: float = 2.0
    jitter: bool = True
    retryable_errors: frozenset[str] = DEFAULT_RETRYABLE_ERRORS
    retryable_status_codes: frozenset[int] = DEFAULT_RETRYABLE_STATUS_CODES

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ConfigurationError("max_attempts must be >= 1")
        if self.base_delay_s < 0 or self.max_delay_s < 0:
            raise ConfigurationError("retry delays must be >= 0")
        if self.backoff_factor <= 0:
            raise ConfigurationError("backoff_factor must be > 0")
        # Phrase matching is case-insensitive; store lowered phrases once.
        object.__setattr__(
            self,
            "retryable_errors",
            frozenset(p.lower() for p in self.retryable_errors if p),
        )
        object.__setattr__(
            self,
            "retryable_status_codes",
            frozenset(int(code) for code in self.retryable_status_codes),
        )

    @classmethod
    def resolve(
        cls,
        config: RetryConfig | Mapping[str, Any] | None,
        *,
        defaults: RetryConfig | None = None,
    ) -> RetryConfig:
        """
        Build the effective config for one call.

        Accepts a full `RetryConfig` (used as-is), a partial mapping of field
        overrides merged onto `defaults`, or `None` for `defaults` unchanged.
        """
        base = defaults or cls()
        if config is None:
            return base
        if isinstance(config, RetryConfig):
            return config
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(config) - known)
        if unknown:
            raise ConfigurationError(f"Unknown retry config fields: {', '.join(unknown)}")
        return replace(base, **dict(config))


@dataclass(frozen=True, slots=True)
class CircuitBreakerConfig:
    """
    Consecutive-failure breaker policy.

    Thresholds and timeout have no defaults: each protected dependency picks
    its own. `half_open_max_calls` caps concurrent trial calls while
    half-open; `None` leaves probes unlimited. `record_failure` decides
    which errors count toward the threshold; `None` counts every error.
    """

    failure_threshold: int
    success_threshold: int
    timeout_s: float
    half_open_max_calls: int | None = None
    record_failure: Callable[[Exception], bool] | None = None

    def __post_init__(self) -> None:
        if self.failure_threshold < 1:
            raise ConfigurationError("failure_threshold must be >= 1")
        if self.success_threshold < 1:
            raise ConfigurationError("success_threshold must be >= 1")
        if self.timeout_s <= 0:
            raise ConfigurationError("timeout_s must be > 0")
        if self.half_open_max_calls is not None and self.half_open_max_calls < 1:
            raise ConfigurationError("half_open_max_calls must be >= 1 when set")


@dataclass(frozen=True, slots=True)
class RateLimitPolicy:
    """Token bucket policy used per dependency."""

    requests_per_second: float = 20.0
    burst: int = 40


@dataclass(frozen=True, slots=True)
class TimeoutPolicy:
    """Per-attempt timeout applied to every wrapped operation."""

    request_timeout_s: float | None = 30.0
