"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Resilience runtime settings and explicit config loading.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass

from .cache.base import CacheConfig
from .errors import ConfigurationError
from .runtime.contracts import (
    CircuitBreakerConfig,
    RateLimitPolicy,
    RetryConfig,
    TimeoutPolicy,
)
from .runtime.retry import is_transient_failure

ENV_PREFIX = "STEADYCALL_"

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


def _env(env: Mapping[str, str], name: str, default: str) -> str:
    return env.get(f"{ENV_PREFIX}{name}", default).strip()


def _number(env: Mapping[str, str], name: str, default: str, cast=float):
    raw = _env(env, name, default)
    try:
        return cast(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{ENV_PREFIX}{name} must be a number, got {raw!r}") from exc


def _flag(env: Mapping[str, str], name: str, default: bool) -> bool:
    raw = _env(env, name, "true" if default else "false").lower()
    if raw in _TRUE:
        return True
    if raw in _FALSE:
        return False
    raise ConfigurationError(f"{ENV_PREFIX}{name} must be a boolean, got {raw!r}")


def _optional_timeout(env: Mapping[str, str], name: str, default: str) -> float | None:
    raw = _env(env, name, default).lower()
    if raw in {"", "none", "off"}:
        return None
    return _number(env, name, default)


@dataclass(frozen=True, slots=True)
class ResilienceSettings:
    """Explicit settings used to build caches, retry engines and breakers."""

    retry_max_attempts: int = 3
    retry_base_delay_s: float = 1.0
    retry_max_delay_s: float = 30.0
    retry_backoff_factor: float = 2.0
    retry_jitter: bool = True

    cache_max_size: int = 200
    cache_default_ttl_s: float = 300.0
    cache_cleanup_interval_s: float = 60.0
    cache_enable_metrics: bool = True

    breaker_failure_threshold: int = 5
    breaker_success_threshold: int = 2
    breaker_timeout_s: float = 60.0
    breaker_half_open_max_calls: int | None = None
    breaker_count_non_retryable: bool = False

    request_timeout_s: float | None = 30.0
    rate_limit_rps: float = 0.0
    rate_limit_burst: int = 10

    @staticmethod
    def from_env(env: Mapping[str, str] | None = None) -> "ResilienceSettings":
        """Load settings from `STEADYCALL_*` environment variables."""
        source = os.environ if env is None else env
        half_open = _env(source, "BREAKER_HALF_OPEN_MAX_CALLS", "")
        return ResilienceSettings(
            retry_max_attempts=_number(source, "RETRY_MAX_ATTEMPTS", "3", int),
            retry_base_delay_s=_number(source, "RETRY_BASE_DELAY_S", "1.0"),
            retry_max_delay_s=_number(source, "RETRY_MAX_DELAY_S", "30"),
            retry_backoff_factor=_number(source, "RETRY_BACKOFF_FACTOR", "2"),
            retry_jitter=_flag(source, "RETRY_JITTER", True),
            cache_max_size=_number(source, "CACHE_MAX_SIZE", "200", int),
            cache_default_ttl_s=_number(source, "CACHE_DEFAULT_TTL_S", "300"),
            cache_cleanup_interval_s=_number(source, "CACHE_CLEANUP_INTERVAL_S", "60"),
            cache_enable_metrics=_flag(source, "CACHE_ENABLE_METRICS", True),
            breaker_failure_threshold=_number(source, "BREAKER_FAILURE_THRESHOLD", "5", int),
            breaker_success_threshold=_number(source, "BREAKER_SUCCESS_THRESHOLD", "2", int),
            breaker_timeout_s=_number(source, "BREAKER_TIMEOUT_S", "60"),
            breaker_half_open_max_calls=(
                _number(source, "BREAKER_HALF_OPEN_MAX_CALLS", half_open, int)
                if half_open
                else None
            ),
            breaker_count_non_retryable=_flag(source, "BREAKER_COUNT_NON_RETRYABLE", False),
            request_timeout_s=_optional_timeout(source, "REQUEST_TIMEOUT_S", "30"),
            rate_limit_rps=_number(source, "RATE_LIMIT_RPS", "0"),
            rate_limit_burst=_number(source, "RATE_LIMIT_BURST", "10", int),
        )

    def retry_config(self) -> RetryConfig:
        return RetryConfig(
            max_attempts=self.retry_max_attempts,
            base_delay_s=self.retry_base_delay_s,
            max_delay_s=self.retry_max_delay_s,
            backoff_factor=self.retry_backoff_factor,
            jitter=self.retry_jitter,
        )

    def cache_config(self) -> CacheConfig:
        return CacheConfig(
            max_size=self.cache_max_size,
            default_ttl_s=self.cache_default_ttl_s,
            cleanup_interval_s=self.cache_cleanup_interval_s,
            enable_metrics=self.cache_enable_metrics,
        )

    def breaker_config(self) -> CircuitBreakerConfig:
        return CircuitBreakerConfig(
            failure_threshold=self.breaker_failure_threshold,
            success_threshold=self.breaker_success_threshold,
            timeout_s=self.breaker_timeout_s,
            half_open_max_calls=self.breaker_half_open_max_calls,
            record_failure=None if self.breaker_count_non_retryable else is_transient_failure,
        )

    def timeout_policy(self) -> TimeoutPolicy:
        return TimeoutPolicy(request_timeout_s=self.request_timeout_s)

    def rate_limit_policy(self) -> RateLimitPolicy:
        return RateLimitPolicy(
            requests_per_second=self.rate_limit_rps,
            burst=self.rate_limit_burst,
        )
