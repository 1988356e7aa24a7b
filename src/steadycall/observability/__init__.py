"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Observability package for steadycall resilience primitives.

Retry engines, breakers and the client emit ``ResilienceEvent`` records to
any ``ResilienceObserver``. ``MetricsObserver`` turns them into counters.

Quick start::

    from steadycall.observability import MetricsObserver, PrometheusResilienceMetrics

    observer = MetricsObserver(PrometheusResilienceMetrics())
    client = ResilientClient(observers=[observer])
"""

from .events import (
    BREAKER_REJECTED,
    BREAKER_RESET,
    BREAKER_STATE_CHANGE,
    CACHE_HIT,
    CACHE_MISS,
    RETRY_ABORTED,
    RETRY_ATTEMPT,
    RETRY_EXHAUSTED,
    RETRY_FAILURE,
    RETRY_SCHEDULED,
    RETRY_SUCCESS,
    InMemoryObserver,
    ResilienceEvent,
    ResilienceObserver,
    emit,
    now_ms,
)
from .metrics import (
    MetricsObserver,
    NoOpMetrics,
    PrometheusResilienceMetrics,
    ResilienceMetrics,
)

__all__ = [
    "ResilienceEvent",
    "ResilienceObserver",
    "InMemoryObserver",
    "emit",
    "now_ms",
    "ResilienceMetrics",
    "NoOpMetrics",
    "MetricsObserver",
    "PrometheusResilienceMetrics",
    "RETRY_ATTEMPT",
    "RETRY_FAILURE",
    "RETRY_SCHEDULED",
    "RETRY_SUCCESS",
    "RETRY_EXHAUSTED",
    "RETRY_ABORTED",
    "BREAKER_STATE_CHANGE",
    "BREAKER_REJECTED",
    "BREAKER_RESET",
    "CACHE_HIT",
    "CACHE_MISS",
]
