"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Lifecycle event types and observer protocol for resilience primitives.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any, Protocol

logger = logging.getLogger("steadycall.observability")

RETRY_ATTEMPT = "retry.attempt"
RETRY_FAILURE = "retry.failure"
RETRY_SCHEDULED = "retry.scheduled"
RETRY_SUCCESS = "retry.success"
RETRY_EXHAUSTED = "retry.exhausted"
RETRY_ABORTED = "retry.aborted"

BREAKER_STATE_CHANGE = "breaker.state_change"
BREAKER_REJECTED = "breaker.rejected"
BREAKER_RESET = "breaker.reset"

CACHE_HIT = "cache.hit"
CACHE_MISS = "cache.miss"


def now_ms() -> int:
    """Return wall-clock time in integer milliseconds."""
    return int(time.time() * 1000)


@dataclass(frozen=True, slots=True)
class ResilienceEvent:
    """
    One observable step of a resilient call.

    Attributes:
        type: Event type constant, e.g. `retry.scheduled`.
        name: Operation or breaker name the event belongs to.
        attempt: 1-based attempt number for retry events.
        delay_s: Delay chosen before the next attempt.
        error: Stringified error for failure events.
        state: Breaker state after a transition.
    """

    type: str
    name: str
    attempt: int | None = None
    delay_s: float | None = None
    error: str | None = None
    state: str | None = None
    timestamp_ms: int = field(default_factory=now_ms)
    attributes: dict[str, Any] = field(default_factory=dict)


class ResilienceObserver(Protocol):
    """Protocol implemented by event consumers (loggers, metrics, tests)."""

    def on_event(self, event: ResilienceEvent) -> None:
        """Handle one lifecycle event."""
        ...


def emit(observers: Sequence[ResilienceObserver], event: ResilienceEvent) -> None:
    """Fan one event out to observers; observer failures never break a call."""
    for observer in observers:
        try:
            observer.on_event(event)
        except Exception:
            logger.exception("Observer %r failed handling %s", observer, event.type)


@dataclass(slots=True)
class InMemoryObserver:
    """Observer that stores events in process memory for tests and debugging."""

    events: list[ResilienceEvent] = field(default_factory=list)

    def on_event(self, event: ResilienceEvent) -> None:
        self.events.append(event)

    def of_type(self, event_type: str) -> list[ResilienceEvent]:
        return [event for event in self.events if event.type == event_type]

    def clear(self) -> None:
        self.events.clear()
