"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Module: runtime/circuit_breaker.py.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Awaitable, Callable, Sequence
from enum import Enum
from typing import TypeVar

from pydantic import BaseModel, ConfigDict, ValidationError

from ..errors import CircuitOpenError, ConfigurationError
from ..observability.events import (
    BREAKER_REJECTED,
    BREAKER_RESET,
    BREAKER_STATE_CHANGE,
    ResilienceEvent,
    ResilienceObserver,
    emit,
)
from .contracts import CircuitBreakerConfig

logger = logging.getLogger("steadycall.circuit_breaker")

T = TypeVar("T")

StateChangeCallback = Callable[["CircuitState", "CircuitState"], None]


class CircuitState(str, Enum):
    """Breaker health states."""

    CLOSED = "CLOSED"
    OPEN = "OPEN"
    HALF_OPEN = "HALF_OPEN"


class CircuitBreakerSnapshot(BaseModel):
    """
    Serializable view of one breaker's state and counters.

    `open_remaining_s` is relative so a snapshot stays meaningful when it is
    imported under a different clock.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    state: CircuitState = CircuitState.CLOSED
    failure_count: int = 0
    success_count: int = 0
    total_calls: int = 0
    total_successes: int = 0
    total_failures: int = 0
    rejected_calls: int = 0
    state_changes: int = 0
    open_remaining_s: float | None = None


class CircuitBreaker:
    """
    Consecutive-failure breaker guarding one downstream dependency.

    OPEN moves to HALF_OPEN lazily, on the first call at or after the retry
    deadline. State transitions happen under a lock; the wrapped operation
    always runs outside it.
    """

    def __init__(
        self,
        config: CircuitBreakerConfig,
        *,
        name: str = "circuit-breaker",
        clock: Callable[[], float] = time.monotonic,
        observers: Sequence[ResilienceObserver] | None = None,
        on_state_change: StateChangeCallback | None = None,
    ) -> None:
        self.config = config
        self.name = name
        self._clock = clock
        self._observers = list(observers or [])
        self._on_state_change = on_state_change
        self._lock = threading.Lock()
        self._zero()

    def _zero(self) -> None:
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._success_count = 0
        self._last_failure_time: float | None = None
        self._last_success_time: float | None = None
        self._next_attempt_at = 0.0
        self._half_open_in_flight = 0
        self._total_calls = 0
        self._total_successes = 0
        self._total_failures = 0
        self._rejected_calls = 0
        self._state_changes = 0

    @property
    def state(self) -> CircuitState:
        return self.get_state()

    @property
    def failure_count(self) -> int:
        return self._failure_count

    @property
    def success_count(self) -> int:
        return self._success_count

    @property
    def last_failure_time(self) -> float | None:
        return self._last_failure_time

    @property
    def next_attempt_at(self) -> float:
        return self._next_attempt_at

    def get_state(self) -> CircuitState:
        with self._lock:
            return self._state

    def is_open(self) -> bool:
        return self.get_state() is CircuitState.OPEN

    def is_closed(self) -> bool:
        return self.get_state() is CircuitState.CLOSED

    def set_on_state_change(self, callback: StateChangeCallback | None) -> None:
        self._on_state_change = callback

    async def execute(self, operation: Callable[[], Awaitable[T]]) -> T:
        """
        Run `operation` unless the circuit rejects it.

        Raises `CircuitOpenError` without invoking `operation` while the
        circuit is open; re-raises the operation's own error otherwise.
        """
        probe = self._admit()
        try:
            result = await operation()
        except Exception as error:
            if self._counts_as_failure(error):
                self._record_failure(probe)
            else:
                self._release(probe)
            raise
        except BaseException:
            self._release(probe)
            raise
        self._record_success(probe)
        return result

    def reset(self) -> None:
        """Force CLOSED with every counter at zero."""
        with self._lock:
            previous = self._state
            self._zero()
        logger.info("Circuit breaker %s reset", self.name)
        if previous is not CircuitState.CLOSED:
            self._notify([(previous, CircuitState.CLOSED)])
        self._emit(BREAKER_RESET, state=CircuitState.CLOSED.value)

    def force_open(self) -> None:
        with self._lock:
            now = self._clock()
            self._last_failure_time = now
            changes = self._open(now)
        self._notify(changes)

    def force_close(self) -> None:
        with self._lock:
            changes = self._transition(CircuitState.CLOSED)
            self._last_failure_time = None
        self._notify(changes)

    def get_metrics(self) -> CircuitBreakerSnapshot:
        with self._lock:
            remaining = None
            if self._state is CircuitState.OPEN:
                remaining = max(0.0, self._next_attempt_at - self._clock())
            return CircuitBreakerSnapshot(
                name=self.name,
                state=self._state,
                failure_count=self._failure_count,
                success_count=self._success_count,
                total_calls=self._total_calls,
                total_successes=self._total_successes,
                total_failures=self._total_failures,
                rejected_calls=self._rejected_calls,
                state_changes=self._state_changes,
                open_remaining_s=remaining,
            )

    def export_state(self) -> str:
        """Serialize current state to JSON."""
        return self.get_metrics().model_dump_json()

    def import_state(self, payload: str | CircuitBreakerSnapshot) -> None:
        """Restore state previously produced by `export_state`."""
        if isinstance(payload, CircuitBreakerSnapshot):
            snapshot = payload
        else:
            try:
                snapshot = CircuitBreakerSnapshot.model_validate_json(payload)
            except ValidationError as exc:
                raise ConfigurationError(f"Invalid circuit breaker state: {exc}") from exc

        with self._lock:
            self._zero()
            self._state = snapshot.state
            self._failure_count = snapshot.failure_count
            self._success_count = snapshot.success_count
            self._total_calls = snapshot.total_calls
            self._total_successes = snapshot.total_successes
            self._total_failures = snapshot.total_failures
            self._rejected_calls = snapshot.rejected_calls
            self._state_changes = snapshot.state_changes
            if snapshot.state is CircuitState.OPEN:
                self._next_attempt_at = self._clock() + (snapshot.open_remaining_s or 0.0)

    def _admit(self) -> bool:
        """Gate one call; returns whether it holds a half-open probe slot."""
        changes: list[tuple[CircuitState, CircuitState]] = []
        rejection: CircuitOpenError | None = None
        probe = False
        with self._lock:
            now = self._clock()
            if self._state is CircuitState.OPEN:
                if now < self._next_attempt_at:
                    rejection = CircuitOpenError(
                        self.name, retry_after_s=self._next_attempt_at - now
                    )
                else:
                    changes = self._transition(CircuitState.HALF_OPEN)
            if rejection is None and self._state is CircuitState.HALF_OPEN:
                limit = self.config.half_open_max_calls
                if limit is not None and self._half_open_in_flight >= limit:
                    rejection = CircuitOpenError(self.name)
                else:
                    self._half_open_in_flight += 1
                    probe = True
            if rejection is not None:
                self._rejected_calls += 1
        self._notify(changes)
        if rejection is not None:
            self._emit(BREAKER_REJECTED, state=self._state.value, error=str(rejection))
            raise rejection
        return probe

    def _counts_as_failure(self, error: Exception) -> bool:
        predicate = self.config.record_failure
        return predicate is None or predicate(error)

    def _release(self, probe: bool) -> None:
        if probe:
            with self._lock:
                self._half_open_in_flight = max(0, self._half_open_in_flight - 1)

    def _record_success(self, probe: bool) -> None:
        changes: list[tuple[CircuitState, CircuitState]] = []
        with self._lock:
            if probe:
                self._half_open_in_flight = max(0, self._half_open_in_flight - 1)
            self._total_calls += 1
            self._total_successes += 1
            self._last_success_time = self._clock()
            self._failure_count = 0
            if self._state is CircuitState.HALF_OPEN:
                self._success_count += 1
                if self._success_count >= self.config.success_threshold:
                    changes = self._transition(CircuitState.CLOSED)
        self._notify(changes)

    def _record_failure(self, probe: bool) -> None:
        changes: list[tuple[CircuitState, CircuitState]] = []
        with self._lock:
            if probe:
                self._half_open_in_flight = max(0, self._half_open_in_flight - 1)
            now = self._clock()
            self._total_calls += 1
            self._total_failures += 1
            self._failure_count += 1
            self._last_failure_time = now
            if self._state is CircuitState.HALF_OPEN or (
                self._state is CircuitState.CLOSED
                and self._failure_count >= self.config.failure_threshold
            ):
                changes = self._open(now)
        self._notify(changes)

    def _open(self, now: float) -> list[tuple[CircuitState, CircuitState]]:
        self._next_attempt_at = now + self.config.timeout_s
        self._success_count = 0
        return self._transition(CircuitState.OPEN)

    def _transition(self, target: CircuitState) -> list[tuple[CircuitState, CircuitState]]:
        previous = self._state
        if previous is target:
            return []
        self._state = target
        self._state_changes += 1
        self._success_count = 0
        if target is CircuitState.CLOSED:
            self._failure_count = 0
        return [(previous, target)]

    def _notify(self, changes: list[tuple[CircuitState, CircuitState]]) -> None:
        for previous, current in changes:
            logger.info(
                "Circuit breaker %s: %s -> %s", self.name, previous.value, current.value
            )
            self._emit(
                BREAKER_STATE_CHANGE,
                state=current.value,
                attributes={"previous": previous.value},
            )
            if self._on_state_change is not None:
                try:
                    self._on_state_change(previous, current)
                except Exception:
                    logger.exception("State change callback failed for %s", self.name)

    def _emit(self, event_type: str, **fields) -> None:
        if self._observers:
            emit(self._observers, ResilienceEvent(type=event_type, name=self.name, **fields))


class CircuitBreakerRegistry:
    """
    Per-dependency breakers, one instance per downstream.

    Instance-scoped: components receive the registry they should use, so one
    provider's outage never suppresses calls to another.
    """

    def __init__(
        self,
        default_config: CircuitBreakerConfig | None = None,
        *,
        clock: Callable[[], float] = time.monotonic,
        observers: Sequence[ResilienceObserver] | None = None,
    ) -> None:
        self.default_config = default_config
        self._clock = clock
        self._observers = list(observers or [])
        self._breakers: dict[str, CircuitBreaker] = {}
        self._lock = threading.Lock()

    @staticmethod
    def _key(name: str) -> str:
        key = name.strip().lower()
        if not key:
            raise ConfigurationError("Circuit breaker name must be non-empty")
        return key

    def get_or_create(
        self,
        name: str,
        config: CircuitBreakerConfig | None = None,
    ) -> CircuitBreaker:
        """Return the breaker for `name`, creating it on first use."""
        key = self._key(name)
        with self._lock:
            existing = self._breakers.get(key)
            if existing is not None:
                return existing
            resolved = config or self.default_config
            if resolved is None:
                raise ConfigurationError(
                    f"No circuit breaker config for '{name}' and no registry default"
                )
            breaker = CircuitBreaker(
                resolved,
                name=key,
                clock=self._clock,
                observers=self._observers,
            )
            self._breakers[key] = breaker
            return breaker

    def register(self, breaker: CircuitBreaker, *, overwrite: bool = False) -> None:
        key = self._key(breaker.name)
        with self._lock:
            if key in self._breakers and not overwrite:
                raise ConfigurationError(f"Circuit breaker already registered: {key}")
            self._breakers[key] = breaker

    def get(self, name: str) -> CircuitBreaker | None:
        with self._lock:
            return self._breakers.get(self._key(name))

    def remove(self, name: str) -> bool:
        with self._lock:
            return self._breakers.pop(self._key(name), None) is not None

    def names(self) -> list[str]:
        with self._lock:
            return sorted(self._breakers)

    def reset_all(self) -> None:
        with self._lock:
            breakers = list(self._breakers.values())
        for breaker in breakers:
            breaker.reset()

    def get_all_metrics(self) -> dict[str, CircuitBreakerSnapshot]:
        with self._lock:
            breakers = dict(self._breakers)
        return {name: breaker.get_metrics() for name, breaker in breakers.items()}

    def __contains__(self, name: object) -> bool:
        if not isinstance(name, str):
            return False
        with self._lock:
            return name.strip().lower() in self._breakers

    def __len__(self) -> int:
        with self._lock:
            return len(self._breakers)
