"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Module: runtime/retry.py.
"""

from __future__ import annotations

import asyncio
import logging
import math
import random
import socket
import time
from collections.abc import Awaitable, Callable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, TypeVar

from ..errors import CircuitOpenError, FailureKind, TransportError
from ..observability.events import (
    RETRY_ABORTED,
    RETRY_ATTEMPT,
    RETRY_EXHAUSTED,
    RETRY_FAILURE,
    RETRY_SCHEDULED,
    RETRY_SUCCESS,
    ResilienceEvent,
    ResilienceObserver,
    emit,
)
from .contracts import RetryConfig

logger = logging.getLogger("steadycall.retry")

T = TypeVar("T")

# Jitter perturbs the computed delay by up to this fraction either way.
JITTER_RATIO = 0.25


@dataclass(frozen=True, slots=True)
class ErrorClassification:
    """Outcome of classifying one failure."""

    kind: FailureKind
    retryable: bool
    status: int | None = None


@dataclass(slots=True)
class RetryResult:
    """
    Outcome of one retry sequence.

    Attributes:
        success: Whether any attempt succeeded.
        result: Value returned by the successful attempt.
        error: Last error raised when no attempt succeeded.
        attempts: Number of attempts made.
        total_time_s: Wall time spent including sleeps.
        delays_s: Delays slept between attempts, in order.
    """

    success: bool
    result: Any = None
    error: Exception | None = None
    attempts: int = 0
    total_time_s: float = 0.0
    delays_s: list[float] = field(default_factory=list)


@dataclass(slots=True)
class RetryOperation:
    """One entry of a concurrent or series batch."""

    operation: Callable[[], Awaitable[Any]]
    name: str
    config: RetryConfig | Mapping[str, Any] | None = None
    continue_on_error: bool = False


def _status_of(error: BaseException) -> int | None:
    if isinstance(error, TransportError):
        return error.status
    for source in (error, getattr(error, "response", None)):
        if source is None:
            continue
        for attr in ("status", "status_code"):
            value = getattr(source, attr, None)
            if isinstance(value, int) and not isinstance(value, bool):
                return value
    return None


def _kind_of(error: BaseException, status: int | None) -> FailureKind:
    if isinstance(error, TransportError):
        if error.kind is FailureKind.OTHER and status is not None:
            return FailureKind.HTTP_STATUS
        return error.kind
    if isinstance(error, (asyncio.TimeoutError, TimeoutError)):
        return FailureKind.TIMEOUT
    if isinstance(error, (ConnectionError, socket.gaierror)):
        return FailureKind.NETWORK
    if status is not None:
        return FailureKind.HTTP_STATUS
    return FailureKind.OTHER


def classify_error(
    error: BaseException,
    config: RetryConfig | None = None,
) -> ErrorClassification:
    """
    Decide whether a failure is worth another attempt.

    Tagged `TransportError`s classify by kind and status. Foreign exceptions
    fall back to their type, any `status`/`status_code` attribute, and
    phrase matching on message and type name.
    """
    cfg = config or RetryConfig()
    if isinstance(error, CircuitOpenError):
        return ErrorClassification(kind=FailureKind.OTHER, retryable=False)

    status = _status_of(error)
    kind = _kind_of(error, status)
    if kind in (FailureKind.TIMEOUT, FailureKind.NETWORK):
        return ErrorClassification(kind=kind, retryable=True, status=status)
    if status is not None and status in cfg.retryable_status_codes:
        return ErrorClassification(kind=kind, retryable=True, status=status)

    haystack = f"{type(error).__name__} {error}".lower()
    retryable = any(phrase in haystack for phrase in cfg.retryable_errors)
    return ErrorClassification(kind=kind, retryable=retryable, status=status)


def is_transient_failure(error: Exception) -> bool:
    """Breaker predicate: only failures worth retrying mark a dependency unhealthy."""
    return classify_error(error).retryable


def compute_delay(
    attempt: int,
    config: RetryConfig,
    rand: Callable[[], float] = random.random,
) -> float:
    """
    Delay in seconds before the attempt after `attempt` (1-based).

    `min(base * factor**(attempt-1), max)`, perturbed by up to ±25% when
    jitter is on, floored to whole milliseconds.
    """
    try:
        delay = config.base_delay_s * config.backoff_factor ** (attempt - 1)
    except OverflowError:
        delay = config.max_delay_s
    delay = min(delay, config.max_delay_s)
    if config.jitter:
        delay = delay + (rand() - 0.5) * 2 * (delay * JITTER_RATIO)
    return max(0.0, math.floor(delay * 1000) / 1000)


class RetryEngine:
    """
    Re-invokes one fallible async operation with exponential backoff.

    Attempts are strictly sequential. The engine holds no per-call state, so
    one instance can serve every call site.
    """

    def __init__(
        self,
        config: RetryConfig | None = None,
        *,
        observers: Sequence[ResilienceObserver] | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        rand: Callable[[], float] = random.random,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.config = config or RetryConfig()
        self._observers = list(observers or [])
        self._sleep = sleep
        self._rand = rand
        self._clock = clock

    def add_observer(self, observer: ResilienceObserver) -> None:
        self._observers.append(observer)

    async def execute_with_retry(
        self,
        operation: Callable[[], Awaitable[T]],
        name: str,
        config: RetryConfig | Mapping[str, Any] | None = None,
    ) -> RetryResult:
        """Run `operation` under the retry policy; never raises its errors."""
        cfg = RetryConfig.resolve(config, defaults=self.config)
        started = self._clock()
        delays: list[float] = []
        last_error: Exception | None = None
        attempt = 0

        while attempt < cfg.max_attempts:
            attempt += 1
            self._emit(RETRY_ATTEMPT, name, attempt=attempt)
            try:
                value = await operation()
            except Exception as error:
                last_error = error
                verdict = classify_error(error, cfg)
                will_retry = verdict.retryable and attempt < cfg.max_attempts
                logger.warning(
                    "Operation failed: %s (attempt %d/%d, kind=%s, will_retry=%s): %s",
                    name,
                    attempt,
                    cfg.max_attempts,
                    verdict.kind.value,
                    will_retry,
                    error,
                )
                self._emit(
                    RETRY_FAILURE,
                    name,
                    attempt=attempt,
                    error=str(error),
                    attributes={"kind": verdict.kind.value, "retryable": verdict.retryable},
                )
                if not verdict.retryable:
                    self._emit(RETRY_ABORTED, name, attempt=attempt, error=str(error))
                    break
                if not will_retry:
                    self._emit(RETRY_EXHAUSTED, name, attempt=attempt, error=str(error))
                    break

                delay = compute_delay(attempt, cfg, self._rand)
                delays.append(delay)
                self._emit(RETRY_SCHEDULED, name, attempt=attempt, delay_s=delay)
                await self._sleep(delay)
                continue

            elapsed = self._clock() - started
            if attempt > 1:
                logger.info("Operation %s succeeded on attempt %d", name, attempt)
            self._emit(RETRY_SUCCESS, name, attempt=attempt)
            return RetryResult(
                success=True,
                result=value,
                attempts=attempt,
                total_time_s=elapsed,
                delays_s=delays,
            )

        logger.error(
            "Operation %s failed after %d attempt(s): %s", name, attempt, last_error
        )
        return RetryResult(
            success=False,
            error=last_error,
            attempts=attempt,
            total_time_s=self._clock() - started,
            delays_s=delays,
        )

    async def with_retry(
        self,
        operation: Callable[[], Awaitable[T]],
        name: str,
        config: RetryConfig | Mapping[str, Any] | None = None,
    ) -> T:
        """Like `execute_with_retry` but returns the value or raises the last error."""
        outcome = await self.execute_with_retry(operation, name, config)
        if outcome.error is not None:
            raise outcome.error
        return outcome.result

    async def execute_concurrent(
        self,
        operations: Sequence[RetryOperation],
    ) -> list[RetryResult]:
        """Run independent operations concurrently; one result per input, in order."""
        return list(
            await asyncio.gather(
                *(self.execute_with_retry(op.operation, op.name, op.config) for op in operations)
            )
        )

    async def execute_series(
        self,
        operations: Sequence[RetryOperation],
    ) -> list[RetryResult]:
        """
        Run operations one after another.

        A failed operation halts the rest unless its `continue_on_error` is
        set; the failing result is still included.
        """
        results: list[RetryResult] = []
        for index, op in enumerate(operations):
            outcome = await self.execute_with_retry(op.operation, op.name, op.config)
            results.append(outcome)
            if not outcome.success and not op.continue_on_error:
                skipped = len(operations) - index - 1
                if skipped:
                    logger.info("Series halted at %s; skipped %d operation(s)", op.name, skipped)
                break
        return results

    def _emit(self, event_type: str, name: str, **fields: Any) -> None:
        if self._observers:
            emit(self._observers, ResilienceEvent(type=event_type, name=name, **fields))
