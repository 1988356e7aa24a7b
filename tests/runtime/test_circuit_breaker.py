from __future__ import annotations

import asyncio

import pytest

from steadycall.errors import CircuitOpenError, ConfigurationError
from steadycall.observability import InMemoryObserver
from steadycall.observability.events import (
    BREAKER_REJECTED,
    BREAKER_RESET,
    BREAKER_STATE_CHANGE,
)
from steadycall.runtime import (
    CircuitBreaker,
    CircuitBreakerConfig,
    CircuitBreakerRegistry,
    CircuitState,
)


class _Clock:
    def __init__(self, now: float = 500.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def run_async(coro):
    return asyncio.run(coro)


async def _ok() -> str:
    return "ok"


async def _fail() -> None:
    raise RuntimeError("boom")


def _config(**overrides) -> CircuitBreakerConfig:
    values = {"failure_threshold": 3, "success_threshold": 2, "timeout_s": 10.0}
    values.update(overrides)
    return CircuitBreakerConfig(**values)


def _trip(breaker: CircuitBreaker, times: int = 3) -> None:
    for _ in range(times):
        with pytest.raises(RuntimeError, match="boom"):
            run_async(breaker.execute(_fail))


def test_opens_at_threshold_and_rejects_without_invoking():
    clock = _Clock()
    breaker = CircuitBreaker(_config(), name="gemini", clock=clock)

    _trip(breaker, 2)
    assert breaker.get_state() is CircuitState.CLOSED
    _trip(breaker, 1)
    assert breaker.get_state() is CircuitState.OPEN
    assert breaker.next_attempt_at == pytest.approx(clock.now + 10.0)

    invoked: list[int] = []

    async def probe() -> str:
        invoked.append(1)
        return "x"

    clock.advance(4.0)
    with pytest.raises(CircuitOpenError) as info:
        run_async(breaker.execute(probe))

    assert invoked == []
    assert info.value.breaker_name == "gemini"
    assert info.value.retry_after_s == pytest.approx(6.0)
    assert breaker.get_metrics().rejected_calls == 1


def test_success_resets_consecutive_failure_count():
    breaker = CircuitBreaker(_config(), clock=_Clock())

    _trip(breaker, 2)
    assert run_async(breaker.execute(_ok)) == "ok"
    _trip(breaker, 2)

    assert breaker.get_state() is CircuitState.CLOSED
    assert breaker.failure_count == 2


def test_half_open_after_timeout_and_failed_probe_reopens():
    clock = _Clock()
    breaker = CircuitBreaker(_config(), clock=clock)
    _trip(breaker)

    clock.advance(10.0)
    seen: list[CircuitState] = []

    async def observe_then_fail() -> None:
        seen.append(breaker.get_state())
        raise RuntimeError("boom")

    with pytest.raises(RuntimeError):
        run_async(breaker.execute(observe_then_fail))

    assert seen == [CircuitState.HALF_OPEN]
    assert breaker.get_state() is CircuitState.OPEN
    assert breaker.next_attempt_at == pytest.approx(clock.now + 10.0)
    with pytest.raises(CircuitOpenError):
        run_async(breaker.execute(_ok))


def test_half_open_closes_after_success_threshold():
    clock = _Clock()
    breaker = CircuitBreaker(_config(), clock=clock)
    _trip(breaker)
    clock.advance(10.5)

    assert run_async(breaker.execute(_ok)) == "ok"
    assert breaker.get_state() is CircuitState.HALF_OPEN
    assert breaker.success_count == 1

    assert run_async(breaker.execute(_ok)) == "ok"
    assert breaker.get_state() is CircuitState.CLOSED
    assert breaker.failure_count == 0
    assert breaker.success_count == 0


def test_state_is_not_advanced_by_reading_it():
    clock = _Clock()
    breaker = CircuitBreaker(_config(), clock=clock)
    _trip(breaker)
    clock.advance(60.0)

    assert breaker.is_open() is True
    assert breaker.state is CircuitState.OPEN


def test_half_open_probe_cap_rejects_extra_concurrent_calls():
    clock = _Clock()
    breaker = CircuitBreaker(_config(half_open_max_calls=1), clock=clock)
    _trip(breaker)
    clock.advance(10.0)

    async def scenario() -> None:
        gate = asyncio.Event()

        async def slow() -> str:
            await gate.wait()
            return "ok"

        first = asyncio.create_task(breaker.execute(slow))
        await asyncio.sleep(0)
        with pytest.raises(CircuitOpenError):
            await breaker.execute(_ok)

        gate.set()
        assert await first == "ok"
        assert breaker.get_state() is CircuitState.HALF_OPEN
        assert await breaker.execute(_ok) == "ok"
        assert breaker.get_state() is CircuitState.CLOSED

    run_async(scenario())


def test_cancelled_probe_releases_its_slot():
    clock = _Clock()
    breaker = CircuitBreaker(_config(half_open_max_calls=1), clock=clock)
    _trip(breaker)
    clock.advance(10.0)

    async def scenario() -> None:
        async def hang() -> None:
            await asyncio.Event().wait()

        task = asyncio.create_task(breaker.execute(hang))
        await asyncio.sleep(0)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        assert await breaker.execute(_ok) == "ok"

    run_async(scenario())
    assert breaker.get_metrics().total_failures == 3


def test_reset_is_idempotent():
    observer = InMemoryObserver()
    breaker = CircuitBreaker(_config(), clock=_Clock(), observers=[observer])
    _trip(breaker)

    breaker.reset()
    first = breaker.get_metrics()
    breaker.reset()

    assert breaker.get_metrics() == first
    assert first.state is CircuitState.CLOSED
    assert first.failure_count == first.total_calls == first.state_changes == 0
    assert len(observer.of_type(BREAKER_RESET)) == 2
    assert run_async(breaker.execute(_ok)) == "ok"


def test_state_change_callback_and_events():
    clock = _Clock()
    observer = InMemoryObserver()
    transitions: list[tuple[CircuitState, CircuitState]] = []
    breaker = CircuitBreaker(
        _config(success_threshold=1),
        name="groq",
        clock=clock,
        observers=[observer],
        on_state_change=lambda old, new: transitions.append((old, new)),
    )

    _trip(breaker)
    with pytest.raises(CircuitOpenError):
        run_async(breaker.execute(_ok))
    clock.advance(10.0)
    run_async(breaker.execute(_ok))

    assert transitions == [
        (CircuitState.CLOSED, CircuitState.OPEN),
        (CircuitState.OPEN, CircuitState.HALF_OPEN),
        (CircuitState.HALF_OPEN, CircuitState.CLOSED),
    ]
    assert [e.state for e in observer.of_type(BREAKER_STATE_CHANGE)] == [
        "OPEN",
        "HALF_OPEN",
        "CLOSED",
    ]
    assert len(observer.of_type(BREAKER_REJECTED)) == 1


def test_failing_callback_does_not_break_the_breaker():
    def explode(old, new) -> None:
        raise RuntimeError("listener down")

    breaker = CircuitBreaker(_config(), clock=_Clock(), on_state_change=explode)
    _trip(breaker)

    assert breaker.get_state() is CircuitState.OPEN


def test_force_open_and_close():
    clock = _Clock()
    breaker = CircuitBreaker(_config(), clock=clock)

    breaker.force_open()
    assert breaker.is_open()
    with pytest.raises(CircuitOpenError):
        run_async(breaker.execute(_ok))

    breaker.force_close()
    assert breaker.is_closed()
    assert run_async(breaker.execute(_ok)) == "ok"


def test_export_and_import_preserve_open_window():
    clock = _Clock()
    breaker = CircuitBreaker(_config(), name="gemini", clock=clock)
    _trip(breaker)
    clock.advance(4.0)

    payload = breaker.export_state()

    restored_clock = _Clock(now=10.0)
    restored = CircuitBreaker(_config(), name="gemini", clock=restored_clock)
    restored.import_state(payload)

    assert restored.get_state() is CircuitState.OPEN
    assert restored.get_metrics().total_failures == 3
    assert restored.next_attempt_at == pytest.approx(16.0)
    with pytest.raises(CircuitOpenError):
        run_async(restored.execute(_ok))

    restored_clock.advance(6.0)
    assert run_async(restored.execute(_ok)) == "ok"


def test_import_rejects_garbage():
    breaker = CircuitBreaker(_config(), clock=_Clock())

    with pytest.raises(ConfigurationError):
        breaker.import_state('{"name": "x", "state": "SIDEWAYS"}')
    assert breaker.is_closed()


def test_invalid_config_is_rejected():
    with pytest.raises(ConfigurationError):
        CircuitBreakerConfig(failure_threshold=0, success_threshold=1, timeout_s=1.0)
    with pytest.raises(ValueError):
        CircuitBreakerConfig(failure_threshold=1, success_threshold=1, timeout_s=0)
    with pytest.raises(ConfigurationError):
        _config(half_open_max_calls=0)


def test_registry_isolates_dependencies():
    clock = _Clock()
    registry = CircuitBreakerRegistry(_config(), clock=clock)

    gemini = registry.get_or_create("Gemini")
    groq = registry.get_or_create("groq")
    _trip(gemini)

    assert registry.get_or_create("gemini") is gemini
    assert gemini.is_open()
    assert groq.is_closed()
    assert run_async(groq.execute(_ok)) == "ok"
    assert registry.names() == ["gemini", "groq"]
    assert "GEMINI" in registry
    assert len(registry) == 2

    metrics = registry.get_all_metrics()
    assert metrics["gemini"].state is CircuitState.OPEN
    assert metrics["groq"].total_successes == 1

    registry.reset_all()
    assert gemini.is_closed()
    assert registry.remove("groq") is True
    assert registry.get("groq") is None


def test_registry_requires_config_and_unique_names():
    registry = CircuitBreakerRegistry()

    with pytest.raises(ConfigurationError):
        registry.get_or_create("youtube")
    with pytest.raises(ConfigurationError):
        registry.get_or_create("  ", _config())

    youtube = registry.get_or_create("youtube", _config())
    with pytest.raises(ConfigurationError):
        registry.register(CircuitBreaker(_config(), name="youtube"))
    replacement = CircuitBreaker(_config(), name="youtube")
    registry.register(replacement, overwrite=True)

    assert registry.get("youtube") is replacement
    assert registry.get("youtube") is not youtube


def test_errors_rejected_by_predicate_do_not_count():
    clock = _Clock()
    breaker = CircuitBreaker(
        _config(record_failure=lambda error: not isinstance(error, KeyError)),
        clock=clock,
    )

    async def missing() -> None:
        raise KeyError("video not found")

    for _ in range(5):
        with pytest.raises(KeyError):
            run_async(breaker.execute(missing))

    assert breaker.is_closed()
    assert breaker.failure_count == 0
    _trip(breaker)
    assert breaker.is_open()


def test_ignored_error_in_half_open_frees_the_probe_slot():
    clock = _Clock()
    breaker = CircuitBreaker(
        _config(half_open_max_calls=1, record_failure=lambda error: not isinstance(error, KeyError)),
        clock=clock,
    )
    _trip(breaker)
    clock.advance(10.0)

    async def missing() -> None:
        raise KeyError("video not found")

    with pytest.raises(KeyError):
        run_async(breaker.execute(missing))
    assert breaker.get_state() is CircuitState.HALF_OPEN
    assert run_async(breaker.execute(_ok)) == "ok"
