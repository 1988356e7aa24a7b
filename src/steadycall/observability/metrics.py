"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Counter sinks fed by resilience lifecycle events.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Protocol

from .events import BREAKER_STATE_CHANGE, ResilienceEvent


class ResilienceMetrics(Protocol):
    """Minimal metrics interface for resilience instrumentation."""

    def incr(
        self, name: str, value: int = 1, *, tags: Mapping[str, str] | None = None
    ) -> None:
        """Increment a counter metric."""


class NoOpMetrics:
    """Default metrics sink when no metrics backend is provided."""

    def incr(
        self, name: str, value: int = 1, *, tags: Mapping[str, str] | None = None
    ) -> None:
        _ = name
        _ = value
        _ = tags


class MetricsObserver:
    """
    Observer translating lifecycle events into counters.

    `retry.scheduled` becomes counter `retry_scheduled` tagged with the
    operation name; breaker transitions also carry the new state.
    """

    def __init__(self, metrics: ResilienceMetrics | None = None) -> None:
        self._metrics = metrics or NoOpMetrics()

    def on_event(self, event: ResilienceEvent) -> None:
        tags = {"name": event.name}
        if event.type == BREAKER_STATE_CHANGE:
            tags["state"] = str(event.state)
        self._metrics.incr(event.type.replace(".", "_"), tags=tags)


class PrometheusResilienceMetrics(ResilienceMetrics):
    """
    Prometheus-backed metrics adapter.

    Requires `prometheus_client` package. Counters register in `registry`
    when given, otherwise in the process-wide default registry.
    """

    def __init__(self, *, namespace: str = "steadycall", registry: Any = None) -> None:
        try:
            from prometheus_client import Counter
        except ModuleNotFoundError as exc:  # pragma: no cover
            raise RuntimeError(
                "PrometheusResilienceMetrics requires `prometheus_client` to be installed."
            ) from exc

        self._Counter = Counter
        self._namespace = namespace
        self._registry = registry
        self._counters: dict[str, Any] = {}

    def incr(self, name: str, value: int = 1, *, tags: Mapping[str, str] | None = None) -> None:
        label_names = tuple(sorted((tags or {}).keys()))
        key = f"{name}|{','.join(label_names)}"
        counter = self._counters.get(key)
        if counter is None:
            extra: dict[str, Any] = {}
            if self._registry is not None:
                extra["registry"] = self._registry
            counter = self._Counter(
                name=name,
                documentation=f"steadycall resilience metric {name}",
                namespace=self._namespace,
                labelnames=label_names,
                **extra,
            )
            self._counters[key] = counter

        if label_names:
            label_values = [str((tags or {})[label]) for label in label_names]
            counter.labels(*label_values).inc(value)
        else:
            counter.inc(value)
