"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Error taxonomy shared by cache, retry, breaker and client runtime.
"""

from __future__ import annotations

from enum import Enum


class FailureKind(str, Enum):
    """Boundary failure kinds produced by transport adapters."""

    TIMEOUT = "timeout"
    HTTP_STATUS = "http_status"
    NETWORK = "network"
    OTHER = "other"


class ResilienceError(RuntimeError):
    """Base error for steadycall runtime failures."""


class ConfigurationError(ResilienceError, ValueError):
    """Raised when settings or policies hold invalid values."""


class TransportError(ResilienceError):
    """
    Tagged failure raised at the network boundary.

    Transport adapters translate their client library errors into this type so
    the retry engine can classify by `kind` and `status` instead of sniffing
    message text.
    """

    def __init__(
        self,
        message: str,
        *,
        kind: FailureKind = FailureKind.OTHER,
        status: int | None = None,
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.status = status


class HttpStatusError(TransportError):
    """Non-2xx HTTP response surfaced by a transport adapter."""

    def __init__(self, status: int, message: str | None = None) -> None:
        super().__init__(
            message or f"HTTP {status}",
            kind=FailureKind.HTTP_STATUS,
            status=status,
        )


class CircuitOpenError(ResilienceError):
    """Synthetic rejection raised by a breaker without calling the dependency."""

    def __init__(self, breaker_name: str, *, retry_after_s: float | None = None) -> None:
        super().__init__(f"Circuit breaker '{breaker_name}' is OPEN")
        self.breaker_name = breaker_name
        self.retry_after_s = retry_after_s
