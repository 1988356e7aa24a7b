"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

User-facing failure notices derived from runtime errors.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from .errors import CircuitOpenError, FailureKind
from .runtime.retry import RetryResult, classify_error

DEFAULT_PROVIDER = "AI service"

_QUOTA_PHRASES = (
    "quota exceeded",
    "rate limit",
    "rate_limit",
    "too many requests",
    "billing required",
    "payment required",
    "credit exhausted",
    "insufficient credits",
    "insufficient balance",
    "usage limit",
    "api limit exceeded",
    "requests per minute",
    "requests per second",
    "resource_exhausted",
)
_AUTH_PHRASES = ("unauthorized", "forbidden", "invalid key", "invalid api key", "authentication")
_NETWORK_PHRASES = ("network", "fetch", "connection", "timeout", "econnrefused", "enotfound")
_VALIDATION_PHRASES = ("invalid url", "video id", "not found")
_PROVIDER_PHRASES = ("context length", "too long", "model")


class FailureCategory(str, Enum):
    """Buckets used to pick wording and guidance."""

    NETWORK = "network"
    QUOTA = "quota"
    AUTH = "auth"
    VALIDATION = "validation"
    PROVIDER = "provider"
    CIRCUIT_OPEN = "circuit_open"
    UNKNOWN = "unknown"


@dataclass(frozen=True, slots=True)
class FailureNotice:
    """One consolidated, presentable failure."""

    category: FailureCategory
    message: str
    retryable: bool
    guidance: str | None = None
    attempts: int = 1
    retry_after_s: float | None = None

    def render(self) -> str:
        if not self.guidance:
            return self.message
        return f"{self.message}\n\n{self.guidance}"


def _contains(text: str, phrases: tuple[str, ...]) -> bool:
    return any(phrase in text for phrase in phrases)


def describe_failure(
    error: BaseException,
    *,
    provider: str | None = None,
    attempts: int = 1,
) -> FailureNotice:
    """Map an error onto a user-presentable notice."""
    label = provider or DEFAULT_PROVIDER

    if isinstance(error, CircuitOpenError):
        wait = error.retry_after_s
        guidance = "Try again shortly or switch to another provider."
        if wait:
            guidance = f"Try again in about {max(1, round(wait))}s or switch to another provider."
        return FailureNotice(
            category=FailureCategory.CIRCUIT_OPEN,
            message=f"{provider or error.breaker_name} is temporarily unavailable.",
            retryable=False,
            guidance=guidance,
            attempts=attempts,
            retry_after_s=wait,
        )

    verdict = classify_error(error)
    text = str(error).lower()
    status = verdict.status

    if status == 429 or _contains(text, _QUOTA_PHRASES):
        rate_limited = status == 429 or "rate" in text or "too many requests" in text
        if rate_limited:
            return FailureNotice(
                category=FailureCategory.QUOTA,
                message=f"{label} API rate limit reached.",
                retryable=True,
                guidance="Wait a minute before trying again.",
                attempts=attempts,
            )
        return FailureNotice(
            category=FailureCategory.QUOTA,
            message=f"{label} API quota exceeded.",
            retryable=False,
            guidance="Check your API plan or try a different provider.",
            attempts=attempts,
        )

    if status in (401, 403) or _contains(text, _AUTH_PHRASES):
        return FailureNotice(
            category=FailureCategory.AUTH,
            message="API key is invalid or expired. Please check your settings.",
            retryable=False,
            guidance="Verify your API key in the settings.",
            attempts=attempts,
        )

    if verdict.kind in (FailureKind.TIMEOUT, FailureKind.NETWORK) or _contains(
        text, _NETWORK_PHRASES
    ):
        return FailureNotice(
            category=FailureCategory.NETWORK,
            message="Network error occurred.",
            retryable=True,
            guidance="Check your internet connection and try again.",
            attempts=attempts,
        )

    if status is not None and status >= 500:
        return FailureNotice(
            category=FailureCategory.PROVIDER,
            message=f"{label} returned a server error ({status}).",
            retryable=True,
            guidance="The service is having problems; try again shortly.",
            attempts=attempts,
        )

    if status in (400, 404, 422) or _contains(text, _VALIDATION_PHRASES):
        return FailureNotice(
            category=FailureCategory.VALIDATION,
            message=str(error),
            retryable=False,
            guidance="Check the video URL and try again.",
            attempts=attempts,
        )

    if _contains(text, _PROVIDER_PHRASES):
        return FailureNotice(
            category=FailureCategory.PROVIDER,
            message=str(error),
            retryable=False,
            guidance="Try a different model or a shorter video.",
            attempts=attempts,
        )

    return FailureNotice(
        category=FailureCategory.UNKNOWN,
        message=str(error) or type(error).__name__,
        retryable=True,
        guidance="An unexpected error occurred. Please try again.",
        attempts=attempts,
    )


def describe_result(result: RetryResult, *, provider: str | None = None) -> FailureNotice | None:
    """Consolidate a failed retry sequence into its final error's notice."""
    if result.success or result.error is None:
        return None
    return describe_failure(result.error, provider=provider, attempts=result.attempts)
