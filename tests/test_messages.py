from __future__ import annotations

import pytest

from steadycall.errors import CircuitOpenError, FailureKind, HttpStatusError, TransportError
from steadycall.messages import FailureCategory, describe_failure, describe_result
from steadycall.runtime import RetryResult


def test_open_circuit_names_the_provider():
    notice = describe_failure(CircuitOpenError("gemini", retry_after_s=42.4), provider="Gemini")

    assert notice.category is FailureCategory.CIRCUIT_OPEN
    assert notice.message == "Gemini is temporarily unavailable."
    assert notice.retryable is False
    assert "42s" in notice.render()


def test_rate_limit_and_quota_are_distinguished():
    limited = describe_failure(HttpStatusError(429), provider="Groq")
    quota = describe_failure(RuntimeError("Quota exceeded for this billing period"))

    assert limited.category is FailureCategory.QUOTA
    assert limited.retryable is True
    assert limited.message == "Groq API rate limit reached."
    assert quota.category is FailureCategory.QUOTA
    assert quota.retryable is False
    assert quota.message == "AI service API quota exceeded."


@pytest.mark.parametrize(
    ("error", "category", "retryable"),
    [
        (HttpStatusError(401), FailureCategory.AUTH, False),
        (RuntimeError("Invalid API key provided"), FailureCategory.AUTH, False),
        (TransportError("socket closed", kind=FailureKind.NETWORK), FailureCategory.NETWORK, True),
        (TimeoutError(), FailureCategory.NETWORK, True),
        (HttpStatusError(502), FailureCategory.PROVIDER, True),
        (HttpStatusError(404), FailureCategory.VALIDATION, False),
        (ValueError("Invalid URL: not a youtube link"), FailureCategory.VALIDATION, False),
        (RuntimeError("context length exceeded"), FailureCategory.PROVIDER, False),
        (RuntimeError("something odd"), FailureCategory.UNKNOWN, True),
    ],
)
def test_categories(error, category, retryable):
    notice = describe_failure(error)

    assert notice.category is category
    assert notice.retryable is retryable


def test_network_message_is_fixed_wording():
    notice = describe_failure(ConnectionError("ECONNREFUSED 127.0.0.1:443"))

    assert notice.message == "Network error occurred."
    assert notice.render().startswith("Network error occurred.\n\n")


def test_retry_result_consolidates_to_one_notice():
    failed = RetryResult(success=False, error=HttpStatusError(503), attempts=3)

    notice = describe_result(failed, provider="Gemini")

    assert notice is not None
    assert notice.attempts == 3
    assert notice.category is FailureCategory.PROVIDER
    assert describe_result(RetryResult(success=True, result="ok", attempts=1)) is None
