"""
video_summary.py — Cached, retried, breaker-guarded provider calls.

Simulates a metadata lookup and a flaky summarization provider. The first
summary attempt fails with a 503, is retried, and the result is cached so the
second request never reaches the provider.

Usage:
    STEADYCALL_RETRY_BASE_DELAY_S=0.2 python examples/video_summary.py
"""

import logging

from steadycall import (
    HttpStatusError,
    InMemoryObserver,
    create_resilient_client,
    describe_failure,
    make_cache_key,
)

attempts = {"gemini": 0}


async def fetch_metadata(video_id: str) -> dict:
    return {"id": video_id, "title": "Never Gonna Give You Up", "duration_s": 213}


async def summarize(video_id: str) -> str:
    attempts["gemini"] += 1
    if attempts["gemini"] == 1:
        raise HttpStatusError(503, "Service Unavailable")
    return f"Summary of {video_id}: a classic."


async def main() -> None:
    observer = InMemoryObserver()
    client = create_resilient_client(observers=[observer])
    video_id = "dQw4w9WgXcQ"

    metadata = await client.call(
        make_cache_key("youtube", "metadata", video_id),
        lambda: fetch_metadata(video_id),
        dependency="youtube",
    )
    print(metadata["title"])

    for _ in range(2):
        summary = await client.call(
            make_cache_key("gemini", "summary", video_id),
            lambda: summarize(video_id),
            dependency="gemini",
        )
        print(summary)

    try:
        await client.call(
            None,
            _denied,
            dependency="groq",
        )
    except HttpStatusError as exc:
        print(describe_failure(exc, provider="Groq").render())

    print(f"provider attempts: {attempts['gemini']}")
    print(f"cache: {client.cache.get_stats()}")
    print(f"events: {[event.type for event in observer.events]}")


async def _denied() -> str:
    raise HttpStatusError(401, "invalid api key")


if __name__ == "__main__":
    import asyncio

    logging.basicConfig(level=logging.INFO)
    asyncio.run(main())
