"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Module: runtime/timeouts.py.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import TypeVar

T = TypeVar("T")


async def await_with_timeout(awaitable: Awaitable[T], timeout_s: float | None) -> T:
    """Await value with optional timeout."""
    if timeout_s is None:
        return await awaitable
    return await asyncio.wait_for(awaitable, timeout=timeout_s)


def with_timeout(
    operation: Callable[[], Awaitable[T]],
    timeout_s: float | None,
) -> Callable[[], Awaitable[T]]:
    """Wrap an operation factory so every invocation is bounded by `timeout_s`."""
    if timeout_s is None:
        return operation

    async def _bounded() -> T:
        return await await_with_timeout(operation(), timeout_s)

    return _bounded
