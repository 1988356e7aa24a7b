from __future__ import annotations

import asyncio
import gc

import pytest

from steadycall.errors import HttpStatusError
from steadycall.runtime import RequestCoalescer


def run_async(coro):
    return asyncio.run(coro)


def test_concurrent_callers_share_one_call():
    calls = 0

    async def scenario() -> list[str]:
        coalescer = RequestCoalescer()
        gate = asyncio.Event()

        async def fetch() -> str:
            nonlocal calls
            calls += 1
            await gate.wait()
            return "shared"

        waiters = [asyncio.create_task(coalescer.run("k", fetch)) for _ in range(3)]
        await asyncio.sleep(0)
        assert coalescer.in_flight() == 1
        gate.set()
        results = list(await asyncio.gather(*waiters))
        assert coalescer.in_flight() == 0
        return results

    assert run_async(scenario()) == ["shared", "shared", "shared"]
    assert calls == 1


def test_cancelling_one_caller_keeps_the_shared_call_alive():
    async def scenario() -> str:
        coalescer = RequestCoalescer()
        gate = asyncio.Event()

        async def fetch() -> str:
            await gate.wait()
            return "done"

        first = asyncio.create_task(coalescer.run("k", fetch))
        second = asyncio.create_task(coalescer.run("k", fetch))
        await asyncio.sleep(0)
        first.cancel()
        with pytest.raises(asyncio.CancelledError):
            await first
        gate.set()
        return await second

    assert run_async(scenario()) == "done"


def test_failure_after_every_caller_cancelled_is_not_reported_as_unretrieved():
    reported: list[dict] = []

    async def scenario() -> None:
        asyncio.get_running_loop().set_exception_handler(
            lambda loop, context: reported.append(context)
        )
        coalescer = RequestCoalescer()
        gate = asyncio.Event()

        async def fail_later() -> None:
            await gate.wait()
            raise HttpStatusError(503)

        waiter = asyncio.create_task(coalescer.run("k", fail_later))
        await asyncio.sleep(0)
        waiter.cancel()
        with pytest.raises(asyncio.CancelledError):
            await waiter

        gate.set()
        for _ in range(3):
            await asyncio.sleep(0)
        assert coalescer.in_flight() == 0
        gc.collect()

    run_async(scenario())
    gc.collect()
    assert reported == []
