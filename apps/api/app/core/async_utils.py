from __future__ import annotations

import asyncio
from typing import Coroutine, TypeVar

import anyio

T = TypeVar("T")


def run_async(coro: Coroutine[object, object, T], *, timeout: float | None = None) -> T:
    """
    Run a coroutine (LLM call, websocket fan-out) from a sync request handler.

    - Inside FastAPI's worker threads, hops onto the event loop via anyio.from_thread.
    - With no AnyIO portal available (CLI, plain unit tests), runs a fresh loop.
    - Calling it from a coroutine on the loop thread is a bug: await instead.

    `timeout` raises TimeoutError when the coroutine exceeds it.
    """

    async def _runner() -> T:
        if timeout is not None:
            with anyio.fail_after(timeout):
                return await coro
        return await coro

    try:
        return anyio.from_thread.run(_runner)
    except RuntimeError:
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            return anyio.run(_runner)
        coro.close()
        raise RuntimeError("run_async called from async context; use await instead")
