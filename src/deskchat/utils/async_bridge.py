"""Async-to-sync bridge utilities.

The gateway is fully async; the CLI is not. This bridge lets sync
callers drive gateway coroutines, including from code that already
runs inside an event loop.
"""

import asyncio
from collections.abc import Coroutine
from concurrent.futures import ThreadPoolExecutor
from typing import Any, TypeVar

T = TypeVar("T")


def run_async_in_sync(coro: Coroutine[Any, Any, T]) -> T:
    """Run an async coroutine in a sync context safely."""
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(coro)

    # A loop is already running in this thread, use a private one in a worker
    with ThreadPoolExecutor(max_workers=1) as pool:
        return pool.submit(asyncio.run, coro).result()
