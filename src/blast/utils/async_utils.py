"""Bridge from synchronous CLI commands to the async review service."""

import asyncio
import atexit
from collections.abc import Coroutine
from typing import Any, TypeVar

T = TypeVar("T")

_runner: asyncio.Runner | None = None


def _shared_runner() -> asyncio.Runner:
    global _runner
    if _runner is None:
        _runner = asyncio.Runner()
        atexit.register(close_runner)
    return _runner


def run_async(coro: Coroutine[Any, Any, T]) -> T:
    """Run ``coro`` to completion on the process-wide CLI event loop.

    Every call shares one loop, so httpx clients and the SQL store's worker
    threads created by one command stay usable by the next.

    Raises:
        RuntimeError: If called while an event loop is already running
    """
    return _shared_runner().run(coro)


def close_runner() -> None:
    """Close the shared loop, cancelling anything still scheduled on it."""
    global _runner
    if _runner is not None:
        _runner.close()
        _runner = None
