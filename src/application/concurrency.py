"""
application.concurrency - Per-key write serialisation.

Shared mutable state (context cache, memory store) must not lose updates
when two requests for the same key race. KeyedLock hands out one
asyncio.Lock per key and forgets it once nobody holds or waits on it.
"""

from __future__ import annotations

import asyncio
from collections.abc import Hashable
from contextlib import asynccontextmanager
from typing import AsyncIterator, Awaitable, TypeVar

from domain.exceptions import ExecutionTimeoutError

T = TypeVar("T")


class KeyedLock:
    """One asyncio.Lock per key, reference counted."""

    def __init__(self):
        self._locks: dict[Hashable, asyncio.Lock] = {}
        self._waiters: dict[Hashable, int] = {}

    @asynccontextmanager
    async def hold(self, key: Hashable) -> AsyncIterator[None]:
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        self._waiters[key] = self._waiters.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._waiters[key] -= 1
            if self._waiters[key] == 0:
                del self._waiters[key]
                del self._locks[key]

    def __len__(self) -> int:
        return len(self._locks)


async def bounded(awaitable: Awaitable[T], timeout: float, what: str) -> T:
    """Await with a deadline; the awaited work is cancelled when it expires."""
    try:
        return await asyncio.wait_for(awaitable, timeout)
    except asyncio.TimeoutError:
        raise ExecutionTimeoutError(f"{what} timed out after {timeout:g}s") from None
