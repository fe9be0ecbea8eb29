"""Per-key asyncio locks.

Serialises work that shares a key (one sender, one complaint) while
letting different keys run concurrently.  Locks are created on first use
and dropped again once nobody holds or waits for them, so the map only
ever contains keys with work in flight.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager


class KeyedLock:
    """A map of :class:`asyncio.Lock` objects keyed by string.

    ``asyncio.Lock`` wakes waiters in FIFO order, so callers that enter
    :meth:`hold` for the same key are served in the order they arrived.
    """

    __slots__ = ("_locks", "_users")

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        # key -> number of tasks holding or waiting for the lock
        self._users: dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        self._users[key] = self._users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[key] -= 1
            if self._users[key] == 0:
                del self._users[key]
                del self._locks[key]

    def locked(self, key: str) -> bool:
        lock = self._locks.get(key)
        return lock is not None and lock.locked()

    def __len__(self) -> int:
        return len(self._locks)
