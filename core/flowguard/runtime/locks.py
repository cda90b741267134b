"""
Named resource locks.

Node types declare the shared resources they contend for (``browser:tab``,
``db:global``). The executor holds one asyncio.Lock per token around each
node invocation so that two runs never drive the same resource at once.
"""

import asyncio
import logging
from collections.abc import AsyncIterator, Iterable
from contextlib import asynccontextmanager

logger = logging.getLogger(__name__)


class ResourceLockManager:
    """Hands out named async mutexes, created on first use."""

    def __init__(self):
        self._locks: dict[str, asyncio.Lock] = {}

    def get_lock(self, token: str) -> asyncio.Lock:
        lock = self._locks.get(token)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[token] = lock
        return lock

    def is_locked(self, token: str) -> bool:
        lock = self._locks.get(token)
        return lock is not None and lock.locked()

    @asynccontextmanager
    async def hold(self, tokens: Iterable[str]) -> AsyncIterator[None]:
        """
        Acquire every token (sorted, deduplicated) and release on exit.

        Sorted acquisition keeps two runs with overlapping lock sets from
        deadlocking each other.
        """
        ordered = sorted(set(tokens))
        acquired: list[asyncio.Lock] = []
        try:
            for token in ordered:
                lock = self.get_lock(token)
                if lock.locked():
                    logger.debug(f"Waiting for resource lock '{token}'")
                await lock.acquire()
                acquired.append(lock)
            yield
        finally:
            for lock in reversed(acquired):
                lock.release()
