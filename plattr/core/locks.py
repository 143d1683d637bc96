"""
Keyed asyncio locks.

Serializes read-modify-write sequences against the record store inside one
process: cart merges per actor, order numbering across all actors.
"""

import asyncio
import logging
from collections import defaultdict
from contextlib import asynccontextmanager
from functools import lru_cache
from typing import AsyncIterator

logger = logging.getLogger(__name__)


class KeyedLocks:
    """A registry of asyncio.Lock objects, one per key."""

    def __init__(self, enabled: bool = True):
        self.enabled = enabled
        self._locks: dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)
        self._waiters: dict[str, int] = defaultdict(int)

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        """Hold the lock for `key` for the duration of the block."""
        if not self.enabled:
            yield
            return

        self._waiters[key] += 1
        lock = self._locks[key]
        try:
            async with lock:
                yield
        finally:
            self._waiters[key] -= 1
            if self._waiters[key] == 0:
                # nobody queued on this key, drop it so the registry stays small
                del self._waiters[key]
                self._locks.pop(key, None)

    def __len__(self) -> int:
        return len(self._locks)


@lru_cache()
def get_keyed_locks() -> KeyedLocks:
    """Process-wide lock registry shared by every request."""
    from plattr.core.config import get_settings

    enabled = get_settings().serialize_writes
    logger.info(f"KeyedLocks initialized (serialize_writes={enabled})")
    return KeyedLocks(enabled=enabled)
