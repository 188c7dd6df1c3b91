"""Keyed lock — serialises OTP work per email within one process."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

logger = logging.getLogger(__name__)


class KeyedLock:
    """In-memory registry of ``asyncio.Lock`` objects keyed by email.

    Entries are reference counted and dropped once no task holds or waits
    on them, so the registry only ever contains emails with work in flight.
    Multi-process deployments still fall back to the store's
    most-recent-wins ordering.
    """

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._waiters: dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._waiters[key] = self._waiters.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._waiters[key] -= 1
            if self._waiters[key] == 0:
                del self._waiters[key]
                del self._locks[key]

    @property
    def active_count(self) -> int:
        """Number of keys with work in flight (useful for monitoring)."""
        return len(self._locks)
