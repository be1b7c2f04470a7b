"""
Per-Objective Generation Locks

Sprint generation for one objective must never run concurrently with
itself. The registry hands out one asyncio.Lock per objective id; the
scheduler holds it for the whole check-then-create sequence.

A lock lives only while some coroutine holds or waits for it, so the
registry does not grow with the number of objectives ever generated.

The locks serialize coroutines within one process. Across processes the
store's unique (objective_id, day_number) constraint is the backstop.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator


class ObjectiveLockRegistry:
    """Lazily created asyncio.Lock per objective id, dropped when unused."""

    def __init__(self):
        self._locks: dict[str, asyncio.Lock] = {}
        self._users: dict[str, int] = {}

    def active_objectives(self) -> list[str]:
        """Objective ids whose lock is currently held or awaited."""
        return list(self._locks)

    def is_locked(self, objective_id: str) -> bool:
        lock = self._locks.get(objective_id)
        return lock is not None and lock.locked()

    @asynccontextmanager
    async def hold(self, objective_id: str) -> AsyncIterator[None]:
        """Wait for and hold the objective's lock."""
        lock = self._locks.setdefault(objective_id, asyncio.Lock())
        self._users[objective_id] = self._users.get(objective_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[objective_id] -= 1
            if self._users[objective_id] == 0:
                del self._users[objective_id]
                del self._locks[objective_id]
