"""Per-document mutual exclusion for ingestion and deletion."""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict


class DocumentLockRegistry:
    """Hands out one ``asyncio.Lock`` per document id.

    Locks are created on first use and dropped once nobody holds or waits on
    them, so the registry does not grow with the number of documents ever seen.
    """

    def __init__(self) -> None:
        self._locks: Dict[str, asyncio.Lock] = {}
        self._users: Dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, document_id: str) -> AsyncIterator[None]:
        key = str(document_id)
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._users[key] = self._users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[key] -= 1
            if self._users[key] == 0:
                del self._users[key]
                self._locks.pop(key, None)

    def is_locked(self, document_id: str) -> bool:
        lock = self._locks.get(str(document_id))
        return lock is not None and lock.locked()

    def __len__(self) -> int:
        return len(self._locks)
