"""
Keyed asyncio locks.

Gives each permit a single writer inside this process. Database row locks
(SELECT ... FOR UPDATE) and the optimistic version column cover writers in
other processes.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Hashable, List


class KeyedLockRegistry:
    """Hands out one asyncio.Lock per key and drops it when nobody holds or waits on it."""

    def __init__(self) -> None:
        # key -> [lock, number of holders + waiters]
        self._entries: Dict[Hashable, List] = {}

    @asynccontextmanager
    async def hold(self, key: Hashable) -> AsyncIterator[None]:
        entry = self._entries.get(key)
        if entry is None:
            entry = [asyncio.Lock(), 0]
            self._entries[key] = entry
        entry[1] += 1
        try:
            async with entry[0]:
                yield
        finally:
            entry[1] -= 1
            if entry[1] == 0:
                self._entries.pop(key, None)

    def __len__(self) -> int:
        return len(self._entries)


permit_locks = KeyedLockRegistry()

# Serial numbers are allocated from MAX(serial_number) + 1 under this key
sequence_locks = KeyedLockRegistry()
PERMIT_SERIAL_KEY = "permit_serial"
