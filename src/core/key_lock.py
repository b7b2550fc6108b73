"""In-process per-key async locks for serializing work on one business key."""

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass


@dataclass
class _LockEntry:
    """A lock plus the number of coroutines holding or waiting on it."""

    lock: asyncio.Lock
    refs: int = 0


class KeyedLock:
    """Hands out one asyncio.Lock per key.

    Entries are dropped as soon as nobody holds or waits on them, so the
    registry stays bounded by the number of keys in flight.

    This only serializes work inside one process. Across workers the UNIQUE
    index on orders.ordernum is the backstop.
    """

    def __init__(self) -> None:
        self._entries: dict[str, _LockEntry] = {}

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        """Hold the lock for ``key`` for the duration of the block."""
        entry = self._entries.get(key)
        if entry is None:
            entry = _LockEntry(lock=asyncio.Lock())
            self._entries[key] = entry
        entry.refs += 1

        try:
            async with entry.lock:
                yield
        finally:
            entry.refs -= 1
            if entry.refs == 0:
                self._entries.pop(key, None)

    def is_locked(self, key: str) -> bool:
        """Check whether some coroutine currently holds the lock for ``key``."""
        entry = self._entries.get(key)
        return bool(entry and entry.lock.locked())

    def __len__(self) -> int:
        return len(self._entries)


# Global instance shared by the reconciler
_order_locks: KeyedLock | None = None


def get_order_locks() -> KeyedLock:
    """Get or create the global per-order-number lock registry."""
    global _order_locks
    if _order_locks is None:
        _order_locks = KeyedLock()
    return _order_locks
