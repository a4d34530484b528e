import asyncio
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from loguru import logger


class KeyedLockManager:
    """In-process lock manager handing out one asyncio.Lock per resource key.

    Locks are created on first use and dropped again once nobody holds or
    waits for them, so the table only grows with the number of resources that
    are busy at the same time.
    """

    def __init__(self, lock_prefix: str = "lock"):
        """
        Args:
            lock_prefix: Prefix for lock keys, e.g. 'stream'
        """
        self.lock_prefix = lock_prefix
        self._locks: dict[str, asyncio.Lock] = {}
        self._waiters: dict[str, int] = {}

    def _make_lock_key(self, *parts) -> str:
        return f"{self.lock_prefix}:{':'.join(str(part) for part in parts)}"

    def is_locked(self, *key_parts) -> bool:
        lock = self._locks.get(self._make_lock_key(*key_parts))
        return bool(lock and lock.locked())

    async def acquire(
        self,
        *key_parts,
        blocking: bool = True,
        blocking_timeout: Optional[float] = None,
    ) -> bool:
        """
        Try to acquire the lock for a resource.

        Args:
            *key_parts: Parts for composing the lock key
            blocking: If True, wait until lock is acquired or timeout
            blocking_timeout: Max seconds to wait when blocking=True.
                              None means wait forever; 0 means no wait (equivalent to blocking=False).

        Returns:
            True if acquired, else False
        """
        lock_key = self._make_lock_key(*key_parts)
        lock = self._locks.setdefault(lock_key, asyncio.Lock())

        if not blocking or (blocking_timeout is not None and blocking_timeout <= 0):
            if lock.locked():
                logger.warning("Failed to acquire lock: key={}", lock_key)
                return False
            await lock.acquire()
            logger.debug("Acquired lock: key={}", lock_key)
            return True

        self._waiters[lock_key] = self._waiters.get(lock_key, 0) + 1
        started = time.monotonic()
        try:
            if blocking_timeout is None:
                await lock.acquire()
            else:
                await asyncio.wait_for(lock.acquire(), timeout=blocking_timeout)
        except asyncio.TimeoutError:
            logger.warning(
                "Failed to acquire lock: key={} waited={:.2f}s", lock_key, time.monotonic() - started
            )
            return False
        finally:
            self._waiters[lock_key] -= 1
            if not self._waiters[lock_key]:
                del self._waiters[lock_key]

        logger.debug("Acquired lock: key={}", lock_key)
        return True

    def release(self, *key_parts) -> bool:
        """Release the lock for a resource; returns False if it was not held."""
        lock_key = self._make_lock_key(*key_parts)
        lock = self._locks.get(lock_key)
        if lock is None or not lock.locked():
            logger.warning("Cannot release lock - not held: key={}", lock_key)
            return False

        lock.release()
        logger.debug("Released lock: key={}", lock_key)

        if not lock.locked() and lock_key not in self._waiters:
            self._locks.pop(lock_key, None)
        return True

    @asynccontextmanager
    async def hold(self, *key_parts) -> AsyncIterator[None]:
        """Hold the lock for the duration of the block, waiting as long as needed."""
        await self.acquire(*key_parts)
        try:
            yield
        finally:
            self.release(*key_parts)

    def __len__(self) -> int:
        return len(self._locks)
