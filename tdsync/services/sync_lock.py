"""
Global sync lock with bounded acquisition
"""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator
from tdsync.config.constants import LOCK_MAX_ATTEMPTS, LOCK_RETRY_INTERVAL
from tdsync.utils.logger import logger


class SyncLock:
    """
    Serializes sync passes across every trigger

    A trigger that finds the lock taken polls a fixed number of times and
    then gives up; the periodic sync picks the work up on its next cycle.
    """

    def __init__(self, max_attempts: int = LOCK_MAX_ATTEMPTS, retry_interval: float = LOCK_RETRY_INTERVAL):
        self.max_attempts = max_attempts
        self.retry_interval = retry_interval
        self._lock = asyncio.Lock()
        self.logger = logger

    @property
    def locked(self) -> bool:
        return self._lock.locked()

    async def acquire(self) -> bool:
        """
        Try to take the lock

        Returns:
            True if acquired, False after max_attempts polls
        """
        for attempt in range(self.max_attempts):
            if not self._lock.locked():
                await self._lock.acquire()
                return True
            self.logger.debug(
                f"[SyncLock] Sync in progress, waiting (attempt {attempt + 1}/{self.max_attempts})"
            )
            await asyncio.sleep(self.retry_interval)

        if not self._lock.locked():
            await self._lock.acquire()
            return True
        self.logger.warning("[SyncLock] Sync lock not released in time, skipping")
        return False

    def release(self):
        if self._lock.locked():
            self._lock.release()

    @asynccontextmanager
    async def hold(self) -> AsyncIterator[bool]:
        """
        Hold the lock for a block

        Yields:
            Whether the lock was acquired; the block must skip its work if not
        """
        acquired = await self.acquire()
        try:
            yield acquired
        finally:
            if acquired:
                self.release()
