"""Short-lived distributed lock stored in the fast cache.

Single attempt, no retry: a caller that loses the race aborts instead of
waiting. The TTL is always set, so a holder that never releases (crash
mid-critical-section) blocks others for at most `ttl` seconds.
"""

import logging
import uuid

from src.bk_cache.application.fast_cache import FastCache
from src.bk_common.errors import CacheWriteFailure

logger = logging.getLogger(__name__)


class DistributedLock:
    def __init__(self, cache: FastCache, key: str, ttl: int = 30) -> None:
        self.cache = cache
        self.key = key
        self.ttl = ttl
        self.lock_value = str(uuid.uuid4())
        self._acquired = False

    @property
    def acquired(self) -> bool:
        return self._acquired

    async def acquire(self) -> bool:
        try:
            self._acquired = await self.cache.set_if_absent(
                self.key, self.lock_value, self.ttl
            )
        except CacheWriteFailure as exc:
            logger.warning("Lock acquire failed for %s: %s", self.key, exc.details)
            self._acquired = False
        if self._acquired:
            logger.debug("Lock acquired: %s (%s)", self.key, self.lock_value)
        return self._acquired

    async def release(self) -> bool:
        """Delete the lock only if this holder still owns it."""
        if not self._acquired:
            return False
        self._acquired = False
        try:
            released = await self.cache.delete_if_equals(self.key, self.lock_value)
        except CacheWriteFailure as exc:
            # Left to expire via TTL
            logger.warning("Lock release failed for %s: %s", self.key, exc.details)
            return False
        if not released:
            logger.warning("Lock %s expired or was taken over before release", self.key)
        return released
