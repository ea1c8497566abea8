"""Fast cache — first read tier.

Backing store is chosen once at construction: Redis when a client is
supplied, otherwise the in-process MemoryStore with its shorter default TTL.

Failure policy:
  - get() absorbs every failure (connect or command) and reports a miss.
  - set()/delete()/set_if_absent() raise CacheWriteFailure so write-path
    callers can decide whether to retry.
  - delete_by_pattern() is a no-op returning 0 on stores without SCAN.

Connection is lazy: the first operation pings the store. A failed ping
schedules one background reconnect after a fixed backoff. While that
reconnect is pending, operations fail fast without touching the store;
further failures reschedule instead of retrying on the request path.
"""

import asyncio
import json
import logging
from typing import Any, cast

import redis.asyncio as aioredis

from config.settings import settings
from src.bk_cache.infrastructure.stores import MemoryStore, RedisStore
from src.bk_common.errors import CacheReadFailure, CacheWriteFailure

logger = logging.getLogger(__name__)

SCAN_PAGE_SIZE = 100


class FastCache:
    def __init__(
        self,
        redis_client: aioredis.Redis | None = None,
        default_ttl: int = settings.CACHE_TTL_SECONDS,
        memory_ttl: int = settings.MEMORY_CACHE_TTL_SECONDS,
        reconnect_interval: float = settings.CACHE_RECONNECT_INTERVAL_SECONDS,
    ) -> None:
        self._store: MemoryStore | RedisStore
        if redis_client is not None:
            self._store = RedisStore(redis_client, default_ttl)
        else:
            logger.warning("No Redis configured, using in-process memory cache")
            self._store = MemoryStore(memory_ttl)
        self._pattern_capable: bool = self._store.supports_pattern_delete
        self._reconnect_interval = reconnect_interval
        self._connected = False
        self._reconnect_task: asyncio.Task[None] | None = None
        logger.info("Fast cache backend: %s", self._store.name)

    @property
    def cache_type(self) -> str:
        return self._store.name

    @property
    def supports_pattern_delete(self) -> bool:
        return self._pattern_capable

    # ------------------------------------------------------------------
    # Connection management
    # ------------------------------------------------------------------

    async def _ensure_connection(self) -> bool:
        if self._connected:
            return True
        if self._reconnect_task is not None and not self._reconnect_task.done():
            # Outage already recorded; only the background task reconnects
            return False
        try:
            await self._store.connect()
        except Exception as exc:
            logger.warning("Cache connection failed (lazy connect): %s", exc)
            self._schedule_reconnect()
            return False
        self._connected = True
        logger.info("Cache connection established (%s)", self._store.name)
        return True

    def _mark_lost(self) -> None:
        self._connected = False
        self._schedule_reconnect()

    def _schedule_reconnect(self) -> None:
        if self._reconnect_task is not None and not self._reconnect_task.done():
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        self._reconnect_task = loop.create_task(self._reconnect_later())

    async def _reconnect_later(self) -> None:
        await asyncio.sleep(self._reconnect_interval)
        logger.info("Attempting to reconnect cache store")
        try:
            await self._store.connect()
        except Exception as exc:
            logger.error("Cache reconnection failed: %s", exc)
            self._reconnect_task = None
            self._schedule_reconnect()
            return
        self._connected = True
        self._reconnect_task = None
        logger.info("Cache store reconnected")

    async def is_connected(self) -> bool:
        if not await self._ensure_connection():
            return False
        try:
            return await self._store.ping()
        except Exception as exc:
            logger.error("Cache connection check failed: %s", exc)
            return False

    async def close(self) -> None:
        if self._reconnect_task is not None:
            self._reconnect_task.cancel()
            self._reconnect_task = None
        try:
            await self._store.close()
        except Exception as exc:
            logger.error("Error closing cache store: %s", exc)
        self._connected = False

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def get(self, key: str) -> Any | None:
        if not await self._ensure_connection():
            logger.error("Cache read skipped, store unavailable: %s", key)
            return None
        try:
            raw = await self._store.get(key)
        except Exception as exc:
            failure = CacheReadFailure(key, str(exc))
            logger.error("%s: %s", failure.message, failure.details)
            self._mark_lost()
            return None
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except ValueError:
            logger.error("Corrupt cache entry for key %s, ignoring", key)
            return None

    async def set(self, key: str, value: Any, ttl_seconds: int | None = None) -> None:
        if not await self._ensure_connection():
            raise CacheWriteFailure(key, "cache store unavailable")
        try:
            await self._store.set(key, json.dumps(value, default=str), ttl_seconds)
        except Exception as exc:
            logger.error("Cache write failed for key %s: %s", key, exc)
            self._mark_lost()
            raise CacheWriteFailure(key, str(exc)) from exc
        logger.debug("Cache set for key %s (ttl=%s)", key, ttl_seconds)

    async def set_if_absent(self, key: str, value: str, ttl_seconds: int) -> bool:
        if not await self._ensure_connection():
            raise CacheWriteFailure(key, "cache store unavailable")
        try:
            return await self._store.set_if_absent(key, value, ttl_seconds)
        except Exception as exc:
            logger.error("Cache conditional write failed for key %s: %s", key, exc)
            self._mark_lost()
            raise CacheWriteFailure(key, str(exc)) from exc

    async def delete(self, key: str) -> bool:
        if not await self._ensure_connection():
            raise CacheWriteFailure(key, "cache store unavailable")
        try:
            removed = await self._store.delete(key)
        except Exception as exc:
            logger.error("Cache delete failed for key %s: %s", key, exc)
            self._mark_lost()
            raise CacheWriteFailure(key, str(exc)) from exc
        logger.debug("Cache deleted key %s (existed=%s)", key, removed)
        return removed

    async def delete_if_equals(self, key: str, value: str) -> bool:
        if not await self._ensure_connection():
            raise CacheWriteFailure(key, "cache store unavailable")
        try:
            return await self._store.delete_if_equals(key, value)
        except Exception as exc:
            logger.error("Cache conditional delete failed for key %s: %s", key, exc)
            self._mark_lost()
            raise CacheWriteFailure(key, str(exc)) from exc

    async def delete_by_pattern(self, pattern: str) -> int:
        """Remove every key matching a glob. Returns the number removed."""
        if not self._pattern_capable:
            logger.warning("Pattern deletion not supported by %s store: %s",
                           self._store.name, pattern)
            return 0
        if not await self._ensure_connection():
            logger.warning("Pattern deletion skipped, store unavailable: %s", pattern)
            return 0

        store = cast(RedisStore, self._store)
        total = 0
        cursor = 0
        try:
            while True:
                cursor, keys = await store.scan(cursor, pattern, SCAN_PAGE_SIZE)
                if keys:
                    await store.unlink(keys)
                    total += len(keys)
                if cursor == 0:
                    break
        except Exception as exc:
            logger.error("Error deleting keys by pattern %s: %s", pattern, exc)
            self._mark_lost()
            return total

        logger.debug("Deleted %d keys matching pattern: %s", total, pattern)
        return total

    async def reset(self) -> None:
        if not await self._ensure_connection():
            logger.warning("Cache reset skipped, store unavailable")
            return
        try:
            await self._store.flush()
        except Exception as exc:
            logger.error("Error resetting cache: %s", exc)
            return
        logger.debug("Cache reset successful")
