"""Fast cache backing stores.

Both stores hold serialized (JSON text) values. Only RedisStore can scan by
pattern; MemoryStore is a per-process dict with its own expiry clock.
"""

import time
from collections.abc import Callable

import redis.asyncio as aioredis

# Compare-and-delete so a lock holder never removes someone else's lock
_DELETE_IF_EQUALS_LUA = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
else
    return 0
end
"""


class MemoryStore:
    """In-process store. Operations never suspend between check and write.

    Expired entries are dropped when read and swept every `prune_every`
    writes, so keys that are never read again do not accumulate.
    """

    supports_pattern_delete = False
    name = "memory"

    def __init__(
        self,
        default_ttl: int,
        prune_every: int = 256,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.default_ttl = default_ttl
        self._data: dict[str, tuple[str, float | None]] = {}
        self._prune_every = prune_every
        self._writes = 0
        self._clock = clock

    async def connect(self) -> None:
        return None

    async def ping(self) -> bool:
        return True

    def _live(self, key: str) -> str | None:
        entry = self._data.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at is not None and expires_at <= self._clock():
            del self._data[key]
            return None
        return value

    def _expiry(self, ttl: int | None) -> float | None:
        seconds = self.default_ttl if ttl is None else ttl
        return self._clock() + seconds if seconds > 0 else None

    def _write(self, key: str, value: str, ttl: int | None) -> None:
        self._data[key] = (value, self._expiry(ttl))
        self._writes += 1
        if self._writes >= self._prune_every:
            self._writes = 0
            self.prune()

    def prune(self) -> int:
        now = self._clock()
        expired = [
            key for key, (_, expires_at) in self._data.items()
            if expires_at is not None and expires_at <= now
        ]
        for key in expired:
            del self._data[key]
        return len(expired)

    async def get(self, key: str) -> str | None:
        return self._live(key)

    async def set(self, key: str, value: str, ttl: int | None = None) -> None:
        self._write(key, value, ttl)

    async def set_if_absent(self, key: str, value: str, ttl: int) -> bool:
        if self._live(key) is not None:
            return False
        self._write(key, value, ttl)
        return True

    async def delete(self, key: str) -> bool:
        existed = self._live(key) is not None
        self._data.pop(key, None)
        return existed

    async def delete_if_equals(self, key: str, value: str) -> bool:
        if self._live(key) == value:
            del self._data[key]
            return True
        return False

    async def flush(self) -> None:
        self._data.clear()

    async def close(self) -> None:
        return None


class RedisStore:
    """redis.asyncio-backed store supporting SCAN/UNLINK pattern deletion."""

    supports_pattern_delete = True
    name = "redis"

    def __init__(self, client: aioredis.Redis, default_ttl: int) -> None:
        self.client = client
        self.default_ttl = default_ttl

    async def connect(self) -> None:
        await self.client.ping()

    async def ping(self) -> bool:
        return bool(await self.client.ping())

    async def get(self, key: str) -> str | None:
        return await self.client.get(key)

    async def set(self, key: str, value: str, ttl: int | None = None) -> None:
        seconds = self.default_ttl if ttl is None else ttl
        await self.client.set(key, value, ex=seconds if seconds > 0 else None)

    async def set_if_absent(self, key: str, value: str, ttl: int) -> bool:
        return bool(await self.client.set(key, value, ex=ttl, nx=True))

    async def delete(self, key: str) -> bool:
        return bool(await self.client.delete(key))

    async def delete_if_equals(self, key: str, value: str) -> bool:
        return bool(await self.client.eval(_DELETE_IF_EQUALS_LUA, 1, key, value))

    async def scan(self, cursor: int, match: str, count: int) -> tuple[int, list[str]]:
        next_cursor, keys = await self.client.scan(cursor=cursor, match=match, count=count)
        return int(next_cursor), list(keys)

    async def unlink(self, keys: list[str]) -> int:
        return int(await self.client.unlink(*keys))

    async def flush(self) -> None:
        await self.client.flushdb(asynchronous=True)

    async def close(self) -> None:
        await self.client.aclose()
