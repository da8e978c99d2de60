"""
Key-value store adapter.

A small get/set-with-expiry interface over Redis. Values are JSON-encoded on
write and decoded on read, so callers deal in dicts, strings and ints.
MemoryStore implements the same contract in-process for tests and local runs.
"""

import json
import time
from abc import ABC, abstractmethod
from typing import Any, Callable

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from app.errors import DatabaseError


class KeyValueStore(ABC):

    @abstractmethod
    async def get(self, key: str) -> Any:
        """Return the decoded value, or None when missing or expired."""

    @abstractmethod
    async def set(self, key: str, value: Any, ex: int | None = None, nx: bool = False) -> bool:
        """Write a value with an optional TTL in seconds. With nx, only write if absent."""

    @abstractmethod
    async def delete(self, key: str):
        ...

    @abstractmethod
    async def incr(self, key: str, ex: int | None = None) -> int:
        """Atomically increment an integer value (missing counts as 0). With ex, also reset its TTL."""

    async def ping(self) -> bool:
        return True


class RedisStore(KeyValueStore):

    def __init__(self, url: str):
        if not url:
            raise ValueError("REDIS_URL must be set in .env")
        self._redis = aioredis.from_url(url, decode_responses=True)

    async def get(self, key):
        try:
            raw = await self._redis.get(key)
        except RedisError as e:
            print(f"  [store] GET {key} failed: {e}")
            raise DatabaseError() from e
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except ValueError:
            return raw

    async def set(self, key, value, ex=None, nx=False):
        try:
            result = await self._redis.set(key, json.dumps(value), ex=ex, nx=nx)
        except RedisError as e:
            print(f"  [store] SET {key} failed: {e}")
            raise DatabaseError() from e
        return bool(result)

    async def delete(self, key):
        try:
            await self._redis.delete(key)
        except RedisError as e:
            print(f"  [store] DEL {key} failed: {e}")
            raise DatabaseError() from e

    async def incr(self, key, ex=None):
        try:
            if ex is None:
                return int(await self._redis.incr(key))
            async with self._redis.pipeline(transaction=True) as pipe:
                pipe.incr(key)
                pipe.expire(key, ex)
                count, _ = await pipe.execute()
            return int(count)
        except RedisError as e:
            print(f"  [store] INCR {key} failed: {e}")
            raise DatabaseError() from e

    async def ping(self):
        try:
            return bool(await self._redis.ping())
        except RedisError as e:
            print(f"  [store] PING failed: {e}")
            return False

    async def close(self):
        await self._redis.aclose()


class MemoryStore(KeyValueStore):
    """In-process store. Expired keys are dropped lazily on access."""

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._data: dict[str, tuple[str, float | None]] = {}

    def _live(self, key: str):
        entry = self._data.get(key)
        if entry is None:
            return None
        raw, expires_at = entry
        if expires_at is not None and self._clock() >= expires_at:
            del self._data[key]
            return None
        return entry

    def ttl(self, key: str) -> float | None:
        """Seconds left before expiry, None for a missing or persistent key."""
        entry = self._live(key)
        if entry is None or entry[1] is None:
            return None
        return entry[1] - self._clock()

    async def get(self, key):
        entry = self._live(key)
        if entry is None:
            return None
        return json.loads(entry[0])

    async def set(self, key, value, ex=None, nx=False):
        if nx and self._live(key) is not None:
            return False
        expires_at = self._clock() + ex if ex else None
        self._data[key] = (json.dumps(value), expires_at)
        return True

    async def delete(self, key):
        self._data.pop(key, None)

    async def incr(self, key, ex=None):
        entry = self._live(key)
        value = int(json.loads(entry[0])) + 1 if entry else 1
        if ex is not None:
            expires_at = self._clock() + ex
        else:
            expires_at = entry[1] if entry else None
        self._data[key] = (json.dumps(value), expires_at)
        return value


def create_store(settings) -> KeyValueStore:
    if settings.kv_backend == "memory":
        print("[store] Using in-memory store (data is lost on restart)")
        return MemoryStore()
    return RedisStore(settings.redis_url)
