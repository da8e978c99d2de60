"""Unit tests for the in-memory key-value store."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from app.config import Settings
from app.errors import DatabaseError
from app.store import MemoryStore, RedisStore, create_store


class TestMemoryStore:
    @pytest.mark.asyncio
    async def test_missing_key_is_none(self, store: MemoryStore):
        assert await store.get("nope") is None

    @pytest.mark.asyncio
    async def test_values_are_json_decoded(self, store: MemoryStore):
        await store.set("k", {"a": [1, 2], "b": None})
        assert await store.get("k") == {"a": [1, 2], "b": None}

    @pytest.mark.asyncio
    async def test_expiry(self, store: MemoryStore, clock):
        await store.set("k", "v", ex=10)
        clock.advance(9)
        assert await store.get("k") == "v"
        clock.advance(1)
        assert await store.get("k") is None

    @pytest.mark.asyncio
    async def test_nx_does_not_overwrite(self, store: MemoryStore):
        assert await store.set("k", "first", nx=True) is True
        assert await store.set("k", "second", nx=True) is False
        assert await store.get("k") == "first"

    @pytest.mark.asyncio
    async def test_nx_succeeds_after_expiry(self, store: MemoryStore, clock):
        await store.set("k", "first", ex=5, nx=True)
        clock.advance(5)
        assert await store.set("k", "second", nx=True) is True

    @pytest.mark.asyncio
    async def test_incr_starts_at_one_and_keeps_ttl(self, store: MemoryStore, clock):
        assert await store.incr("c", ex=100) == 1
        clock.advance(40)
        assert await store.incr("c") == 2
        assert store.ttl("c") == pytest.approx(60)

    @pytest.mark.asyncio
    async def test_incr_with_ttl_refreshes_expiry(self, store: MemoryStore, clock):
        await store.incr("c", ex=100)
        clock.advance(40)
        await store.incr("c", ex=100)
        assert store.ttl("c") == pytest.approx(100)

    @pytest.mark.asyncio
    async def test_delete(self, store: MemoryStore):
        await store.set("k", "v")
        await store.delete("k")
        await store.delete("never-existed")
        assert await store.get("k") is None


class TestRedisStore:
    def test_requires_url(self):
        with pytest.raises(ValueError):
            RedisStore("")

    @pytest.mark.asyncio
    async def test_connection_errors_become_database_error(self):
        store = RedisStore("redis://localhost:6379/0")
        store._redis = MagicMock()
        store._redis.get = AsyncMock(side_effect=RedisConnectionError("down"))

        with pytest.raises(DatabaseError):
            await store.get("k")

    @pytest.mark.asyncio
    async def test_incr_with_ttl_runs_in_one_transaction(self):
        store = RedisStore("redis://localhost:6379/0")
        pipe = MagicMock()
        pipe.__aenter__ = AsyncMock(return_value=pipe)
        pipe.__aexit__ = AsyncMock(return_value=False)
        pipe.execute = AsyncMock(return_value=[1, True])
        store._redis = MagicMock()
        store._redis.pipeline = MagicMock(return_value=pipe)

        assert await store.incr("ratelimit:1.2.3.4", ex=86_400) == 1
        store._redis.pipeline.assert_called_once_with(transaction=True)
        pipe.incr.assert_called_once_with("ratelimit:1.2.3.4")
        pipe.expire.assert_called_once_with("ratelimit:1.2.3.4", 86_400)

    @pytest.mark.asyncio
    async def test_failed_transaction_becomes_database_error(self):
        store = RedisStore("redis://localhost:6379/0")
        pipe = MagicMock()
        pipe.__aenter__ = AsyncMock(return_value=pipe)
        pipe.__aexit__ = AsyncMock(return_value=False)
        pipe.execute = AsyncMock(side_effect=RedisConnectionError("down"))
        store._redis = MagicMock()
        store._redis.pipeline = MagicMock(return_value=pipe)

        with pytest.raises(DatabaseError):
            await store.incr("ratelimit:1.2.3.4", ex=86_400)

    @pytest.mark.asyncio
    async def test_ping_reports_failure(self):
        store = RedisStore("redis://localhost:6379/0")
        store._redis = MagicMock()
        store._redis.ping = AsyncMock(side_effect=RedisConnectionError("down"))

        assert await store.ping() is False


def test_create_store_memory_backend():
    assert isinstance(create_store(Settings(_env_file=None, kv_backend="memory")), MemoryStore)
