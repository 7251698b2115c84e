# tests/unit/store/test_unit_store_backends.py
"""Backend-specific behaviour: outages, persistence, the factory."""

from __future__ import annotations

import asyncio
import time
from datetime import date
from unittest.mock import MagicMock, patch

import pytest

from pawmatch.config.settings import ConfigurationError, Settings
from pawmatch.core.best_effort import best_effort
from pawmatch.store.base_store import StoreUnavailableError
from pawmatch.store.memory_store import InMemoryStore, NullStore
from pawmatch.store.redis_store import RedisStore
from pawmatch.store.sqlite_store import SqliteStore
from pawmatch.store.store_factory import create_store


class TestInMemoryStore:
    @pytest.mark.asyncio
    async def test_outage_raises(self):
        store = InMemoryStore()
        store.available = False
        assert not await store.is_available()
        with pytest.raises(StoreUnavailableError):
            await store.get_enrichment("A")

    @pytest.mark.asyncio
    async def test_returns_copies(self):
        store = InMemoryStore()
        record = await store.increment_usage(date(2026, 3, 14), "m", 1, 10, 0.1)
        record.request_count = 99
        again = await store.list_usage(date(2026, 3, 14))
        assert again[0].request_count == 1


class TestNullStore:
    @pytest.mark.asyncio
    async def test_always_unavailable(self):
        store = NullStore()
        assert not await store.is_available()
        with pytest.raises(StoreUnavailableError):
            await store.list_enrichments()


class TestSqliteStore:
    @pytest.mark.asyncio
    async def test_persists_across_connections(self, tmp_path):
        path = tmp_path / "db" / "pawmatch.db"
        first = SqliteStore(path)
        await first.increment_usage(date(2026, 3, 14), "m", 1, 10, 0.1)
        first.close()

        second = SqliteStore(path)
        records = await second.list_usage(date(2026, 3, 14))
        second.close()
        assert records[0].tokens_used == 10

    @pytest.mark.asyncio
    async def test_closed_connection_is_unavailable(self):
        store = SqliteStore(":memory:")
        store.close()
        assert not await store.is_available()

    @pytest.mark.asyncio
    async def test_busy_connection_is_bounded_by_timeout(self):
        store = SqliteStore(":memory:")
        store._lock.acquire()
        try:
            started = time.monotonic()
            up = await best_effort(
                store.is_available(), timeout_s=0.05, what="ping", default=False,
            )
            assert up is False
            assert time.monotonic() - started < 0.5
        finally:
            store._lock.release()
        assert await store.is_available()
        store.close()


class TestRedisStore:
    @pytest.mark.asyncio
    async def test_ping_failure_is_unavailable(self):
        client = MagicMock()
        client.ping.side_effect = ConnectionError("refused")
        with patch("redis.Redis.from_url", return_value=client):
            store = RedisStore("redis://localhost:6379/0")
        assert not await store.is_available()

    @pytest.mark.asyncio
    async def test_increment_uses_pipeline(self):
        client = MagicMock()
        client.pipeline.return_value.execute.return_value = [3, 300, "0.75", 1]
        with patch("redis.Redis.from_url", return_value=client) as from_url:
            store = RedisStore("redis://cache:6379/1")
        record = await store.increment_usage(date(2026, 3, 14), "m", 1, 100, 0.25)
        from_url.assert_called_once_with(
            "redis://cache:6379/1",
            decode_responses=True,
            socket_connect_timeout=5.0,
            socket_timeout=5.0,
        )
        assert record.request_count == 3
        assert record.estimated_cost == pytest.approx(0.75)
        pipe = client.pipeline.return_value
        pipe.hincrby.assert_any_call("pawmatch:usage:2026-03-14:m", "request_count", 1)
        pipe.sadd.assert_called_once_with("pawmatch:usage:__index__", "2026-03-14|m")

    @pytest.mark.asyncio
    async def test_hanging_server_does_not_block_the_loop(self):
        client = MagicMock()
        client.ping.side_effect = lambda: time.sleep(0.5)
        with patch("redis.Redis.from_url", return_value=client):
            store = RedisStore("redis://localhost:6379/0", timeout_s=0.05)

        ticks = []

        async def ticker():
            for _ in range(3):
                ticks.append(time.monotonic())
                await asyncio.sleep(0.01)

        started = time.monotonic()
        up, _ = await asyncio.gather(
            best_effort(store.is_available(), timeout_s=0.1, what="ping", default=False),
            ticker(),
        )
        assert up is False
        assert time.monotonic() - started < 0.4
        assert len(ticks) == 3

    def test_close(self):
        client = MagicMock()
        with patch("redis.Redis.from_url", return_value=client):
            store = RedisStore("redis://localhost:6379/0")
        store.close()
        client.close.assert_called_once()


class TestCreateStore:
    def test_default_memory(self):
        assert isinstance(create_store(), InMemoryStore)

    def test_none(self):
        assert isinstance(create_store(Settings(_env_file=None, store_backend="none")), NullStore)

    def test_sqlite(self, tmp_path):
        settings = Settings(
            _env_file=None, store_backend="sqlite", store_sqlite_path=tmp_path / "p.db",
        )
        store = create_store(settings)
        assert isinstance(store, SqliteStore)
        store.close()
        assert (tmp_path / "p.db").exists()

    def test_redis(self):
        settings = Settings(
            _env_file=None,
            store_backend="redis",
            store_redis_url="redis://localhost:6379/0",
            store_write_timeout_s=2.0,
        )
        with patch("redis.Redis.from_url", return_value=MagicMock()) as from_url:
            assert isinstance(create_store(settings), RedisStore)
        assert from_url.call_args.kwargs["socket_timeout"] == 2.0
        assert from_url.call_args.kwargs["socket_connect_timeout"] == 2.0

    def test_redis_without_url_rejected(self):
        with pytest.raises(ConfigurationError):
            Settings(_env_file=None, store_backend="redis")
