# src/store/store_factory.py
"""Factory for durable store instantiation."""

from __future__ import annotations

from pawmatch.config.settings import Settings
from pawmatch.store.base_store import BaseDurableStore


def create_store(settings: Settings | None = None) -> BaseDurableStore:
    """Instantiate the configured durable store backend.

    Args:
        settings: Application settings. Defaults to the in-memory backend.

    Returns:
        Configured BaseDurableStore implementation.
    """
    backend = "memory" if settings is None else settings.store_backend

    if backend == "memory":
        from pawmatch.store.memory_store import InMemoryStore
        return InMemoryStore()

    if backend == "none":
        from pawmatch.store.memory_store import NullStore
        return NullStore()

    if backend == "sqlite":
        from pawmatch.store.sqlite_store import SqliteStore
        return SqliteStore(db_path=settings.store_sqlite_path)

    if backend == "redis":
        from pawmatch.store.redis_store import RedisStore
        if not settings.store_redis_url:
            raise ValueError(
                "STORE_REDIS_URL must be set when STORE_BACKEND=redis"
            )
        return RedisStore(
            redis_url=settings.store_redis_url, timeout_s=settings.store_write_timeout_s,
        )

    raise ValueError(f"Unsupported store backend: {backend!r}")
