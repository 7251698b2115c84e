# src/cache/cache_store.py
"""Category-aware cache over the durable store with an in-memory fallback.

Reads treat an expired entry as a miss and delete it. Writes overwrite any
previous entry for the key, whatever its TTL. When the durable store is
unreachable, or raises, entries go to a bounded process-local map instead;
no method raises to the caller.
"""

from __future__ import annotations

import logging
import threading
from collections import Counter, OrderedDict
from datetime import datetime, timezone
from typing import Any, Callable

from pawmatch.cache.models import CacheCategory, CacheEntry, CacheStats, CacheTTLPolicy
from pawmatch.core.best_effort import best_effort
from pawmatch.store.base_store import BaseDurableStore

logger = logging.getLogger(__name__)

_FAILED = object()


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class MemoryFallbackCache:
    """Bounded FIFO map used while the durable store is unreachable."""

    def __init__(self, max_entries: int = 1000) -> None:
        self._max_entries = max_entries
        self._entries: OrderedDict[str, CacheEntry] = OrderedDict()
        self._lock = threading.Lock()

    def get(self, key: str, now: datetime) -> CacheEntry | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if entry.is_expired(now):
                del self._entries[key]
                return None
            return entry

    def put(self, entry: CacheEntry) -> None:
        with self._lock:
            # Overwrites count as fresh insertions for eviction order
            self._entries.pop(entry.key, None)
            self._entries[entry.key] = entry
            while len(self._entries) > self._max_entries:
                self._entries.popitem(last=False)

    def delete(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def purge_expired(self, now: datetime) -> int:
        with self._lock:
            expired = [k for k, e in self._entries.items() if e.is_expired(now)]
            for key in expired:
                del self._entries[key]
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key in self._entries


class CacheStore:
    """Cache with per-category TTL backed by a ``BaseDurableStore``."""

    def __init__(
        self,
        store: BaseDurableStore,
        ttl_policy: CacheTTLPolicy | None = None,
        memory_fallback_size: int = 1000,
        clock: Callable[[], datetime] = _utc_now,
        timeout_s: float = 5.0,
    ) -> None:
        self._store = store
        self._ttl_policy = ttl_policy or CacheTTLPolicy()
        self._clock = clock
        self._timeout_s = timeout_s
        self.memory = MemoryFallbackCache(memory_fallback_size)

    async def _durable(self) -> bool:
        return await best_effort(
            self._store.is_available(),
            timeout_s=self._timeout_s,
            what="Cache store health check",
            default=False,
        )

    async def get(self, key: str) -> CacheEntry | None:
        """Return the live entry for ``key`` or None (miss)."""
        now = self._clock()
        if await self._durable():
            entry = await best_effort(
                self._store.get_cache_entry(key),
                timeout_s=self._timeout_s,
                what=f"Cache read for {key}",
            )
            if isinstance(entry, CacheEntry):
                if entry.is_expired(now):
                    await self._delete_durable(key)
                    return None
                return entry
        return self.memory.get(key, now)

    async def get_payload(self, key: str) -> Any | None:
        entry = await self.get(key)
        return None if entry is None else entry.payload

    async def put(
        self,
        key: str,
        payload: Any,
        category: CacheCategory,
        tokens_used: int = 0,
        model: str | None = None,
    ) -> CacheEntry:
        """Store ``payload`` with the TTL configured for ``category``."""
        now = self._clock()
        entry = CacheEntry(
            key=key,
            category=category,
            payload=payload,
            tokens_used=tokens_used,
            model=model,
            created_at=now,
            expires_at=self._ttl_policy.expires_at(category, now),
        )
        if await self._durable():
            written = await best_effort(
                self._store.put_cache_entry(entry),
                timeout_s=self._timeout_s,
                what=f"Cache write for {key}",
                default=_FAILED,
            )
            if written is not _FAILED:
                self.memory.delete(key)
                return entry
        self.memory.put(entry)
        return entry

    async def invalidate(self, key: str) -> None:
        self.memory.delete(key)
        if await self._durable():
            await self._delete_durable(key)

    async def purge_expired(self) -> int:
        """Delete every expired entry. Returns the number removed."""
        now = self._clock()
        removed = self.memory.purge_expired(now)
        if await self._durable():
            removed += await best_effort(
                self._store.delete_expired_cache_entries(now),
                timeout_s=self._timeout_s,
                what="Cache purge",
                default=0,
            )
        logger.info("Purged %d expired cache entries", removed)
        return removed

    async def stats(self) -> CacheStats | None:
        """Durable cache statistics; None if the store is unreachable."""
        if not await self._durable():
            return None
        entries = await best_effort(
            self._store.list_cache_entries(),
            timeout_s=self._timeout_s,
            what="Cache stats",
        )
        if entries is None:
            return None
        return CacheStats(
            total_entries=len(entries),
            by_category=dict(Counter(e.category for e in entries)),
            total_tokens_saved=sum(e.tokens_used for e in entries),
        )

    async def _delete_durable(self, key: str) -> None:
        await best_effort(
            self._store.delete_cache_entry(key),
            timeout_s=self._timeout_s,
            what=f"Cache delete for {key}",
        )
