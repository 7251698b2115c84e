# src/store/memory_store.py
"""In-process durable store (STORE_BACKEND=memory).

Useful for development and tests. ``available`` can be toggled to simulate
an outage of a real backend.
"""

from __future__ import annotations

import threading
from datetime import date, datetime

from pawmatch.cache.models import CacheEntry
from pawmatch.core.models import (
    EnrichmentTier,
    Embedding,
    StoredEnrichment,
    UsageRecord,
    tier_at_least,
    tier_rank,
)
from pawmatch.store.base_store import BaseDurableStore, StoreUnavailableError


class InMemoryStore(BaseDurableStore):
    """Dict-backed store guarded by a single lock."""

    def __init__(self) -> None:
        self.available = True
        self._lock = threading.Lock()
        self._cache: dict[str, CacheEntry] = {}
        self._enrichments: dict[str, StoredEnrichment] = {}
        self._embeddings: dict[str, Embedding] = {}
        self._usage: dict[tuple[date, str], UsageRecord] = {}

    async def is_available(self) -> bool:
        return self.available

    def _check(self) -> None:
        if not self.available:
            raise StoreUnavailableError("in-memory store marked unavailable")

    # --- Cache entries ---

    async def get_cache_entry(self, key: str) -> CacheEntry | None:
        self._check()
        with self._lock:
            entry = self._cache.get(key)
        return entry.model_copy(deep=True) if entry else None

    async def put_cache_entry(self, entry: CacheEntry) -> None:
        self._check()
        with self._lock:
            self._cache[entry.key] = entry.model_copy(deep=True)

    async def delete_cache_entry(self, key: str) -> None:
        self._check()
        with self._lock:
            self._cache.pop(key, None)

    async def delete_expired_cache_entries(self, now: datetime) -> int:
        self._check()
        with self._lock:
            expired = [k for k, e in self._cache.items() if e.is_expired(now)]
            for key in expired:
                del self._cache[key]
        return len(expired)

    async def list_cache_entries(self) -> list[CacheEntry]:
        self._check()
        with self._lock:
            return [e.model_copy(deep=True) for e in self._cache.values()]

    # --- Enriched content ---

    async def get_enrichment(self, item_id: str) -> StoredEnrichment | None:
        self._check()
        with self._lock:
            record = self._enrichments.get(item_id)
        return record.model_copy(deep=True) if record else None

    async def upsert_enrichment(self, record: StoredEnrichment) -> None:
        self._check()
        with self._lock:
            self._enrichments[record.item_id] = record.model_copy(deep=True)

    async def find_enrichment_by_fingerprint(
        self,
        fingerprint: str,
        exclude_item_id: str | None = None,
        min_tier: EnrichmentTier = "basic",
    ) -> StoredEnrichment | None:
        self._check()
        with self._lock:
            candidates = [
                r for r in self._enrichments.values()
                if r.content.fingerprint == fingerprint
                and r.item_id != exclude_item_id
                and tier_at_least(r.content.enrichment_tier, min_tier)
            ]
        if not candidates:
            return None
        best = max(candidates, key=lambda r: tier_rank(r.content.enrichment_tier))
        return best.model_copy(deep=True)

    async def list_enrichments(self) -> list[StoredEnrichment]:
        self._check()
        with self._lock:
            return [r.model_copy(deep=True) for r in self._enrichments.values()]

    # --- Embeddings ---

    async def get_embedding(self, item_id: str) -> Embedding | None:
        self._check()
        with self._lock:
            emb = self._embeddings.get(item_id)
        return emb.model_copy(deep=True) if emb else None

    async def upsert_embedding(self, embedding: Embedding) -> None:
        self._check()
        with self._lock:
            self._embeddings[embedding.item_id] = embedding.model_copy(deep=True)

    # --- Usage ---

    async def increment_usage(
        self,
        day: date,
        model: str,
        requests: int,
        tokens: int,
        cost: float,
    ) -> UsageRecord:
        self._check()
        with self._lock:
            record = self._usage.get((day, model)) or UsageRecord(date=day, model=model)
            record = record.model_copy(update={
                "request_count": record.request_count + requests,
                "tokens_used": record.tokens_used + tokens,
                "estimated_cost": record.estimated_cost + cost,
            })
            self._usage[(day, model)] = record
        return record.model_copy()

    async def list_usage(
        self, since: date, until: date | None = None
    ) -> list[UsageRecord]:
        self._check()
        with self._lock:
            records = [
                r for (day, _), r in self._usage.items()
                if day >= since and (until is None or day <= until)
            ]
        return sorted((r.model_copy() for r in records), key=lambda r: (r.date, r.model))

    async def delete_usage_before(self, day: date) -> int:
        self._check()
        with self._lock:
            old = [k for k in self._usage if k[0] < day]
            for key in old:
                del self._usage[key]
        return len(old)


class NullStore(BaseDurableStore):
    """Backend for STORE_BACKEND=none: permanently unavailable."""

    async def is_available(self) -> bool:
        return False

    def _fail(self):
        raise StoreUnavailableError("no durable store configured")

    async def get_cache_entry(self, key: str) -> CacheEntry | None:
        self._fail()

    async def put_cache_entry(self, entry: CacheEntry) -> None:
        self._fail()

    async def delete_cache_entry(self, key: str) -> None:
        self._fail()

    async def delete_expired_cache_entries(self, now: datetime) -> int:
        self._fail()

    async def list_cache_entries(self) -> list[CacheEntry]:
        self._fail()

    async def get_enrichment(self, item_id: str) -> StoredEnrichment | None:
        self._fail()

    async def upsert_enrichment(self, record: StoredEnrichment) -> None:
        self._fail()

    async def find_enrichment_by_fingerprint(
        self,
        fingerprint: str,
        exclude_item_id: str | None = None,
        min_tier: EnrichmentTier = "basic",
    ) -> StoredEnrichment | None:
        self._fail()

    async def list_enrichments(self) -> list[StoredEnrichment]:
        self._fail()

    async def get_embedding(self, item_id: str) -> Embedding | None:
        self._fail()

    async def upsert_embedding(self, embedding: Embedding) -> None:
        self._fail()

    async def increment_usage(
        self, day: date, model: str, requests: int, tokens: int, cost: float,
    ) -> UsageRecord:
        self._fail()

    async def list_usage(
        self, since: date, until: date | None = None
    ) -> list[UsageRecord]:
        self._fail()

    async def delete_usage_before(self, day: date) -> int:
        self._fail()
