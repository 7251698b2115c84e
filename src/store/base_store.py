# src/store/base_store.py
"""Abstract durable store interface.

One backend holds four record kinds: cache entries, enriched content (keyed
by item id), embeddings (keyed by item id) and daily usage records (keyed by
date and model). Callers must consult ``is_available()`` before any read or
write and degrade to in-memory or no-op behaviour when it is False.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import date, datetime

from pawmatch.cache.models import CacheEntry
from pawmatch.core.models import (
    EnrichmentTier,
    Embedding,
    StoredEnrichment,
    UsageRecord,
)


class StoreUnavailableError(RuntimeError):
    """Raised by a backend that cannot reach its storage."""


class BaseDurableStore(ABC):
    """Unified interface for durable storage backends."""

    @abstractmethod
    async def is_available(self) -> bool:
        """Health check. Must not raise."""

    # --- Cache entries ---

    @abstractmethod
    async def get_cache_entry(self, key: str) -> CacheEntry | None:
        """Retrieve a cache entry, expired or not."""

    @abstractmethod
    async def put_cache_entry(self, entry: CacheEntry) -> None:
        """Insert or overwrite a cache entry."""

    @abstractmethod
    async def delete_cache_entry(self, key: str) -> None:
        """Remove a cache entry if present."""

    @abstractmethod
    async def delete_expired_cache_entries(self, now: datetime) -> int:
        """Remove entries whose expiry is in the past. Returns the count."""

    @abstractmethod
    async def list_cache_entries(self) -> list[CacheEntry]:
        """List all cache entries (for stats)."""

    # --- Enriched content ---

    @abstractmethod
    async def get_enrichment(self, item_id: str) -> StoredEnrichment | None:
        """Retrieve enriched content for an item."""

    @abstractmethod
    async def upsert_enrichment(self, record: StoredEnrichment) -> None:
        """Insert or replace enriched content for an item."""

    @abstractmethod
    async def find_enrichment_by_fingerprint(
        self,
        fingerprint: str,
        exclude_item_id: str | None = None,
        min_tier: EnrichmentTier = "basic",
    ) -> StoredEnrichment | None:
        """Highest-tier content of another item sharing ``fingerprint``."""

    @abstractmethod
    async def list_enrichments(self) -> list[StoredEnrichment]:
        """List all stored enrichments (for stats)."""

    # --- Embeddings ---

    @abstractmethod
    async def get_embedding(self, item_id: str) -> Embedding | None:
        """Retrieve the stored embedding for an item."""

    @abstractmethod
    async def upsert_embedding(self, embedding: Embedding) -> None:
        """Insert or replace the embedding for an item."""

    # --- Usage ---

    @abstractmethod
    async def increment_usage(
        self,
        day: date,
        model: str,
        requests: int,
        tokens: int,
        cost: float,
    ) -> UsageRecord:
        """Atomically add to the (day, model) usage record."""

    @abstractmethod
    async def list_usage(
        self, since: date, until: date | None = None
    ) -> list[UsageRecord]:
        """Usage records with ``since <= date <= until``."""

    @abstractmethod
    async def delete_usage_before(self, day: date) -> int:
        """Explicit cleanup of usage records older than ``day``."""
