# src/store/redis_store.py
"""Redis-based durable store (STORE_BACKEND=redis).

Requires 'redis' package: pip install redis.
Suitable for multi-instance deployments sharing one budget.

The client is synchronous; every call runs in a worker thread so callers
can bound it with ``asyncio.wait_for`` without stalling the event loop.
Socket timeouts bound the worker itself.
"""

from __future__ import annotations

import asyncio
import logging
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
from pawmatch.store.base_store import BaseDurableStore

logger = logging.getLogger(__name__)

_PREFIX = "pawmatch:"
_CACHE_INDEX = f"{_PREFIX}cache:__index__"
_ENRICHMENT_INDEX = f"{_PREFIX}enrichment:__index__"
_USAGE_INDEX = f"{_PREFIX}usage:__index__"


class RedisStore(BaseDurableStore):
    """Redis-backed store. Sets are kept as secondary indexes for scans."""

    def __init__(self, redis_url: str, timeout_s: float = 5.0) -> None:
        try:
            import redis
        except ImportError as e:
            raise ImportError(
                "redis package required: pip install redis"
            ) from e

        self._client = redis.Redis.from_url(
            redis_url,
            decode_responses=True,
            socket_connect_timeout=timeout_s,
            socket_timeout=timeout_s,
        )

    async def is_available(self) -> bool:
        try:
            return bool(await asyncio.to_thread(self._client.ping))
        except Exception as e:
            logger.warning("Redis store unavailable: %s", e)
            return False

    # --- Cache entries ---

    def _get_cache_entry(self, key: str) -> CacheEntry | None:
        data = self._client.get(f"{_PREFIX}cache:{key}")
        return None if data is None else CacheEntry.model_validate_json(data)

    def _delete_cache_entry(self, key: str) -> None:
        self._client.delete(f"{_PREFIX}cache:{key}")
        self._client.srem(_CACHE_INDEX, key)

    def _list_cache_entries(self) -> list[CacheEntry]:
        entries = (self._get_cache_entry(key) for key in self._client.smembers(_CACHE_INDEX))
        return [entry for entry in entries if entry is not None]

    def _put_cache_entry(self, entry: CacheEntry) -> None:
        self._client.set(f"{_PREFIX}cache:{entry.key}", entry.model_dump_json())
        self._client.sadd(_CACHE_INDEX, entry.key)

    def _delete_expired_cache_entries(self, now: datetime) -> int:
        removed = 0
        for entry in self._list_cache_entries():
            if entry.is_expired(now):
                self._delete_cache_entry(entry.key)
                removed += 1
        return removed

    async def get_cache_entry(self, key: str) -> CacheEntry | None:
        return await asyncio.to_thread(self._get_cache_entry, key)

    async def put_cache_entry(self, entry: CacheEntry) -> None:
        await asyncio.to_thread(self._put_cache_entry, entry)

    async def delete_cache_entry(self, key: str) -> None:
        await asyncio.to_thread(self._delete_cache_entry, key)

    async def delete_expired_cache_entries(self, now: datetime) -> int:
        return await asyncio.to_thread(self._delete_expired_cache_entries, now)

    async def list_cache_entries(self) -> list[CacheEntry]:
        return await asyncio.to_thread(self._list_cache_entries)

    # --- Enriched content ---

    def _get_enrichment(self, item_id: str) -> StoredEnrichment | None:
        data = self._client.get(f"{_PREFIX}enrichment:{item_id}")
        return None if data is None else StoredEnrichment.model_validate_json(data)

    def _upsert_enrichment(self, record: StoredEnrichment) -> None:
        previous = self._get_enrichment(record.item_id)
        if previous is not None and previous.content.fingerprint != record.content.fingerprint:
            self._client.srem(
                f"{_PREFIX}enrichment:fp:{previous.content.fingerprint}", record.item_id
            )
        self._client.set(f"{_PREFIX}enrichment:{record.item_id}", record.model_dump_json())
        self._client.sadd(f"{_PREFIX}enrichment:fp:{record.content.fingerprint}", record.item_id)
        self._client.sadd(_ENRICHMENT_INDEX, record.item_id)

    def _find_enrichment_by_fingerprint(
        self,
        fingerprint: str,
        exclude_item_id: str | None,
        min_tier: EnrichmentTier,
    ) -> StoredEnrichment | None:
        best: StoredEnrichment | None = None
        for item_id in sorted(self._client.smembers(f"{_PREFIX}enrichment:fp:{fingerprint}")):
            if item_id == exclude_item_id:
                continue
            record = self._get_enrichment(item_id)
            if record is None or record.content.fingerprint != fingerprint:
                continue
            if not tier_at_least(record.content.enrichment_tier, min_tier):
                continue
            if best is None or tier_rank(record.content.enrichment_tier) > tier_rank(
                best.content.enrichment_tier
            ):
                best = record
        return best

    def _list_enrichments(self) -> list[StoredEnrichment]:
        records = (self._get_enrichment(i) for i in self._client.smembers(_ENRICHMENT_INDEX))
        return [record for record in records if record is not None]

    async def get_enrichment(self, item_id: str) -> StoredEnrichment | None:
        return await asyncio.to_thread(self._get_enrichment, item_id)

    async def upsert_enrichment(self, record: StoredEnrichment) -> None:
        await asyncio.to_thread(self._upsert_enrichment, record)

    async def find_enrichment_by_fingerprint(
        self,
        fingerprint: str,
        exclude_item_id: str | None = None,
        min_tier: EnrichmentTier = "basic",
    ) -> StoredEnrichment | None:
        return await asyncio.to_thread(
            self._find_enrichment_by_fingerprint, fingerprint, exclude_item_id, min_tier
        )

    async def list_enrichments(self) -> list[StoredEnrichment]:
        return await asyncio.to_thread(self._list_enrichments)

    # --- Embeddings ---

    def _get_embedding(self, item_id: str) -> Embedding | None:
        data = self._client.get(f"{_PREFIX}embedding:{item_id}")
        return None if data is None else Embedding.model_validate_json(data)

    async def get_embedding(self, item_id: str) -> Embedding | None:
        return await asyncio.to_thread(self._get_embedding, item_id)

    async def upsert_embedding(self, embedding: Embedding) -> None:
        await asyncio.to_thread(
            self._client.set,
            f"{_PREFIX}embedding:{embedding.item_id}",
            embedding.model_dump_json(),
        )

    # --- Usage ---

    def _increment_usage(
        self, day: date, model: str, requests: int, tokens: int, cost: float
    ) -> UsageRecord:
        key = f"{_PREFIX}usage:{day.isoformat()}:{model}"
        pipe = self._client.pipeline()
        pipe.hincrby(key, "request_count", requests)
        pipe.hincrby(key, "tokens_used", tokens)
        pipe.hincrbyfloat(key, "estimated_cost", cost)
        pipe.sadd(_USAGE_INDEX, f"{day.isoformat()}|{model}")
        request_count, tokens_used, estimated_cost, _ = pipe.execute()
        return UsageRecord(
            date=day, model=model,
            request_count=int(request_count),
            tokens_used=int(tokens_used),
            estimated_cost=float(estimated_cost),
        )

    def _list_usage(self, since: date, until: date | None) -> list[UsageRecord]:
        records: list[UsageRecord] = []
        for member in self._client.smembers(_USAGE_INDEX):
            day_str, model = member.split("|", 1)
            day = date.fromisoformat(day_str)
            if day < since or (until is not None and day > until):
                continue
            data = self._client.hgetall(f"{_PREFIX}usage:{day_str}:{model}")
            if not data:
                continue
            records.append(UsageRecord(
                date=day, model=model,
                request_count=int(data.get("request_count", 0)),
                tokens_used=int(data.get("tokens_used", 0)),
                estimated_cost=float(data.get("estimated_cost", 0.0)),
            ))
        return sorted(records, key=lambda r: (r.date, r.model))

    def _delete_usage_before(self, day: date) -> int:
        removed = 0
        for member in self._client.smembers(_USAGE_INDEX):
            day_str, model = member.split("|", 1)
            if date.fromisoformat(day_str) < day:
                self._client.delete(f"{_PREFIX}usage:{day_str}:{model}")
                self._client.srem(_USAGE_INDEX, member)
                removed += 1
        return removed

    async def increment_usage(
        self,
        day: date,
        model: str,
        requests: int,
        tokens: int,
        cost: float,
    ) -> UsageRecord:
        return await asyncio.to_thread(self._increment_usage, day, model, requests, tokens, cost)

    async def list_usage(
        self, since: date, until: date | None = None
    ) -> list[UsageRecord]:
        return await asyncio.to_thread(self._list_usage, since, until)

    async def delete_usage_before(self, day: date) -> int:
        return await asyncio.to_thread(self._delete_usage_before, day)

    def close(self) -> None:
        """Close the Redis connection."""
        self._client.close()
