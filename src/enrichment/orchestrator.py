# src/enrichment/orchestrator.py
"""Tiered enrichment: reuse what was already paid for, escalate only on request.

Tiers are ``heuristic`` (free) < ``basic`` (AI text) < ``full`` (AI text plus
image analysis). For one item and one content fingerprint, content is
computed once and reused: first from the item's own stored record, then from
any other item sharing the fingerprint. Paid tiers are attempted only when
requested and degrade silently when inference is unavailable.
"""

from __future__ import annotations

import asyncio
import logging
from collections import Counter
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, Awaitable, TypeVar

from pydantic import BaseModel, Field

from pawmatch.cache.cache_store import CacheStore
from pawmatch.cache.fingerprint import compute_fingerprint
from pawmatch.core.best_effort import best_effort
from pawmatch.core.models import (
    EnrichedContent,
    EnrichedItem,
    EnrichmentTier,
    Item,
    StoredEnrichment,
    max_tier,
    tier_at_least,
    tier_rank,
)
from pawmatch.enrichment.content_generator import (
    generate_ai_content,
    run_image_analysis,
    template_bio,
)
from pawmatch.enrichment.heuristics import analyze
from pawmatch.llm.inference import InferenceService
from pawmatch.logging.context import item_context, set_tier_context
from pawmatch.store.base_store import BaseDurableStore
from pawmatch.tracking.models import UsageSummary

logger = logging.getLogger(__name__)

T = TypeVar("T")


class EnrichmentStatus(BaseModel):
    """What is stored for one item."""

    item_id: str
    has_enrichment: bool
    tier: EnrichmentTier | None = None
    has_ai_bio: bool = False
    has_image_analysis: bool = False
    tokens_used: int = 0
    fingerprint: str | None = None


class EnrichmentStats(BaseModel):
    """Aggregate enrichment coverage plus recent inference usage."""

    total: int = 0
    by_tier: dict[str, int] = Field(default_factory=dict)
    total_tokens: int = 0
    usage_last_7_days: UsageSummary | None = None


def requested_tier(run_ai: bool, run_image_analysis: bool) -> EnrichmentTier:
    if run_image_analysis:
        return "full"
    if run_ai:
        return "basic"
    return "heuristic"


def merge_item_with_enrichment(item: Item, content: EnrichedContent) -> EnrichedItem:
    """Item with enriched fields applied; tags merged without duplicates."""
    tags = list(dict.fromkeys([*item.tags, *content.heuristic_tags, *content.ai_tags]))
    return EnrichedItem(
        **item.model_dump(exclude={"tags", "energy_level", "size"}),
        tags=tags,
        energy_level=content.energy_level,
        size=content.size_class,
        enrichment_level=content.enrichment_tier,
        bio=content.bio,
        summary=content.summary,
        ai_tags=list(content.ai_tags),
    )


@dataclass
class _ItemLock:
    lock: asyncio.Lock
    users: int = 0


class EnrichmentOrchestrator:
    """Produces EnrichedContent for one item at a time."""

    def __init__(
        self,
        store: BaseDurableStore,
        inference: InferenceService,
        cache: CacheStore | None = None,
        item_lock: bool = True,
        store_timeout_s: float = 5.0,
    ) -> None:
        self._store = store
        self._inference = inference
        self._cache = cache
        self._item_lock = item_lock
        self._store_timeout_s = store_timeout_s
        self._locks: dict[str, _ItemLock] = {}

    @property
    def governor(self):
        return self._inference.governor

    # --- Locking ---

    @asynccontextmanager
    async def _guard(self, item_id: str) -> AsyncIterator[None]:
        """Serialize same-item calls; the lock is dropped once nobody holds or awaits it."""
        if not self._item_lock:
            yield
            return
        entry = self._locks.get(item_id)
        if entry is None:
            entry = self._locks[item_id] = _ItemLock(lock=asyncio.Lock())
        entry.users += 1
        try:
            async with entry.lock:
                yield
        finally:
            entry.users -= 1
            if entry.users == 0 and self._locks.get(item_id) is entry:
                del self._locks[item_id]

    # --- Store access (best-effort) ---

    async def _store_up(self) -> bool:
        up = await best_effort(
            self._store.is_available(),
            timeout_s=self._store_timeout_s,
            what="enrichment store health check",
            default=False,
        )
        return bool(up)

    async def load(self, item_id: str) -> EnrichedContent | None:
        """Stored content for an item, or None if absent or unreachable."""
        if not await self._store_up():
            return None
        record = await best_effort(
            self._store.get_enrichment(item_id),
            timeout_s=self._store_timeout_s,
            what=f"enrichment read for {item_id}",
        )
        return record.content if record else None

    async def _find_duplicate(self, fingerprint: str, item_id: str) -> EnrichedContent | None:
        if not await self._store_up():
            return None
        record = await best_effort(
            self._store.find_enrichment_by_fingerprint(
                fingerprint, exclude_item_id=item_id, min_tier="basic"
            ),
            timeout_s=self._store_timeout_s,
            what="duplicate lookup",
        )
        return record.content if record else None

    async def _save(self, item_id: str, source: str, content: EnrichedContent) -> None:
        if not await self._store_up():
            logger.debug("Store unavailable, enrichment for %s not persisted", item_id)
            return
        await best_effort(
            self._store.upsert_enrichment(
                StoredEnrichment(item_id=item_id, source=source, content=content)
            ),
            timeout_s=self._store_timeout_s,
            what=f"enrichment write for {item_id}",
        )

    async def _attempt(self, tier: EnrichmentTier, coro: Awaitable[T]) -> T | None:
        """Run one paid tier; unexpected errors degrade to None."""
        set_tier_context(tier)
        try:
            return await coro
        except Exception:
            logger.warning("Enrichment tier %s failed", tier, exc_info=True)
            return None
        finally:
            set_tier_context(None)

    # --- Main entry point ---

    async def enrich(
        self,
        item: Item,
        source: str = "unknown",
        run_ai: bool = False,
        run_image_analysis: bool = False,
        force_refresh: bool = False,
        budget_threshold: float = 1.0,
    ) -> EnrichedContent:
        """Enrich ``item`` up to the requested tier.

        Returns content whose ``tokens_used`` is what this call spent; reused
        content always reports 0. Never raises for inference or store
        failures: the best tier reached is returned.
        """
        with item_context(item.id, source):
            async with self._guard(item.id):
                return await self._enrich(
                    item, source, run_ai, run_image_analysis, force_refresh, budget_threshold
                )

    async def _enrich(
        self,
        item: Item,
        source: str,
        run_ai: bool,
        run_image: bool,
        force_refresh: bool,
        budget_threshold: float,
    ) -> EnrichedContent:
        fingerprint = compute_fingerprint(item)
        wanted = requested_tier(run_ai, run_image)
        base: EnrichedContent | None = None

        if not force_refresh:
            cached = await self.load(item.id)
            if cached is not None and cached.fingerprint == fingerprint:
                base = cached
                if tier_at_least(cached.enrichment_tier, wanted) and tier_at_least(
                    cached.enrichment_tier, "basic"
                ):
                    logger.debug("Cache hit for %s at tier %s", item.id, cached.enrichment_tier)
                    return cached.model_copy(update={"tokens_used": 0})

            if base is None or not tier_at_least(base.enrichment_tier, max_tier(wanted, "basic")):
                duplicate = await self._find_duplicate(fingerprint, item.id)
                if duplicate is not None and (
                    base is None or tier_rank(duplicate.enrichment_tier) > tier_rank(base.enrichment_tier)
                ):
                    copied = duplicate.model_copy(update={"tokens_used": 0, "fingerprint": fingerprint})
                    logger.info(
                        "Reusing %s-tier content from a duplicate record", copied.enrichment_tier
                    )
                    await self._save(item.id, source, copied)
                    base = copied

            if base is not None and tier_at_least(base.enrichment_tier, wanted):
                return base.model_copy(update={"tokens_used": 0})

        heuristics = analyze(item)
        result = EnrichedContent(
            heuristic_tags=heuristics.tags,
            energy_level=heuristics.energy_level,
            size_class=heuristics.size_class,
            age_category=heuristics.age_category,
            fingerprint=fingerprint,
        )
        if base is not None:
            result = result.model_copy(update={
                "bio": base.bio,
                "summary": base.summary,
                "bio_from_ai": base.bio_from_ai,
                "ai_tags": list(base.ai_tags),
                "image_analysis": base.image_analysis,
                "enrichment_tier": base.enrichment_tier,
                "model": base.model,
            })
        tokens = 0

        if run_ai and not tier_at_least(result.enrichment_tier, "basic"):
            ai = await self._attempt("basic", generate_ai_content(
                item,
                heuristics,
                self._inference,
                cache=None if force_refresh else self._cache,
                budget_threshold=budget_threshold,
            ))
            if ai is not None:
                tokens += ai.tokens_used
                result = result.model_copy(update={
                    "bio": ai.bio,
                    "summary": ai.summary,
                    "bio_from_ai": True,
                    "ai_tags": ai.ai_tags,
                    "enrichment_tier": "basic",
                    "model": ai.model,
                })
            elif not result.bio:
                logger.info("AI bio unavailable for %s, using template", item.id)
                result = result.model_copy(update={
                    "bio": template_bio(item, heuristics.tags),
                    "bio_from_ai": False,
                })

        if run_image and not tier_at_least(result.enrichment_tier, "full"):
            outcome = await self._attempt("full", run_image_analysis(
                item, self._inference, budget_threshold=budget_threshold,
            ))
            if outcome is not None:
                tokens += outcome.tokens_used
                result = result.model_copy(update={
                    "image_analysis": outcome.analysis,
                    "enrichment_tier": "full",
                    "model": result.model or outcome.model,
                })

        result = result.model_copy(update={"tokens_used": tokens})
        await self._save(item.id, source, result)
        return result

    # --- Introspection ---

    async def get_enrichment_status(self, item_id: str) -> EnrichmentStatus:
        content = await self.load(item_id)
        if content is None:
            return EnrichmentStatus(item_id=item_id, has_enrichment=False)
        return EnrichmentStatus(
            item_id=item_id,
            has_enrichment=True,
            tier=content.enrichment_tier,
            has_ai_bio=content.bio_from_ai,
            has_image_analysis=content.image_analysis is not None,
            tokens_used=content.tokens_used,
            fingerprint=content.fingerprint,
        )

    async def enrichment_stats(self) -> EnrichmentStats:
        records: list[StoredEnrichment] = []
        if await self._store_up():
            records = await best_effort(
                self._store.list_enrichments(),
                timeout_s=self._store_timeout_s,
                what="enrichment listing",
                default=[],
            ) or []
        by_tier = Counter(r.content.enrichment_tier for r in records)
        return EnrichmentStats(
            total=len(records),
            by_tier={tier: by_tier.get(tier, 0) for tier in ("heuristic", "basic", "full")},
            total_tokens=sum(r.content.tokens_used for r in records),
            usage_last_7_days=await self.governor.usage_summary(days=7),
        )
