# src/matching/embedding_index.py
"""Embedding index and similarity search over items.

Item vectors are trusted only while the item's fingerprint is unchanged.
Lookup order for an item: its durable ``Embedding`` record, then the
fingerprint-keyed cache (shared by duplicates), then a fresh, governed
embedding call. Ranking never fails: whenever a vector is missing on either
side, the item (or the whole query) is scored by ``fallback_score``.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable

from pawmatch.cache.cache_store import CacheStore
from pawmatch.cache.fingerprint import compute_fingerprint, generate_cache_key
from pawmatch.core.best_effort import best_effort
from pawmatch.core.models import Embedding, Item
from pawmatch.enrichment.heuristics import analyze, infer_species
from pawmatch.llm.inference import InferenceService
from pawmatch.matching.models import EmbeddingBatchStats, SimilarityQuery, SimilarityResult
from pawmatch.matching.similarity import cosine_scores
from pawmatch.store.base_store import BaseDurableStore

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 10


def item_to_embedding_text(item: Item) -> str:
    """Plain-prose rendering of an item for the embedding model."""
    heuristics = analyze(item)
    head = " ".join(p for p in (item.age, item.breed) if p) or "pet"
    parts = [
        f"{item.name or 'This pet'} is a {head}.",
        item.description.strip(),
        f"Size: {item.size or heuristics.size_class}.",
        f"Energy level: {item.energy_level or heuristics.energy_level}.",
    ]
    tags = list(dict.fromkeys([*item.tags, *heuristics.tags]))
    if tags:
        parts.append(f"Traits: {', '.join(tags)}.")

    compat = item.compatibility
    if compat is not None:
        good_with = [
            f"good with {name}"
            for name, flag in (("kids", compat.kids), ("dogs", compat.dogs), ("cats", compat.cats))
            if flag is True
        ]
        if good_with:
            parts.append(f"Compatibility: {', '.join(good_with)}.")
    return " ".join(p for p in parts if p)


def query_to_text(query: SimilarityQuery) -> str:
    parts = ["I am looking for a pet."]
    if query.species:
        parts.append(f"I prefer {query.species.lower()}s.")
    if query.size:
        parts.append(f"I want a {query.size.lower()} sized pet.")
    if query.energy:
        parts.append(f"I prefer {query.energy.lower()} energy pets.")
    if query.traits:
        parts.append(f"I like pets that are {', '.join(query.traits)}.")
    if query.good_with:
        parts.append(f"The pet should be good with {', '.join(query.good_with)}.")
    return " ".join(parts)


def fallback_score(item: Item, query: SimilarityQuery) -> float:
    """Heuristic similarity in [0, 1] used when embeddings are unavailable.

    Starts at 0.5; species adds 0.2 on a match and removes 0.3 on a known
    mismatch; size and energy add 0.1 each; matching traits and
    compatibility add up to 0.1 each, in proportion.
    """
    score = 0.5
    heuristics = analyze(item)

    if query.species:
        species = infer_species(item)
        if species == query.species:
            score += 0.2
        elif species is not None:
            score -= 0.3

    if query.size and (item.size or heuristics.size_class) == query.size:
        score += 0.1

    if query.energy and (item.energy_level or heuristics.energy_level) == query.energy:
        score += 0.1

    if query.traits:
        tags = [t.lower() for t in [*item.tags, *heuristics.tags]]
        matching = [t for t in query.traits if any(t.lower() in tag for tag in tags)]
        score += len(matching) / len(query.traits) * 0.1

    if query.good_with and item.compatibility is not None:
        hits = sum(1 for target in query.good_with if getattr(item.compatibility, target) is True)
        score += hits / len(query.good_with) * 0.1

    return max(0.0, min(1.0, score))


class EmbeddingIndex:
    """Fingerprint-aware item embeddings and query ranking."""

    def __init__(
        self,
        store: BaseDurableStore,
        cache: CacheStore,
        inference: InferenceService,
        store_timeout_s: float = 5.0,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._store = store
        self._cache = cache
        self._inference = inference
        self._store_timeout_s = store_timeout_s
        self._sleep = sleep

    async def _store_up(self) -> bool:
        up = await best_effort(
            self._store.is_available(),
            timeout_s=self._store_timeout_s,
            what="embedding store health check",
            default=False,
        )
        return bool(up)

    async def _save(self, record: Embedding) -> None:
        if not await self._store_up():
            return
        await best_effort(
            self._store.upsert_embedding(record),
            timeout_s=self._store_timeout_s,
            what=f"embedding write for {record.item_id}",
        )

    async def get_item_embedding(self, item: Item, source: str = "unknown") -> list[float] | None:
        """Vector for ``item``; None when it cannot be produced right now."""
        fingerprint = compute_fingerprint(item)

        if await self._store_up():
            record = await best_effort(
                self._store.get_embedding(item.id),
                timeout_s=self._store_timeout_s,
                what=f"embedding read for {item.id}",
            )
            if record is not None and record.fingerprint == fingerprint:
                return record.vector

        key = generate_cache_key("embedding", fingerprint)
        cached = await self._cache.get_payload(key)
        if isinstance(cached, list) and cached:
            vector = [float(v) for v in cached]
        else:
            vector = await self._inference.embed(item_to_embedding_text(item))
            if vector is None:
                return None
            await self._cache.put(key, vector, "embedding", model=self._inference.embedding_model)

        await self._save(Embedding(
            item_id=item.id,
            vector=vector,
            fingerprint=fingerprint,
            source=source,
            model=self._inference.embedding_model,
        ))
        return vector

    async def get_query_embedding(self, query: SimilarityQuery) -> list[float] | None:
        text = query_to_text(query)
        key = generate_cache_key("embedding", text)
        cached = await self._cache.get_payload(key)
        if isinstance(cached, list) and cached:
            return [float(v) for v in cached]

        vector = await self._inference.embed(text)
        if vector is not None:
            await self._cache.put(key, vector, "embedding", model=self._inference.embedding_model)
        return vector

    async def find_similar(
        self,
        items: list[Item],
        query: SimilarityQuery,
        limit: int = DEFAULT_LIMIT,
    ) -> list[SimilarityResult]:
        """Items ranked by similarity to ``query``, highest first."""
        query_vector = await self.get_query_embedding(query)
        if query_vector is None:
            logger.info("Query embedding unavailable, ranking %d items heuristically", len(items))

        scored: dict[int, float] = {}
        if query_vector is not None:
            positions: list[int] = []
            vectors: list[list[float]] = []
            for i, item in enumerate(items):
                vector = await self.get_item_embedding(item)
                if vector is None:
                    continue
                if len(vector) != len(query_vector):
                    logger.warning(
                        "Skipping stale embedding for %s: %d dimensions, expected %d",
                        item.id, len(vector), len(query_vector),
                    )
                    continue
                positions.append(i)
                vectors.append(vector)
            scored = dict(zip(positions, cosine_scores(query_vector, vectors)))

        results = [
            SimilarityResult(item=item, similarity=scored[i]) if i in scored
            else SimilarityResult(
                item=item, similarity=fallback_score(item, query), method="heuristic"
            )
            for i, item in enumerate(items)
        ]
        results.sort(key=lambda r: r.similarity, reverse=True)
        return results[:limit]

    async def batch_generate_embeddings(
        self,
        items: list[Item],
        source: str = "batch",
        delay_s: float = 0.1,
    ) -> EmbeddingBatchStats:
        """Populate embeddings for ``items`` sequentially with a pause between calls."""
        stats = EmbeddingBatchStats()
        for i, item in enumerate(items):
            if await self.get_item_embedding(item, source) is not None:
                stats.success += 1
            else:
                stats.failed += 1
            if delay_s > 0 and i < len(items) - 1:
                await self._sleep(delay_s)
        logger.info(
            "Embedding batch done: %d succeeded, %d failed", stats.success, stats.failed
        )
        return stats
