# src/api/facade.py
"""Public API facade: one service object wiring the enrichment core.

Usage:
    from pawmatch.api.facade import build_service
    service = build_service(settings, source=my_item_source)
    result = await service.enrich_item("SL-101")

The service is built once at process start and passed to every caller, so
the hourly request counter and the memory cache are shared by interactive
requests and batch jobs alike.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from pawmatch.api.errors import BadRequestError, ItemNotFoundError
from pawmatch.api.models import BatchEnrichRequest, BatchEnrichResponse, EnrichItemResult
from pawmatch.batch.models import BatchOptions
from pawmatch.batch.runner import BatchEnrichmentJob
from pawmatch.cache.cache_store import CacheStore
from pawmatch.cache.models import CacheTTLPolicy
from pawmatch.config.settings import ConfigurationError, Settings
from pawmatch.core.models import EnrichedItem, Item, UserPreferenceProfile
from pawmatch.embeddings.base_embedder import BaseEmbedder
from pawmatch.enrichment.content_generator import MatchExplanation, generate_match_explanation
from pawmatch.enrichment.orchestrator import (
    EnrichmentOrchestrator,
    EnrichmentStats,
    EnrichmentStatus,
    merge_item_with_enrichment,
)
from pawmatch.learning.preference_engine import rank_items
from pawmatch.llm.base_client import BaseLLMClient
from pawmatch.llm.inference import BaseImageFetcher, HttpImageFetcher, InferenceService
from pawmatch.matching.embedding_index import EmbeddingIndex
from pawmatch.matching.models import EmbeddingBatchStats, SimilarityQuery, SimilarityResult
from pawmatch.sources.base import ItemSource, StaticItemSource
from pawmatch.store.base_store import BaseDurableStore
from pawmatch.tracking.governor import BudgetGovernor
from pawmatch.tracking.models import DailyUsageStats

logger = logging.getLogger(__name__)

_API_KEY_FIELDS = {"google": "google_api_key", "openai": "openai_api_key"}


@dataclass
class PawmatchService:
    """Entry points for enrichment, batch runs, recommendations and usage."""

    settings: Settings
    source: ItemSource
    store: BaseDurableStore
    cache: CacheStore
    governor: BudgetGovernor
    inference: InferenceService
    orchestrator: EnrichmentOrchestrator
    index: EmbeddingIndex
    batch_job: BatchEnrichmentJob

    # --- Items ---

    async def _require_item(self, item_id: str | None) -> Item:
        if not item_id or not item_id.strip():
            raise BadRequestError("item_id is required")
        item = await self.source.get_item(item_id)
        if item is None:
            raise ItemNotFoundError(item_id)
        return item

    async def _items(self, source_filter: str = "all") -> list[Item]:
        items = await self.source.get_all_items()
        if source_filter and source_filter != "all":
            items = [item for item in items if item.source == source_filter]
        return items

    # --- Enrichment ---

    async def enrich_item(
        self,
        item_id: str | None,
        run_ai: bool = True,
        run_image_analysis: bool = False,
        force_refresh: bool = False,
    ) -> EnrichItemResult:
        """Enrich one item and return it merged with its content.

        Raises:
            BadRequestError: If ``item_id`` is missing.
            ItemNotFoundError: If the source has no such item.
        """
        item = await self._require_item(item_id)
        content = await self.orchestrator.enrich(
            item,
            source=item.source,
            run_ai=run_ai,
            run_image_analysis=run_image_analysis,
            force_refresh=force_refresh,
        )
        return EnrichItemResult(
            item=merge_item_with_enrichment(item, content),
            enrichment=content,
            tokens_used=content.tokens_used,
            cached=content.tokens_used == 0 and content.enrichment_tier != "heuristic",
        )

    async def run_batch_enrichment(self, request: BatchEnrichRequest) -> BatchEnrichResponse:
        cap = self.settings.batch_item_limit_cap
        limit = min(request.item_limit, cap)
        items = (await self._items(request.source_filter))[:limit]

        if request.delay_ms is not None:
            delay_ms = request.delay_ms
        elif request.run_ai:
            delay_ms = self.settings.batch_ai_delay_ms
        else:
            delay_ms = self.settings.batch_default_delay_ms

        stats = await self.batch_job.run(
            items,
            source=request.source_filter,
            options=BatchOptions(
                chunk_size=request.chunk_size,
                delay_ms=delay_ms,
                run_ai=request.run_ai,
                budget_threshold=request.budget_threshold,
            ),
        )
        if stats.stopped_early:
            message = (
                "Batch enrichment stopped early (budget threshold reached). "
                f"Processed {stats.enriched} items."
            )
        else:
            message = f"Successfully enriched {stats.enriched} items."
        return BatchEnrichResponse(message=message, stats=stats)

    async def get_enrichment_status(self, item_id: str | None) -> EnrichmentStatus:
        if not item_id or not item_id.strip():
            raise BadRequestError("item_id is required")
        return await self.orchestrator.get_enrichment_status(item_id)

    async def enrichment_stats(self) -> EnrichmentStats:
        return await self.orchestrator.enrichment_stats()

    # --- Recommendations ---

    async def _with_enrichment(self, item: Item) -> Item:
        content = await self.orchestrator.load(item.id)
        return item if content is None else merge_item_with_enrichment(item, content)

    async def recommend(
        self,
        profile: UserPreferenceProfile,
        items: list[Item] | None = None,
        limit: int | None = None,
    ) -> list[Item]:
        """Items ranked for ``profile``, using stored enrichment where present."""
        pool = items if items is not None else await self._items()
        enriched = [await self._with_enrichment(item) for item in pool]
        ranked = rank_items(enriched, profile)
        return ranked if limit is None else ranked[:limit]

    async def find_similar(
        self,
        query: SimilarityQuery,
        limit: int = 10,
        items: list[Item] | None = None,
    ) -> list[SimilarityResult]:
        pool = items if items is not None else await self._items()
        return await self.index.find_similar(pool, query, limit)

    async def explain_match(
        self, item_id: str | None, preferences: list[str], score: int
    ) -> MatchExplanation:
        item = await self._with_enrichment(await self._require_item(item_id))
        return await generate_match_explanation(
            item.name, item.tags, preferences, score, self.inference, cache=self.cache,
        )

    async def generate_embeddings(
        self, source_filter: str = "all", limit: int | None = None
    ) -> EmbeddingBatchStats:
        items = await self._items(source_filter)
        if limit is not None:
            items = items[:limit]
        return await self.index.batch_generate_embeddings(items, source=source_filter)

    # --- Usage & maintenance ---

    async def usage(self) -> DailyUsageStats | None:
        """Today's usage; None when the usage store is unreachable."""
        return await self.governor.daily_usage_stats()

    async def cache_cleanup(self) -> int:
        return await self.cache.purge_expired()

    def close(self) -> None:
        close = getattr(self.store, "close", None)
        if close is not None:
            close()


def _default_llm(settings: Settings) -> BaseLLMClient | None:
    from pawmatch.llm.client_factory import create_llm_client

    key_field = _API_KEY_FIELDS.get(settings.llm_provider)
    if key_field and not getattr(settings, key_field):
        if not settings.ai_fallback_to_heuristics:
            raise ConfigurationError(
                f"{key_field.upper()} is required when AI_FALLBACK_TO_HEURISTICS is false"
            )
        logger.info("No API key for %s, AI tiers disabled", settings.llm_provider)
        return None
    return create_llm_client(settings.llm_provider, settings.llm_model, settings)


def _default_embedder(settings: Settings) -> BaseEmbedder | None:
    from pawmatch.embeddings.embedder_factory import create_embedder

    key_field = _API_KEY_FIELDS.get(settings.embedding_provider)
    if key_field and not getattr(settings, key_field):
        logger.info("No API key for %s embeddings, similarity falls back to heuristics",
                    settings.embedding_provider)
        return None
    return create_embedder(settings)


def build_service(
    settings: Settings | None = None,
    source: ItemSource | None = None,
    store: BaseDurableStore | None = None,
    llm: BaseLLMClient | None = None,
    embedder: BaseEmbedder | None = None,
    image_fetcher: BaseImageFetcher | None = None,
) -> PawmatchService:
    """Wire the service from settings; injected collaborators take precedence.

    Raises:
        ConfigurationError: If AI is mandatory but no API key is configured.
        UnsupportedProviderError: If the configured LLM provider is unknown.
    """
    settings = settings or Settings()

    if store is None:
        from pawmatch.store.store_factory import create_store
        store = create_store(settings)
    if llm is None:
        llm = _default_llm(settings)
    if embedder is None:
        embedder = _default_embedder(settings)
    if image_fetcher is None:
        image_fetcher = HttpImageFetcher(timeout_s=settings.image_fetch_timeout_s)

    timeout = settings.store_write_timeout_s
    cache = CacheStore(
        store,
        ttl_policy=CacheTTLPolicy(ttl_hours=dict(settings.cache_ttl_hours)),
        memory_fallback_size=settings.cache_memory_fallback_size,
        timeout_s=timeout,
    )
    governor = BudgetGovernor(
        store,
        daily_budget_usd=settings.ai_daily_budget_usd,
        requests_per_hour=settings.ai_requests_per_hour,
        projected_call_cost_usd=settings.ai_projected_call_cost_usd,
        store_timeout_s=timeout,
    )
    inference = InferenceService(
        llm,
        embedder,
        governor,
        timeout_s=settings.inference_timeout_s,
        image_fetcher=image_fetcher,
        temperature=settings.llm_temperature,
        max_tokens=settings.llm_max_tokens,
    )
    orchestrator = EnrichmentOrchestrator(
        store,
        inference,
        cache=cache,
        item_lock=settings.enrichment_item_lock,
        store_timeout_s=timeout,
    )
    logger.info(
        "Service ready: store=%s, llm=%s, embedder=%s",
        type(store).__name__,
        llm.model_name if llm else None,
        embedder.model_name if embedder else None,
    )
    return PawmatchService(
        settings=settings,
        source=source or StaticItemSource([]),
        store=store,
        cache=cache,
        governor=governor,
        inference=inference,
        orchestrator=orchestrator,
        index=EmbeddingIndex(store, cache, inference, store_timeout_s=timeout),
        batch_job=BatchEnrichmentJob(orchestrator, governor),
    )
