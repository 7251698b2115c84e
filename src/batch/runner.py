# src/batch/runner.py
"""Batch enrichment job.

Drives the orchestrator over a list of items in fixed-size chunks with a
delay between chunks. Items whose stored content is already fresh at the
requested tier are skipped. When AI is requested the governor is consulted
before each item, and the first denial ends the whole run with
``stopped_early`` set. A failure on one item never aborts the batch.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from typing import Any, Awaitable, Callable

from pawmatch.batch.models import BatchOptions, BatchStats
from pawmatch.cache.fingerprint import compute_fingerprint
from pawmatch.core.models import Item, tier_at_least
from pawmatch.enrichment.orchestrator import EnrichmentOrchestrator, requested_tier
from pawmatch.logging.context import set_job_context
from pawmatch.tracking.governor import BudgetGovernor

logger = logging.getLogger(__name__)


class BatchEnrichmentJob:
    """Runs one batch over an item list."""

    def __init__(
        self,
        orchestrator: EnrichmentOrchestrator,
        governor: BudgetGovernor,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._orchestrator = orchestrator
        self._governor = governor
        self._sleep = sleep

    async def _is_fresh(self, item: Item, options: BatchOptions) -> bool:
        cached = await self._orchestrator.load(item.id)
        if cached is None or cached.fingerprint != compute_fingerprint(item):
            return False
        return tier_at_least(cached.enrichment_tier, requested_tier(options.run_ai, False))

    async def run(
        self,
        items: list[Item],
        source: str = "batch",
        options: BatchOptions | None = None,
    ) -> BatchStats:
        options = options or BatchOptions()
        stats = BatchStats()
        job_id = uuid.uuid4().hex[:12]
        set_job_context(job_id)
        logger.info(
            "Batch %s started: %d items, chunk=%d, run_ai=%s, threshold=%.2f",
            job_id, len(items), options.chunk_size, options.run_ai, options.budget_threshold,
        )
        try:
            for start in range(0, len(items), options.chunk_size):
                chunk = items[start:start + options.chunk_size]
                for item in chunk:
                    if await self._is_fresh(item, options):
                        stats.skipped += 1
                        continue

                    if options.run_ai and not await self._governor.allow(options.budget_threshold):
                        logger.info("Budget threshold reached, stopping batch %s", job_id)
                        stats.stopped_early = True
                        break

                    try:
                        content = await self._orchestrator.enrich(
                            item,
                            source=source,
                            run_ai=options.run_ai,
                            budget_threshold=options.budget_threshold,
                        )
                    except Exception:
                        logger.error("Enrichment failed for item %s", item.id, exc_info=True)
                        stats.failed += 1
                        continue

                    stats.enriched += 1
                    stats.tokens_used += content.tokens_used
                    if content.enrichment_tier != "heuristic":
                        stats.ai_generated += 1

                if stats.stopped_early:
                    break

                if options.on_progress is not None:
                    options.on_progress(stats.processed, len(items))

                if start + options.chunk_size < len(items) and options.delay_ms > 0:
                    await self._sleep(options.delay_ms / 1000)
        finally:
            set_job_context(None)

        logger.info(
            "Batch %s done: enriched=%d skipped=%d ai=%d failed=%d tokens=%d stopped_early=%s",
            job_id, stats.enriched, stats.skipped, stats.ai_generated, stats.failed,
            stats.tokens_used, stats.stopped_early,
        )
        return stats
