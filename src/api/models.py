# src/api/models.py
"""API-level models: EnrichItemResult, BatchEnrichRequest, BatchEnrichResponse."""

from __future__ import annotations

from pydantic import BaseModel, Field

from pawmatch.batch.models import BatchStats
from pawmatch.core.models import EnrichedContent, EnrichedItem


class EnrichItemResult(BaseModel):
    """Return value of ``PawmatchService.enrich_item``."""

    item: EnrichedItem
    enrichment: EnrichedContent
    tokens_used: int = 0
    # True when paid content was reused rather than generated
    cached: bool = False


class BatchEnrichRequest(BaseModel):
    """Parameters of a batch enrichment run.

    ``item_limit`` is capped by the service (500 by default). ``delay_ms``
    defaults to 2000 when ``run_ai`` is set and to 500 otherwise.
    """

    source_filter: str = "all"
    item_limit: int = Field(default=100, ge=0)
    run_ai: bool = False
    budget_threshold: float = Field(default=0.5, ge=0.0, le=1.0)
    chunk_size: int = Field(default=10, ge=1)
    delay_ms: int | None = Field(default=None, ge=0)


class BatchEnrichResponse(BaseModel):
    success: bool = True
    message: str
    stats: BatchStats
