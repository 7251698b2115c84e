# src/batch/models.py
"""Batch enrichment models: BatchOptions, BatchStats."""

from __future__ import annotations

from typing import Callable, Optional

from pydantic import BaseModel, ConfigDict, Field

ProgressCallback = Callable[[int, int], None]


class BatchOptions(BaseModel):
    """Knobs for one batch run."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    chunk_size: int = Field(default=10, ge=1)
    delay_ms: int = Field(default=500, ge=0)
    run_ai: bool = False
    budget_threshold: float = Field(default=0.5, ge=0.0, le=1.0)
    # Called with (processed, total) after each chunk
    on_progress: Optional[ProgressCallback] = None


class BatchStats(BaseModel):
    """Aggregate outcome of a batch run."""

    enriched: int = 0
    skipped: int = 0
    ai_generated: int = 0
    failed: int = 0
    tokens_used: int = 0
    stopped_early: bool = False

    @property
    def processed(self) -> int:
        return self.enriched + self.skipped + self.failed
