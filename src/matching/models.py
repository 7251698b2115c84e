# src/matching/models.py
"""Similarity search models."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

from pawmatch.core.models import EnergyLevel, Item, SizeClass, Species

CompatibilityTarget = Literal["kids", "dogs", "cats"]


class SimilarityQuery(BaseModel):
    """What an adopter is looking for. Every field is optional."""

    species: Species | None = None
    size: SizeClass | None = None
    energy: EnergyLevel | None = None
    traits: list[str] = Field(default_factory=list)
    good_with: list[CompatibilityTarget] = Field(default_factory=list)


class SimilarityResult(BaseModel):
    item: Item
    similarity: float
    method: Literal["embedding", "heuristic"] = "embedding"


class EmbeddingBatchStats(BaseModel):
    success: int = 0
    failed: int = 0
