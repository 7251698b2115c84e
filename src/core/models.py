# src/core/models.py
"""Shared Pydantic domain models used across modules.

No module redefines these types. Items come from the upstream adapters and
are read-only; everything else is produced by the enrichment core.
"""

from __future__ import annotations

from datetime import date
from typing import Literal

from pydantic import BaseModel, Field

# === ENUMERATIONS ===

Species = Literal["Dog", "Cat", "Bird", "Rabbit", "Small & Furry", "Reptile", "Other"]
AgeCategory = Literal["Baby", "Young", "Adult", "Senior"]
SizeClass = Literal["Small", "Medium", "Large", "Extra Large"]
EnergyLevel = Literal["Low", "Moderate", "High"]
EnrichmentTier = Literal["heuristic", "basic", "full"]
SwipeAction = Literal["like", "nope"]

TIER_ORDER: tuple[EnrichmentTier, ...] = ("heuristic", "basic", "full")


def tier_rank(tier: EnrichmentTier) -> int:
    """Position of a tier in the heuristic < basic < full ordering."""
    return TIER_ORDER.index(tier)


def tier_at_least(tier: EnrichmentTier, minimum: EnrichmentTier) -> bool:
    return tier_rank(tier) >= tier_rank(minimum)


def max_tier(a: EnrichmentTier, b: EnrichmentTier) -> EnrichmentTier:
    return a if tier_rank(a) >= tier_rank(b) else b


# === ITEMS ===


class Compatibility(BaseModel):
    """Tri-state compatibility flags: None means unknown."""

    kids: bool | None = None
    dogs: bool | None = None
    cats: bool | None = None


class Item(BaseModel):
    """Adoptable-pet record normalized by an upstream adapter."""

    id: str
    name: str = ""
    species: Species | None = None
    breed: str = ""
    age: str = ""
    size: SizeClass | None = None
    energy_level: EnergyLevel | None = None
    color: str | None = None
    description: str = ""
    is_synthetic_description: bool = False
    compatibility: Compatibility | None = None
    image_url: str | None = None
    images: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    status: Literal["Available", "Pending", "Adopted"] = "Available"
    source: str = "unknown"

    def all_images(self) -> list[str]:
        """Gallery images, falling back to the single primary image."""
        if self.images:
            return list(self.images)
        return [self.image_url] if self.image_url else []

    def primary_image(self) -> str | None:
        images = self.all_images()
        return images[0] if images else None


# === ENRICHMENT ===


class ImageAnalysis(BaseModel):
    """Observations extracted from an item's photos by a vision model."""

    breed_guess: str | None = None
    color: str | None = None
    observed_traits: list[str] = Field(default_factory=list)
    description: str | None = None


class EnrichedContent(BaseModel):
    """Enrichment output for one item, computed against one fingerprint."""

    heuristic_tags: list[str]
    energy_level: EnergyLevel
    size_class: SizeClass
    age_category: AgeCategory

    bio: str | None = None
    summary: str | None = None
    bio_from_ai: bool = False
    ai_tags: list[str] = Field(default_factory=list)
    image_analysis: ImageAnalysis | None = None

    enrichment_tier: EnrichmentTier = "heuristic"
    tokens_used: int = 0
    fingerprint: str
    model: str | None = None


class StoredEnrichment(BaseModel):
    """EnrichedContent as persisted, keyed by item id."""

    item_id: str
    source: str
    content: EnrichedContent


class EnrichedItem(Item):
    """Item merged with its enrichment for presentation."""

    enrichment_level: EnrichmentTier = "heuristic"
    bio: str | None = None
    summary: str | None = None
    ai_tags: list[str] = Field(default_factory=list)


# === EMBEDDINGS ===


class Embedding(BaseModel):
    """Semantic vector for an item, trusted only while its fingerprint matches."""

    item_id: str
    vector: list[float]
    fingerprint: str
    source: str = "unknown"
    model: str | None = None


# === USAGE ===


class UsageRecord(BaseModel):
    """Inference usage aggregated per calendar day per model."""

    date: date
    model: str
    request_count: int = 0
    tokens_used: int = 0
    estimated_cost: float = 0.0


# === PREFERENCES ===


class UserPreferenceProfile(BaseModel):
    """Additive per-user weight model learned from swipe feedback."""

    tag_weights: dict[str, float] = Field(default_factory=dict)
    breed_weights: dict[str, float] = Field(default_factory=dict)
    size_weights: dict[str, float] = Field(default_factory=dict)
    energy_weights: dict[str, float] = Field(default_factory=dict)
    liked_item_ids: list[str] = Field(default_factory=list)
    disliked_item_ids: list[str] = Field(default_factory=list)
    total_interactions: int = 0
