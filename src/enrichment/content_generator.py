# src/enrichment/content_generator.py
"""Paid content tiers: AI bio, summary, extra tags, image analysis, and
match explanations.

Every function degrades without raising: when inference is unavailable the
bio and the match explanation fall back to honest templates, and the
tier-raising helpers return None.
"""

from __future__ import annotations

import logging

from pydantic import BaseModel, Field

from pawmatch.cache.cache_store import CacheStore
from pawmatch.cache.fingerprint import compute_fingerprint, generate_cache_key
from pawmatch.core.models import ImageAnalysis, Item
from pawmatch.enrichment.heuristics import HeuristicResult, extract_tags_from_bio
from pawmatch.llm.inference import InferenceService

logger = logging.getLogger(__name__)

BIO_SYSTEM_PROMPT = (
    "You are a creative writer for an animal shelter. Write engaging, warm pet "
    "adoption bios IN FIRST PERSON from the pet's perspective (e.g. \"Hi, I'm "
    "Pickle! I love...\"). Keep bios under 100 words. Only mention personality "
    "traits that appear in the tags or the shelter's notes; never invent them."
)

MATCH_SYSTEM_PROMPT = (
    "You are a friendly pet matchmaker. Explain why a pet is a good match for "
    "an adopter in 2-3 short sentences. Be warm and encouraging but honest."
)

# Factual tags carry no personality and are left out of the template bio
_FACTUAL_TAGS = {
    "Dog", "Cat", "Bird", "Rabbit", "Small & Furry", "Reptile", "Other",
    "Baby", "Young", "Adult", "Senior",
    "Small", "Medium", "Large", "Extra Large",
}


class BioResult(BaseModel):
    bio: str
    tokens_used: int = 0
    from_ai: bool = False


class AIContent(BaseModel):
    """Tier-1 output: AI bio with a one-line summary and extra tags."""

    bio: str
    summary: str
    ai_tags: list[str] = Field(default_factory=list)
    tokens_used: int
    model: str | None = None


class ImageAnalysisOutcome(BaseModel):
    analysis: ImageAnalysis
    tokens_used: int
    model: str | None = None


class MatchExplanation(BaseModel):
    explanation: str
    tokens_used: int = 0
    from_ai: bool = False


def _join_traits(traits: list[str]) -> str:
    lowered = [t.lower() for t in traits]
    if len(lowered) <= 1:
        return "".join(lowered)
    return ", ".join(lowered[:-1]) + " and " + lowered[-1]


def template_bio(item: Item, tags: list[str]) -> str:
    """Honest fallback bio built only from known facts.

    Personality is mentioned only when it came from an authentic description;
    otherwise the reader is invited to ask the shelter.
    """
    name = item.name or "this pet"
    facts = [part for part in (item.age, item.breed) if part]
    intro = f"Hi, I'm {name}!"
    if facts:
        intro += f" I'm a {' '.join(facts)}."

    traits = [] if item.is_synthetic_description else [t for t in tags if t not in _FACTUAL_TAGS]
    if traits:
        return f"{intro} My shelter friends say I'm {_join_traits(traits[:3])}. Come meet me!"
    return (
        f"{intro} Ask the shelter staff about my personality; "
        "they'd love to tell you more about me."
    )


def summarize(bio: str) -> str:
    """First sentence of a bio, with a terminal period."""
    first = bio.strip().split(".")[0].strip()
    return f"{first}." if first else ""


async def generate_bio(
    item: Item,
    tags: list[str],
    inference: InferenceService,
    budget_threshold: float = 1.0,
) -> BioResult:
    """First-person adoption bio, or the honest template when AI is unavailable."""
    notes = "" if item.is_synthetic_description else item.description.strip()
    prompt = (
        f"Write a first-person adoption bio for {item.name or 'this pet'}, "
        f"a {item.breed or item.species or 'pet'}.\n"
        f"Tags: {', '.join(tags)}\n"
        + (f"Shelter notes: {notes}\n" if notes else "")
        + f"Start with \"Hi, I'm {item.name or 'here'}!\" or similar."
    )
    result = await inference.generate_text(
        prompt,
        system_prompt=BIO_SYSTEM_PROMPT,
        budget_threshold=budget_threshold,
    )
    if result is not None:
        return BioResult(bio=result.text, tokens_used=result.tokens_used, from_ai=True)
    return BioResult(bio=template_bio(item, tags))


async def generate_ai_content(
    item: Item,
    heuristics: HeuristicResult,
    inference: InferenceService,
    cache: CacheStore | None = None,
    budget_threshold: float = 1.0,
) -> AIContent | None:
    """AI bio, summary and extra tags; None when only the template was available.

    A bio cached for the same fingerprint is reused at no cost.
    """
    key = generate_cache_key("bio", compute_fingerprint(item))
    if cache is not None:
        cached = await cache.get_payload(key)
        if cached is not None:
            try:
                return AIContent.model_validate(cached).model_copy(update={"tokens_used": 0})
            except ValueError as e:
                logger.warning("Discarding malformed cached bio: %s", e)
                await cache.invalidate(key)

    bio = await generate_bio(item, heuristics.tags, inference, budget_threshold)
    if not bio.from_ai:
        return None

    content = AIContent(
        bio=bio.bio,
        summary=summarize(bio.bio),
        ai_tags=extract_tags_from_bio(bio.bio, heuristics.tags),
        tokens_used=bio.tokens_used,
        model=inference.text_model,
    )
    if cache is not None:
        await cache.put(key, content.model_dump(), "bio", tokens_used=content.tokens_used,
                        model=content.model)
    return content


async def run_image_analysis(
    item: Item,
    inference: InferenceService,
    budget_threshold: float = 1.0,
) -> ImageAnalysisOutcome | None:
    """Vision analysis over the item's first 5 images."""
    images = item.all_images()
    if not images:
        return None
    result = await inference.analyze_images(images[:5], budget_threshold=budget_threshold)
    if result is None:
        return None
    return ImageAnalysisOutcome(
        analysis=ImageAnalysis(
            breed_guess=result.breed_guess,
            color=result.color,
            observed_traits=result.observed_traits,
            description=result.description,
        ),
        tokens_used=result.tokens_used,
        model=result.model,
    )


async def generate_match_explanation(
    item_name: str,
    traits: list[str],
    preferences: list[str],
    score: int,
    inference: InferenceService,
    cache: CacheStore | None = None,
) -> MatchExplanation:
    """Short explanation of why an item matches a user's preferences."""
    key = generate_cache_key(
        "recommendation", item_name, ",".join(sorted(traits)),
        ",".join(sorted(preferences)), str(score),
    )
    if cache is not None:
        cached = await cache.get_payload(key)
        if isinstance(cached, str):
            return MatchExplanation(explanation=cached, from_ai=True)

    prompt = (
        f"Explain why {item_name} (traits: {', '.join(traits)}) is a {score}% match "
        f"for someone who prefers: {', '.join(preferences)}. Keep it brief and friendly."
    )
    result = await inference.generate_text(prompt, system_prompt=MATCH_SYSTEM_PROMPT)
    if result is not None:
        if cache is not None:
            await cache.put(key, result.text, "recommendation",
                            tokens_used=result.tokens_used, model=result.model)
        return MatchExplanation(
            explanation=result.text, tokens_used=result.tokens_used, from_ai=True
        )

    wanted = [p.lower() for p in preferences]
    matching = [t for t in traits if any(t.lower() in p for p in wanted)]
    explanation = f"{item_name} is a {score}% match for you!"
    if matching:
        explanation += f" They're {' and '.join(m.lower() for m in matching[:2])}, just like you prefer."
    return MatchExplanation(explanation=explanation)
