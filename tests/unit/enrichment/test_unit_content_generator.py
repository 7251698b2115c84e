# tests/unit/enrichment/test_unit_content_generator.py
"""Unit tests for enrichment/content_generator.py."""

from __future__ import annotations

import pytest

from conftest import NO_RETRY, MockLLMClient
from pawmatch.enrichment.content_generator import (
    generate_ai_content,
    generate_bio,
    generate_match_explanation,
    run_image_analysis,
    summarize,
    template_bio,
)
from pawmatch.enrichment.heuristics import analyze
from pawmatch.llm.inference import InferenceService
from pawmatch.tracking.governor import BudgetGovernor


@pytest.fixture
def offline_inference(governor) -> InferenceService:
    return InferenceService(None, None, governor, retry_configs=NO_RETRY)


class TestTemplateBio:
    def test_synthetic_description_invites_questions(self, labrador_item):
        bio = template_bio(labrador_item, analyze(labrador_item).tags)
        assert bio.startswith("Hi, I'm Max!")
        assert "Labrador" in bio
        assert "Ask the shelter staff about my personality" in bio

    def test_authentic_traits_mentioned(self, bruno_item):
        bio = template_bio(bruno_item, analyze(bruno_item).tags)
        assert "good with dogs, high energy and active" in bio

    def test_factual_tags_never_listed_as_traits(self, labrador_item):
        real = labrador_item.model_copy(update={"is_synthetic_description": False})
        bio = template_bio(real, ["Dog", "Adult", "Medium"])
        assert "shelter friends say" not in bio

    def test_nameless_item(self):
        from pawmatch.core.models import Item

        assert template_bio(Item(id="X"), []).startswith("Hi, I'm this pet!")


class TestSummarize:
    def test_first_sentence(self):
        assert summarize("I love walks. I hate baths.") == "I love walks."

    def test_empty(self):
        assert summarize("  ") == ""


class TestGenerateBio:
    @pytest.mark.asyncio
    async def test_ai_bio(self, bruno_item, inference, mock_llm):
        result = await generate_bio(bruno_item, ["Dog"], inference)
        assert result.from_ai
        assert result.tokens_used == 100
        prompt = mock_llm.calls[0]["messages"][0].content
        assert "Shelter notes: Bruno loves to run" in prompt

    @pytest.mark.asyncio
    async def test_synthetic_notes_not_sent(self, labrador_item, inference, mock_llm):
        await generate_bio(labrador_item, ["Dog"], inference)
        assert "Shelter notes" not in mock_llm.calls[0]["messages"][0].content

    @pytest.mark.asyncio
    async def test_configured_sampling(self, bruno_item, governor, mock_llm):
        inference = InferenceService(
            mock_llm, None, governor, retry_configs=NO_RETRY, temperature=0.2, max_tokens=120,
        )
        await generate_bio(bruno_item, ["Dog"], inference)
        await generate_match_explanation("Bruno", ["Active"], ["hiking"], 80, inference)
        assert [(c["temperature"], c["max_tokens"]) for c in mock_llm.calls] == [
            (0.2, 120), (0.2, 120),
        ]

    @pytest.mark.asyncio
    async def test_offline_falls_back_to_template(self, labrador_item, offline_inference):
        result = await generate_bio(labrador_item, ["Dog", "Adult"], offline_inference)
        assert not result.from_ai
        assert result.tokens_used == 0
        assert result.bio.startswith("Hi, I'm Max!")


class TestGenerateAIContent:
    @pytest.mark.asyncio
    async def test_content_and_tags(self, labrador_item, inference):
        content = await generate_ai_content(labrador_item, analyze(labrador_item), inference)
        assert content.tokens_used == 100
        assert content.model == "gemini-1.5-flash"
        assert content.ai_tags == ["Affectionate", "Playful"]
        assert content.summary.endswith(".")

    @pytest.mark.asyncio
    async def test_cached_bio_is_free(self, labrador_item, inference, cache, mock_llm):
        heuristics = analyze(labrador_item)
        first = await generate_ai_content(labrador_item, heuristics, inference, cache=cache)
        second = await generate_ai_content(labrador_item, heuristics, inference, cache=cache)
        assert first.tokens_used == 100
        assert second.tokens_used == 0
        assert second.bio == first.bio
        assert len(mock_llm.calls) == 1

    @pytest.mark.asyncio
    async def test_malformed_cache_entry_discarded(self, labrador_item, inference, cache, mock_llm):
        from pawmatch.cache.fingerprint import compute_fingerprint, generate_cache_key

        key = generate_cache_key("bio", compute_fingerprint(labrador_item))
        await cache.put(key, {"nonsense": True}, "bio")
        content = await generate_ai_content(
            labrador_item, analyze(labrador_item), inference, cache=cache
        )
        assert content.tokens_used == 100
        assert len(mock_llm.calls) == 1

    @pytest.mark.asyncio
    async def test_none_without_ai(self, labrador_item, offline_inference):
        assert await generate_ai_content(
            labrador_item, analyze(labrador_item), offline_inference
        ) is None


class TestRunImageAnalysis:
    @pytest.mark.asyncio
    async def test_analysis(self, cat_item, inference, image_fetcher):
        outcome = await run_image_analysis(cat_item, inference)
        assert outcome.analysis.breed_guess == "Labrador Retriever mix"
        assert outcome.analysis.observed_traits == ["relaxed posture"]
        assert outcome.tokens_used == 100
        assert image_fetcher.requested == [cat_item.images]

    @pytest.mark.asyncio
    async def test_no_images(self, labrador_item, inference, mock_llm):
        assert await run_image_analysis(labrador_item, inference) is None
        assert mock_llm.calls == []

    @pytest.mark.asyncio
    async def test_at_most_five_images(self, cat_item, inference, image_fetcher):
        many = cat_item.model_copy(update={"images": [f"https://img.example/{i}.jpg" for i in range(8)]})
        await run_image_analysis(many, inference)
        assert len(image_fetcher.requested[0]) == 5


class TestMatchExplanation:
    @pytest.mark.asyncio
    async def test_ai_explanation_cached(self, inference, cache, mock_llm):
        args = ("Bruno", ["Playful"], ["playful pups"], 90, inference)
        first = await generate_match_explanation(*args, cache=cache)
        second = await generate_match_explanation(*args, cache=cache)
        assert first.from_ai
        assert first.tokens_used == 100
        assert second.explanation == first.explanation
        assert second.tokens_used == 0
        assert len(mock_llm.calls) == 1

    @pytest.mark.asyncio
    async def test_template_fallback(self, offline_inference):
        result = await generate_match_explanation(
            "Max", ["Playful", "Calm"], ["playful pups"], 90, offline_inference,
        )
        assert not result.from_ai
        assert result.explanation == "Max is a 90% match for you! They're playful, just like you prefer."

    @pytest.mark.asyncio
    async def test_budget_denied_falls_back(self, store, clock, monotonic, mock_llm):
        governor = BudgetGovernor(store, daily_budget_usd=0.0, clock=clock, monotonic=monotonic)
        inference = InferenceService(MockLLMClient(), None, governor, retry_configs=NO_RETRY)
        result = await generate_match_explanation("Max", [], ["calm"], 50, inference)
        assert result.explanation == "Max is a 50% match for you!"
