# tests/unit/matching/test_unit_embedding_index.py
"""Unit tests for matching/embedding_index.py."""

from __future__ import annotations

import pytest

from conftest import NO_RETRY, MockEmbedder
from pawmatch.cache.fingerprint import compute_fingerprint
from pawmatch.core.models import Embedding, Item
from pawmatch.llm.inference import InferenceService
from pawmatch.matching.embedding_index import (
    EmbeddingIndex,
    fallback_score,
    item_to_embedding_text,
    query_to_text,
)
from pawmatch.matching.models import SimilarityQuery


@pytest.fixture
def sleeps() -> list[float]:
    return []


@pytest.fixture
def index(store, cache, inference, sleeps) -> EmbeddingIndex:
    async def sleep(delay):
        sleeps.append(delay)

    return EmbeddingIndex(store, cache, inference, sleep=sleep)


@pytest.fixture
def offline_index(store, cache, governor) -> EmbeddingIndex:
    inference = InferenceService(None, None, governor, retry_configs=NO_RETRY)
    return EmbeddingIndex(store, cache, inference)


class TestTextRendering:
    def test_item_text(self, cat_item):
        text = item_to_embedding_text(cat_item)
        assert text.startswith("Princess is a Young Domestic Short Hair.")
        assert "Size: Small." in text
        assert "Energy level: Low." in text
        assert "Compatibility: good with kids." in text

    def test_item_text_uses_heuristic_fallbacks(self, labrador_item):
        text = item_to_embedding_text(labrador_item)
        assert "Size: Medium." in text
        assert "Energy level: Moderate." in text
        assert "Traits: Dog, Adult." in text

    def test_query_text(self):
        query = SimilarityQuery(species="Dog", size="Large", traits=["playful"], good_with=["kids"])
        assert query_to_text(query) == (
            "I am looking for a pet. I prefer dogs. I want a large sized pet. "
            "I like pets that are playful. The pet should be good with kids."
        )

    def test_empty_query_text(self):
        assert query_to_text(SimilarityQuery()) == "I am looking for a pet."


class TestFallbackScore:
    def test_neutral(self, labrador_item):
        assert fallback_score(labrador_item, SimilarityQuery()) == pytest.approx(0.5)

    def test_species_match_and_size(self, labrador_item):
        query = SimilarityQuery(species="Dog", size="Medium")
        assert fallback_score(labrador_item, query) == pytest.approx(0.8)

    def test_species_mismatch(self, cat_item):
        assert fallback_score(cat_item, SimilarityQuery(species="Dog")) == pytest.approx(0.2)

    def test_unknown_species_neutral(self):
        item = Item(id="X", breed="Unknown")
        assert fallback_score(item, SimilarityQuery(species="Dog")) == pytest.approx(0.5)

    def test_partial_traits_and_compatibility(self, cat_item):
        query = SimilarityQuery(traits=["chill", "playful"], good_with=["kids", "dogs"])
        assert fallback_score(cat_item, query) == pytest.approx(0.6)

    def test_clamped(self, cat_item):
        query = SimilarityQuery(
            species="Cat", size="Small", energy="Low", traits=["chill"], good_with=["kids"],
        )
        assert fallback_score(cat_item, query) == pytest.approx(1.0)


class TestItemEmbedding:
    @pytest.mark.asyncio
    async def test_computed_then_stored(self, index, bruno_item, store, mock_embedder):
        vector = await index.get_item_embedding(bruno_item, source="shelterluv")
        assert len(vector) == 9
        record = await store.get_embedding(bruno_item.id)
        assert record.fingerprint == compute_fingerprint(bruno_item)
        assert record.source == "shelterluv"
        assert record.model == "text-embedding-004"
        assert await index.get_item_embedding(bruno_item) == vector
        assert len(mock_embedder.calls) == 1

    @pytest.mark.asyncio
    async def test_duplicates_share_cache(self, index, duplicate_pair, mock_embedder, store):
        first, second = duplicate_pair
        await index.get_item_embedding(first)
        await index.get_item_embedding(second)
        assert len(mock_embedder.calls) == 1
        assert (await store.get_embedding(second.id)) is not None

    @pytest.mark.asyncio
    async def test_stale_record_recomputed(self, index, bruno_item, store, mock_embedder):
        await store.upsert_embedding(Embedding(
            item_id=bruno_item.id, vector=[9.0, 9.0], fingerprint="old-fingerprint",
        ))
        vector = await index.get_item_embedding(bruno_item)
        assert len(vector) == 9
        assert len(mock_embedder.calls) == 1

    @pytest.mark.asyncio
    async def test_unavailable(self, offline_index, bruno_item):
        assert await offline_index.get_item_embedding(bruno_item) is None

    @pytest.mark.asyncio
    async def test_query_embedding_cached(self, index, mock_embedder):
        query = SimilarityQuery(species="Dog")
        first = await index.get_query_embedding(query)
        second = await index.get_query_embedding(query)
        assert first == second
        assert len(mock_embedder.calls) == 1


class TestFindSimilar:
    @pytest.mark.asyncio
    async def test_embedding_ranking(self, index, cat_item, bruno_item):
        query = SimilarityQuery(species="Cat", size="Small", energy="Low", good_with=["kids"])
        results = await index.find_similar([bruno_item, cat_item], query)
        assert [r.item.id for r in results] == [cat_item.id, bruno_item.id]
        assert all(r.method == "embedding" for r in results)
        assert results[0].similarity >= results[1].similarity

    @pytest.mark.asyncio
    async def test_heuristic_when_offline(self, offline_index, cat_item, labrador_item):
        results = await offline_index.find_similar(
            [cat_item, labrador_item], SimilarityQuery(species="Dog"),
        )
        assert [r.item.id for r in results] == [labrador_item.id, cat_item.id]
        assert all(r.method == "heuristic" for r in results)
        assert results[0].similarity == pytest.approx(0.7)

    @pytest.mark.asyncio
    async def test_dimension_mismatch_falls_back(self, index, bruno_item, store):
        await store.upsert_embedding(Embedding(
            item_id=bruno_item.id, vector=[1.0, 2.0, 3.0],
            fingerprint=compute_fingerprint(bruno_item),
        ))
        results = await index.find_similar([bruno_item], SimilarityQuery(species="Dog"))
        assert results[0].method == "heuristic"

    @pytest.mark.asyncio
    async def test_limit(self, index, cat_item, bruno_item, labrador_item):
        results = await index.find_similar(
            [cat_item, bruno_item, labrador_item], SimilarityQuery(), limit=2,
        )
        assert len(results) == 2

    @pytest.mark.asyncio
    async def test_per_item_fallback(self, store, cache, governor, cat_item, bruno_item):
        class PickyEmbedder(MockEmbedder):
            async def embed_texts(self, texts):
                if any("Bruno" in t for t in texts):
                    raise RuntimeError("rejected")
                return await super().embed_texts(texts)

        inference = InferenceService(None, PickyEmbedder(), governor, retry_configs=NO_RETRY)
        results = await EmbeddingIndex(store, cache, inference).find_similar(
            [cat_item, bruno_item], SimilarityQuery(species="Cat"),
        )
        methods = {r.item.id: r.method for r in results}
        assert methods == {cat_item.id: "embedding", bruno_item.id: "heuristic"}


class TestBatchGenerateEmbeddings:
    @pytest.mark.asyncio
    async def test_counts_and_pacing(self, index, cat_item, bruno_item, labrador_item, sleeps):
        stats = await index.batch_generate_embeddings(
            [cat_item, bruno_item, labrador_item], delay_s=0.2,
        )
        assert stats.success == 3
        assert stats.failed == 0
        assert sleeps == [0.2, 0.2]

    @pytest.mark.asyncio
    async def test_failures_counted(self, offline_index, cat_item):
        stats = await offline_index.batch_generate_embeddings([cat_item], delay_s=0)
        assert stats.failed == 1
