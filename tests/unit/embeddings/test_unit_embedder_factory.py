# tests/unit/embeddings/test_unit_embedder_factory.py
"""Unit tests for the embedding factory and the HTTP embedders."""

from __future__ import annotations

import logging
from types import SimpleNamespace

import httpx
import pytest

from pawmatch.config.settings import Settings
from pawmatch.embeddings import ollama_embedder
from pawmatch.embeddings.embedder_factory import (
    UnsupportedEmbeddingProviderError,
    create_embedder,
)
from pawmatch.embeddings.google_embedder import GoogleEmbedder
from pawmatch.embeddings.ollama_embedder import OllamaEmbedder
from pawmatch.embeddings.openai_embedder import OpenAIEmbedder


class TestCreateEmbedder:
    def test_default_google(self):
        embedder = create_embedder(Settings(_env_file=None, google_api_key="k"))
        assert isinstance(embedder, GoogleEmbedder)
        assert embedder.model_name == "text-embedding-004"
        assert embedder.dimensions == 768

    def test_openai(self):
        settings = Settings(
            _env_file=None,
            embedding_provider="openai",
            embedding_model="text-embedding-3-small",
            embedding_dimensions=1536,
            openai_api_key="k",
        )
        embedder = create_embedder(settings)
        assert isinstance(embedder, OpenAIEmbedder)
        assert embedder.dimensions == 1536

    def test_ollama(self):
        settings = Settings(
            _env_file=None,
            embedding_provider="ollama",
            embedding_model="nomic-embed-text",
            ollama_base_url="http://ollama:11434/",
        )
        embedder = create_embedder(settings)
        assert isinstance(embedder, OllamaEmbedder)
        assert embedder.provider_name == "ollama"

    def test_unsupported(self):
        with pytest.raises(UnsupportedEmbeddingProviderError):
            create_embedder(Settings(_env_file=None, embedding_provider="voyage"))


class TestOllamaEmbedder:
    @pytest.fixture
    def mock_transport(self, monkeypatch):
        seen: list[httpx.Request] = []
        real_client = httpx.AsyncClient

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"embeddings": [[0.1, 0.2], [0.3, 0.4]]})

        def client_factory(**kwargs):
            return real_client(transport=httpx.MockTransport(handler), **kwargs)

        monkeypatch.setattr(ollama_embedder.httpx, "AsyncClient", client_factory)
        return seen

    @pytest.mark.asyncio
    async def test_embed_texts(self, mock_transport):
        embedder = OllamaEmbedder(base_url="http://ollama:11434/")
        vectors = await embedder.embed_texts(["dog", "cat"])
        assert vectors == [[0.1, 0.2], [0.3, 0.4]]
        assert str(mock_transport[0].url) == "http://ollama:11434/api/embed"

    @pytest.mark.asyncio
    async def test_count_mismatch(self, mock_transport):
        embedder = OllamaEmbedder()
        with pytest.raises(RuntimeError, match="2 embeddings for 1 inputs"):
            await embedder.embed_texts(["dog"])


class TestOpenAIEmbedder:
    @staticmethod
    def _fake_client(calls: list[dict]):
        async def create(**kwargs):
            calls.append(kwargs)
            rows = [
                SimpleNamespace(index=i, embedding=[float(i), 1.0])
                for i in range(len(kwargs["input"]))
            ]
            return SimpleNamespace(data=list(reversed(rows)))

        return SimpleNamespace(embeddings=SimpleNamespace(create=create))

    @pytest.mark.asyncio
    async def test_results_follow_input_order(self):
        calls: list[dict] = []
        embedder = OpenAIEmbedder(dimensions=2)
        embedder._sdk_client = self._fake_client(calls)
        vectors = await embedder.embed_texts(["dog", "cat", "rabbit"])
        assert vectors == [[0.0, 1.0], [1.0, 1.0], [2.0, 1.0]]
        assert calls[0]["dimensions"] == 2
        assert calls[0]["model"] == "text-embedding-3-small"

    @pytest.mark.asyncio
    async def test_legacy_model_omits_dimensions(self):
        calls: list[dict] = []
        embedder = OpenAIEmbedder(model="text-embedding-ada-002", dimensions=2)
        embedder._sdk_client = self._fake_client(calls)
        await embedder.embed_texts(["dog"])
        assert "dimensions" not in calls[0]

    @pytest.mark.asyncio
    async def test_empty_input_skips_request(self):
        calls: list[dict] = []
        embedder = OpenAIEmbedder()
        embedder._sdk_client = self._fake_client(calls)
        assert await embedder.embed_texts([]) == []
        assert calls == []

    @pytest.mark.asyncio
    async def test_dimension_mismatch_is_logged(self, caplog):
        calls: list[dict] = []
        embedder = OpenAIEmbedder(dimensions=1536)
        embedder._sdk_client = self._fake_client(calls)
        with caplog.at_level(logging.WARNING, logger="pawmatch.embeddings.openai_embedder"):
            vectors = await embedder.embed_texts(["dog"])
        assert len(vectors[0]) == 2
        assert "returned 2 dimensions, configured for 1536" in caplog.text
