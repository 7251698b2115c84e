# src/embeddings/base_embedder.py
"""Abstract embeddings interface."""

from __future__ import annotations

from abc import ABC, abstractmethod


class BaseEmbedder(ABC):
    """Unified interface for all embedding providers.

    Implementations raise on failure; ``InferenceService`` converts
    failures into an unavailable result.
    """

    @abstractmethod
    async def embed_texts(self, texts: list[str]) -> list[list[float]]:
        """Embed a batch of texts into vectors."""

    async def embed_query(self, query: str) -> list[float]:
        """Embed a single text."""
        vectors = await self.embed_texts([query])
        return vectors[0]

    @property
    @abstractmethod
    def dimensions(self) -> int:
        """Output vector dimensions."""

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Provider identifier."""

    @property
    @abstractmethod
    def model_name(self) -> str:
        """Model identifier."""
