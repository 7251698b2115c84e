# src/embeddings/google_embedder.py
"""Google embedding adapter (text-embedding-004).

The google-generativeai embedding call is synchronous, so it runs in a
worker thread to keep the event loop free.
"""

from __future__ import annotations

import asyncio
import logging

from pawmatch.embeddings.base_embedder import BaseEmbedder

logger = logging.getLogger(__name__)


class GoogleEmbedder(BaseEmbedder):
    """Embeddings via the Gemini API."""

    def __init__(
        self,
        model: str = "text-embedding-004",
        api_key: str | None = None,
        dimensions: int = 768,
    ) -> None:
        self._model = model
        self._api_key = api_key
        self._dimensions = dimensions

    async def embed_texts(self, texts: list[str]) -> list[list[float]]:
        try:
            import google.generativeai as genai
        except ImportError as e:
            raise ImportError(
                "google-generativeai package required: pip install google-generativeai"
            ) from e

        genai.configure(api_key=self._api_key or "")
        model_ref = self._model if self._model.startswith("models/") else f"models/{self._model}"
        result = await asyncio.to_thread(
            genai.embed_content,
            model=model_ref,
            content=texts,
            task_type="semantic_similarity",
        )
        return [list(v) for v in result["embedding"]]

    @property
    def dimensions(self) -> int:
        return self._dimensions

    @property
    def provider_name(self) -> str:
        return "google"

    @property
    def model_name(self) -> str:
        return self._model
