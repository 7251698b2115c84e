# src/embeddings/openai_embedder.py
"""OpenAI embedding adapter (text-embedding-3-small and friends).

Inputs are sent in batches under the API's per-request input cap. The
text-embedding-3 family accepts a ``dimensions`` argument, so the
configured size is requested directly; older models ignore it.
"""

from __future__ import annotations

import logging

from pawmatch.embeddings.base_embedder import BaseEmbedder

logger = logging.getLogger(__name__)

_MAX_INPUTS_PER_REQUEST = 2048


class OpenAIEmbedder(BaseEmbedder):
    """Embeddings via the OpenAI API."""

    def __init__(
        self,
        model: str = "text-embedding-3-small",
        api_key: str | None = None,
        dimensions: int = 1536,
    ) -> None:
        self._model = model
        self._api_key = api_key
        self._dimensions = dimensions
        self._sdk_client = None

    def _get_client(self):
        if self._sdk_client is None:
            try:
                import openai
            except ImportError as e:
                raise ImportError(
                    "openai package required: pip install openai"
                ) from e
            self._sdk_client = openai.AsyncOpenAI(api_key=self._api_key or "")
        return self._sdk_client

    async def embed_texts(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []
        client = self._get_client()
        extra = {"dimensions": self._dimensions} if self._model.startswith("text-embedding-3") else {}

        vectors: list[list[float]] = []
        for start in range(0, len(texts), _MAX_INPUTS_PER_REQUEST):
            batch = texts[start:start + _MAX_INPUTS_PER_REQUEST]
            response = await client.embeddings.create(input=batch, model=self._model, **extra)
            # Results carry their input index; order is not guaranteed.
            ordered = sorted(response.data, key=lambda d: d.index)
            vectors.extend(list(d.embedding) for d in ordered)
            logger.debug("Embedded %d texts with %s", len(batch), self._model)

        if vectors and len(vectors[0]) != self._dimensions:
            logger.warning(
                "%s returned %d dimensions, configured for %d",
                self._model, len(vectors[0]), self._dimensions,
            )
        return vectors

    @property
    def dimensions(self) -> int:
        return self._dimensions

    @property
    def provider_name(self) -> str:
        return "openai"

    @property
    def model_name(self) -> str:
        return self._model
