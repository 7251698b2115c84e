# src/embeddings/embedder_factory.py
"""Factory: instantiate embedding provider from configuration."""

from __future__ import annotations

import importlib
import logging
from typing import Any

from pawmatch.config.settings import Settings
from pawmatch.embeddings.base_embedder import BaseEmbedder

logger = logging.getLogger(__name__)

_PROVIDER_REGISTRY: dict[str, str] = {
    "google": "pawmatch.embeddings.google_embedder.GoogleEmbedder",
    "openai": "pawmatch.embeddings.openai_embedder.OpenAIEmbedder",
    "ollama": "pawmatch.embeddings.ollama_embedder.OllamaEmbedder",
}


class UnsupportedEmbeddingProviderError(ValueError):
    """Raised when an embedding provider is not registered."""


def create_embedder(settings: Settings | None = None) -> BaseEmbedder:
    """Instantiate the configured embedding provider.

    Args:
        settings: Application settings. Uses EMBEDDING_PROVIDER and EMBEDDING_MODEL.
            Defaults to Google text-embedding-004.

    Raises:
        UnsupportedEmbeddingProviderError: If the provider is not registered.
    """
    if settings is None:
        from pawmatch.embeddings.google_embedder import GoogleEmbedder
        return GoogleEmbedder()

    provider = settings.embedding_provider
    if provider not in _PROVIDER_REGISTRY:
        raise UnsupportedEmbeddingProviderError(
            f"Unsupported embedding provider: {provider!r}. "
            f"Available: {', '.join(sorted(_PROVIDER_REGISTRY))}"
        )

    cls = _import_class(_PROVIDER_REGISTRY[provider])
    kwargs: dict[str, Any] = {
        "model": settings.embedding_model,
        "dimensions": settings.embedding_dimensions,
    }
    if provider == "google":
        kwargs["api_key"] = settings.google_api_key
    elif provider == "openai":
        kwargs["api_key"] = settings.openai_api_key
    elif provider == "ollama":
        kwargs["base_url"] = settings.ollama_base_url
        kwargs["timeout_s"] = settings.inference_timeout_s

    logger.debug("Creating embedder: provider=%s", provider)
    return cls(**kwargs)


def register_embedding_provider(name: str, class_path: str) -> None:
    """Register a custom embedding provider."""
    _PROVIDER_REGISTRY[name] = class_path


def _import_class(class_path: str) -> type:
    module_path, class_name = class_path.rsplit(".", 1)
    module = importlib.import_module(module_path)
    return getattr(module, class_name)
