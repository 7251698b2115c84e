# src/llm/client_factory.py
"""Factory: instantiate an LLM client from provider name."""

from __future__ import annotations

import importlib
import logging

from pawmatch.config.settings import Settings
from pawmatch.llm.base_client import BaseLLMClient

logger = logging.getLogger(__name__)

# Provider name -> adapter class path (lazy import keeps SDKs optional)
_PROVIDER_REGISTRY: dict[str, str] = {
    "google": "pawmatch.llm.adapters.google_adapter.GoogleAdapter",
    "openai": "pawmatch.llm.adapters.openai_adapter.OpenAIAdapter",
}

_API_KEY_FIELDS: dict[str, str] = {
    "google": "google_api_key",
    "openai": "openai_api_key",
}


class UnsupportedProviderError(ValueError):
    """Raised when a provider is not registered."""


def create_llm_client(
    provider: str,
    model: str,
    settings: Settings | None = None,
    **kwargs: object,
) -> BaseLLMClient:
    """Instantiate the correct adapter from provider name.

    Args:
        provider: Provider identifier (google, openai).
        model: Model name (e.g. gemini-1.5-flash).
        settings: Application settings (for API keys).
        **kwargs: Additional provider-specific arguments.

    Raises:
        UnsupportedProviderError: If provider is not registered.
    """
    if provider not in _PROVIDER_REGISTRY:
        raise UnsupportedProviderError(
            f"Unsupported LLM provider: {provider!r}. "
            f"Available: {', '.join(sorted(_PROVIDER_REGISTRY))}"
        )

    adapter_cls = _import_class(_PROVIDER_REGISTRY[provider])

    init_kwargs = dict(kwargs)
    init_kwargs["model"] = model
    key_field = _API_KEY_FIELDS.get(provider)
    if settings is not None and key_field:
        init_kwargs.setdefault("api_key", getattr(settings, key_field))

    logger.debug("Creating LLM client: provider=%s, model=%s", provider, model)
    return adapter_cls(**init_kwargs)


def register_provider(name: str, class_path: str, api_key_field: str | None = None) -> None:
    """Register a custom provider adapter.

    Args:
        name: Provider identifier.
        class_path: Fully qualified class path implementing BaseLLMClient.
        api_key_field: Settings attribute holding the provider's API key.
    """
    _PROVIDER_REGISTRY[name] = class_path
    if api_key_field:
        _API_KEY_FIELDS[name] = api_key_field
    logger.info("Registered LLM provider: %s -> %s", name, class_path)


def _import_class(class_path: str) -> type:
    """Dynamically import a class from its fully qualified path."""
    module_path, class_name = class_path.rsplit(".", 1)
    module = importlib.import_module(module_path)
    return getattr(module, class_name)
