# src/llm/base_client.py
"""Abstract LLM client interface.

Adapters raise on any provider failure; turning failures into soft
``None`` results is the job of ``InferenceService``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from pawmatch.llm.models import ImageInput, LLMResponse, Message


class BaseLLMClient(ABC):
    """Unified interface for all LLM providers."""

    @abstractmethod
    async def complete(
        self,
        messages: list[Message],
        system: str | None = None,
        max_tokens: int = 300,
        temperature: float = 0.7,
    ) -> LLMResponse:
        """Text completion."""

    @abstractmethod
    async def complete_with_vision(
        self,
        messages: list[Message],
        images: list[ImageInput],
        system: str | None = None,
        max_tokens: int = 500,
    ) -> LLMResponse:
        """Vision-enabled completion (images + text)."""

    @property
    @abstractmethod
    def model_name(self) -> str:
        """Model identifier used for pricing and usage records."""

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Provider identifier (google, openai)."""

    @property
    def supports_vision(self) -> bool:
        return True
