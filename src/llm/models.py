# src/llm/models.py
"""Inference types: provider-level messages and responses, plus the
normalized results handed to the enrichment core."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field


class Message(BaseModel):
    """Single message in a conversation."""

    role: Literal["user", "assistant", "system"]
    content: str


class ImageInput(BaseModel):
    """Downloaded image payload for vision-enabled completions."""

    data: bytes
    media_type: str
    source_url: str | None = None


class LLMResponse(BaseModel):
    """Normalized response from any LLM provider.

    Token counts are 0 when the provider did not report them.
    """

    content: str
    input_tokens: int = 0
    output_tokens: int = 0
    model: str
    provider: str
    latency_ms: int = 0
    raw_response: Any = None

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens


class TextGeneration(BaseModel):
    """Successful text generation as seen by the enrichment core."""

    text: str
    tokens_used: int
    model: str


class ImageAnalysisResult(BaseModel):
    """Structured vision output; parsed from the model's JSON reply."""

    breed_guess: str | None = None
    color: str | None = None
    observed_traits: list[str] = Field(default_factory=list)
    description: str | None = None
    tokens_used: int = 0
    model: str | None = None
