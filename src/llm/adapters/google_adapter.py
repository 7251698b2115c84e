# src/llm/adapters/google_adapter.py
"""Google Gemini adapter implementing BaseLLMClient.

Uses the google-generativeai SDK; Gemini 1.5 models accept inline images.
"""

from __future__ import annotations

import time
from typing import Any

from pawmatch.llm.base_client import BaseLLMClient
from pawmatch.llm.models import ImageInput, LLMResponse, Message


class GoogleAdapter(BaseLLMClient):
    """Google Gemini adapter."""

    def __init__(self, model: str = "gemini-1.5-flash", api_key: str = "", **kwargs: Any):
        self._model = model
        self._api_key = api_key

    def _model_for(self, system: str | None):
        import google.generativeai as genai

        genai.configure(api_key=self._api_key)
        return genai.GenerativeModel(self._model, system_instruction=system)

    async def complete(
        self,
        messages: list[Message],
        system: str | None = None,
        max_tokens: int = 300,
        temperature: float = 0.7,
    ) -> LLMResponse:
        model = self._model_for(system)
        contents = [
            {"role": "model" if m.role == "assistant" else "user", "parts": [{"text": m.content}]}
            for m in messages
        ]

        t0 = time.monotonic()
        resp = await model.generate_content_async(
            contents,
            generation_config={"max_output_tokens": max_tokens, "temperature": temperature},
        )
        return self._to_response(resp, t0)

    async def complete_with_vision(
        self,
        messages: list[Message],
        images: list[ImageInput],
        system: str | None = None,
        max_tokens: int = 500,
    ) -> LLMResponse:
        model = self._model_for(system)
        parts: list[dict[str, Any]] = [{"text": m.content} for m in messages]
        parts.extend(
            {"inline_data": {"mime_type": img.media_type, "data": img.data}}
            for img in images
        )

        t0 = time.monotonic()
        resp = await model.generate_content_async(
            parts, generation_config={"max_output_tokens": max_tokens},
        )
        return self._to_response(resp, t0)

    def _to_response(self, resp: Any, t0: float) -> LLMResponse:
        usage = getattr(resp, "usage_metadata", None)
        return LLMResponse(
            content=resp.text or "",
            input_tokens=getattr(usage, "prompt_token_count", 0) or 0 if usage else 0,
            output_tokens=getattr(usage, "candidates_token_count", 0) or 0 if usage else 0,
            model=self._model,
            provider="google",
            latency_ms=int((time.monotonic() - t0) * 1000),
            raw_response=resp,
        )

    @property
    def model_name(self) -> str:
        return self._model

    @property
    def provider_name(self) -> str:
        return "google"
