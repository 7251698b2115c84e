# src/llm/inference.py
"""Governed inference: the only path from the enrichment core to paid APIs.

Every call is admitted by the ``BudgetGovernor``, takes one hourly slot,
runs under a timeout with transient-error retries, and records its usage.
Any failure (budget denied, rate limited, network error, malformed reply)
comes back as ``None``; callers degrade instead of handling exceptions.
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable

import httpx
from pydantic import AliasChoices, BaseModel, Field, ValidationError

from pawmatch.embeddings.base_embedder import BaseEmbedder
from pawmatch.llm.base_client import BaseLLMClient
from pawmatch.llm.models import ImageAnalysisResult, ImageInput, Message, TextGeneration
from pawmatch.llm.retry import RetryConfig, with_retry
from pawmatch.tracking.cost_calculator import estimate_tokens
from pawmatch.tracking.governor import BudgetGovernor

logger = logging.getLogger(__name__)

MAX_IMAGES = 5

_JSON_BLOCK = re.compile(r"\{.*\}", re.DOTALL)

_SINGLE_IMAGE_PROMPT = """Analyze this pet photo and provide:
1. Likely breed or breed mix
2. Primary colors
3. Observable behavioral cues (e.g. "relaxed posture", "alert expression")
4. A brief 1-sentence description

Only describe traits you can actually observe in the photo.

Respond in JSON format:
{"breed": "breed name", "color": "color description", "temperament": ["observed trait"], "description": "brief description"}"""

_MULTI_IMAGE_PROMPT = """Analyze these {count} photos of the same pet and provide:
1. Likely breed or breed mix
2. Primary colors
3. Observable behavioral cues across the photos (e.g. "relaxed in most photos", "playful posture")
4. A brief 1-sentence description summarizing this pet

Only describe traits you can actually observe. Do not assume personality from breed.

Respond in JSON format:
{{"breed": "breed name", "color": "color description", "temperament": ["observed trait"], "description": "brief description"}}"""


class _VisionReply(BaseModel):
    breed_guess: str | None = Field(
        default=None, validation_alias=AliasChoices("breed_guess", "breed")
    )
    color: str | None = None
    observed_traits: list[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("observed_traits", "temperament"),
    )
    description: str | None = None


def parse_vision_reply(text: str) -> _VisionReply | None:
    """Extract the first ``{...}`` block of a vision reply and validate it."""
    match = _JSON_BLOCK.search(text or "")
    if not match:
        return None
    try:
        return _VisionReply.model_validate(json.loads(match.group(0)))
    except (json.JSONDecodeError, ValidationError) as e:
        logger.warning("Malformed vision reply: %s", e)
        return None


class BaseImageFetcher(ABC):
    """Downloads item images for vision analysis."""

    @abstractmethod
    async def fetch(self, urls: list[str]) -> list[ImageInput]:
        """Return the images that could be downloaded, in input order."""


class HttpImageFetcher(BaseImageFetcher):
    """Fetches images over HTTP with httpx; failed downloads are skipped."""

    def __init__(self, timeout_s: float = 10.0, client: httpx.AsyncClient | None = None) -> None:
        self._timeout_s = timeout_s
        self._client = client

    async def fetch(self, urls: list[str]) -> list[ImageInput]:
        if not urls:
            return []
        if self._client is not None:
            results = await asyncio.gather(*(self._fetch_one(self._client, u) for u in urls))
        else:
            async with httpx.AsyncClient(
                timeout=self._timeout_s, follow_redirects=True
            ) as client:
                results = await asyncio.gather(*(self._fetch_one(client, u) for u in urls))
        return [img for img in results if img is not None]

    async def _fetch_one(self, client: httpx.AsyncClient, url: str) -> ImageInput | None:
        try:
            resp = await client.get(url)
            resp.raise_for_status()
        except httpx.HTTPError as e:
            logger.debug("Image fetch failed for %s: %s", url, e)
            return None
        media_type = resp.headers.get("content-type", "image/jpeg").split(";")[0].strip()
        return ImageInput(data=resp.content, media_type=media_type or "image/jpeg", source_url=url)


class InferenceService:
    """Soft-failing facade over the LLM client, the embedder and the governor."""

    def __init__(
        self,
        llm: BaseLLMClient | None,
        embedder: BaseEmbedder | None,
        governor: BudgetGovernor,
        timeout_s: float = 30.0,
        image_fetcher: BaseImageFetcher | None = None,
        retry_configs: dict[str, RetryConfig] | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        temperature: float = 0.7,
        max_tokens: int = 300,
    ) -> None:
        self._llm = llm
        self._temperature = temperature
        self._max_tokens = max_tokens
        self._embedder = embedder
        self._governor = governor
        self._timeout_s = timeout_s
        self._image_fetcher = image_fetcher
        self._retry_configs = retry_configs
        self._sleep = sleep

    @property
    def governor(self) -> BudgetGovernor:
        return self._governor

    @property
    def text_model(self) -> str | None:
        return self._llm.model_name if self._llm else None

    @property
    def embedding_model(self) -> str | None:
        return self._embedder.model_name if self._embedder else None

    async def _admit(self, operation: str, threshold: float) -> bool:
        if not await self._governor.allow(threshold):
            logger.info("%s skipped: budget or rate limit", operation)
            return False
        if not self._governor.try_acquire_slot():
            logger.info("%s skipped: hourly request cap", operation)
            return False
        return True

    async def _call(self, operation: str, fn: Callable[..., Awaitable[Any]], *args: Any, **kwargs: Any) -> Any:
        async def attempt() -> Any:
            return await asyncio.wait_for(fn(*args, **kwargs), timeout=self._timeout_s)

        return await with_retry(
            attempt,
            operation=operation,
            retry_configs=self._retry_configs,
            sleep=self._sleep,
        )

    async def generate_text(
        self,
        prompt: str,
        system_prompt: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
        budget_threshold: float = 1.0,
    ) -> TextGeneration | None:
        """Generate text, or None when inference is unavailable.

        Sampling defaults to the service's configured temperature and
        token limit.
        """
        if self._llm is None:
            return None
        if not await self._admit("text generation", budget_threshold):
            return None

        try:
            resp = await self._call(
                "text generation",
                self._llm.complete,
                [Message(role="user", content=prompt)],
                system=system_prompt,
                max_tokens=self._max_tokens if max_tokens is None else max_tokens,
                temperature=self._temperature if temperature is None else temperature,
            )
        except Exception as e:
            logger.warning("Text generation unavailable: %s", e)
            return None

        tokens = resp.total_tokens or estimate_tokens(system_prompt or "", prompt, resp.content)
        await self._governor.record(self._llm.model_name, tokens)

        text = resp.content.strip()
        if not text:
            logger.warning("Text generation returned an empty reply")
            return None
        return TextGeneration(text=text, tokens_used=tokens, model=self._llm.model_name)

    async def embed(self, text: str, budget_threshold: float = 1.0) -> list[float] | None:
        """Embed one text, or None when inference is unavailable."""
        if self._embedder is None or not text.strip():
            return None
        if not await self._admit("embedding", budget_threshold):
            return None

        try:
            vector = await self._call("embedding", self._embedder.embed_query, text)
        except Exception as e:
            logger.warning("Embedding unavailable: %s", e)
            return None

        await self._governor.record(self._embedder.model_name, estimate_tokens(text))
        if not vector:
            logger.warning("Embedding provider returned an empty vector")
            return None
        return [float(v) for v in vector]

    async def analyze_images(
        self, urls: list[str], budget_threshold: float = 1.0
    ) -> ImageAnalysisResult | None:
        """Vision analysis over up to 5 images, or None when unavailable."""
        urls = [u for u in urls if u][:MAX_IMAGES]
        if not urls or self._llm is None or self._image_fetcher is None:
            return None
        if not self._llm.supports_vision:
            logger.info("Model %s has no vision support", self._llm.model_name)
            return None
        if not await self._governor.allow(budget_threshold):
            logger.info("image analysis skipped: budget or rate limit")
            return None

        images = await self._image_fetcher.fetch(urls)
        if not images:
            logger.info("No images could be fetched for analysis")
            return None
        if not self._governor.try_acquire_slot():
            logger.info("image analysis skipped: hourly request cap")
            return None

        prompt = (
            _SINGLE_IMAGE_PROMPT if len(images) == 1
            else _MULTI_IMAGE_PROMPT.format(count=len(images))
        )
        try:
            resp = await self._call(
                "image analysis",
                self._llm.complete_with_vision,
                [Message(role="user", content=prompt)],
                images,
                max_tokens=self._max_tokens,
            )
        except Exception as e:
            logger.warning("Image analysis unavailable: %s", e)
            return None

        tokens = resp.total_tokens or estimate_tokens(resp.content, images=len(images))
        await self._governor.record(self._llm.model_name, tokens)

        reply = parse_vision_reply(resp.content)
        if reply is None:
            return None
        return ImageAnalysisResult(
            **reply.model_dump(),
            tokens_used=tokens,
            model=self._llm.model_name,
        )
