# tests/conftest.py
"""Shared test fixtures for all unit tests.

Provides sample items, a deterministic mock LLM client and embedder, an
in-memory store, a fixed clock and the services wired on top of them.
No external service is ever contacted.
"""

from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone

import pytest

from pawmatch.cache.cache_store import CacheStore
from pawmatch.core.models import Compatibility, Item
from pawmatch.embeddings.base_embedder import BaseEmbedder
from pawmatch.enrichment.orchestrator import EnrichmentOrchestrator
from pawmatch.llm.base_client import BaseLLMClient
from pawmatch.llm.inference import BaseImageFetcher, InferenceService
from pawmatch.llm.models import ImageInput, LLMResponse, Message
from pawmatch.logging.context import clear_context
from pawmatch.store.memory_store import InMemoryStore
from pawmatch.tracking.governor import BudgetGovernor

NO_RETRY: dict = {}


# === TEST DOUBLES ===


class FixedClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta: float) -> None:
        self.now = self.now + timedelta(**delta)


class FakeMonotonic:
    def __init__(self) -> None:
        self.t = 0.0

    def __call__(self) -> float:
        return self.t


class MockLLMClient(BaseLLMClient):
    """Deterministic LLM: fixed reply text, fixed token counts, call log."""

    def __init__(
        self,
        reply: str = "Hi, I'm Pickle! I'm a playful and loving pup who adores belly rubs.",
        vision_reply: str | None = None,
        input_tokens: int = 40,
        output_tokens: int = 60,
        model: str = "gemini-1.5-flash",
        error: Exception | None = None,
    ) -> None:
        self.reply = reply
        self.vision_reply = vision_reply or json.dumps({
            "breed": "Labrador Retriever mix",
            "color": "yellow",
            "temperament": ["relaxed posture"],
            "description": "A yellow dog lying on grass.",
        })
        self.input_tokens = input_tokens
        self.output_tokens = output_tokens
        self._model = model
        self.error = error
        self.calls: list[dict] = []

    def _respond(self, content: str) -> LLMResponse:
        if self.error is not None:
            raise self.error
        return LLMResponse(
            content=content,
            input_tokens=self.input_tokens,
            output_tokens=self.output_tokens,
            model=self._model,
            provider="mock",
        )

    async def complete(
        self,
        messages: list[Message],
        system: str | None = None,
        max_tokens: int = 300,
        temperature: float = 0.7,
    ) -> LLMResponse:
        self.calls.append({
            "kind": "text", "messages": messages, "system": system,
            "max_tokens": max_tokens, "temperature": temperature,
        })
        return self._respond(self.reply)

    async def complete_with_vision(
        self,
        messages: list[Message],
        images: list[ImageInput],
        system: str | None = None,
        max_tokens: int = 500,
    ) -> LLMResponse:
        self.calls.append({
            "kind": "vision", "messages": messages, "images": images, "max_tokens": max_tokens,
        })
        return self._respond(self.vision_reply)

    @property
    def model_name(self) -> str:
        return self._model

    @property
    def provider_name(self) -> str:
        return "mock"


_VOCAB = ("dog", "cat", "small", "large", "high", "low", "kids", "calm")


class MockEmbedder(BaseEmbedder):
    """Bag-of-keywords vectors with a constant bias term (never zero-norm)."""

    def __init__(self, error: Exception | None = None) -> None:
        self.error = error
        self.calls: list[list[str]] = []

    async def embed_texts(self, texts: list[str]) -> list[list[float]]:
        self.calls.append(list(texts))
        if self.error is not None:
            raise self.error
        return [
            [1.0] + [float(t.lower().count(word)) for word in _VOCAB]
            for t in texts
        ]

    @property
    def dimensions(self) -> int:
        return len(_VOCAB) + 1

    @property
    def provider_name(self) -> str:
        return "mock"

    @property
    def model_name(self) -> str:
        return "text-embedding-004"


class StaticImageFetcher(BaseImageFetcher):
    def __init__(self) -> None:
        self.requested: list[list[str]] = []

    async def fetch(self, urls: list[str]) -> list[ImageInput]:
        self.requested.append(list(urls))
        return [ImageInput(data=b"\xff\xd8", media_type="image/jpeg", source_url=u) for u in urls]


# === FIXTURES: Sample data ===


@pytest.fixture(autouse=True)
def _reset_log_context():
    clear_context()
    yield
    clear_context()


@pytest.fixture
def labrador_item() -> Item:
    """Cold item with a synthesized description and nothing else known."""
    return Item(
        id="OD-1",
        name="Max",
        breed="Labrador",
        age="3 years",
        description="",
        is_synthetic_description=True,
        source="open_data",
    )


@pytest.fixture
def bruno_item() -> Item:
    """Item with an authentic, staff-written description."""
    return Item(
        id="SL-101",
        name="Bruno",
        breed="Mix / Terrier",
        age="3 years",
        description="Bruno loves to run and hike all day",
        compatibility=Compatibility(dogs=True),
        image_url="https://img.example/bruno.jpg",
        source="shelterluv",
    )


@pytest.fixture
def cat_item() -> Item:
    return Item(
        id="PF-7",
        name="Princess",
        species="Cat",
        breed="Domestic Short Hair",
        age="Young",
        size="Small",
        color="Black / White",
        description="Loves napping on the couch and is calm around kids.",
        compatibility=Compatibility(kids=True, dogs=False),
        images=["https://img.example/p1.jpg", "https://img.example/p2.jpg"],
        source="petfinder",
    )


@pytest.fixture
def duplicate_pair(bruno_item: Item) -> tuple[Item, Item]:
    """Same animal listed by two shelters: equal fingerprints, different ids."""
    other = bruno_item.model_copy(update={"id": "PF-555", "name": "Bruno", "source": "petfinder"})
    return bruno_item, other


# === FIXTURES: Services ===


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(datetime(2026, 3, 14, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def monotonic() -> FakeMonotonic:
    return FakeMonotonic()


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def mock_llm() -> MockLLMClient:
    return MockLLMClient()


@pytest.fixture
def mock_embedder() -> MockEmbedder:
    return MockEmbedder()


@pytest.fixture
def image_fetcher() -> StaticImageFetcher:
    return StaticImageFetcher()


@pytest.fixture
def governor(store: InMemoryStore, clock: FixedClock, monotonic: FakeMonotonic) -> BudgetGovernor:
    return BudgetGovernor(
        store,
        daily_budget_usd=1.0,
        requests_per_hour=100,
        clock=clock,
        monotonic=monotonic,
    )


@pytest.fixture
def inference(
    mock_llm: MockLLMClient,
    mock_embedder: MockEmbedder,
    governor: BudgetGovernor,
    image_fetcher: StaticImageFetcher,
) -> InferenceService:
    return InferenceService(
        mock_llm,
        mock_embedder,
        governor,
        timeout_s=5.0,
        image_fetcher=image_fetcher,
        retry_configs=NO_RETRY,
    )


@pytest.fixture
def cache(store: InMemoryStore, clock: FixedClock) -> CacheStore:
    return CacheStore(store, memory_fallback_size=10, clock=clock)


@pytest.fixture
def orchestrator(
    store: InMemoryStore, inference: InferenceService, cache: CacheStore
) -> EnrichmentOrchestrator:
    return EnrichmentOrchestrator(store, inference, cache=cache)
