# src/config/settings.py
"""Typed configuration loaded from .env via pydantic-settings.

Single source of truth for all deployment-specific settings: providers,
budget caps, timeouts, cache TTLs, the durable store backend and logging.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigurationError(Exception):
    """Raised when configuration is internally inconsistent."""


class Settings(BaseSettings):
    """Application settings loaded from .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # === LLM PROVIDER ===
    llm_provider: str = "google"
    llm_model: str = "gemini-1.5-flash"
    llm_temperature: float = 0.7
    llm_max_tokens: int = 300

    # Provider API keys
    google_api_key: str = ""
    openai_api_key: str = ""

    # === EMBEDDINGS ===
    embedding_provider: str = "google"
    embedding_model: str = "text-embedding-004"
    embedding_dimensions: int = 768
    ollama_base_url: str = "http://localhost:11434"

    # === Budget & rate limits ===
    ai_daily_budget_usd: float = 1.00
    ai_requests_per_hour: int = 100
    ai_projected_call_cost_usd: float = 0.0
    ai_fallback_to_heuristics: bool = True

    # === Timeouts (seconds) ===
    inference_timeout_s: float = 30.0
    image_fetch_timeout_s: float = 10.0
    store_write_timeout_s: float = 5.0

    # === Cache ===
    cache_ttl_hours: dict[str, float | None] = Field(
        default_factory=lambda: {
            "embedding": None,
            "bio": 168,
            "recommendation": 1,
            "chat": 24,
        }
    )
    cache_memory_fallback_size: int = 1000

    # === Durable store ===
    store_backend: Literal["memory", "sqlite", "redis", "none"] = "memory"
    store_sqlite_path: Path = Path("~/.pawmatch/pawmatch.db")
    store_redis_url: str = ""

    # === Enrichment ===
    enrichment_item_lock: bool = True

    # === Batch ===
    batch_item_limit_cap: int = 500
    batch_default_chunk_size: int = 10
    batch_default_delay_ms: int = 500
    batch_ai_delay_ms: int = 2000
    batch_default_budget_threshold: float = 0.5

    # === Logging ===
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["json", "text"] = "json"
    log_file: Path | None = None
    log_rotation: str = "10MB"
    log_retention: int = 30

    # --- Validators ---

    @field_validator("cache_memory_fallback_size", "batch_default_chunk_size")
    @classmethod
    def validate_positive_int(cls, v: int) -> int:
        if v < 1:
            raise ValueError("must be >= 1")
        return v

    @field_validator("batch_default_budget_threshold")
    @classmethod
    def validate_threshold(cls, v: float) -> float:
        if not 0.0 <= v <= 1.0:
            raise ValueError("batch_default_budget_threshold must be within [0, 1]")
        return v

    @model_validator(mode="after")
    def validate_config_consistency(self) -> Settings:
        """Validate cross-field consistency rules."""
        errors: list[str] = []

        if self.ai_daily_budget_usd < 0:
            errors.append("AI_DAILY_BUDGET_USD must be >= 0")

        if self.ai_requests_per_hour < 1:
            errors.append("AI_REQUESTS_PER_HOUR must be >= 1")

        if self.store_backend == "redis" and not self.store_redis_url:
            errors.append("STORE_BACKEND=redis requires STORE_REDIS_URL")

        for category, hours in self.cache_ttl_hours.items():
            if hours is not None and hours <= 0:
                errors.append(
                    f"CACHE_TTL_HOURS[{category}] must be positive or null"
                )

        if errors:
            raise ConfigurationError("; ".join(errors))

        return self


def load_settings(**overrides: object) -> Settings:
    """Load settings from .env with optional overrides.

    Args:
        **overrides: Field-level overrides (for testing or per-command config).

    Returns:
        Validated Settings instance.

    Raises:
        ConfigurationError: If configuration is internally inconsistent.
    """
    return Settings(**overrides)  # type: ignore[arg-type]
