# src/cache/models.py
"""Cache domain models: CacheEntry, CacheTTLPolicy, CacheStats."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any, Literal

from pydantic import BaseModel, Field

CacheCategory = Literal["embedding", "bio", "recommendation", "chat"]

DEFAULT_TTL_HOURS: dict[str, float | None] = {
    "embedding": None,
    "bio": 7 * 24,
    "recommendation": 1,
    "chat": 24,
}


class CacheEntry(BaseModel):
    """Single cached payload. Past ``expires_at`` it is logically absent."""

    key: str
    category: CacheCategory
    payload: Any
    tokens_used: int = 0
    model: str | None = None
    created_at: datetime
    expires_at: datetime | None = None

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at is not None and self.expires_at <= now


class CacheTTLPolicy(BaseModel):
    """Category to TTL table. ``None`` means the entry never expires."""

    ttl_hours: dict[str, float | None] = Field(
        default_factory=lambda: dict(DEFAULT_TTL_HOURS)
    )

    def expires_at(self, category: str, now: datetime) -> datetime | None:
        if category not in self.ttl_hours:
            raise KeyError(f"No TTL configured for cache category {category!r}")
        hours = self.ttl_hours[category]
        if hours is None:
            return None
        return now + timedelta(hours=hours)


class CacheStats(BaseModel):
    """Monitoring snapshot of the durable cache."""

    total_entries: int
    by_category: dict[str, int] = Field(default_factory=dict)
    total_tokens_saved: int = 0
