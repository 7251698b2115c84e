# src/tracking/models.py
"""Tracking domain models: ModelPricing, DailyUsageStats, ModelUsage."""

from __future__ import annotations

from datetime import date

from pydantic import BaseModel, Field


class ModelPricing(BaseModel):
    """Per-1K-token pricing for one model, in USD."""

    model: str
    input_price_per_1k: float
    output_price_per_1k: float

    @property
    def blended_per_1k(self) -> float:
        """Average of input and output rates; prompts and replies are not split."""
        return (self.input_price_per_1k + self.output_price_per_1k) / 2


class DailyUsageStats(BaseModel):
    """Today's usage across all models against the daily budget."""

    date: date
    total_requests: int
    total_tokens: int
    estimated_cost: float
    budget_remaining: float


class ModelUsage(BaseModel):
    """Usage for one model aggregated over a period."""

    model: str
    request_count: int = 0
    tokens_used: int = 0
    estimated_cost: float = 0.0


class UsageSummary(BaseModel):
    """Usage over a date range, broken down by model."""

    since: date
    until: date
    total_requests: int = 0
    total_tokens: int = 0
    estimated_cost: float = 0.0
    by_model: dict[str, ModelUsage] = Field(default_factory=dict)
