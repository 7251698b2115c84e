# src/tracking/cost_calculator.py
"""Cost estimation for inference calls and aggregation of usage records."""

from __future__ import annotations

import math
from collections import defaultdict
from datetime import date

from pawmatch.core.models import UsageRecord
from pawmatch.tracking.models import ModelPricing, ModelUsage, UsageSummary

# Default pricing per 1K tokens
DEFAULT_PRICING: dict[str, ModelPricing] = {
    "gemini-1.5-flash": ModelPricing(
        model="gemini-1.5-flash",
        input_price_per_1k=0.000075, output_price_per_1k=0.0003,
    ),
    "gemini-1.5-pro": ModelPricing(
        model="gemini-1.5-pro",
        input_price_per_1k=0.00125, output_price_per_1k=0.005,
    ),
    "text-embedding-004": ModelPricing(
        model="text-embedding-004",
        input_price_per_1k=0.00001, output_price_per_1k=0.0,
    ),
    "gpt-4o-mini": ModelPricing(
        model="gpt-4o-mini",
        input_price_per_1k=0.00015, output_price_per_1k=0.0006,
    ),
    "text-embedding-3-small": ModelPricing(
        model="text-embedding-3-small",
        input_price_per_1k=0.00002, output_price_per_1k=0.0,
    ),
}

# Vision models bill roughly this many tokens per attached image
IMAGE_TOKEN_ESTIMATE = 250


def compute_call_cost(
    model: str,
    tokens: int,
    pricing: dict[str, ModelPricing] | None = None,
) -> float:
    """Estimated USD cost: tokens/1000 x average of input and output rates.

    Unknown models cost 0.
    """
    table = DEFAULT_PRICING if pricing is None else pricing
    p = table.get(model)
    if p is None:
        return 0.0
    return tokens / 1000 * p.blended_per_1k


def estimate_tokens(*texts: str, images: int = 0) -> int:
    """Rough token count (4 chars per token) when the provider reports none."""
    chars = sum(len(t) for t in texts if t)
    return math.ceil(chars / 4) + IMAGE_TOKEN_ESTIMATE * images


def summarize_usage(
    records: list[UsageRecord],
    since: date,
    until: date,
) -> UsageSummary:
    """Aggregate usage records per model over a period."""
    by_model: dict[str, ModelUsage] = defaultdict(lambda: ModelUsage(model=""))
    for r in records:
        current = by_model[r.model]
        by_model[r.model] = ModelUsage(
            model=r.model,
            request_count=current.request_count + r.request_count,
            tokens_used=current.tokens_used + r.tokens_used,
            estimated_cost=current.estimated_cost + r.estimated_cost,
        )

    return UsageSummary(
        since=since,
        until=until,
        total_requests=sum(m.request_count for m in by_model.values()),
        total_tokens=sum(m.tokens_used for m in by_model.values()),
        estimated_cost=sum(m.estimated_cost for m in by_model.values()),
        by_model=dict(by_model),
    )
