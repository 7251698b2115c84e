# src/logging/context.py
"""Contextual logging support: attach item, source, tier and job id to records.

The orchestrator sets the item context before each tier attempt so that a soft
failure logged deep inside the inference layer still names the item and the
tier that was being attempted.
"""

from __future__ import annotations

import contextvars
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Iterator

_item_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "item_id", default=None
)
_source: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "source", default=None
)
_tier: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "tier", default=None
)
_job_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "job_id", default=None
)


@dataclass(frozen=True)
class LogContext:
    """Immutable snapshot of current logging context."""

    item_id: str | None = None
    source: str | None = None
    tier: str | None = None
    job_id: str | None = None

    def as_dict(self) -> dict[str, Any]:
        """Return non-None fields as dict for JSON log injection."""
        return {k: v for k, v in self.__dict__.items() if v is not None}


def get_context() -> LogContext:
    """Snapshot current context variables."""
    return LogContext(
        item_id=_item_id.get(),
        source=_source.get(),
        tier=_tier.get(),
        job_id=_job_id.get(),
    )


def set_item_context(item_id: str, source: str | None = None) -> None:
    """Set item-level context (called once per enrichment call)."""
    _item_id.set(item_id)
    _source.set(source)
    _tier.set(None)


def set_tier_context(tier: str | None) -> None:
    """Record the enrichment tier currently being attempted."""
    _tier.set(tier)


def set_job_context(job_id: str | None) -> None:
    """Set batch job context."""
    _job_id.set(job_id)


@contextmanager
def item_context(item_id: str, source: str | None = None) -> Iterator[None]:
    """Scope item context to a block, restoring the previous values after."""
    tokens = (_item_id.set(item_id), _source.set(source), _tier.set(None))
    try:
        yield
    finally:
        _tier.reset(tokens[2])
        _source.reset(tokens[1])
        _item_id.reset(tokens[0])


def clear_context() -> None:
    """Reset all context variables."""
    _item_id.set(None)
    _source.set(None)
    _tier.set(None)
    _job_id.set(None)
