# src/core/best_effort.py
"""Bounded, failure-tolerant awaiting of durable-store calls.

Store writes must never fail the calling operation: they are awaited with a
timeout, and any error is logged and replaced by a default.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, TypeVar

T = TypeVar("T")

logger = logging.getLogger(__name__)


async def best_effort(
    awaitable: Awaitable[T],
    *,
    timeout_s: float,
    what: str,
    default: T | None = None,
) -> T | None:
    """Await ``awaitable`` within ``timeout_s``; log and return ``default`` on failure."""
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout_s)
    except asyncio.TimeoutError:
        logger.warning("%s timed out after %.1fs", what, timeout_s)
    except Exception as e:
        logger.warning("%s failed: %s", what, e)
    return default
