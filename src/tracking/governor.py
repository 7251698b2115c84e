# src/tracking/governor.py
"""Budget and rate governor for paid inference.

Two independent gates guard every paid call:

* an in-process hourly request counter (``HourlyRateCounter``), shared by
  interactive requests and batch jobs in the same process;
* a daily spend cap read from the durable ``UsageRecord`` store.

A caller-supplied threshold fraction scales the daily cap so batch backfills
can leave headroom for interactive traffic. When the usage store cannot be
reached the spend gate opens (unmetered) while the hourly cap still applies.
"""

from __future__ import annotations

import logging
import threading
import time
from datetime import date, datetime, timedelta, timezone
from typing import Callable

from pawmatch.core.best_effort import best_effort
from pawmatch.store.base_store import BaseDurableStore
from pawmatch.tracking.cost_calculator import compute_call_cost, summarize_usage
from pawmatch.tracking.models import DailyUsageStats, ModelPricing, UsageSummary

logger = logging.getLogger(__name__)

HOUR_S = 3600.0


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class HourlyRateCounter:
    """Request counter over a fixed window that resets once the window elapses.

    ``try_acquire`` checks and increments under one lock; a request landing on
    the reset instant may be counted against either window.
    """

    def __init__(
        self,
        limit: int,
        window_s: float = HOUR_S,
        monotonic: Callable[[], float] = time.monotonic,
    ) -> None:
        self._limit = limit
        self._window_s = window_s
        self._monotonic = monotonic
        self._lock = threading.Lock()
        self._count = 0
        self._window_start = monotonic()

    def _roll(self) -> None:
        now = self._monotonic()
        if now - self._window_start >= self._window_s:
            self._count = 0
            self._window_start = now

    @property
    def limit(self) -> int:
        return self._limit

    @property
    def count(self) -> int:
        with self._lock:
            self._roll()
            return self._count

    def has_capacity(self) -> bool:
        with self._lock:
            self._roll()
            return self._count < self._limit

    def try_acquire(self) -> bool:
        """Count one request if under the limit. Returns False when full."""
        with self._lock:
            self._roll()
            if self._count >= self._limit:
                return False
            self._count += 1
            return True

    def remaining(self) -> int:
        with self._lock:
            self._roll()
            return max(0, self._limit - self._count)


class BudgetGovernor:
    """Gates paid inference on the hourly cap and the daily spend cap."""

    def __init__(
        self,
        store: BaseDurableStore,
        daily_budget_usd: float = 1.0,
        requests_per_hour: int = 100,
        projected_call_cost_usd: float = 0.0,
        pricing: dict[str, ModelPricing] | None = None,
        clock: Callable[[], datetime] = _utc_now,
        monotonic: Callable[[], float] = time.monotonic,
        store_timeout_s: float = 5.0,
    ) -> None:
        self._store = store
        self._daily_budget_usd = daily_budget_usd
        self._projected_call_cost_usd = projected_call_cost_usd
        self._pricing = pricing
        self._clock = clock
        self._store_timeout_s = store_timeout_s
        self.rate = HourlyRateCounter(requests_per_hour, monotonic=monotonic)

    @property
    def daily_budget_usd(self) -> float:
        return self._daily_budget_usd

    def today(self) -> date:
        return self._clock().astimezone(timezone.utc).date()

    async def _store_up(self) -> bool:
        up = await best_effort(
            self._store.is_available(),
            timeout_s=self._store_timeout_s,
            what="usage store health check",
            default=False,
        )
        return bool(up)

    async def spent_today(self) -> float | None:
        """Today's estimated spend across models; None if the store is unreachable."""
        if not await self._store_up():
            return None
        day = self.today()
        records = await best_effort(
            self._store.list_usage(day, day),
            timeout_s=self._store_timeout_s,
            what="usage read",
        )
        if records is None:
            return None
        return sum(r.estimated_cost for r in records)

    async def allow(self, threshold: float = 1.0) -> bool:
        """True iff under the hourly cap and under ``daily_budget x threshold``.

        Does not consume a request slot; see ``try_acquire_slot``.
        """
        if not self.rate.has_capacity():
            logger.info(
                "Hourly request cap reached (%d/h), inference disabled", self.rate.limit
            )
            return False

        spent = await self.spent_today()
        if spent is None:
            logger.debug("Usage store unavailable, spend cap not enforced")
            return True

        cap = self._daily_budget_usd * threshold
        if spent + self._projected_call_cost_usd < cap:
            return True
        logger.info(
            "Daily budget exhausted: spent $%.4f + projected $%.4f >= $%.4f",
            spent, self._projected_call_cost_usd, cap,
        )
        return False

    def try_acquire_slot(self) -> bool:
        """Count one request against the hourly cap."""
        return self.rate.try_acquire()

    async def record(self, model: str, tokens: int) -> float:
        """Add one request and its estimated cost to today's usage. Best-effort.

        Returns:
            Estimated cost of the call in USD.
        """
        cost = compute_call_cost(model, tokens, self._pricing)
        if not await self._store_up():
            logger.debug("Usage store unavailable, usage for %s not recorded", model)
            return cost
        await best_effort(
            self._store.increment_usage(self.today(), model, 1, tokens, cost),
            timeout_s=self._store_timeout_s,
            what=f"usage record for {model}",
        )
        return cost

    async def daily_usage_stats(self) -> DailyUsageStats | None:
        """Today's totals and remaining budget; None if the store is unreachable."""
        if not await self._store_up():
            return None
        day = self.today()
        records = await best_effort(
            self._store.list_usage(day, day),
            timeout_s=self._store_timeout_s,
            what="usage read",
        )
        if records is None:
            return None
        cost = sum(r.estimated_cost for r in records)
        return DailyUsageStats(
            date=day,
            total_requests=sum(r.request_count for r in records),
            total_tokens=sum(r.tokens_used for r in records),
            estimated_cost=cost,
            budget_remaining=max(0.0, self._daily_budget_usd - cost),
        )

    async def usage_summary(self, days: int = 7) -> UsageSummary | None:
        """Usage over the last ``days`` days (today included)."""
        if not await self._store_up():
            return None
        until = self.today()
        since = until - timedelta(days=days - 1)
        records = await best_effort(
            self._store.list_usage(since, until),
            timeout_s=self._store_timeout_s,
            what="usage read",
        )
        if records is None:
            return None
        return summarize_usage(records, since, until)

    async def cleanup_usage_before(self, day: date) -> int:
        """Delete usage records older than ``day``. The only way records shrink."""
        if not await self._store_up():
            return 0
        removed = await best_effort(
            self._store.delete_usage_before(day),
            timeout_s=self._store_timeout_s,
            what="usage cleanup",
            default=0,
        )
        logger.info("Removed %d usage records before %s", removed, day)
        return removed or 0
