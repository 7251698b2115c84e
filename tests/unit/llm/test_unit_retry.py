# tests/unit/llm/test_unit_retry.py
"""Unit tests for llm/retry.py."""

from __future__ import annotations

import asyncio

import pytest

from pawmatch.llm.retry import (
    RetryConfig,
    RetryExhausted,
    classify_error,
    compute_delay,
    with_retry,
)


class RateLimitError(Exception):
    pass


class TestClassifyError:
    def test_timeout(self):
        assert classify_error(asyncio.TimeoutError()) == "timeout"

    def test_rate_limit_by_name(self):
        assert classify_error(RateLimitError("slow down")) == "rate_limit"

    def test_rate_limit_by_status(self):
        assert classify_error(RuntimeError("HTTP 429 Too Many Requests")) == "rate_limit"

    def test_quota(self):
        assert classify_error(RuntimeError("Quota exceeded")) == "rate_limit"

    def test_server_error(self):
        assert classify_error(RuntimeError("503 Service Unavailable")) == "server_error"

    def test_unknown(self):
        assert classify_error(ValueError("bad prompt")) == "unknown"


class TestComputeDelay:
    def test_exponential_without_jitter(self):
        config = RetryConfig(max_retries=3, base_delay_s=1.0, backoff_factor=2.0, jitter=False)
        assert [compute_delay(config, i) for i in range(3)] == [1.0, 2.0, 4.0]

    def test_jitter_bounds(self):
        config = RetryConfig(max_retries=1, base_delay_s=2.0)
        for _ in range(20):
            assert 1.0 <= compute_delay(config, 0) <= 3.0


class TestWithRetry:
    @pytest.mark.asyncio
    async def test_success_first_try(self):
        async def ok():
            return "done"

        assert await with_retry(ok, sleep=_no_sleep()) == "done"

    @pytest.mark.asyncio
    async def test_transient_then_success(self):
        calls = []
        sleeps = []

        async def flaky():
            calls.append(1)
            if len(calls) < 3:
                raise RuntimeError("502 Bad Gateway")
            return "ok"

        async def sleep(delay):
            sleeps.append(delay)

        configs = {"server_error": RetryConfig(max_retries=2, base_delay_s=1.0, jitter=False)}
        assert await with_retry(flaky, retry_configs=configs, sleep=sleep) == "ok"
        assert len(calls) == 3
        assert sleeps == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_unknown_error_not_retried(self):
        calls = []

        async def bad():
            calls.append(1)
            raise ValueError("invalid request")

        with pytest.raises(RetryExhausted) as exc_info:
            await with_retry(bad, operation="bio", sleep=_no_sleep())
        assert len(calls) == 1
        assert exc_info.value.error_type == "unknown"
        assert isinstance(exc_info.value.last_error, ValueError)

    @pytest.mark.asyncio
    async def test_exhausted(self):
        async def always_limited():
            raise RateLimitError("429")

        configs = {"rate_limit": RetryConfig(max_retries=1, base_delay_s=0.0, jitter=False)}
        with pytest.raises(RetryExhausted) as exc_info:
            await with_retry(always_limited, retry_configs=configs, sleep=_no_sleep())
        assert exc_info.value.attempts == 2

    @pytest.mark.asyncio
    async def test_passes_arguments(self):
        async def add(a, b=0):
            return a + b

        assert await with_retry(add, 1, b=2, sleep=_no_sleep()) == 3


def _no_sleep():
    async def sleep(delay):
        return None

    return sleep
