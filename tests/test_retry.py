"""Tests for the retry policy."""

import asyncio

import pytest

from goap_kernel.errors import PermanentProviderError, TransientProviderError
from goap_kernel.gateway.retry import RetryPolicy, is_retryable
from goap_kernel.models.config import RetryConfig


def _make_policy(**config):
    delays = []

    async def fake_sleep(seconds):
        delays.append(seconds)

    return RetryPolicy(RetryConfig(**config), sleep=fake_sleep), delays


def _flaky(failures, exc_factory, value="ok"):
    calls = {"n": 0}

    async def fn():
        calls["n"] += 1
        if calls["n"] <= failures:
            raise exc_factory()
        return value

    return fn, calls


class TestRetryPolicy:
    async def test_succeeds_after_transient_failures(self):
        policy, delays = _make_policy(retries=3)
        fn, calls = _flaky(2, lambda: TransientProviderError("503", provider="a"))

        assert await policy.run(fn) == "ok"
        assert calls["n"] == 3
        assert delays == [1.0, 2.0]

    async def test_budget_exhausted_raises_last_error(self):
        policy, delays = _make_policy(retries=2)
        fn, calls = _flaky(10, lambda: TransientProviderError("timeout", provider="a"))

        with pytest.raises(TransientProviderError):
            await policy.run(fn)

        assert calls["n"] == 3
        assert len(delays) == 2

    async def test_permanent_error_not_retried(self):
        policy, delays = _make_policy(retries=3)
        fn, calls = _flaky(10, lambda: PermanentProviderError("bad key", provider="a"))

        with pytest.raises(PermanentProviderError):
            await policy.run(fn)

        assert calls["n"] == 1
        assert delays == []

    async def test_backoff_is_capped(self):
        policy, delays = _make_policy(retries=5, min_delay_seconds=1, max_delay_seconds=5)
        fn, _ = _flaky(5, lambda: TimeoutError("slow"))

        await policy.run(fn)

        assert delays == [1.0, 2.0, 4.0, 5.0, 5.0]

    async def test_zero_retries(self):
        policy, _ = _make_policy(retries=0)
        fn, calls = _flaky(1, lambda: ConnectionError("reset"))

        with pytest.raises(ConnectionError):
            await policy.run(fn)
        assert calls["n"] == 1

    async def test_on_retry_callback(self):
        policy, _ = _make_policy(retries=2)
        fn, _ = _flaky(1, lambda: TransientProviderError("429", provider="a"))
        seen = []

        await policy.run(fn, on_retry=lambda exc, attempt: seen.append(attempt))

        assert seen == [1]


class TestIsRetryable:
    def test_classification(self):
        assert is_retryable(TransientProviderError("x")) is True
        assert is_retryable(PermanentProviderError("x")) is False
        assert is_retryable(asyncio.TimeoutError()) is True
        assert is_retryable(ConnectionResetError()) is True
        assert is_retryable(ValueError("x")) is False
