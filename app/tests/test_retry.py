"""Tests for the bounded backoff controller."""

from __future__ import annotations

import asyncio

import pytest

from app.core.errors import ProviderUnavailableError, RateLimitedError
from app.services.retry import backoff_delay, with_retry


class _Flaky:
    def __init__(self, failures: list) -> None:
        self.failures = list(failures)
        self.calls = 0

    async def __call__(self) -> str:
        self.calls += 1
        if self.failures:
            raise self.failures.pop(0)
        return "ok"


def test_backoff_delay_doubles_and_caps() -> None:
    assert [backoff_delay(n, 1.0, 30.0) for n in range(6)] == [1.0, 2.0, 4.0, 8.0, 16.0, 30.0]


def test_rate_limited_call_is_retried_until_success(virtual_clock) -> None:
    call = _Flaky([RateLimitedError("slow down", "openrouter", retry_after_seconds=60)] * 2)

    result = asyncio.run(with_retry(call, max_retries=3, sleep=virtual_clock.sleep))

    assert result == "ok"
    assert call.calls == 3
    assert virtual_clock.sleeps == [1.0, 2.0]


def test_retry_hint_shorter_than_backoff_wins(virtual_clock) -> None:
    call = _Flaky([RateLimitedError("slow down", retry_after_seconds=0.25)] * 3)

    asyncio.run(with_retry(call, max_retries=3, sleep=virtual_clock.sleep))

    assert virtual_clock.sleeps == [0.25, 0.25, 0.25]


def test_exhausted_retries_reraise_last_rate_limit(virtual_clock) -> None:
    errors = [RateLimitedError(f"attempt {n}", retry_after_seconds=60) for n in range(4)]
    call = _Flaky(errors)

    with pytest.raises(RateLimitedError) as excinfo:
        asyncio.run(with_retry(call, max_retries=3, sleep=virtual_clock.sleep))

    assert excinfo.value is errors[-1]
    assert call.calls == 4
    assert len(virtual_clock.sleeps) == 3


def test_other_errors_are_not_retried(virtual_clock) -> None:
    call = _Flaky([ProviderUnavailableError("down", "gemini")])

    with pytest.raises(ProviderUnavailableError):
        asyncio.run(with_retry(call, max_retries=3, sleep=virtual_clock.sleep))

    assert call.calls == 1
    assert virtual_clock.sleeps == []


def test_zero_retries_fails_on_first_rate_limit(virtual_clock) -> None:
    call = _Flaky([RateLimitedError("slow down")])

    with pytest.raises(RateLimitedError):
        asyncio.run(with_retry(call, max_retries=0, sleep=virtual_clock.sleep))

    assert call.calls == 1
