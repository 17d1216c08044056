"""Tests for the backoff wrapper around collaborator calls."""

from __future__ import annotations

import pytest

from splitter.engine.errors import (
    FailureKind,
    ServiceResponseError,
    ServiceTransientError,
    ServiceUnavailableError,
)
from splitter.llm.retry import RetryPolicy, call_with_backoff, resilient
from tests.conftest import SleepRecorder, fixed_jitter


class Flaky:
    """Fails with the given errors in order, then returns "ok"."""

    def __init__(self, *errors: BaseException) -> None:
        self.errors = list(errors)
        self.calls = 0

    async def __call__(self, *args, **kwargs) -> str:
        self.calls += 1
        if self.errors:
            raise self.errors.pop(0)
        return "ok"


def _rate_limited(n):
    return [ServiceTransientError(FailureKind.RATE_LIMIT) for _ in range(n)]


class TestPolicy:
    def test_rate_limit_formula(self):
        policy = RetryPolicy()
        assert [policy.delay(n, FailureKind.RATE_LIMIT) for n in range(4)] == [2.5, 5.0, 10.0, 20.0]

    def test_server_fault_formula(self):
        policy = RetryPolicy()
        assert policy.delay(2, FailureKind.SERVER_FAULT, jitter=0.25) == 4.25


class TestCallWithBackoff:
    @pytest.mark.asyncio
    async def test_four_rate_limits_then_success(self, sleep_recorder):
        fn = Flaky(*_rate_limited(4))

        result = await call_with_backoff(fn, sleep=sleep_recorder, jitter=fixed_jitter(0.5))

        assert result == "ok"
        assert fn.calls == 5
        assert sleep_recorder.delays == [2 ** n * 2.5 + 0.5 for n in range(4)]

    @pytest.mark.asyncio
    async def test_delay_follows_failure_kind(self, sleep_recorder):
        fn = Flaky(
            ServiceTransientError(FailureKind.SERVER_FAULT),
            ServiceTransientError(FailureKind.RATE_LIMIT),
        )
        await call_with_backoff(fn, sleep=sleep_recorder, jitter=fixed_jitter(0.0))
        assert sleep_recorder.delays == [1.0, 5.0]

    @pytest.mark.asyncio
    async def test_exhaustion(self, sleep_recorder):
        fn = Flaky(*_rate_limited(5))

        with pytest.raises(ServiceUnavailableError) as exc:
            await call_with_backoff(fn, sleep=sleep_recorder, jitter=fixed_jitter(0.0))

        assert fn.calls == 5
        assert len(sleep_recorder.delays) == 4
        assert exc.value.attempts == 5
        assert isinstance(exc.value.last_error, ServiceTransientError)

    @pytest.mark.asyncio
    async def test_custom_attempt_budget(self, sleep_recorder):
        fn = Flaky(*_rate_limited(2))
        with pytest.raises(ServiceUnavailableError):
            await call_with_backoff(
                fn, policy=RetryPolicy(max_attempts=2), sleep=sleep_recorder, jitter=fixed_jitter(0.0),
            )
        assert fn.calls == 2

    @pytest.mark.asyncio
    async def test_non_transient_not_retried(self, sleep_recorder):
        fn = Flaky(ServiceResponseError("bad json", "{"))
        with pytest.raises(ServiceResponseError):
            await call_with_backoff(fn, sleep=sleep_recorder)
        assert fn.calls == 1
        assert sleep_recorder.delays == []

    @pytest.mark.asyncio
    async def test_arguments_forwarded(self, sleep_recorder):
        seen = []

        async def echo(a, b, flag=False):
            seen.append((a, b, flag))
            return a + b

        assert await call_with_backoff(echo, 1, 2, flag=True, sleep=sleep_recorder) == 3
        assert seen == [(1, 2, True)]


class TestDecorator:
    @pytest.mark.asyncio
    async def test_wraps_callable(self):
        sleep = SleepRecorder()
        fn = Flaky(*_rate_limited(1))
        wrapped = resilient(RetryPolicy(), sleep=sleep, jitter=fixed_jitter(1.0))(fn)

        assert await wrapped("images", "instruction", True) == "ok"
        assert sleep.delays == [3.5]
