"""Resilience wrapper: exponential backoff with jitter around collaborator calls.

Only ServiceTransientError is retried. The delay before retry n (0-based) is

    2**n * base + uniform(0, jitter_max)

where base depends on the failure kind (rate limits back off harder than
server faults). Exhausting every attempt raises ServiceUnavailableError;
anything else propagates on first occurrence.
"""

from __future__ import annotations

import asyncio
import functools
import logging
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, TypeVar

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    RetryError,
    retry_if_exception_type,
    stop_after_attempt,
)

from splitter.engine.errors import FailureKind, ServiceTransientError, ServiceUnavailableError

logger = logging.getLogger(__name__)

T = TypeVar("T")

SleepFn = Callable[[float], Awaitable[None]]
JitterFn = Callable[[float, float], float]


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 5
    rate_limit_base: float = 2.5    # seconds
    server_fault_base: float = 1.0  # seconds
    jitter_max: float = 1.0         # seconds

    def base_delay(self, kind: FailureKind) -> float:
        return self.rate_limit_base if kind is FailureKind.RATE_LIMIT else self.server_fault_base

    def delay(self, attempt: int, kind: FailureKind, jitter: float = 0.0) -> float:
        return (2 ** attempt) * self.base_delay(kind) + jitter


class _BackoffWait:
    """tenacity wait strategy keyed on the failure kind of the last attempt."""

    def __init__(self, policy: RetryPolicy, jitter: JitterFn) -> None:
        self.policy = policy
        self.jitter = jitter

    def __call__(self, retry_state: RetryCallState) -> float:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        kind = exc.kind if isinstance(exc, ServiceTransientError) else FailureKind.SERVER_FAULT
        return self.policy.delay(
            retry_state.attempt_number - 1,
            kind,
            self.jitter(0.0, self.policy.jitter_max),
        )


def _log_retry(max_attempts: int) -> Callable[[RetryCallState], None]:
    def before_sleep(retry_state: RetryCallState) -> None:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        kind = exc.kind.value if isinstance(exc, ServiceTransientError) else "unknown"
        delay = retry_state.next_action.sleep if retry_state.next_action else 0.0
        logger.warning(
            "Collaborator call limited (%s), retry %d/%d in %.0fms",
            kind,
            retry_state.attempt_number,
            max_attempts,
            delay * 1000,
        )

    return before_sleep


async def call_with_backoff(
    fn: Callable[..., Awaitable[T]],
    *args: Any,
    policy: RetryPolicy | None = None,
    sleep: SleepFn = asyncio.sleep,
    jitter: JitterFn = random.uniform,
    **kwargs: Any,
) -> T:
    """Await fn(*args, **kwargs), retrying transient failures per policy."""
    policy = policy or RetryPolicy()
    retrying = AsyncRetrying(
        stop=stop_after_attempt(policy.max_attempts),
        retry=retry_if_exception_type(ServiceTransientError),
        wait=_BackoffWait(policy, jitter),
        sleep=sleep,
        before_sleep=_log_retry(policy.max_attempts),
    )
    try:
        return await retrying(fn, *args, **kwargs)
    except RetryError as e:
        last = e.last_attempt.exception()
        raise ServiceUnavailableError(
            f"collaborator unavailable after {policy.max_attempts} attempts: {last}",
            attempts=policy.max_attempts,
            last_error=last,
        ) from last


def resilient(
    policy: RetryPolicy | None = None,
    *,
    sleep: SleepFn = asyncio.sleep,
    jitter: JitterFn = random.uniform,
) -> Callable[[Callable[..., Awaitable[T]]], Callable[..., Awaitable[T]]]:
    """Decorator form of call_with_backoff."""

    def decorator(fn: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        @functools.wraps(fn)
        async def wrapper(*args: Any, **kwargs: Any) -> T:
            return await call_with_backoff(
                fn, *args, policy=policy, sleep=sleep, jitter=jitter, **kwargs,
            )

        return wrapper

    return decorator
