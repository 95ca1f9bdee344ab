"""Bounded exponential backoff shared by the dispatch queue and the resource cache."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, TypeVar

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
)


logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """Retry configuration."""
    max_retries: int = 3                # Retries after the first attempt
    backoff_base_seconds: float = 0.5   # Delay before the first retry
    backoff_max_seconds: float = 10.0   # Cap on any single delay
    timeout_seconds: float | None = 5.0 # Per-attempt timeout (None = unbounded)

    def __post_init__(self):
        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        if self.backoff_base_seconds < 0:
            raise ValueError("backoff_base_seconds must be >= 0")

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1

    def delay_for(self, attempt: int) -> float:
        """Backoff before retry number `attempt` (0-based)."""
        return min(self.backoff_base_seconds * (2 ** attempt), self.backoff_max_seconds)


async def retry_async(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    *,
    is_retryable: Callable[[BaseException], bool],
    retry_after: Callable[[BaseException], float | None] | None = None,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    description: str = "operation",
) -> T:
    """
    Run `operation` with a per-attempt timeout and exponential backoff.

    A timed-out attempt counts as retryable. Non-retryable exceptions
    propagate immediately; after the last attempt the last exception
    propagates.
    """
    def should_retry(error: BaseException) -> bool:
        if isinstance(error, asyncio.CancelledError):
            return False
        return isinstance(error, asyncio.TimeoutError) or is_retryable(error)

    def wait(state: RetryCallState) -> float:
        # Server hints (Retry-After) may lengthen the delay, never shorten it
        delay = policy.delay_for(state.attempt_number - 1)
        error = state.outcome.exception() if state.outcome else None
        hint = retry_after(error) if retry_after is not None and error is not None else None
        return max(delay, hint) if hint is not None else delay

    def log_retry(state: RetryCallState) -> None:
        error = state.outcome.exception() if state.outcome else None
        reason = "timeout" if isinstance(error, asyncio.TimeoutError) else repr(error)
        logger.warning(
            f"{description} attempt {state.attempt_number}/{policy.max_attempts} failed "
            f"({reason}), retrying in {state.next_action.sleep:.2f}s"
        )

    async for attempt in AsyncRetrying(
        stop=stop_after_attempt(policy.max_attempts),
        wait=wait,
        retry=retry_if_exception(should_retry),
        before_sleep=log_retry,
        sleep=sleep,
        reraise=True,
    ):
        with attempt:
            if policy.timeout_seconds is None:
                return await operation()
            return await asyncio.wait_for(operation(), timeout=policy.timeout_seconds)

    raise AssertionError("unreachable")
