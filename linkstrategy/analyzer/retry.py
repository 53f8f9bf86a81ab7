"""
Retry/Backoff Wrapper

One combinator reused by every generation phase and the keyword metrics client:
- transient failures (overload, unavailability, rate limiting) are retried
  with exponential backoff plus jitter
- permanent failures are re-raised on the first occurrence
- after the last attempt the last error is re-raised
"""

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

TRANSIENT_STATUS_CODES = frozenset({429, 500, 502, 503, 504, 529})
TRANSIENT_MARKERS = ("503", "429", "unavailable", "overloaded", "rate limit")

MAX_JITTER = 1.0  # seconds


def is_transient_error(exc: BaseException) -> bool:
    """Classify an upstream error as transient (worth retrying) or permanent."""
    if getattr(exc, "transient", False):
        return True
    if getattr(exc, "status_code", None) in TRANSIENT_STATUS_CODES:
        return True
    message = str(exc).lower()
    return any(marker in message for marker in TRANSIENT_MARKERS)


def backoff_delay(attempt: int, initial_delay: float) -> float:
    """Delay before retry number `attempt + 1`, in seconds."""
    return initial_delay * (2 ** attempt) + random.uniform(0, MAX_JITTER)


@dataclass
class RetryPolicy:
    """Retry parameters shared by all phases of a run."""
    max_retries: int = 4
    initial_delay: float = 1.0
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep

    @classmethod
    def from_settings(cls, settings) -> "RetryPolicy":
        return cls(
            max_retries=settings.GENERATION_MAX_RETRIES,
            initial_delay=settings.GENERATION_INITIAL_DELAY,
        )


async def call_with_retry(
    fn: Callable[[], Awaitable[T]],
    *,
    max_retries: int = 4,
    initial_delay: float = 1.0,
    is_transient: Callable[[BaseException], bool] = is_transient_error,
    on_retry: Optional[Callable[[int, float], None]] = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """
    Invoke `fn` up to `max_retries` times.

    Args:
        fn: Zero-argument coroutine factory, called once per attempt
        max_retries: Total number of attempts
        initial_delay: Base delay in seconds, doubled every attempt
        is_transient: Error classifier
        on_retry: Called with (attempt number, delay) before each sleep
        sleep: Awaitable sleep function

    Returns:
        The first successful result

    Raises:
        The permanent error, or the last transient error once attempts run out
    """
    if max_retries < 1:
        raise ValueError("max_retries must be at least 1")

    for attempt in range(max_retries):
        try:
            return await fn()
        except Exception as e:
            last_attempt = attempt == max_retries - 1
            if not is_transient(e) or last_attempt:
                raise

            delay = backoff_delay(attempt, initial_delay)
            logger.warning(
                f"Transient failure (attempt {attempt + 1}/{max_retries}), "
                f"retrying in {delay:.1f}s: {e}"
            )
            if on_retry is not None:
                try:
                    on_retry(attempt + 1, delay)
                except Exception as callback_error:
                    logger.error(f"Retry callback failed: {callback_error}")
            await sleep(delay)

    # Unreachable: the loop either returns or raises
    raise RuntimeError("call_with_retry exhausted without result")


async def call_with_policy(
    fn: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    on_retry: Optional[Callable[[int, float], None]] = None,
) -> T:
    return await call_with_retry(
        fn,
        max_retries=policy.max_retries,
        initial_delay=policy.initial_delay,
        on_retry=on_retry,
        sleep=policy.sleep,
    )
