# Copyright (c) 2024 Mountain Jewels Intelligence. All rights reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# modification, distribution, or use is strictly prohibited.

"""
Retry Policy for the Social Presence Scraper

One backoff policy object shared by every outbound call: how many attempts,
how long to wait between them, and which failures deserve another try.
"""

import asyncio
import functools
import logging
import random
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, List, Optional, Tuple, Type, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar('T')

SleepFunc = Callable[[float], Awaitable[None]]


@dataclass
class RetryPolicy:
    """
    Exponential backoff with jitter.

    The wait after attempt n is base_delay * backoff_factor ** (n - 1), capped
    at max_delay. A `retryable` predicate, when given, replaces the
    exception-type check.
    """
    max_attempts: int = 3
    base_delay: float = 1.0
    max_delay: float = 60.0
    backoff_factor: float = 2.0
    jitter_factor: float = 0.1  # 0 disables jitter
    retry_on: Tuple[Type[BaseException], ...] = ()
    retryable: Optional[Callable[[BaseException], bool]] = None
    sleep: SleepFunc = asyncio.sleep

    def delay_for(self, attempt: int) -> float:
        delay = min(self.base_delay * (self.backoff_factor ** (attempt - 1)), self.max_delay)
        if self.jitter_factor:
            spread = delay * self.jitter_factor
            delay = max(0.1, delay + random.uniform(-spread, spread))
        return delay

    def should_retry(self, error: BaseException) -> bool:
        if self.retryable is not None:
            return self.retryable(error)
        return isinstance(error, self.retry_on)


@dataclass
class Attempt:
    number: int
    error: str
    delay: Optional[float] = None


@dataclass
class RetryOutcome:
    attempts: List[Attempt] = field(default_factory=list)
    last_exception: Optional[BaseException] = None

    @property
    def delays(self) -> List[float]:
        return [a.delay for a in self.attempts if a.delay is not None]


class RetryError(Exception):
    """Every attempt failed with a retryable error."""

    def __init__(self, message: str, outcome: RetryOutcome):
        super().__init__(message)
        self.outcome = outcome

    @property
    def attempts(self) -> int:
        return len(self.outcome.attempts)

    @property
    def last_exception(self) -> Optional[BaseException]:
        return self.outcome.last_exception


async def call_with_retry(func: Callable[..., Awaitable[T]], policy: RetryPolicy,
                          *args, **kwargs) -> T:
    """
    Await func(*args, **kwargs) under `policy`.

    Raises:
        RetryError: If the last permitted attempt failed with a retryable error.
        Any non-retryable exception is re-raised unchanged on first sight.
    """
    name = getattr(func, '__name__', repr(func))
    outcome = RetryOutcome()

    for number in range(1, policy.max_attempts + 1):
        try:
            return await func(*args, **kwargs)
        except Exception as e:
            if not policy.should_retry(e):
                raise
            outcome.last_exception = e
            attempt = Attempt(number=number, error=f"{type(e).__name__}: {e}")
            outcome.attempts.append(attempt)
            if number == policy.max_attempts:
                logger.error(f"{name} failed after {number} attempts: {e}")
                raise RetryError(f"{name} failed after {number} attempts", outcome) from e

            attempt.delay = policy.delay_for(number)
            logger.warning(f"{name} failed on attempt {number}: {e}. "
                           f"Retrying in {attempt.delay:.2f}s")
            await policy.sleep(attempt.delay)

    raise RetryError(f"{name} was never attempted (max_attempts={policy.max_attempts})", outcome)


def retry_async(policy: Optional[RetryPolicy] = None):
    """Decorator form of call_with_retry."""
    policy = policy or RetryPolicy()

    def decorator(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        @functools.wraps(func)
        async def wrapper(*args, **kwargs) -> T:
            return await call_with_retry(func, policy, *args, **kwargs)
        return wrapper
    return decorator
