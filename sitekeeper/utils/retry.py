"""Bounded retry with backoff, shared by dependency install and merge polling."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Generic, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class RetryResult(Generic[T]):
    value: Optional[T] = None
    attempts: int = 0
    stopped: bool = False  # should_stop accepted a value before the budget ran out
    error: Optional[BaseException] = None  # last retryable error, if the final attempt raised

    @property
    def exhausted(self) -> bool:
        return not self.stopped


async def retry_async(
    operation: Callable[[int], Awaitable[T]],
    *,
    max_attempts: int,
    delay_seconds: float,
    backoff: float = 1.0,
    should_stop: Callable[[T], bool] = lambda value: True,
    retry_on: Callable[[BaseException], bool] = lambda exc: False,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    label: str = "operation",
) -> RetryResult[T]:
    """Call ``operation(attempt)`` until ``should_stop`` accepts its value.

    Exceptions for which ``retry_on`` is false propagate immediately. Retryable
    exceptions and rejected values wait ``delay_seconds`` (multiplied by
    ``backoff`` after each attempt) and try again, at most ``max_attempts`` times.
    There is no sleep after the final attempt.
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    result: RetryResult[T] = RetryResult()
    delay = delay_seconds
    for attempt in range(1, max_attempts + 1):
        result.attempts = attempt
        try:
            value = await operation(attempt)
        except Exception as e:
            if not retry_on(e):
                raise
            logger.warning("%s failed (attempt %d/%d): %s", label, attempt, max_attempts, e)
            result.error = e
        else:
            result.value = value
            result.error = None
            if should_stop(value):
                result.stopped = True
                return result

        if attempt < max_attempts:
            logger.debug("Retrying %s in %.1fs", label, delay)
            await sleep(delay)
            delay *= backoff

    logger.warning("%s gave up after %d attempts", label, max_attempts)
    return result
