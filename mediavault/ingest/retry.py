from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Tuple, Type, TypeVar

from mediavault.core.logging import get_logger

__all__ = ["RetryExhausted", "run_with_retry"]

T = TypeVar("T")

logger = get_logger(component="retry")


class RetryExhausted(Exception):
    """Every attempt failed; ``last_error`` is the final attempt's exception."""

    def __init__(self, attempts: int, last_error: BaseException):
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"gave up after {attempts} attempt(s): {last_error}")


async def run_with_retry(
    operation: Callable[[], Awaitable[T]],
    *,
    max_attempts: int = 3,
    initial_delay: float = 1.0,
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """Await ``operation`` until it succeeds, doubling the pause between attempts.

    Exceptions outside ``retry_on`` propagate immediately. When the last
    attempt fails, :class:`RetryExhausted` is raised from the final error.
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    delay = initial_delay
    for attempt in range(1, max_attempts + 1):
        try:
            return await operation()
        except retry_on as exc:
            if attempt == max_attempts:
                logger.warning("retry_exhausted", attempts=attempt, error=str(exc))
                raise RetryExhausted(attempt, exc) from exc
            logger.info("retry_scheduled", attempt=attempt, delay_s=delay, error=str(exc))
            await sleep(delay)
            delay *= 2
    raise AssertionError("unreachable")
