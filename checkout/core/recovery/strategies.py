"""
Retry Strategy

Bounded, fixed-delay retries over operations that return Results.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, TypeVar

from .errors import classify_error
from .result import Result

T = TypeVar("T")

Sleep = Callable[[float], Awaitable[Any]]


@dataclass(frozen=True)
class RetryConfig:
    """Attempt budget and the fixed delay between attempts."""

    max_attempts: int = 8
    delay_seconds: float = 3.0

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.delay_seconds < 0:
            raise ValueError("delay_seconds must not be negative")


class RetryStrategy:
    """
    Runs an operation up to `max_attempts` times.

    - A successful Result is returned immediately.
    - A non-retryable failure is returned immediately.
    - A retryable failure waits `delay_seconds` and tries again; after the
      last attempt the final failure is returned.

    Exceptions raised by the operation are classified with `classify_error`
    and treated as failed Results.
    """

    def __init__(
        self,
        config: Optional[RetryConfig] = None,
        *,
        sleep: Optional[Sleep] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.config = config or RetryConfig()
        self._sleep = sleep or asyncio.sleep
        self.logger = logger or logging.getLogger(__name__)

    async def execute(
        self,
        operation: Callable[[], Awaitable[Result[T]]],
        operation_name: str = "operation",
    ) -> Result[T]:
        max_attempts = self.config.max_attempts
        attempt = 0

        while True:
            attempt += 1
            result = await self._run_once(operation)
            failure = result.failure

            if failure is None:
                if attempt > 1:
                    self.logger.info(f"{operation_name} succeeded on attempt {attempt}/{max_attempts}")
                return result.with_attempts(attempt)

            if not failure.retryable:
                self.logger.error(
                    f"{operation_name} failed with non-retryable error on attempt "
                    f"{attempt}/{max_attempts}: {failure.message}"
                )
                return result.with_attempts(attempt)

            if attempt >= max_attempts:
                self.logger.error(f"{operation_name} failed after {max_attempts} attempts: {failure.message}")
                return result.with_attempts(attempt)

            self.logger.warning(
                f"{operation_name} attempt {attempt}/{max_attempts} failed: "
                f"{failure.message}. Retrying in {self.config.delay_seconds:.1f}s"
            )
            await self._sleep(self.config.delay_seconds)

    async def _run_once(self, operation: Callable[[], Awaitable[Result[T]]]) -> Result[T]:
        try:
            return await operation()
        except Exception as e:
            ctx = classify_error(e)
            return Result.failed(
                str(e) or e.__class__.__name__,
                retryable=ctx.recoverable,
                category=ctx.category,
            )


async def with_retry(
    operation: Callable[[], Awaitable[Result[T]]],
    max_attempts: int,
    delay: float,
    *,
    operation_name: str = "operation",
    sleep: Optional[Sleep] = None,
) -> Result[T]:
    """Convenience wrapper: run `operation` under a one-off RetryStrategy."""
    strategy = RetryStrategy(RetryConfig(max_attempts=max_attempts, delay_seconds=delay), sleep=sleep)
    return await strategy.execute(operation, operation_name=operation_name)
