import asyncio
import functools
import random
from collections.abc import Callable
from typing import Any, Coroutine, TypeVar

from servicehub.config.logging_config import get_logger

log = get_logger(__name__)

T = TypeVar("T")


def backoff_delay(
    attempt: int,
    initial_delay: float,
    exponential_base: float = 2.0,
    max_delay: float = 60.0,
    jitter: float = 0.0,
) -> float:
    """
    Delay to wait after the given failed attempt (1-based).

    delay = min(initial_delay * exponential_base ** (attempt - 1), max_delay) + uniform(0, jitter)
    """
    delay = min(initial_delay * (exponential_base ** (attempt - 1)), max_delay)
    if jitter > 0:
        delay += random.uniform(0, jitter)
    return delay


async def retry_with_exponential_backoff(
    func: Callable[[], Coroutine[Any, Any, T]],
    max_retries: int = 3,
    initial_delay: float = 1.0,
    max_delay: float = 60.0,
    exponential_base: float = 2.0,
    jitter: float = 0.1,
    retryable_exceptions: tuple[type[BaseException], ...] = (Exception,),
    retryable_predicate: Callable[[BaseException], bool] | None = None,
) -> T:
    """
    Retry an async function with exponential backoff and additive jitter.

    The function is attempted at most ``max_retries + 1`` times. After the
    n-th failed attempt the call sleeps for
    ``initial_delay * exponential_base ** (n - 1)`` seconds (capped at
    ``max_delay``) plus a uniform random jitter in ``[0, jitter]`` seconds.

    Args:
        func: Async function to execute and retry on failure.
        max_retries: Additional attempts after the first one. Use -1 for unlimited.
        initial_delay: Delay in seconds after the first failure.
        max_delay: Cap for the exponential part of the delay.
        exponential_base: Growth factor between consecutive delays.
        jitter: Upper bound in seconds of the random delay added to each wait.
        retryable_exceptions: Exception types that trigger a retry.
        retryable_predicate: Optional extra filter; returning False re-raises immediately.

    Returns:
        The return value of the first successful attempt.

    Raises:
        The last exception once the attempts are exhausted.

    Example:
        async def ping():
            async with httpx.AsyncClient() as client:
                response = await client.post(url, json=payload)
                response.raise_for_status()

        await retry_with_exponential_backoff(
            ping,
            max_retries=2,
            initial_delay=0.3,
            retryable_exceptions=(httpx.HTTPError,),
        )
    """
    if max_retries < -1:
        raise ValueError("max_retries must be -1 (unlimited) or >= 0")

    attempt = 0

    while True:
        attempt += 1
        try:
            return await func()
        except retryable_exceptions as e:
            if retryable_predicate is not None and not retryable_predicate(e):
                raise
            if max_retries != -1 and attempt > max_retries:
                log.debug(
                    f"Operation failed after {attempt} attempt(s): {e}",
                    extra={"attempt": attempt, "max_retries": max_retries},
                )
                raise

            delay = backoff_delay(attempt, initial_delay, exponential_base, max_delay, jitter)
            log.debug(
                f"Operation failed (attempt {attempt}), retrying in {delay:.2f}s: {e}",
                extra={"attempt": attempt, "next_delay": delay},
            )
            await asyncio.sleep(delay)


class RetryPolicy:
    """
    A reusable retry configuration.

    Example:
        policy = RetryPolicy(max_retries=2, initial_delay=0.3, jitter=0.1)
        response = await policy.execute(lambda: send(payload))

        @RetryPolicy(max_retries=3, initial_delay=0.5)
        async def fetch():
            ...
    """

    def __init__(
        self,
        max_retries: int = 3,
        initial_delay: float = 1.0,
        max_delay: float = 60.0,
        exponential_base: float = 2.0,
        jitter: float = 0.1,
        retryable_exceptions: tuple[type[BaseException], ...] = (Exception,),
        retryable_predicate: Callable[[BaseException], bool] | None = None,
    ):
        self.max_retries: int = max_retries
        self.initial_delay: float = initial_delay
        self.max_delay: float = max_delay
        self.exponential_base: float = exponential_base
        self.jitter: float = jitter
        self.retryable_exceptions: tuple[type[BaseException], ...] = retryable_exceptions
        self.retryable_predicate: Callable[[BaseException], bool] | None = retryable_predicate

    @property
    def max_attempts(self) -> int:
        """Total attempts including the first one, -1 when unlimited."""
        return -1 if self.max_retries == -1 else self.max_retries + 1

    async def execute(self, func: Callable[[], Coroutine[Any, Any, T]]) -> T:
        """Execute a function with this retry policy."""
        return await retry_with_exponential_backoff(
            func=func,
            max_retries=self.max_retries,
            initial_delay=self.initial_delay,
            max_delay=self.max_delay,
            exponential_base=self.exponential_base,
            jitter=self.jitter,
            retryable_exceptions=self.retryable_exceptions,
            retryable_predicate=self.retryable_predicate,
        )

    def __call__(self, func: Callable[[], Coroutine[Any, Any, T]]) -> Callable[[], Coroutine[Any, Any, T]]:
        @functools.wraps(func)
        async def wrapper() -> T:
            return await self.execute(func)

        return wrapper


__all__ = ["RetryPolicy", "backoff_delay", "retry_with_exponential_backoff"]
