import asyncio
from typing import Any, Callable, TypeVar

T = TypeVar("T")


class TimeoutError(Exception):
    """Raised when an operation times out."""

    def __init__(self, timeout_seconds: float, message: str | None = None):
        self.timeout_seconds = timeout_seconds
        self.message = message or f"Operation timed out after {timeout_seconds}s"
        super().__init__(self.message)


async def with_timeout(
    coro: Callable[..., Any],
    timeout_seconds: float,
    timeout_exception: type[Exception] = TimeoutError,
    exception_message: str | None = None,
) -> Any:
    """
    Run an async callable, cancelling it when the timeout elapses.

    Args:
        coro: Async callable to execute.
        timeout_seconds: Timeout in seconds.
        timeout_exception: Exception type to raise on timeout (default: TimeoutError).
        exception_message: Custom error message (optional).

    Returns:
        The result of the coroutine.

    Raises:
        timeout_exception: If the operation times out. The pending work is
        cancelled before the exception is raised.

    Example:
        response = await with_timeout(
            lambda: client.post(url, json=payload),
            timeout_seconds=5.0,
        )
    """
    try:
        return await asyncio.wait_for(coro(), timeout=timeout_seconds)
    except asyncio.TimeoutError:
        raise timeout_exception(
            timeout_seconds,
            exception_message or f"Operation timed out after {timeout_seconds}s",
        ) from None
