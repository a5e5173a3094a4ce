import asyncio
from typing import Any, Callable, Coroutine, Generic, Hashable, TypeVar

from servicehub.config.logging_config import get_logger

log = get_logger(__name__)

T = TypeVar("T")


class SingleFlight(Generic[T]):
    """
    Per-key deduplication of concurrent async work.

    The first caller for a key starts the work in a task; every caller that
    arrives while that task is in flight awaits the same task instead of
    starting another one. The key is forgotten as soon as the task settles,
    so a later call (for example a retry after a failure) starts fresh work.

    Waiters are shielded: cancelling one waiter does not cancel the shared
    task or the other waiters.

    Example:
        flight = SingleFlight()

        async def connect():
            return await open_pool(dsn)

        # Both calls share a single open_pool() invocation
        a, b = await asyncio.gather(
            flight.do("main", connect),
            flight.do("main", connect),
        )
        assert a is b
    """

    def __init__(self) -> None:
        self._calls: dict[Hashable, asyncio.Task[T]] = {}

    def __contains__(self, key: Hashable) -> bool:
        return key in self._calls

    def __len__(self) -> int:
        return len(self._calls)

    def keys(self) -> tuple[Hashable, ...]:
        """Snapshot of keys with work in flight."""
        return tuple(self._calls)

    def tasks(self) -> tuple[asyncio.Task[T], ...]:
        """Snapshot of the in-flight tasks."""
        return tuple(self._calls.values())

    def in_flight(self, key: Hashable) -> asyncio.Task[T] | None:
        return self._calls.get(key)

    def start(self, key: Hashable, func: Callable[[], Coroutine[Any, Any, T]]) -> asyncio.Task[T]:
        """Return the in-flight task for ``key``, starting ``func`` if there is none.

        Checking and inserting happen without a suspension point, which is what
        makes the map race-free under cooperative scheduling.
        """
        task = self._calls.get(key)
        if task is not None:
            log.debug(f"Joining in-flight call for {key!r}")
            return task

        task = asyncio.ensure_future(func())
        self._calls[key] = task

        def _forget(done: asyncio.Task[T]) -> None:
            if self._calls.get(key) is done:
                del self._calls[key]

        task.add_done_callback(_forget)
        return task

    async def do(self, key: Hashable, func: Callable[[], Coroutine[Any, Any, T]]) -> T:
        """Run ``func`` once per key among concurrent callers and return its result.

        Raises:
            Whatever the shared call raised; every waiter sees the same exception.
        """
        return await asyncio.shield(self.start(key, func))
