"""
Pattern-based bulk key deletion for key-value backends.

Keys are enumerated with cursor-based SCAN pages and deleted one page at a
time, so memory stays bounded by the page size and the backend is never
blocked by a single huge command:

    SCAN <cursor> MATCH <pattern> COUNT 500  ->  (next_cursor, [keys])
    DEL <key1> <key2> ...                       (only when the page has keys)

The loop ends when the backend hands back cursor "0". An empty page does not
end the scan.
"""

from __future__ import annotations

from typing import Any, Protocol

from servicehub.config.environment import Environment
from servicehub.config.logging_config import get_logger
from servicehub.errors import CacheOperationError, SafetyGuardError

log = get_logger(__name__)

DEFAULT_PAGE_SIZE = 500


class CommandBackend(Protocol):
    async def raw_command(self, *args: Any) -> Any: ...


def _decode(value: Any) -> str:
    if isinstance(value, (bytes, bytearray)):
        return value.decode()
    return str(value)


class CacheKeyScanner:
    def __init__(
        self,
        backend: CommandBackend,
        environment: Environment,
        page_size: int = DEFAULT_PAGE_SIZE,
    ):
        if page_size <= 0:
            raise ValueError("page_size must be a positive integer")
        self.backend = backend
        self.environment = environment
        self.page_size = page_size

    async def clear(self, pattern: str = "*") -> int:
        """Delete every key matching ``pattern`` and return how many were deleted.

        Raises:
            SafetyGuardError: ``pattern`` is "*" in a production environment.
                No backend command is issued in that case.
            CacheOperationError: A SCAN or DEL command failed.
        """
        if self.environment.is_production() and pattern == "*":
            raise SafetyGuardError('cache clear("*") is disabled in production for safety')

        deleted = 0
        cursor = "0"
        pages = 0
        try:
            while True:
                result = await self.backend.raw_command(
                    "SCAN", cursor, "MATCH", pattern, "COUNT", str(self.page_size)
                )
                next_cursor, keys = result[0], result[1] or []
                pages += 1

                if keys:
                    await self.backend.raw_command("DEL", *keys)
                    deleted += len(keys)

                cursor = _decode(next_cursor) if next_cursor is not None else "0"
                if cursor == "0":
                    break
        except Exception as e:
            raise CacheOperationError(f"Cache clear failed: {e}") from e

        log.info(f"Cleared {deleted} key(s) matching '{pattern}' in {pages} page(s)")
        return deleted
