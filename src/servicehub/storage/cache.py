"""
JSON cache on top of a key-value resource.

Usage:
    redis = await registry.acquire("cache", "redis", RedisConfig(url="redis://localhost"))
    cache = CacheService(redis, environment)

    await cache.set("user:123", {"name": "Ada"}, ttl=3600)
    user = await cache.get("user:123")
    removed = await cache.clear("user:*")
"""

from __future__ import annotations

import json
from typing import Any, Optional, Sequence

from servicehub.config.environment import Environment
from servicehub.config.logging_config import get_logger
from servicehub.errors import CacheOperationError, ConfigurationError
from servicehub.runtime.types import ResourceKind
from servicehub.storage.key_scanner import CacheKeyScanner, CommandBackend

log = get_logger(__name__)


class CacheService:
    """High-level cache operations with automatic JSON serialization."""

    def __init__(self, backend: CommandBackend, environment: Optional[Environment] = None):
        if getattr(backend, "kind", None) != ResourceKind.REDIS:
            raise ConfigurationError("CacheService requires a redis resource")
        self.backend = backend
        self.environment = environment or Environment()
        self.scanner = CacheKeyScanner(backend, self.environment)

    async def _command(self, operation: str, *args: Any) -> Any:
        try:
            return await self.backend.raw_command(*args)
        except Exception as e:
            raise CacheOperationError(f"Cache {operation} failed: {e}") from e

    @staticmethod
    def _loads(value: Any) -> Any:
        if value is None:
            return None
        try:
            return json.loads(value)
        except (TypeError, ValueError):
            return value

    async def get(self, key: str) -> Any:
        """Return the decoded value or None when the key is missing."""
        return self._loads(await self._command("get", "GET", key))

    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        """Store ``value`` as JSON, expiring after ``ttl`` seconds when given."""
        serialized = json.dumps(value, default=str)
        if ttl:
            await self._command("set", "SET", key, serialized, "EX", int(ttl))
        else:
            await self._command("set", "SET", key, serialized)

    async def delete(self, key: str) -> int:
        return int(await self._command("delete", "DEL", key))

    async def delete_many(self, keys: Sequence[str]) -> int:
        if not keys:
            return 0
        return int(await self._command("delete_many", "DEL", *keys))

    async def exists(self, key: str) -> bool:
        return int(await self._command("exists", "EXISTS", key)) == 1

    async def ttl(self, key: str) -> int:
        """Remaining time to live in seconds; -1 without expiry, -2 when missing."""
        return int(await self._command("ttl", "TTL", key))

    async def expire(self, key: str, seconds: int) -> bool:
        return bool(await self._command("expire", "EXPIRE", key, int(seconds)))

    async def incr(self, key: str) -> int:
        return int(await self._command("incr", "INCR", key))

    async def incr_by(self, key: str, increment: int) -> int:
        return int(await self._command("incr_by", "INCRBY", key, int(increment)))

    async def decr(self, key: str) -> int:
        return int(await self._command("decr", "DECR", key))

    async def mget(self, keys: Sequence[str]) -> list[Any]:
        """Values for ``keys`` in order, None for missing keys."""
        if not keys:
            return []
        values = await self._command("mget", "MGET", *keys)
        return [self._loads(v) for v in values]

    async def mset(self, entries: Sequence[tuple[str, Any]]) -> None:
        """Store several values at once (no TTL; use set() for that)."""
        if not entries:
            return
        args: list[Any] = []
        for key, value in entries:
            args.extend((key, json.dumps(value, default=str)))
        await self._command("mset", "MSET", *args)

    async def clear(self, pattern: str = "*") -> int:
        """Delete keys matching ``pattern``. See CacheKeyScanner.clear."""
        return await self.scanner.clear(pattern)

    async def stats(self) -> dict[str, str]:
        info = await self._command("stats", "INFO", "stats")
        if isinstance(info, dict):
            return {str(k): str(v) for k, v in info.items()}

        stats: dict[str, str] = {}
        text = info.decode() if isinstance(info, (bytes, bytearray)) else str(info)
        for line in text.splitlines():
            if not line or line.startswith("#") or ":" not in line:
                continue
            key, value = line.split(":", 1)
            stats[key.strip()] = value.strip()
        return stats
