"""
Redis client resource.

Exposes the key-value command interface (raw_command) the cache layer is
built on.
"""

import asyncio
from typing import Any, Optional

import redis.asyncio as redis
from redis.asyncio.connection import ConnectionPool

from servicehub.config.logging_config import get_logger
from servicehub.runtime.adapters import ResourceAdapter
from servicehub.runtime.types import RedisConfig, ResourceKind

log = get_logger(__name__)


class RedisAdapter(ResourceAdapter):
    kind = ResourceKind.REDIS

    def __init__(self, config: RedisConfig):
        super().__init__(config)
        self.config: RedisConfig = config
        self._pool: Optional[ConnectionPool] = None
        self._client: Optional[redis.Redis] = None
        self._lock = asyncio.Lock()

    @property
    def client(self) -> redis.Redis:
        if self._client is None:
            raise RuntimeError("Redis client is not connected")
        return self._client

    def _build_pool(self) -> ConnectionPool:
        options: dict[str, Any] = {
            "max_connections": self.config.max_connections,
            "socket_timeout": self.config.socket_timeout,
            "socket_connect_timeout": self.config.socket_connect_timeout,
            "decode_responses": True,
        }
        if self.config.url:
            return ConnectionPool.from_url(self.config.url, **options)
        connection_class = redis.SSLConnection if self.config.ssl else redis.Connection
        return ConnectionPool(
            host=self.config.host,
            port=self.config.port,
            db=self.config.db,
            password=self.config.password,
            connection_class=connection_class,
            **options,
        )

    async def open(self) -> None:
        async with self._lock:
            if self._client is not None:
                return
            pool = self._build_pool()
            client = redis.Redis(connection_pool=pool)
            try:
                await client.ping()
            except Exception:
                await client.aclose()
                await pool.disconnect()
                raise
            self._pool = pool
            self._client = client
            log.info(f"Connected to Redis at {self.config.url or f'{self.config.host}:{self.config.port}'}")

    async def raw_command(self, *args: Any) -> Any:
        """Send a command verbatim, e.g. ``raw_command("SET", "k", "v", "EX", 60)``."""
        return await self.client.execute_command(*args)

    async def probe(self) -> bool:
        return bool(await self.client.ping())

    async def close(self) -> None:
        async with self._lock:
            if self._client is not None:
                client, self._client = self._client, None
                await client.aclose()
            if self._pool is not None:
                pool, self._pool = self._pool, None
                await pool.disconnect()
            log.debug("Disconnected from Redis")
