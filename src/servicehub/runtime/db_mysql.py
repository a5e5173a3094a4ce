"""
MySQL connection pool resource.

Wraps an aiomysql pool behind the ResourceAdapter interface.
"""

import ssl
from typing import Any, Optional, Sequence

import aiomysql

from servicehub.config.logging_config import get_logger
from servicehub.runtime.adapters import ResourceAdapter
from servicehub.runtime.types import MySQLConfig, ResourceKind

log = get_logger(__name__)


class MySQLAdapter(ResourceAdapter):
    """Async connection pool for MySQL."""

    kind = ResourceKind.MYSQL

    def __init__(self, config: MySQLConfig):
        super().__init__(config)
        self.config: MySQLConfig = config
        self._pool: Optional[aiomysql.Pool] = None

    @property
    def pool(self) -> aiomysql.Pool:
        if self._pool is None:
            raise RuntimeError("MySQL pool is not open")
        return self._pool

    async def open(self) -> None:
        if self._pool is not None:
            return
        kwargs = self.config.connect_kwargs()
        if self.config.ssl:
            kwargs["ssl"] = ssl.create_default_context()
        pool = await aiomysql.create_pool(
            minsize=self.config.min_size,
            maxsize=self.config.max_size,
            autocommit=True,
            **kwargs,
        )
        try:
            await self._execute(pool, "SELECT 1")
        except Exception:
            pool.close()
            await pool.wait_closed()
            raise
        self._pool = pool
        log.debug(
            f"Opened MySQL connection pool for {kwargs['host']}:{kwargs['port']} "
            f"with size {self.config.min_size}-{self.config.max_size}"
        )

    @staticmethod
    async def _execute(pool: aiomysql.Pool, sql: str, params: Optional[Sequence[Any]] = None) -> list[Any]:
        async with pool.acquire() as conn:
            async with conn.cursor() as cursor:
                await cursor.execute(sql, params)
                if cursor.description is None:
                    return []
                return list(await cursor.fetchall())

    def acquire(self):
        """Connection context manager from the pool (aiomysql interface)."""
        return self.pool.acquire()

    async def query(self, sql: str, params: Optional[Sequence[Any]] = None) -> list[Any]:
        """Execute a statement and return all rows (empty for statements without results)."""
        return await self._execute(self.pool, sql, params)

    async def probe(self) -> bool:
        await self.query("SELECT 1")
        return True

    async def close(self) -> None:
        if self._pool is not None:
            pool, self._pool = self._pool, None
            pool.close()
            await pool.wait_closed()
            log.debug("Closed MySQL connection pool")
