"""
PostgreSQL connection pool resource.

Wraps a psycopg AsyncConnectionPool behind the ResourceAdapter interface.
"""

from typing import Any, Optional, Sequence

from psycopg_pool import AsyncConnectionPool

from servicehub.config.logging_config import get_logger
from servicehub.runtime.adapters import ResourceAdapter
from servicehub.runtime.types import PostgresConfig, ResourceKind

log = get_logger(__name__)


class PostgresAdapter(ResourceAdapter):
    """Async connection pool for PostgreSQL."""

    kind = ResourceKind.POSTGRESQL

    def __init__(self, config: PostgresConfig):
        super().__init__(config)
        self.config: PostgresConfig = config
        self._pool: Optional[AsyncConnectionPool] = None

    @property
    def pool(self) -> AsyncConnectionPool:
        if self._pool is None:
            raise RuntimeError("PostgreSQL pool is not open")
        return self._pool

    async def open(self) -> None:
        if self._pool is not None:
            return
        pool = AsyncConnectionPool(
            self.config.conninfo(),
            min_size=self.config.min_size,
            max_size=self.config.max_size,
            timeout=self.config.timeout,
            open=False,
        )
        try:
            await pool.open(wait=True, timeout=self.config.timeout)
            async with pool.connection() as conn:
                await conn.execute("SELECT 1")
        except Exception:
            await pool.close()
            raise
        self._pool = pool
        log.debug(
            f"Opened PostgreSQL connection pool for {self.config.host}:{self.config.port} "
            f"with size {self.config.min_size}-{self.config.max_size}"
        )

    def connection(self):
        """Connection context manager from the pool (psycopg_pool interface)."""
        return self.pool.connection()

    async def query(self, sql: str, params: Optional[Sequence[Any]] = None) -> list[Any]:
        """Execute a statement and return all rows (empty for statements without results)."""
        async with self.pool.connection() as conn:
            cursor = await conn.execute(sql, params)
            if cursor.description is None:
                return []
            return await cursor.fetchall()

    async def probe(self) -> bool:
        await self.query("SELECT 1")
        return True

    async def close(self) -> None:
        if self._pool is not None:
            pool, self._pool = self._pool, None
            await pool.close()
            log.debug("Closed PostgreSQL connection pool")
