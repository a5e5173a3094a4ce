"""
SQLite connection resource.

Holds a single aiosqlite connection; SQLite serializes writers anyway, so a
shared connection is the simplest pool.
"""

import asyncio
from typing import Any, Optional, Sequence

import aiosqlite

from servicehub.config.logging_config import get_logger
from servicehub.runtime.adapters import ResourceAdapter
from servicehub.runtime.types import ResourceKind, SQLiteConfig

log = get_logger(__name__)


class SQLiteAdapter(ResourceAdapter):
    kind = ResourceKind.SQLITE

    def __init__(self, config: SQLiteConfig):
        super().__init__(config)
        self.config: SQLiteConfig = config
        self._conn: Optional[aiosqlite.Connection] = None
        self._lock = asyncio.Lock()

    @property
    def connection(self) -> aiosqlite.Connection:
        if self._conn is None:
            raise RuntimeError("SQLite connection is not open")
        return self._conn

    async def open(self) -> None:
        if self._conn is not None:
            return
        conn = await aiosqlite.connect(self.config.path, timeout=self.config.timeout)
        try:
            if self.config.path != ":memory:":
                await conn.execute("PRAGMA journal_mode=WAL")
            await conn.execute("SELECT 1")
        except Exception:
            await conn.close()
            raise
        self._conn = conn
        log.debug(f"Opened SQLite connection to {self.config.path}")

    async def query(self, sql: str, params: Optional[Sequence[Any]] = None) -> list[Any]:
        """Execute a statement, commit, and return all rows."""
        async with self._lock:
            cursor = await self.connection.execute(sql, params or ())
            rows = await cursor.fetchall()
            await cursor.close()
            await self.connection.commit()
            return list(rows)

    async def probe(self) -> bool:
        rows = await self.query("SELECT 1")
        return bool(rows) and rows[0][0] == 1

    async def close(self) -> None:
        if self._conn is not None:
            conn, self._conn = self._conn, None
            await conn.close()
            log.debug(f"Closed SQLite connection to {self.config.path}")
