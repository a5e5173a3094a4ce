"""
MongoDB client resource.

MongoDB has no SQL surface; callers work with ``adapter.client`` or
``adapter.database`` directly (pymongo's async API).
"""

from typing import Any, Optional

from pymongo import AsyncMongoClient

from servicehub.config.logging_config import get_logger
from servicehub.runtime.adapters import ResourceAdapter
from servicehub.runtime.types import MongoConfig, ResourceKind

log = get_logger(__name__)


class MongoAdapter(ResourceAdapter):
    kind = ResourceKind.MONGODB

    def __init__(self, config: MongoConfig):
        super().__init__(config)
        self.config: MongoConfig = config
        self._client: Optional[AsyncMongoClient] = None

    @property
    def client(self) -> AsyncMongoClient:
        if self._client is None:
            raise RuntimeError("MongoDB client is not connected")
        return self._client

    @property
    def database(self) -> Any:
        """The configured default database."""
        name = self.config.database_name()
        if name is None:
            raise RuntimeError("No default MongoDB database is configured")
        return self.client.get_database(name)

    async def open(self) -> None:
        if self._client is not None:
            return
        client = AsyncMongoClient(
            self.config.uri(),
            maxPoolSize=self.config.max_pool_size,
            serverSelectionTimeoutMS=int(self.config.timeout * 1000),
        )
        try:
            await client.aconnect()
            await client.admin.command("ping")
        except Exception:
            await client.close()
            raise
        self._client = client
        log.info(f"Connected to MongoDB database {self.config.database_name()}")

    async def raw_command(self, *args: Any) -> Any:
        """Run a database command on the default database, e.g. ``raw_command("dbStats")``."""
        return await self.database.command(*args)

    async def probe(self) -> bool:
        result = await self.client.admin.command("ping")
        return bool(result.get("ok"))

    async def close(self) -> None:
        if self._client is not None:
            client, self._client = self._client, None
            await client.close()
            log.debug("Disconnected from MongoDB")
