"""
Resource adapters and the factory that builds them.

Every resource kind is one ResourceAdapter subclass implementing the same
capability set: open(), probe(), close() and, where the backend has a command
interface, raw_command(). Kind-specific behavior lives in the subclass;
callers never branch on the kind.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, ClassVar, Optional

from servicehub.config.logging_config import get_logger
from servicehub.errors import ConfigurationError
from servicehub.runtime.types import CONFIG_TYPES, ResourceConfig, ResourceKind

log = get_logger(__name__)


class ResourceAdapter(ABC):
    """A long-lived resource handle (connection pool, server, client)."""

    kind: ClassVar[ResourceKind]

    def __init__(self, config: ResourceConfig):
        self.config = config

    @abstractmethod
    async def open(self) -> None:
        """Establish the underlying resource and verify it with a round trip."""
        ...

    @abstractmethod
    async def probe(self) -> bool:
        """Liveness check. May raise; the health aggregator treats a raise as False."""
        ...

    @abstractmethod
    async def close(self) -> None:
        """Release the underlying resource. Calling close twice is a no-op."""
        ...

    async def raw_command(self, *args: Any) -> Any:
        raise NotImplementedError(f"{type(self).__name__} does not support raw commands")

    def __repr__(self) -> str:
        return f"{type(self).__name__}(kind={self.kind.value})"


def coerce_kind(kind: ResourceKind | str) -> ResourceKind:
    try:
        return ResourceKind(kind)
    except ValueError:
        supported = ", ".join(k.value for k in ResourceKind)
        raise ConfigurationError(f"Unsupported resource kind '{kind}' (supported: {supported})") from None


def coerce_config(kind: ResourceKind, config: Optional[ResourceConfig | dict[str, Any]]) -> ResourceConfig:
    """Validate ``config`` for ``kind``; dicts are parsed, None gives the defaults."""
    config_type = CONFIG_TYPES[kind]
    if config is None:
        try:
            return config_type()
        except ValueError as e:
            raise ConfigurationError(f"A configuration is required for {kind.value} resources: {e}") from e
    if isinstance(config, dict):
        try:
            return config_type.model_validate(config)
        except ValueError as e:
            raise ConfigurationError(f"Invalid {kind.value} configuration: {e}") from e
    if not isinstance(config, config_type):
        raise ConfigurationError(
            f"{type(config).__name__} cannot configure a {kind.value} resource (expected {config_type.__name__})"
        )
    return config


class AdapterFactory:
    """
    Maps resource kinds to adapter classes and constructs opened adapters.

    The default factory knows every built-in kind; drivers are imported lazily
    so that only the backends actually used need to be installed.

    Example:
        factory = AdapterFactory.default()
        redis = await factory.create(ResourceKind.REDIS, RedisConfig(url="redis://localhost"))
    """

    def __init__(self, adapters: Optional[dict[ResourceKind, type[ResourceAdapter]]] = None):
        self._adapters: dict[ResourceKind, type[ResourceAdapter]] = dict(adapters or {})

    @classmethod
    def default(cls) -> "AdapterFactory":
        from servicehub.runtime.db_mongo import MongoAdapter
        from servicehub.runtime.db_mysql import MySQLAdapter
        from servicehub.runtime.db_postgres import PostgresAdapter
        from servicehub.runtime.db_redis import RedisAdapter
        from servicehub.runtime.db_sqlite import SQLiteAdapter
        from servicehub.runtime.ws_server import WebSocketServerAdapter

        return cls(
            {
                ResourceKind.POSTGRESQL: PostgresAdapter,
                ResourceKind.MYSQL: MySQLAdapter,
                ResourceKind.MONGODB: MongoAdapter,
                ResourceKind.SQLITE: SQLiteAdapter,
                ResourceKind.REDIS: RedisAdapter,
                ResourceKind.WEBSOCKET: WebSocketServerAdapter,
            }
        )

    def register(self, kind: ResourceKind, adapter_cls: type[ResourceAdapter]) -> None:
        self._adapters[kind] = adapter_cls

    def supports(self, kind: ResourceKind) -> bool:
        return kind in self._adapters

    async def create(self, kind: ResourceKind, config: ResourceConfig) -> ResourceAdapter:
        """Instantiate and open the adapter for ``kind``.

        Raises:
            ConfigurationError: No adapter is registered for the kind.
            Exception: Whatever the driver raised while opening.
        """
        adapter_cls = self._adapters.get(kind)
        if adapter_cls is None:
            raise ConfigurationError(f"No adapter registered for resource kind '{kind.value}'")
        adapter = adapter_cls(config)
        await adapter.open()
        return adapter
