"""
Value types shared by the resource registry, its adapters, the health
aggregator and the shutdown coordinator.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Optional
from urllib.parse import quote_plus, unquote, urlsplit

from pydantic import BaseModel, ConfigDict, Field, model_validator


class ResourceKind(str, Enum):
    """Kinds of long-lived resources the registry can construct."""

    POSTGRESQL = "postgresql"
    MYSQL = "mysql"
    MONGODB = "mongodb"
    SQLITE = "sqlite"
    REDIS = "redis"
    WEBSOCKET = "websocket"


class ResourcePolicy(str, Enum):
    """What acquire() does when construction fails.

    REQUIRED raises AdapterInitError, OPTIONAL logs a warning and yields None.
    """

    REQUIRED = "required"
    OPTIONAL = "optional"


class ResourceConfig(BaseModel):
    """Base class of every resource configuration."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    kind: ClassVar[ResourceKind]

    policy: ResourcePolicy = ResourcePolicy.REQUIRED

    @property
    def optional(self) -> bool:
        return self.policy == ResourcePolicy.OPTIONAL


class PostgresConfig(ResourceConfig):
    kind: ClassVar[ResourceKind] = ResourceKind.POSTGRESQL

    dsn: Optional[str] = None
    host: str = "localhost"
    port: int = 5432
    database: Optional[str] = None
    user: Optional[str] = None
    password: Optional[str] = None
    min_size: int = Field(default=1, ge=0)
    max_size: int = Field(default=10, ge=1)
    timeout: float = Field(default=30.0, gt=0)

    @model_validator(mode="after")
    def _check_connection(self) -> "PostgresConfig":
        if self.dsn is None and (not self.database or not self.user):
            raise ValueError("PostgreSQL connection requires a dsn or database and user")
        if self.min_size > self.max_size:
            raise ValueError("min_size must not exceed max_size")
        return self

    def conninfo(self) -> str:
        if self.dsn:
            return self.dsn
        parts = [
            f"dbname={self.database}",
            f"user={self.user}",
            f"host={self.host}",
            f"port={self.port}",
        ]
        if self.password:
            parts.append(f"password={self.password}")
        return " ".join(parts)


class MySQLConfig(ResourceConfig):
    kind: ClassVar[ResourceKind] = ResourceKind.MYSQL

    url: Optional[str] = None
    host: str = "localhost"
    port: int = 3306
    database: Optional[str] = None
    user: Optional[str] = None
    password: Optional[str] = None
    ssl: bool = False
    min_size: int = Field(default=1, ge=0)
    max_size: int = Field(default=10, ge=1)
    timeout: float = Field(default=30.0, gt=0)

    @model_validator(mode="after")
    def _check_connection(self) -> "MySQLConfig":
        if self.url is None and (not self.database or not self.user or self.password is None):
            raise ValueError("MySQL connection requires a url or database, user and password")
        if self.min_size > self.max_size:
            raise ValueError("min_size must not exceed max_size")
        return self

    def connect_kwargs(self) -> dict[str, Any]:
        """Connection arguments for aiomysql. Values in ``url`` win over the separate fields."""
        host, port, user, password, database = self.host, self.port, self.user, self.password, self.database
        if self.url:
            parts = urlsplit(self.url)
            host = parts.hostname or host
            port = parts.port or port
            if parts.username:
                user = unquote(parts.username)
            if parts.password is not None:
                password = unquote(parts.password)
            database = parts.path.lstrip("/") or database
        return {
            "host": host,
            "port": port,
            "user": user,
            "password": password or "",
            "db": database,
            "connect_timeout": self.timeout,
        }


class MongoConfig(ResourceConfig):
    kind: ClassVar[ResourceKind] = ResourceKind.MONGODB

    url: Optional[str] = None
    host: str = "localhost"
    port: int = 27017
    database: Optional[str] = None
    user: Optional[str] = None
    password: Optional[str] = None
    auth_source: Optional[str] = None
    max_pool_size: int = Field(default=100, ge=1)
    timeout: float = Field(default=30.0, gt=0)

    @model_validator(mode="after")
    def _check_connection(self) -> "MongoConfig":
        if self.url is None and not self.database:
            raise ValueError("MongoDB connection requires a url or a database")
        return self

    def uri(self) -> str:
        if self.url:
            return self.url
        auth = ""
        if self.user and self.password:
            auth = f"{quote_plus(self.user)}:{quote_plus(self.password)}@"
        uri = f"mongodb://{auth}{self.host}:{self.port}/{self.database}"
        if self.auth_source:
            uri += f"?authSource={quote_plus(self.auth_source)}"
        return uri

    def database_name(self) -> Optional[str]:
        """The default database: ``database`` or the path of ``url``."""
        if self.database:
            return self.database
        if self.url:
            return urlsplit(self.url).path.lstrip("/") or None
        return None


class SQLiteConfig(ResourceConfig):
    kind: ClassVar[ResourceKind] = ResourceKind.SQLITE

    path: str = ":memory:"
    timeout: float = Field(default=5.0, gt=0)


class RedisConfig(ResourceConfig):
    kind: ClassVar[ResourceKind] = ResourceKind.REDIS

    url: Optional[str] = None
    host: str = "localhost"
    port: int = 6379
    db: int = 0
    password: Optional[str] = None
    ssl: bool = False
    max_connections: int = Field(default=50, ge=1)
    socket_timeout: float = 5.0
    socket_connect_timeout: float = 5.0


class WebSocketConfig(ResourceConfig):
    kind: ClassVar[ResourceKind] = ResourceKind.WEBSOCKET

    host: str = "0.0.0.0"
    port: int = Field(default=3001, ge=0, le=65535)
    enable_auth: bool = False
    auth_token: Optional[str] = None

    @model_validator(mode="after")
    def _check_auth(self) -> "WebSocketConfig":
        if self.enable_auth and not self.auth_token:
            raise ValueError("enable_auth requires an auth_token")
        return self


CONFIG_TYPES: dict[ResourceKind, type[ResourceConfig]] = {
    ResourceKind.POSTGRESQL: PostgresConfig,
    ResourceKind.MYSQL: MySQLConfig,
    ResourceKind.MONGODB: MongoConfig,
    ResourceKind.SQLITE: SQLiteConfig,
    ResourceKind.REDIS: RedisConfig,
    ResourceKind.WEBSOCKET: WebSocketConfig,
}


@dataclass(frozen=True)
class NamedResource:
    """A constructed resource owned by the registry."""

    name: str
    kind: ResourceKind
    handle: Any
    config: ResourceConfig


class HealthStatus(str, Enum):
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


def _now_ms() -> int:
    return int(time.time() * 1000)


class HealthRecord(BaseModel):
    """Result of one health check; recomputed on every call."""

    status: HealthStatus
    per_resource: dict[str, bool] = Field(default_factory=dict)
    kinds: dict[str, ResourceKind] = Field(default_factory=dict)
    jobs: bool = True
    timestamp: int = Field(default_factory=_now_ms)

    def by_kind(self, kind: ResourceKind) -> dict[str, bool]:
        return {name: ok for name, ok in self.per_resource.items() if self.kinds.get(name) == kind}


@dataclass
class CloseFailure:
    resource_name: str
    error: BaseException


@dataclass
class ShutdownReport:
    closed: list[str] = field(default_factory=list)
    failures: list[CloseFailure] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures

    def failed_names(self) -> list[str]:
        return [f.resource_name for f in self.failures]
