"""
Runtime resource management.

Named, memoized, health-checked resources (connection pools and realtime
servers) with concurrent-safe construction and settle-all teardown.
"""

from servicehub.runtime.adapters import AdapterFactory, ResourceAdapter
from servicehub.runtime.health import HealthAggregator
from servicehub.runtime.registry import ResourceRegistry
from servicehub.runtime.shutdown import LifecycleHooks, ShutdownCoordinator
from servicehub.runtime.types import (
    CloseFailure,
    HealthRecord,
    HealthStatus,
    NamedResource,
    MongoConfig,
    MySQLConfig,
    PostgresConfig,
    RedisConfig,
    ResourceConfig,
    ResourceKind,
    ResourcePolicy,
    ShutdownReport,
    SQLiteConfig,
    WebSocketConfig,
)

__all__ = [
    "AdapterFactory",
    "CloseFailure",
    "HealthAggregator",
    "HealthRecord",
    "HealthStatus",
    "LifecycleHooks",
    "NamedResource",
    "MongoConfig",
    "MySQLConfig",
    "PostgresConfig",
    "RedisConfig",
    "ResourceAdapter",
    "ResourceConfig",
    "ResourceKind",
    "ResourcePolicy",
    "ResourceRegistry",
    "SQLiteConfig",
    "ShutdownCoordinator",
    "ShutdownReport",
    "WebSocketConfig",
]
