"""
servicehub: lifecycle management for the long-lived resources of a service.

Named connection pools and realtime servers, graceful shutdown, aggregated
health, cache maintenance, service registry heartbeats and cron jobs.
"""

from servicehub.config.environment import Environment
from servicehub.config.log_transports import (
    CallbackHandler,
    RedisStreamHandler,
    WebSocketBroadcastHandler,
    add_transport,
    remove_transport,
)
from servicehub.errors import (
    AdapterInitError,
    CacheOperationError,
    ConfigurationError,
    DuplicateNameError,
    NotFoundError,
    SafetyGuardError,
    ServiceHubError,
    TransportError,
)
from servicehub.hub import ServiceHub
from servicehub.jobs import JobConfig, JobInfo, JobSupervisor
from servicehub.registration import RegistrationClient, RegistrationConfig, ServiceInfo
from servicehub.runtime import (
    HealthRecord,
    HealthStatus,
    LifecycleHooks,
    MongoConfig,
    MySQLConfig,
    PostgresConfig,
    RedisConfig,
    ResourceKind,
    ResourcePolicy,
    ResourceRegistry,
    ShutdownReport,
    SQLiteConfig,
    WebSocketConfig,
)
from servicehub.storage.cache import CacheService
from servicehub.storage.key_scanner import CacheKeyScanner

__version__ = "0.1.0"

__all__ = [
    "AdapterInitError",
    "CacheKeyScanner",
    "CacheOperationError",
    "CacheService",
    "CallbackHandler",
    "ConfigurationError",
    "DuplicateNameError",
    "Environment",
    "HealthRecord",
    "HealthStatus",
    "JobConfig",
    "JobInfo",
    "JobSupervisor",
    "LifecycleHooks",
    "NotFoundError",
    "MongoConfig",
    "MySQLConfig",
    "PostgresConfig",
    "RedisConfig",
    "RedisStreamHandler",
    "RegistrationClient",
    "RegistrationConfig",
    "ResourceKind",
    "ResourcePolicy",
    "ResourceRegistry",
    "SQLiteConfig",
    "SafetyGuardError",
    "ServiceHub",
    "ServiceHubError",
    "ServiceInfo",
    "ShutdownReport",
    "TransportError",
    "WebSocketBroadcastHandler",
    "WebSocketConfig",
    "add_transport",
    "remove_transport",
]
