from servicehub.registration.client import RegistrationClient, RegistrationConfig, RegistryHandler
from servicehub.registration.service_info import (
    MemoryUsage,
    ServiceInfo,
    UnregisterPayload,
    collect_service_info,
    resolve_identity,
)

__all__ = [
    "MemoryUsage",
    "RegistrationClient",
    "RegistrationConfig",
    "RegistryHandler",
    "ServiceInfo",
    "UnregisterPayload",
    "collect_service_info",
    "resolve_identity",
]
