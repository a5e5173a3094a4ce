"""
ServiceHub: one object that wires the registry, jobs, health and registration.

Usage:
    async with ServiceHub(Environment.from_env(), registration={"url": "..."}) as hub:
        await hub.acquire("cache", "redis", RedisConfig(url="redis://localhost"))
        await hub.cache().set("greeting", "hello", ttl=60)
        hub.job(JobConfig(name="cleanup", schedule="*/5 * * * *", task=cleanup))
        record = await hub.health_check()
"""

from __future__ import annotations

import logging
from typing import Any, Optional, Union

from servicehub.config.environment import Environment
from servicehub.config.log_transports import TransportHandler, add_transport, remove_transport
from servicehub.config.logging_config import get_logger
from servicehub.errors import ConfigurationError
from servicehub.jobs.supervisor import JobConfig, JobSupervisor
from servicehub.registration.client import RegistrationClient, RegistrationConfig
from servicehub.registration.service_info import ServiceInfo, collect_service_info, resolve_identity
from servicehub.runtime.adapters import AdapterFactory
from servicehub.runtime.registry import ResourceRegistry
from servicehub.runtime.shutdown import LifecycleHooks
from servicehub.runtime.types import HealthRecord, ResourceConfig, ResourceKind, ShutdownReport
from servicehub.storage.cache import CacheService

log = get_logger(__name__)

RegistrationSetting = Union[RegistrationConfig, RegistrationClient, dict[str, Any], None]


class ServiceHub:
    """Composition root for a service process. Construct one per process and pass it around."""

    def __init__(
        self,
        environment: Optional[Environment] = None,
        factory: Optional[AdapterFactory] = None,
        hooks: Optional[LifecycleHooks] = None,
        registration: RegistrationSetting = None,
        app_name: Optional[str] = None,
        app_version: Optional[str] = None,
    ):
        self._environment = environment or Environment.from_env()
        self._registry = ResourceRegistry(factory)
        self._jobs = JobSupervisor()
        self._hooks = hooks
        self._app_name, self._app_version = resolve_identity(app_name, app_version)
        self._caches: dict[str, CacheService] = {}
        self._log_transports: dict[str, tuple[logging.Handler, logging.Logger]] = {}
        self._started = False

        if registration is None or isinstance(registration, RegistrationClient):
            self._registration = registration
        else:
            self._registration = RegistrationClient(registration, self._app_name, self._app_version)

    async def __aenter__(self) -> "ServiceHub":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.shutdown()

    @property
    def environment(self) -> Environment:
        return self._environment

    @property
    def registry(self) -> ResourceRegistry:
        return self._registry

    @property
    def jobs(self) -> JobSupervisor:
        return self._jobs

    @property
    def app_name(self) -> str:
        return self._app_name

    @property
    def app_version(self) -> str:
        return self._app_version

    @property
    def started(self) -> bool:
        return self._started

    @property
    def is_registered(self) -> bool:
        return self._registration is not None and self._registration.is_registered

    def _ensure_started(self) -> None:
        if not self._started:
            raise ConfigurationError("ServiceHub not started. Call await hub.start() first.")

    async def start(self) -> None:
        """Start scheduled jobs and register with the service registry, if configured.

        A failed registration is logged; the hub still starts.
        """
        if self._started:
            return

        log.info(f"Starting {self._app_name}@{self._app_version} ({self._environment.name})")
        await self._jobs.start()

        if self._registration is not None:
            try:
                await self._registration.register()
            except Exception as e:
                log.warning(f"Service registration failed, continuing without it: {e}")

        self._started = True

    async def acquire(
        self,
        name: str,
        kind: Union[ResourceKind, str],
        config: Union[ResourceConfig, dict[str, Any], None] = None,
    ) -> Any:
        self._ensure_started()
        return await self._registry.acquire(name, kind, config)

    def get(self, name: str) -> Any:
        self._ensure_started()
        return self._registry.get(name)

    async def release(self, name: str) -> None:
        self._ensure_started()
        self._caches.pop(name, None)
        await self._registry.release(name)

    def cache(self, name: str = "cache") -> CacheService:
        """CacheService over the redis resource ``name``, created on first use."""
        self._ensure_started()
        service = self._caches.get(name)
        if service is None:
            service = CacheService(self._registry.get(name), self._environment)
            self._caches[name] = service
        return service

    def job(self, config: JobConfig) -> None:
        self._ensure_started()
        self._jobs.add_job(config)

    def add_log_transport(
        self, handler: logging.Handler, logger: Union[logging.Logger, str, None] = None
    ) -> logging.Handler:
        """Attach a log handler that the hub detaches on shutdown.

        Handlers without a name are named after their class.
        """
        self._ensure_started()
        if not handler.get_name():
            handler.set_name(type(handler).__name__)
        if isinstance(handler, TransportHandler) and not handler.app_name:
            handler.app_name = self._app_name
        target = logger if isinstance(logger, logging.Logger) else logging.getLogger(logger)
        self.remove_log_transport(handler.get_name())
        add_transport(handler, target)
        self._log_transports[handler.get_name()] = (handler, target)
        return handler

    def remove_log_transport(self, name: str) -> bool:
        entry = self._log_transports.pop(name, None)
        if entry is None:
            return False
        _, target = entry
        remove_transport(name, target)
        return True

    async def _close_log_transports(self) -> None:
        for name, (handler, _) in list(self._log_transports.items()):
            if isinstance(handler, TransportHandler):
                await handler.drain()
            self.remove_log_transport(name)

    async def health_check(self) -> HealthRecord:
        self._ensure_started()
        return await self._registry.check(self._jobs)

    def service_info(self) -> ServiceInfo:
        if self._registration is not None:
            return self._registration.service_info()
        return collect_service_info(self._app_name, self._app_version)

    async def shutdown(self) -> ShutdownReport:
        """Close every resource, stop every job and unregister.

        Log transports attached through the hub are drained and detached first.

        Returns an empty report when the hub is not running.
        """
        if not self._started:
            return ShutdownReport()
        # Transports may write to resources that are about to close
        await self._close_log_transports()
        report = await self._registry.drain(self._hooks, jobs=self._jobs, registration=self._registration)
        self._caches.clear()
        if self._registration is not None:
            await self._registration.aclose()
        self._started = False
        return report
