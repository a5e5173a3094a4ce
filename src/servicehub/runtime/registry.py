"""
Named resource registry.

Creates, memoizes and hands out long-lived resources by caller-supplied
name. Concurrent acquires of the same name share a single construction.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any, Iterator, Optional

from servicehub.concurrency.single_flight import SingleFlight
from servicehub.config.logging_config import get_logger
from servicehub.errors import AdapterInitError, ConfigurationError, NotFoundError
from servicehub.runtime.adapters import AdapterFactory, ResourceAdapter, coerce_config, coerce_kind
from servicehub.runtime.types import (
    HealthRecord,
    NamedResource,
    ResourceConfig,
    ResourceKind,
    ShutdownReport,
)

if TYPE_CHECKING:
    from servicehub.jobs.supervisor import JobSupervisor
    from servicehub.registration.client import RegistrationClient
    from servicehub.runtime.shutdown import LifecycleHooks

log = get_logger(__name__)


class ResourceRegistry:
    """
    Process-local map of named resources.

    Example:
        registry = ResourceRegistry()
        cache = await registry.acquire("cache", "redis", RedisConfig(url="redis://localhost"))
        same = await registry.acquire("cache", "redis")
        assert cache is same

        report = await registry.drain()
    """

    def __init__(self, factory: Optional[AdapterFactory] = None):
        self.factory = factory or AdapterFactory.default()
        self._resources: dict[str, NamedResource] = {}
        self._pending: SingleFlight[Optional[ResourceAdapter]] = SingleFlight()
        self._draining = False

    def __contains__(self, name: object) -> bool:
        return name in self._resources

    def __len__(self) -> int:
        return len(self._resources)

    def __iter__(self) -> Iterator[str]:
        return iter(self.list())

    @property
    def draining(self) -> bool:
        return self._draining

    async def acquire(
        self,
        name: str,
        kind: ResourceKind | str,
        config: Optional[ResourceConfig | dict[str, Any]] = None,
    ) -> Optional[ResourceAdapter]:
        """Return the resource called ``name``, constructing it on first use.

        An existing resource is returned as is, even when ``config`` differs
        from the one it was built with. While a construction for ``name`` is
        in flight, callers await that same construction.

        Returns:
            The adapter, or None when construction failed and the config's
            policy is OPTIONAL.

        Raises:
            ConfigurationError: Empty name, unknown kind, invalid config, or
                the registry is shutting down.
            AdapterInitError: Construction failed and the policy is REQUIRED.
        """
        if not name or not name.strip():
            raise ConfigurationError("Resource name is required")
        if self._draining:
            raise ConfigurationError(f"Cannot acquire '{name}': registry is shutting down")

        existing = self._resources.get(name)
        if existing is not None:
            log.debug(f"Resource '{name}' already exists, returning existing instance")
            return existing.handle

        in_flight = self._pending.in_flight(name)
        if in_flight is not None:
            log.debug(f"Resource '{name}' initialization in progress, waiting...")
            return await asyncio.shield(in_flight)

        resource_kind = coerce_kind(kind)
        resource_config = coerce_config(resource_kind, config)
        return await self._pending.do(name, lambda: self._construct(name, resource_kind, resource_config))

    async def _construct(
        self, name: str, kind: ResourceKind, config: ResourceConfig
    ) -> Optional[ResourceAdapter]:
        log.info(f"Creating {kind.value} resource '{name}'...")
        try:
            handle = await self.factory.create(kind, config)
        except Exception as e:
            if config.optional:
                log.warning(
                    f"Resource '{name}' initialization failed (optional), continuing without it: {e}",
                    extra={"resource": name, "kind": kind.value},
                )
                return None
            log.error(f"Failed to create resource '{name}': {e}", extra={"resource": name, "kind": kind.value})
            raise AdapterInitError(name, kind.value, e) from e

        self._resources[name] = NamedResource(name=name, kind=kind, handle=handle, config=config)
        log.info(f"Resource '{name}' ({kind.value}) ready")
        return handle

    async def release(self, name: str) -> None:
        """Close and forget one resource. No-op when ``name`` is unknown.

        The entry is removed before close() runs, so a second release never
        closes the same handle twice. Close errors propagate.
        """
        resource = self._resources.pop(name, None)
        if resource is None:
            return
        log.info(f"Releasing resource '{name}'")
        await resource.handle.close()

    def list(self) -> tuple[str, ...]:
        """Snapshot of resolved resource names."""
        return tuple(self._resources)

    def pending(self) -> tuple[str, ...]:
        """Names with a construction currently in flight."""
        return tuple(str(k) for k in self._pending.keys())

    def snapshot(self) -> tuple[NamedResource, ...]:
        return tuple(self._resources.values())

    def get_resource(self, name: str) -> NamedResource:
        resource = self._resources.get(name)
        if resource is None:
            raise NotFoundError(name, "resource", available=self.list())
        return resource

    def get(self, name: str) -> Any:
        """Return the handle for ``name`` or raise NotFoundError."""
        return self.get_resource(name).handle

    async def settle_pending(self) -> None:
        """Wait until every in-flight construction has finished (either way)."""
        tasks = self._pending.tasks()
        if tasks:
            log.debug(f"Waiting for {len(tasks)} in-flight construction(s)")
            await asyncio.gather(*tasks, return_exceptions=True)

    def _begin_drain(self) -> None:
        self._draining = True

    def _end_drain(self) -> None:
        self._resources.clear()
        self._draining = False

    async def drain(
        self,
        hooks: Optional[LifecycleHooks] = None,
        jobs: Optional[JobSupervisor] = None,
        registration: Optional[RegistrationClient] = None,
    ) -> ShutdownReport:
        """Close every resource. See ShutdownCoordinator.drain."""
        from servicehub.runtime.shutdown import ShutdownCoordinator

        return await ShutdownCoordinator(hooks).drain(self, jobs=jobs, registration=registration)

    async def check(self, jobs: Optional[JobSupervisor] = None) -> HealthRecord:
        """Probe every resource. See HealthAggregator.check."""
        from servicehub.runtime.health import HealthAggregator

        return await HealthAggregator().check(self, jobs=jobs)
