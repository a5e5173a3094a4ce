"""
Graceful teardown of a resource registry.

Every resource is closed concurrently and every close is attempted regardless
of sibling failures. Failures are collected into a ShutdownReport; drain()
itself never raises.
"""

from __future__ import annotations

import asyncio
import inspect
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, Optional

from servicehub.config.logging_config import get_logger
from servicehub.runtime.types import CloseFailure, NamedResource, ShutdownReport

if TYPE_CHECKING:
    from servicehub.jobs.supervisor import JobSupervisor
    from servicehub.registration.client import RegistrationClient
    from servicehub.runtime.registry import ResourceRegistry

log = get_logger(__name__)

Hook = Callable[[], Any]
ErrorHook = Callable[[str, BaseException], Any]


@dataclass
class LifecycleHooks:
    """Optional callbacks around shutdown. Each may be sync or async."""

    before_shutdown: Optional[Hook] = None
    after_shutdown: Optional[Hook] = None
    on_error: Optional[ErrorHook] = None


async def _call(hook: Callable[..., Any], *args: Any) -> None:
    result = hook(*args)
    if inspect.isawaitable(result):
        await result


class ShutdownCoordinator:
    def __init__(self, hooks: Optional[LifecycleHooks] = None):
        self.hooks = hooks or LifecycleHooks()

    async def _run_hook(self, label: str, hook: Optional[Hook], report: ShutdownReport) -> None:
        if hook is None:
            return
        try:
            await _call(hook)
        except Exception as e:
            log.error(f"Shutdown hook '{label}' failed: {e}")
            report.failures.append(CloseFailure(f"hook:{label}", e))

    async def _report_error(self, source: str, error: BaseException) -> None:
        if self.hooks.on_error is None:
            return
        try:
            await _call(self.hooks.on_error, source, error)
        except Exception as e:
            log.error(f"on_error hook failed while reporting '{source}': {e}")

    async def _close_all(self, resources: tuple[NamedResource, ...], report: ShutdownReport) -> None:
        if not resources:
            return
        log.info(f"Closing {len(resources)} resource(s)...")

        async def _close(resource: NamedResource) -> str:
            await resource.handle.close()
            return resource.name

        results = await asyncio.gather(*(_close(r) for r in resources), return_exceptions=True)
        for resource, result in zip(resources, results):
            if isinstance(result, BaseException):
                log.error(f"Failed to close resource '{resource.name}': {result}")
                report.failures.append(CloseFailure(resource.name, result))
                await self._report_error(f"{resource.kind.value}.close", result)
            else:
                log.info(f"Resource '{resource.name}' closed")
                report.closed.append(resource.name)

    async def _stop_jobs(self, jobs: Optional[JobSupervisor], report: ShutdownReport) -> None:
        if jobs is None:
            return
        try:
            await jobs.stop_all()
            log.info("Scheduled jobs stopped")
        except Exception as e:
            log.error(f"Failed to stop scheduled jobs: {e}")
            report.failures.append(CloseFailure("jobs", e))
            await self._report_error("jobs.stop_all", e)

    async def drain(
        self,
        registry: ResourceRegistry,
        jobs: Optional[JobSupervisor] = None,
        registration: Optional[RegistrationClient] = None,
    ) -> ShutdownReport:
        """Close every resource in ``registry`` and stop ``jobs``.

        Order: before_shutdown hook, then resource closes and job stop
        concurrently, then unregistration, then after_shutdown hook. The
        registry is empty afterwards even when closes failed.
        """
        report = ShutdownReport()
        await self._run_hook("before_shutdown", self.hooks.before_shutdown, report)

        log.info("Shutting down services...")
        registry._begin_drain()
        try:
            await registry.settle_pending()
            resources = registry.snapshot()
            await asyncio.gather(
                self._close_all(resources, report),
                self._stop_jobs(jobs, report),
            )
        finally:
            registry._end_drain()

        if registration is not None:
            try:
                await registration.unregister()
            except Exception as e:
                log.error(f"Failed to unregister from registry: {e}")
                report.failures.append(CloseFailure("registration", e))
                await self._report_error("registration.unregister", e)

        if report.ok:
            log.info("Shutdown complete")
        else:
            log.warning(f"Shutdown completed with {len(report.failures)} error(s)")

        await self._run_hook("after_shutdown", self.hooks.after_shutdown, report)
        return report
