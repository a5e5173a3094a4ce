from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Optional

from servicehub.config.logging_config import get_logger
from servicehub.runtime.types import HealthRecord, HealthStatus, NamedResource

if TYPE_CHECKING:
    from servicehub.jobs.supervisor import JobSupervisor
    from servicehub.runtime.registry import ResourceRegistry

log = get_logger(__name__)


async def _probe(resource: NamedResource) -> bool:
    try:
        return bool(await resource.handle.probe())
    except Exception as e:
        log.debug(f"Probe for '{resource.name}' failed: {e}")
        return False


def aggregate(per_resource: dict[str, bool], jobs_ok: bool = True) -> HealthStatus:
    """Fold probe results into a single status.

    unhealthy: at least one resource and every probe failed.
    degraded: some probe failed, or the job sub-check failed.
    healthy: otherwise, including when there are no resources.
    """
    if per_resource and not any(per_resource.values()):
        return HealthStatus.UNHEALTHY
    if not all(per_resource.values()) or not jobs_ok:
        return HealthStatus.DEGRADED
    return HealthStatus.HEALTHY


class HealthAggregator:
    """Probes every registered resource and reports a tri-state status."""

    async def check(self, registry: ResourceRegistry, jobs: Optional[JobSupervisor] = None) -> HealthRecord:
        resources = registry.snapshot()
        results = await asyncio.gather(*(_probe(r) for r in resources))

        per_resource = {r.name: ok for r, ok in zip(resources, results)}
        kinds = {r.name: r.kind for r in resources}

        jobs_ok = True
        if jobs is not None:
            try:
                jobs.list_jobs()
            except Exception as e:
                log.warning(f"Job supervisor health check failed: {e}")
                jobs_ok = False

        status = aggregate(per_resource, jobs_ok)
        if status != HealthStatus.HEALTHY:
            failing = sorted(name for name, ok in per_resource.items() if not ok)
            log.debug(f"Health status {status.value}, failing: {failing}")
        return HealthRecord(status=status, per_resource=per_resource, kinds=kinds, jobs=jobs_ok)
