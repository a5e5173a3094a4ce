import asyncio
from typing import Optional

import pytest

from servicehub.runtime.adapters import AdapterFactory, ResourceAdapter
from servicehub.runtime.registry import ResourceRegistry
from servicehub.runtime.types import ResourceConfig, ResourceKind


class FakeAdapter(ResourceAdapter):
    """In-memory adapter with scriptable probe and close behavior."""

    kind = ResourceKind.SQLITE

    def __init__(self, config: ResourceConfig, kind: ResourceKind = ResourceKind.SQLITE):
        super().__init__(config)
        self.kind = kind
        self.probe_result: bool = True
        self.probe_error: Optional[Exception] = None
        self.close_error: Optional[Exception] = None
        self.close_calls = 0

    async def open(self) -> None:
        pass

    async def probe(self) -> bool:
        if self.probe_error is not None:
            raise self.probe_error
        return self.probe_result

    async def close(self) -> None:
        self.close_calls += 1
        if self.close_error is not None:
            raise self.close_error


class FakeFactory(AdapterFactory):
    """Counts constructions; can delay them or make them fail."""

    def __init__(self, delay: float = 0.0, error: Optional[Exception] = None):
        super().__init__()
        self.delay = delay
        self.error = error
        self.calls = 0
        self.created: list[FakeAdapter] = []

    def supports(self, kind: ResourceKind) -> bool:
        return True

    async def create(self, kind: ResourceKind, config: ResourceConfig) -> FakeAdapter:
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        adapter = FakeAdapter(config, kind)
        self.created.append(adapter)
        return adapter


@pytest.fixture
def factory() -> FakeFactory:
    return FakeFactory()


@pytest.fixture
def registry(factory: FakeFactory) -> ResourceRegistry:
    return ResourceRegistry(factory)
