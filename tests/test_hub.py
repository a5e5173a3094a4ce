import logging
import uuid

import httpx
import pytest

from servicehub.config.environment import Environment
from servicehub.config.log_transports import CallbackHandler, RedisStreamHandler
from servicehub.errors import ConfigurationError, NotFoundError, SafetyGuardError
from servicehub.hub import ServiceHub
from servicehub.jobs.supervisor import JobConfig
from servicehub.registration.client import RegistrationClient, RegistrationConfig
from servicehub.runtime.adapters import AdapterFactory, ResourceAdapter
from servicehub.runtime.shutdown import LifecycleHooks
from servicehub.runtime.types import HealthStatus, ResourceKind
from servicehub.storage.cache import CacheService


class MemoryRedis(ResourceAdapter):
    """Tiny stand-in for the redis adapter: GET/SET/DEL/SCAN/XADD over dicts."""

    kind = ResourceKind.REDIS

    def __init__(self, config):
        super().__init__(config)
        self.data: dict[str, str] = {}
        self.streams: dict[str, list[tuple]] = {}
        self.closed = False

    async def open(self):
        pass

    async def probe(self):
        return not self.closed

    async def close(self):
        self.closed = True

    async def raw_command(self, *args):
        command = args[0]
        if command == "SET":
            self.data[args[1]] = args[2]
            return "OK"
        if command == "GET":
            return self.data.get(args[1])
        if command == "DEL":
            return sum(1 for key in args[1:] if self.data.pop(key, None) is not None)
        if command == "SCAN":
            prefix = args[3].rstrip("*")
            return ("0", [key for key in self.data if key.startswith(prefix)])
        if command == "XADD":
            entries = self.streams.setdefault(args[1], [])
            entries.append(args[3:])
            return f"{len(entries)}-0"
        raise NotImplementedError(command)

@pytest.fixture
def factory():
    return AdapterFactory({ResourceKind.REDIS: MemoryRedis})


def registration_client(requests):
    def handler(request):
        requests.append(request.url.path)
        return httpx.Response(200)

    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return RegistrationClient(
        RegistrationConfig(url="https://registry.example.com", heartbeat_interval=60000),
        "orders",
        "1.0.0",
        http_client=http_client,
    )


@pytest.mark.asyncio
async def test_requires_start(factory):
    """Test that hub methods raise before start()."""
    hub = ServiceHub(Environment.testing(), factory=factory)

    with pytest.raises(ConfigurationError, match="not started"):
        await hub.acquire("cache", "redis")
    with pytest.raises(ConfigurationError):
        await hub.health_check()


@pytest.mark.asyncio
async def test_full_lifecycle(factory):
    """Test start, resources, cache, jobs, health and shutdown end to end."""
    requests = []
    calls = []
    hooks = LifecycleHooks(before_shutdown=lambda: calls.append("before"), after_shutdown=lambda: calls.append("after"))
    hub = ServiceHub(Environment.testing(), factory=factory, hooks=hooks, registration=registration_client(requests))

    async with hub:
        assert hub.is_registered
        redis = await hub.acquire("cache", "redis")
        assert hub.get("cache") is redis

        cache = hub.cache()
        assert isinstance(cache, CacheService)
        assert hub.cache() is cache
        await cache.set("user:1", {"name": "Ada"})
        assert await cache.get("user:1") == {"name": "Ada"}
        assert await cache.clear("user:*") == 1

        hub.job(JobConfig(name="cleanup", schedule="0 * * * *", task=lambda: None))
        assert hub.jobs.is_running("cleanup")

        record = await hub.health_check()
        assert record.status == HealthStatus.HEALTHY
        assert record.kinds == {"cache": ResourceKind.REDIS}

    assert redis.closed
    assert not hub.started
    assert not hub.is_registered
    assert hub.registry.list() == ()
    assert not hub.jobs.is_running("cleanup")
    assert calls == ["before", "after"]
    assert requests == ["/register", "/unregister"]


@pytest.mark.asyncio
async def test_registration_failure_does_not_block_start(factory):
    """Test that a failed registration is logged and the hub still starts."""
    def handler(request):
        return httpx.Response(503)

    client = RegistrationClient(
        RegistrationConfig(url="https://registry.example.com", retry_attempts=0),
        "orders",
        "1.0.0",
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )
    hub = ServiceHub(Environment.testing(), factory=factory, registration=client)

    await hub.start()
    try:
        assert hub.started
        assert not hub.is_registered
    finally:
        await hub.shutdown()


@pytest.mark.asyncio
async def test_cache_requires_acquired_resource(factory):
    """Test that cache() needs an acquired redis resource."""
    async with ServiceHub(Environment.testing(), factory=factory) as hub:
        with pytest.raises(NotFoundError):
            hub.cache("sessions")


@pytest.mark.asyncio
async def test_production_guard_through_hub(factory):
    """Test that the production guard applies to hub caches."""
    async with ServiceHub(Environment.production(), factory=factory) as hub:
        await hub.acquire("cache", "redis")
        with pytest.raises(SafetyGuardError):
            await hub.cache().clear()


@pytest.mark.asyncio
async def test_release_drops_cache_wrapper(factory):
    """Test that releasing a resource drops its cache wrapper."""
    async with ServiceHub(Environment.testing(), factory=factory) as hub:
        await hub.acquire("cache", "redis")
        first = hub.cache()
        await hub.release("cache")
        await hub.acquire("cache", "redis")

        assert hub.cache() is not first


@pytest.mark.asyncio
async def test_shutdown_without_start_is_empty():
    """Test that shutdown() before start() returns an empty report."""
    hub = ServiceHub(Environment.testing(), factory=AdapterFactory())

    report = await hub.shutdown()

    assert report.ok
    assert report.closed == []


def test_identity(factory):
    """Test that explicit app identity is used."""
    hub = ServiceHub(Environment.testing(), factory=factory, app_name="orders", app_version="1.0.0")

    assert (hub.app_name, hub.app_version) == ("orders", "1.0.0")
    info = hub.service_info()
    assert info.name == "orders"
    assert hub.environment.is_test()


@pytest.mark.asyncio
async def test_log_transports_are_drained_and_detached_on_shutdown(factory):
    """Test that hub log transports deliver, carry the app name and are removed at shutdown."""
    logger = logging.getLogger(f"servicehub.test.{uuid.uuid4().hex}")
    logger.setLevel(logging.INFO)
    logger.propagate = False
    received = []

    hub = ServiceHub(Environment.testing(), factory=factory, app_name="orders", app_version="1.0.0")
    async with hub:
        redis = await hub.acquire("cache", "redis")
        hub.add_log_transport(RedisStreamHandler(redis, stream="orders:logs"), logger)
        hub.add_log_transport(CallbackHandler(received.append), logger)

        logger.info("order placed", extra={"order_id": 7})

        assert [h.get_name() for h in logger.handlers] == ["redis-stream", "callback"]

    assert logger.handlers == []
    assert received[0]["appName"] == "orders"
    assert received[0]["order_id"] == 7
    (entry,) = redis.streams["orders:logs"]
    fields = dict(zip(entry[::2], entry[1::2]))
    assert fields["message"] == "order placed"
    assert fields["appName"] == "orders"


@pytest.mark.asyncio
async def test_log_transport_names(factory):
    """Test that unnamed handlers are named after their class and can be removed by name."""
    logger = logging.getLogger(f"servicehub.test.{uuid.uuid4().hex}")
    async with ServiceHub(Environment.testing(), factory=factory) as hub:
        handler = hub.add_log_transport(logging.NullHandler(), logger)

        assert handler.get_name() == "NullHandler"
        assert hub.remove_log_transport("NullHandler")
        assert not hub.remove_log_transport("NullHandler")
        assert logger.handlers == []
