"""
Service registry client.

Registers this process with an external collector (dashboard, service
catalogue) and keeps it informed with periodic heartbeats.

Two transports are supported:

- HTTP: ``POST {url}/register``, ``{url}/heartbeat`` and ``{url}/unregister``
  with a JSON body, retried with exponential backoff.
- Handler: an object with optional async ``register(info)``,
  ``heartbeat(info)`` and ``unregister(payload)`` methods. A handler method
  takes precedence over HTTP for its action.

Usage:
    client = RegistrationClient(
        RegistrationConfig(url="https://dashboard.example.com/api/services", api_key="..."),
    )
    await client.register()
    ...
    await client.unregister()
"""

from __future__ import annotations

import asyncio
import inspect
from typing import Any, Optional, Protocol

import httpx
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from servicehub.concurrency.retry import RetryPolicy
from servicehub.concurrency.timeout import with_timeout
from servicehub.config.logging_config import get_logger
from servicehub.errors import ConfigurationError, TransportError
from servicehub.registration.service_info import (
    ServiceInfo,
    UnregisterPayload,
    collect_service_info,
    resolve_identity,
)

log = get_logger(__name__)

MIN_REQUEST_TIMEOUT_MS = 1000
JITTER_MS = 100


class RegistryHandler(Protocol):
    """Callback transport. Every method is optional."""

    async def register(self, info: ServiceInfo) -> None: ...

    async def heartbeat(self, info: ServiceInfo) -> None: ...

    async def unregister(self, payload: UnregisterPayload) -> None: ...


class RegistrationConfig(BaseModel):
    """Registry settings. Accepts snake_case or camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, arbitrary_types_allowed=True)

    url: Optional[str] = None
    handler: Optional[Any] = None
    api_key: Optional[str] = None
    heartbeat_interval: int = Field(default=30000, gt=0, description="Heartbeat interval in ms")
    request_timeout_ms: int = 5000
    retry_attempts: int = 2
    retry_base_delay_ms: int = 300
    metadata: Optional[dict[str, Any]] = None


class RegistrationClient:
    """Registers the service and maintains a heartbeat while registered."""

    def __init__(
        self,
        config: RegistrationConfig | dict[str, Any],
        app_name: Optional[str] = None,
        app_version: Optional[str] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        if isinstance(config, dict):
            try:
                config = RegistrationConfig.model_validate(config)
            except ValueError as e:
                raise ConfigurationError(f"Invalid registry configuration: {e}") from e
        if not config.url and config.handler is None:
            raise ConfigurationError("RegistrationClient requires either a url or a handler")

        self.config = config
        self.name, self.version = resolve_identity(app_name, app_version)
        self._http_client = http_client
        self._owns_http_client = http_client is None
        self._heartbeat_task: Optional[asyncio.Task[None]] = None
        self._registered = False

        self.request_timeout = max(MIN_REQUEST_TIMEOUT_MS, config.request_timeout_ms) / 1000
        self.retry_policy = RetryPolicy(
            max_retries=max(0, config.retry_attempts),
            initial_delay=max(0, config.retry_base_delay_ms) / 1000,
            exponential_base=2.0,
            max_delay=float("inf"),
            jitter=JITTER_MS / 1000,
        )

    @property
    def is_registered(self) -> bool:
        return self._registered

    @property
    def heartbeat_active(self) -> bool:
        return self._heartbeat_task is not None and not self._heartbeat_task.done()

    @property
    def _has_heartbeat_target(self) -> bool:
        return bool(self.config.url) or callable(getattr(self.config.handler, "heartbeat", None))

    def service_info(self) -> ServiceInfo:
        """Current identity plus live process metrics."""
        return collect_service_info(self.name, self.version, self.config.metadata)

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.config.api_key:
            headers["Authorization"] = f"Bearer {self.config.api_key}"
        return headers

    def _get_http_client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient()
            self._owns_http_client = True
        return self._http_client

    async def _post(self, base_url: str, action: str, payload: dict[str, Any], retry: bool = True) -> httpx.Response:
        """POST ``payload`` to ``{url}/{action}``; every attempt is cancelled after the request timeout.

        Raises:
            TransportError: Every attempt failed. The last error is chained.
        """
        client = self._get_http_client()
        url = f"{base_url.rstrip('/')}/{action}"
        attempts = 0

        async def _attempt() -> httpx.Response:
            nonlocal attempts
            attempts += 1
            response = await with_timeout(
                lambda: client.post(url, json=payload, headers=self._headers()),
                timeout_seconds=self.request_timeout,
            )
            response.raise_for_status()
            return response

        try:
            if retry:
                return await self.retry_policy.execute(_attempt)
            return await _attempt()
        except Exception as e:
            raise TransportError(action, attempts, e) from e

    async def _execute(self, action: str, payload: BaseModel, retry: bool = True) -> None:
        method = getattr(self.config.handler, action, None)
        if callable(method):
            result = method(payload)
            if inspect.isawaitable(result):
                await result
            return
        if not self.config.url:
            raise ConfigurationError(f"Registry action '{action}' has no handler and no url configured")
        await self._post(self.config.url, action, payload.to_payload(), retry=retry)

    async def register(self) -> None:
        """Register and start the heartbeat.

        Raises:
            TransportError: HTTP registration failed after all retries.
            Exception: Whatever a handler's register() raised.
        """
        info = self.service_info()
        try:
            await self._execute("register", info)
        except Exception as e:
            log.error(f"Failed to register with registry: {e}", extra={"url": self.config.url})
            raise

        self._registered = True
        log.info(
            f"Service registered: {info.name}@{info.version}",
            extra={"hostname": info.hostname, "registry": self.config.url or "custom-handler"},
        )
        if self._has_heartbeat_target:
            self._start_heartbeat()

    async def send_heartbeat(self) -> None:
        """Send one heartbeat. Failures are logged, never raised."""
        try:
            await self._execute("heartbeat", self.service_info())
        except Exception as e:
            log.warning(f"Heartbeat failed: {e}")

    async def _heartbeat_loop(self) -> None:
        interval = self.config.heartbeat_interval / 1000
        while True:
            await asyncio.sleep(interval)
            await self.send_heartbeat()

    def _start_heartbeat(self) -> None:
        self._cancel_heartbeat()
        # A pending asyncio task does not keep the interpreter alive; asyncio.run cancels it on exit
        self._heartbeat_task = asyncio.create_task(self._heartbeat_loop(), name=f"heartbeat:{self.name}")

    def _cancel_heartbeat(self) -> Optional[asyncio.Task[None]]:
        task, self._heartbeat_task = self._heartbeat_task, None
        if task is not None and not task.done():
            task.cancel()
        return task

    async def stop_heartbeat(self) -> None:
        task = self._cancel_heartbeat()
        if task is None or task is asyncio.current_task():
            return
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def unregister(self) -> None:
        """Stop the heartbeat and send a single unregister call.

        Never raises: the process is going away regardless.
        """
        await self.stop_heartbeat()

        if not self._registered:
            return

        info = self.service_info()
        payload = UnregisterPayload(name=info.name, version=info.version, hostname=info.hostname, pid=info.pid)
        try:
            await self._execute("unregister", payload, retry=False)
            log.info("Service unregistered from registry")
        except Exception as e:
            log.warning(f"Failed to unregister (registry may be down): {e}")
        finally:
            self._registered = False

    async def aclose(self) -> None:
        """Stop the heartbeat and close the HTTP client if this client created it."""
        await self.stop_heartbeat()
        if self._http_client is not None and self._owns_http_client:
            await self._http_client.aclose()
            self._http_client = None
