"""
Log transports.

Standard ``logging.Handler`` subclasses that ship records somewhere other than
the console: a Redis stream, an arbitrary callback, or the clients of a
WebSocket server. They are attached like any other handler, usually through
add_transport():

    add_transport(RedisStreamHandler(hub.get("cache"), stream="orders:logs"))
    add_transport(WebSocketBroadcastHandler(hub.get("ws")))

    log.info("Deploy finished", extra={"broadcast": True, "room": "ops", "version": "1.2.3"})

Per-record options travel in ``extra``:

- ``broadcast=True`` sends the record to WebSocket clients, to ``room`` only when given.
- ``persist=False`` keeps the record away from every stream and callback transport.
- ``persist=True`` delivers it even when the transport's filters would reject it.

Any other ``extra`` key is forwarded as metadata.

Delivery is fire-and-forget on the running event loop. A failed delivery is
reported as a warning on this module's logger, and transports never forward
records from that logger.
"""

from __future__ import annotations

import asyncio
import inspect
import json
import logging
from typing import Any, Awaitable, Callable, Optional, Union

from servicehub.config.logging_config import get_logger

log = get_logger(__name__)

CONTROL_KEYS = frozenset({"broadcast", "room", "persist"})
_RECORD_ATTRS = frozenset(vars(logging.LogRecord("", logging.INFO, "", 0, "", None, None))) | {
    "message",
    "asctime",
    "levelname_color",
    "taskName",
}

LogCallback = Callable[[dict[str, Any]], Union[Awaitable[Any], Any]]


def record_metadata(record: logging.LogRecord) -> dict[str, Any]:
    """The ``extra`` fields of a record, without the transport options."""
    return {
        key: value
        for key, value in vars(record).items()
        if key not in _RECORD_ATTRS and key not in CONTROL_KEYS and not key.startswith("_")
    }


def log_payload(record: logging.LogRecord, app_name: Optional[str] = None) -> dict[str, Any]:
    """Flatten a record into the dict every transport sends."""
    payload: dict[str, Any] = {
        **record_metadata(record),
        "level": record.levelname.lower(),
        "message": record.getMessage(),
        "logger": record.name,
        "timestamp": int(record.created * 1000),
    }
    if app_name:
        payload["appName"] = app_name
    if record.exc_info and record.exc_info[1] is not None:
        payload["error"] = repr(record.exc_info[1])
    return payload


class TransportHandler(logging.Handler):
    """
    Base class for asynchronous log transports.

    Subclasses implement deliver(); it may return an awaitable, which is run
    as a task on the current event loop. Records emitted with no running loop
    are dropped with a warning.
    """

    def __init__(self, name: Optional[str] = None, level: int = logging.NOTSET, app_name: Optional[str] = None):
        super().__init__(level)
        if name:
            self.set_name(name)
        self.app_name = app_name
        self._pending: set[asyncio.Task[Any]] = set()

    @property
    def pending(self) -> int:
        return len(self._pending)

    def filter(self, record: logging.LogRecord) -> bool:
        if record.name == log.name:
            return False
        persist = getattr(record, "persist", None)
        if persist is False:
            return False
        if persist is True:
            return True
        return bool(super().filter(record))

    def deliver(self, payload: dict[str, Any], record: logging.LogRecord) -> Optional[Awaitable[Any]]:
        raise NotImplementedError

    def emit(self, record: logging.LogRecord) -> None:
        try:
            result = self.deliver(log_payload(record, self.app_name), record)
        except Exception as e:
            self._report(e)
            return
        if inspect.isawaitable(result):
            self._schedule(result)

    def _schedule(self, awaitable: Awaitable[Any]) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            if inspect.iscoroutine(awaitable):
                awaitable.close()
            log.warning(f"Log transport {self._label} dropped a record: no running event loop")
            return
        task = loop.create_task(_await(awaitable), name=f"log-transport:{self._label}")
        self._pending.add(task)
        task.add_done_callback(self._finished)

    def _finished(self, task: asyncio.Task[Any]) -> None:
        self._pending.discard(task)
        if not task.cancelled() and task.exception() is not None:
            self._report(task.exception())

    def _report(self, error: BaseException) -> None:
        log.warning(f"Log transport {self._label} failed to send: {error}")

    @property
    def _label(self) -> str:
        return self.get_name() or type(self).__name__

    async def drain(self) -> None:
        """Wait for deliveries that are still in flight."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)


async def _await(awaitable: Awaitable[Any]) -> Any:
    return await awaitable


class RedisStreamHandler(TransportHandler):
    """
    Appends records to a Redis stream with ``XADD``.

    Each entry has ``level``, ``message``, ``logger``, ``timestamp``, the
    optional ``appName`` and a JSON ``meta`` field holding the metadata.
    ``maxlen`` caps the stream approximately (``MAXLEN ~``).
    """

    def __init__(
        self,
        backend: Any,
        stream: str = "servicehub:logs",
        maxlen: Optional[int] = None,
        name: str = "redis-stream",
        level: int = logging.NOTSET,
        app_name: Optional[str] = None,
    ):
        super().__init__(name, level, app_name)
        self.backend = backend
        self.stream = stream
        self.maxlen = maxlen

    def deliver(self, payload: dict[str, Any], record: logging.LogRecord) -> Awaitable[Any]:
        fields = dict(payload)
        entry: list[Any] = []
        for key in ("level", "message", "logger", "timestamp", "appName", "error"):
            if key in fields:
                entry.extend([key, str(fields.pop(key))])
        entry.extend(["meta", json.dumps(fields, default=str)])

        args: list[Any] = ["XADD", self.stream]
        if self.maxlen:
            args.extend(["MAXLEN", "~", self.maxlen])
        args.append("*")
        return self.backend.raw_command(*args, *entry)


class CallbackHandler(TransportHandler):
    """Hands every payload to a sync or async callable."""

    def __init__(
        self,
        callback: LogCallback,
        name: str = "callback",
        level: int = logging.NOTSET,
        app_name: Optional[str] = None,
    ):
        super().__init__(name, level, app_name)
        self.callback = callback

    def deliver(self, payload: dict[str, Any], record: logging.LogRecord) -> Optional[Awaitable[Any]]:
        result = self.callback(payload)
        return result if inspect.isawaitable(result) else None


class WebSocketBroadcastHandler(TransportHandler):
    """
    Emits records logged with ``extra={"broadcast": True}`` to WebSocket clients.

    ``room`` in the extra limits the broadcast to that room's members. The
    ``persist`` option does not apply here.
    """

    def __init__(
        self,
        server: Any,
        event: str = "log",
        name: str = "websocket",
        level: int = logging.NOTSET,
        app_name: Optional[str] = None,
    ):
        super().__init__(name, level, app_name)
        self.server = server
        self.event = event

    def filter(self, record: logging.LogRecord) -> bool:
        if record.name == log.name or not getattr(record, "broadcast", False):
            return False
        return bool(logging.Handler.filter(self, record))

    def deliver(self, payload: dict[str, Any], record: logging.LogRecord) -> None:
        self.server.emit(self.event, payload, getattr(record, "room", None))


def _resolve(logger: Union[logging.Logger, str, None]) -> logging.Logger:
    return logger if isinstance(logger, logging.Logger) else logging.getLogger(logger)


def add_transport(handler: logging.Handler, logger: Union[logging.Logger, str, None] = None) -> logging.Handler:
    """Attach ``handler`` to ``logger`` (the root logger by default).

    A handler already attached under the same name is replaced.
    """
    target = _resolve(logger)
    if handler.get_name():
        remove_transport(handler.get_name(), target)
    target.addHandler(handler)
    return handler


def remove_transport(name: str, logger: Union[logging.Logger, str, None] = None) -> Optional[logging.Handler]:
    """Detach and close the handler called ``name``. Returns it, or None when absent."""
    target = _resolve(logger)
    for handler in list(target.handlers):
        if handler.get_name() == name:
            target.removeHandler(handler)
            handler.close()
            return handler
    return None
