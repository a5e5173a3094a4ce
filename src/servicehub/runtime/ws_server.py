"""
WebSocket server resource.

A standalone realtime transport: clients connect, join or leave rooms with
JSON control messages, and the application pushes events to everybody or to a
single room with emit().

Client messages:
    {"event": "join-room", "room": "ops"}
    {"event": "leave-room", "room": "ops"}
    {"event": "<custom>", "data": ...}      # dispatched to on() listeners

Server messages:
    {"event": "<name>", "data": ...}
"""

from __future__ import annotations

import asyncio
import inspect
import json
from collections import defaultdict
from http import HTTPStatus
from typing import Any, Callable, Optional
from urllib.parse import parse_qs, urlsplit

from websockets.asyncio.server import Server, ServerConnection, broadcast, serve
from websockets.exceptions import ConnectionClosed
from websockets.http11 import Request, Response

from servicehub.config.logging_config import get_logger
from servicehub.runtime.adapters import ResourceAdapter
from servicehub.runtime.types import ResourceKind, WebSocketConfig

log = get_logger(__name__)

Listener = Callable[[Any], Any]


class WebSocketServerAdapter(ResourceAdapter):
    kind = ResourceKind.WEBSOCKET

    def __init__(self, config: WebSocketConfig):
        super().__init__(config)
        self.config: WebSocketConfig = config
        self._server: Optional[Server] = None
        self._connections: set[ServerConnection] = set()
        self._rooms: dict[str, set[ServerConnection]] = defaultdict(set)
        self._listeners: dict[str, list[Listener]] = defaultdict(list)

    @property
    def server(self) -> Optional[Server]:
        return self._server

    @property
    def port(self) -> int:
        """The bound port (useful when configured with port 0)."""
        if self._server is None:
            raise RuntimeError("WebSocket server is not running")
        for sock in self._server.sockets:
            return sock.getsockname()[1]
        return self.config.port

    @property
    def connection_count(self) -> int:
        return len(self._connections)

    async def open(self) -> None:
        if self._server is not None:
            return
        log.info(f"Creating WebSocket server on {self.config.host}:{self.config.port}")
        self._server = await serve(
            self._handle,
            self.config.host,
            self.config.port,
            process_request=self._process_request,
        )

    def _authenticated(self, request: Request) -> bool:
        if not self.config.enable_auth:
            return True
        token = None
        authorization = request.headers.get("Authorization")
        if authorization and authorization.lower().startswith("bearer "):
            token = authorization[7:].strip()
        if token is None:
            token = parse_qs(urlsplit(request.path).query).get("token", [None])[0]
        return token == self.config.auth_token

    def _process_request(self, connection: ServerConnection, request: Request) -> Optional[Response]:
        """Reject unauthenticated clients with 401 before the handshake completes."""
        if self._authenticated(request):
            return None
        log.warning(f"Rejected unauthenticated WebSocket client {connection.id}")
        return connection.respond(HTTPStatus.UNAUTHORIZED, "Authentication failed\n")

    async def _handle(self, connection: ServerConnection) -> None:
        self._connections.add(connection)
        log.debug(f"WebSocket client connected {connection.id}")
        try:
            async for raw in connection:
                await self._dispatch(connection, raw)
        except ConnectionClosed:
            pass
        finally:
            self._connections.discard(connection)
            for members in self._rooms.values():
                members.discard(connection)
            log.debug(f"WebSocket client disconnected {connection.id}")

    async def _dispatch(self, connection: ServerConnection, raw: str | bytes) -> None:
        try:
            message = json.loads(raw)
        except (TypeError, ValueError):
            log.debug(f"Ignoring non-JSON message from {connection.id}")
            return
        if not isinstance(message, dict):
            return

        event = message.get("event")
        if event == "join-room" and message.get("room"):
            room = str(message["room"])
            self._rooms[room].add(connection)
            await connection.send(json.dumps({"event": "room-joined", "data": {"room": room}}))
        elif event == "leave-room" and message.get("room"):
            room = str(message["room"])
            self._rooms[room].discard(connection)
            await connection.send(json.dumps({"event": "room-left", "data": {"room": room}}))
        elif isinstance(event, str):
            for listener in list(self._listeners.get(event, ())):
                try:
                    result = listener(message.get("data"))
                    if inspect.isawaitable(result):
                        await result
                except Exception as e:
                    log.error(f"WebSocket listener for '{event}' failed: {e}")

    def on(self, event: str, listener: Listener) -> None:
        """Register a listener for a client-sent event."""
        self._listeners[event].append(listener)

    def emit(self, event: str, data: Any, room: Optional[str] = None) -> None:
        """Send ``{"event", "data"}`` to every client, or only to members of ``room``."""
        if self._server is None:
            raise RuntimeError("WebSocket server is not running")
        targets = self._rooms.get(room, set()) if room else self._connections
        broadcast(set(targets), json.dumps({"event": event, "data": data}, default=str))

    def emit_to_room(self, room: str, event: str, data: Any) -> None:
        self.emit(event, data, room)

    async def probe(self) -> bool:
        return self._server is not None

    async def close(self) -> None:
        if self._server is None:
            return
        server, self._server = self._server, None
        server.close()
        await asyncio.wait_for(server.wait_closed(), timeout=10)
        self._connections.clear()
        self._rooms.clear()
        log.debug("Closed WebSocket server")
