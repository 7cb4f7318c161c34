"""Room transport: the only place that talks to the Socket.IO server.

The gateway and the notifier depend on :class:`RoomTransport`; production wires
in :class:`SocketIOTransport`, tests use a recording double.
"""

from __future__ import annotations

from typing import Any, Protocol

import socketio

from whitelabel.core.config import Settings, settings


class RoomTransport(Protocol):
    async def enter_room(self, connection_id: str, room: str) -> None: ...

    async def leave_room(self, connection_id: str, room: str) -> None: ...

    async def emit(self, event: str, data: dict[str, Any], *, to: str) -> None: ...

    async def disconnect(self, connection_id: str) -> None: ...


class SocketIOTransport:
    """Adapter over ``socketio.AsyncServer`` bound to one namespace."""

    def __init__(self, sio: socketio.AsyncServer, namespace: str) -> None:
        self._sio = sio
        self._namespace = namespace

    async def enter_room(self, connection_id: str, room: str) -> None:
        await self._sio.enter_room(connection_id, room, namespace=self._namespace)

    async def leave_room(self, connection_id: str, room: str) -> None:
        await self._sio.leave_room(connection_id, room, namespace=self._namespace)

    async def emit(self, event: str, data: dict[str, Any], *, to: str) -> None:
        await self._sio.emit(event, data, to=to, namespace=self._namespace)

    async def disconnect(self, connection_id: str) -> None:
        await self._sio.disconnect(connection_id, namespace=self._namespace)


def create_socketio_server(config: Settings = settings) -> socketio.AsyncServer:
    """Build the Socket.IO server.

    ``always_connect`` must stay on: ``auth_error`` is emitted to a connection
    the gateway is about to reject, which requires it to be accepted first.
    """
    client_manager = None
    if config.realtime_use_redis:
        client_manager = socketio.AsyncRedisManager(config.redis_url)

    return socketio.AsyncServer(
        async_mode="asgi",
        cors_allowed_origins=config.cors_allowed_origins,
        client_manager=client_manager,
        always_connect=True,
        logger=False,
        engineio_logger=False,
    )
