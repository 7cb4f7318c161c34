"""Realtime gateway: connection handshake and lifecycle on the ``/events`` namespace.

Handles:
- Credential + domain checks for every new connection (see ``handshake``)
- One-time room joins derived from the resolved identity
- Registry bookkeeping on establish/close
- Structured rejection followed by a delayed forced disconnect
"""

from __future__ import annotations

import asyncio
from dataclasses import replace
from typing import TYPE_CHECKING, Any

import structlog

from whitelabel.core.exceptions import HandshakeError
from whitelabel.realtime.handshake import HandshakeRequest
from whitelabel.realtime.lifecycle import ConnectionLifecycle, ConnectionState
from whitelabel.realtime.registry import ConnectionRegistry, Session
from whitelabel.realtime.rooms import room_key, rooms_for_session

if TYPE_CHECKING:
    from collections.abc import Mapping

    import socketio

    from whitelabel.realtime.handshake import HandshakeAuthenticator
    from whitelabel.realtime.transport import RoomTransport

logger = structlog.get_logger()

ACK_EVENT = "connected"
REJECTION_EVENT = "auth_error"


class RoomJoinError(HandshakeError):
    code = "room_join_failed"
    message = "Could not join realtime rooms."


class EventsGateway:
    def __init__(
        self,
        transport: RoomTransport,
        authenticator: HandshakeAuthenticator,
        registry: ConnectionRegistry | None = None,
        *,
        rejection_grace_seconds: float = 1.0,
    ) -> None:
        self._transport = transport
        self._authenticator = authenticator
        self._registry = registry if registry is not None else ConnectionRegistry()
        self._grace = rejection_grace_seconds
        self._lifecycles: dict[str, ConnectionLifecycle] = {}
        self._pending_closures: dict[str, asyncio.Task[None]] = {}

    @property
    def registry(self) -> ConnectionRegistry:
        return self._registry

    def register(self, sio: socketio.AsyncServer, namespace: str) -> None:
        """Install the connect/disconnect handlers on a Socket.IO server."""
        sio.on("connect", self.handle_connect, namespace=namespace)
        sio.on("disconnect", self.handle_disconnect, namespace=namespace)

    def state_of(self, connection_id: str) -> ConnectionState | None:
        lifecycle = self._lifecycles.get(connection_id)
        return lifecycle.state if lifecycle is not None else None

    # ------------------------------------------------------------------
    # Connect
    # ------------------------------------------------------------------

    async def handle_connect(
        self,
        sid: str,
        environ: Mapping[str, Any],
        auth: Mapping[str, Any] | None = None,
    ) -> None:
        lifecycle = ConnectionLifecycle(sid)
        self._lifecycles[sid] = lifecycle
        lifecycle.transition(ConnectionState.AUTHENTICATING)

        try:
            request = HandshakeRequest.from_environ(environ, auth)
            session = await self._authenticator.authenticate(sid, request)
        except HandshakeError as exc:
            await self._reject(lifecycle, exc)
            return
        except Exception:
            logger.exception("realtime_handshake_error", connection_id=sid)
            await self._reject(lifecycle, HandshakeError())
            return

        if not self._is_open(lifecycle):
            logger.info("realtime_closed_during_handshake", connection_id=sid)
            return

        lifecycle.transition(ConnectionState.ROOM_JOINING)
        session = await self._join_rooms(lifecycle, session)
        if session is None:
            return

        self._registry.add(session)
        lifecycle.transition(ConnectionState.ESTABLISHED)

        logger.info(
            "realtime_client_connected",
            connection_id=sid,
            subject_id=session.subject_id,
            principal_tenant_id=session.principal_tenant_id,
            resolved_tenant_id=session.resolved_tenant_id,
            domain=session.resolved_domain,
            is_admin=session.is_admin,
        )
        await self._transport.emit(ACK_EVENT, session.acknowledgement(), to=sid)

    async def _join_rooms(
        self, lifecycle: ConnectionLifecycle, session: Session
    ) -> Session | None:
        sid = lifecycle.connection_id
        keys = [
            room_key(ref)
            for ref in rooms_for_session(
                session.subject_id,
                session.principal_tenant_id,
                session.resolved_tenant_id,
                is_admin=session.is_admin,
            )
        ]
        joined: list[str] = []
        # Room membership is process-local in python-socketio (the Redis manager
        # only relays emits), so these awaits never yield to a concurrent fan-out.
        try:
            for key in keys:
                await self._transport.enter_room(sid, key)
                joined.append(key)
        except Exception:
            logger.exception("realtime_room_join_failed", connection_id=sid, joined=joined)
            await self._leave_rooms(sid, joined)
            await self._reject(lifecycle, RoomJoinError())
            return None

        if not self._is_open(lifecycle):
            await self._leave_rooms(sid, joined)
            logger.info("realtime_closed_during_handshake", connection_id=sid)
            return None

        return replace(session, rooms=tuple(keys))

    async def _leave_rooms(self, sid: str, rooms: list[str]) -> None:
        for key in rooms:
            try:
                await self._transport.leave_room(sid, key)
            except Exception:
                logger.warning("realtime_room_leave_failed", connection_id=sid, room=key)

    def _is_open(self, lifecycle: ConnectionLifecycle) -> bool:
        """False once the transport dropped the connection mid-handshake."""
        return self._lifecycles.get(lifecycle.connection_id) is lifecycle

    # ------------------------------------------------------------------
    # Reject
    # ------------------------------------------------------------------

    async def _reject(self, lifecycle: ConnectionLifecycle, error: HandshakeError) -> None:
        sid = lifecycle.connection_id
        if not self._is_open(lifecycle):
            return
        lifecycle.transition(ConnectionState.REJECTED)

        logger.warning(
            "realtime_handshake_rejected",
            connection_id=sid,
            code=error.code,
            reason=error.message,
        )
        try:
            await self._transport.emit(
                REJECTION_EVENT, {"message": error.message, "code": error.code}, to=sid
            )
        except Exception:
            logger.warning("realtime_rejection_not_sent", connection_id=sid)

        self._pending_closures[sid] = asyncio.create_task(self._close_after_grace(sid))

    async def _close_after_grace(self, sid: str) -> None:
        await asyncio.sleep(self._grace)
        lifecycle = self._lifecycles.get(sid)
        if lifecycle is None or lifecycle.state is not ConnectionState.REJECTED:
            return
        try:
            await self._transport.disconnect(sid)
        except Exception:
            logger.warning("realtime_forced_disconnect_failed", connection_id=sid)

        # Socket.IO calls handle_disconnect itself; other transports may not.
        self._pending_closures.pop(sid, None)
        if self._lifecycles.get(sid) is lifecycle:
            await self.handle_disconnect(sid, "rejected")

    # ------------------------------------------------------------------
    # Disconnect
    # ------------------------------------------------------------------

    async def handle_disconnect(self, sid: str, reason: Any = None) -> None:
        lifecycle = self._lifecycles.pop(sid, None)
        session = self._registry.remove(sid)

        if lifecycle is not None and lifecycle.can_transition(ConnectionState.CLOSED):
            lifecycle.transition(ConnectionState.CLOSED)

        pending = self._pending_closures.pop(sid, None)
        if pending is not None and pending is not asyncio.current_task() and not pending.done():
            pending.cancel()

        if lifecycle is None and session is None:
            return

        logger.info(
            "realtime_client_disconnected",
            connection_id=sid,
            subject_id=session.subject_id if session else None,
            resolved_tenant_id=session.resolved_tenant_id if session else None,
            reason=str(reason) if reason is not None else None,
        )

    async def aclose(self) -> None:
        """Cancel outstanding forced disconnects. Called on app shutdown."""
        tasks = list(self._pending_closures.values())
        self._pending_closures.clear()
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def connection_count(self) -> int:
        return self._registry.count()

    def connections_for_tenant(self, tenant_id: str) -> list[Session]:
        return self._registry.list_by_tenant(tenant_id)

    def is_user_connected(self, subject_id: str, tenant_id: str | None = None) -> bool:
        return self._registry.is_user_connected(subject_id, tenant_id)
