"""Per-connection lifecycle state machine.

    connecting -> authenticating -> room_joining -> established -> closed
                        |                |
                        +---> rejected <-+---> closed

On top of that basic path, a connection may jump straight to ``closed`` from any
handshake step when the transport drops it; such a connection is never
registered. Nothing leaves ``rejected`` except ``closed``: a rejected connection
is never re-authenticated, the client has to open a new one.
"""

from __future__ import annotations

from enum import StrEnum

import structlog

logger = structlog.get_logger()


class ConnectionState(StrEnum):
    CONNECTING = "connecting"
    AUTHENTICATING = "authenticating"
    ROOM_JOINING = "room_joining"
    ESTABLISHED = "established"
    REJECTED = "rejected"
    CLOSED = "closed"


# Valid transitions: from -> set of allowed targets
_VALID_TRANSITIONS: dict[ConnectionState, set[ConnectionState]] = {
    ConnectionState.CONNECTING: {ConnectionState.AUTHENTICATING, ConnectionState.CLOSED},
    ConnectionState.AUTHENTICATING: {
        ConnectionState.ROOM_JOINING,
        ConnectionState.REJECTED,
        ConnectionState.CLOSED,
    },
    ConnectionState.ROOM_JOINING: {
        ConnectionState.ESTABLISHED,
        ConnectionState.REJECTED,
        ConnectionState.CLOSED,
    },
    ConnectionState.ESTABLISHED: {ConnectionState.CLOSED},
    ConnectionState.REJECTED: {ConnectionState.CLOSED},
    ConnectionState.CLOSED: set(),
}


class InvalidTransitionError(Exception):
    def __init__(self, current: ConnectionState, target: ConnectionState) -> None:
        self.current = current
        self.target = target
        super().__init__(f"Cannot transition from '{current}' to '{target}'.")


class ConnectionLifecycle:
    """Tracks the handshake progress of a single physical connection."""

    def __init__(self, connection_id: str) -> None:
        self.connection_id = connection_id
        self._state = ConnectionState.CONNECTING

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_established(self) -> bool:
        return self._state is ConnectionState.ESTABLISHED

    @property
    def is_terminal(self) -> bool:
        return self._state in (ConnectionState.REJECTED, ConnectionState.CLOSED)

    def can_transition(self, target: ConnectionState) -> bool:
        return target in _VALID_TRANSITIONS[self._state]

    def transition(self, target: ConnectionState) -> None:
        if not self.can_transition(target):
            raise InvalidTransitionError(self._state, target)
        logger.debug(
            "realtime_connection_state",
            connection_id=self.connection_id,
            from_state=str(self._state),
            to_state=str(target),
        )
        self._state = target
