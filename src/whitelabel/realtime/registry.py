"""In-memory table of connected, fully authenticated sessions.

Written at exactly two points: insert when a connection becomes established
and delete when it closes. Everything else only reads.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime


@dataclass(frozen=True, slots=True)
class Session:
    """Resolved identity of one established connection."""

    connection_id: str
    subject_id: str
    principal_tenant_id: str | None
    role: str | None
    resolved_domain: str
    resolved_tenant_id: str
    is_admin: bool = False
    rooms: tuple[str, ...] = ()
    connected_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    def acknowledgement(self) -> dict[str, object]:
        """Payload of the ``connected`` event sent to the client."""
        return {
            "subjectId": self.subject_id,
            "principalTenantId": self.principal_tenant_id,
            "resolvedDomain": self.resolved_domain,
            "resolvedTenantId": self.resolved_tenant_id,
            "rooms": list(self.rooms),
        }


class ConnectionRegistry:
    def __init__(self) -> None:
        self._sessions: dict[str, Session] = {}

    def add(self, session: Session) -> None:
        if session.connection_id in self._sessions:
            raise ValueError(f"Connection {session.connection_id} is already registered.")
        self._sessions[session.connection_id] = session

    def remove(self, connection_id: str) -> Session | None:
        """Drop a connection. Unknown ids are ignored."""
        return self._sessions.pop(connection_id, None)

    def get(self, connection_id: str) -> Session | None:
        return self._sessions.get(connection_id)

    def count(self) -> int:
        return len(self._sessions)

    def list_by_tenant(self, tenant_id: str) -> list[Session]:
        """Sessions whose connection resolved to ``tenant_id``."""
        return [s for s in self._sessions.values() if s.resolved_tenant_id == tenant_id]

    def is_user_connected(self, subject_id: str, tenant_id: str | None = None) -> bool:
        return any(
            s.subject_id == subject_id
            and (tenant_id is None or s.resolved_tenant_id == tenant_id)
            for s in self._sessions.values()
        )

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, connection_id: object) -> bool:
        return connection_id in self._sessions
