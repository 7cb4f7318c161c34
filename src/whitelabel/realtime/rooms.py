"""Broadcast room naming and membership.

Rooms are Socket.IO rooms scoped by the tenant a connection *resolved to*
(from its domain), never by the tenant its token merely asserts. The tenant id
is embedded in every tenant-level key so two tenants can never share a room.

Room patterns:
    tenant:{tenant_id}
    tenant:{tenant_id}:user:{subject_id}
    tenant:{tenant_id}:principal:{principal_tenant_id}
    tenant:{tenant_id}:admins
    admins
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class TenantRoom:
    """Every connection that resolved to the tenant."""

    tenant_id: str


@dataclass(frozen=True, slots=True)
class TenantUserRoom:
    """Private channel to one principal within one tenant."""

    tenant_id: str
    subject_id: str


@dataclass(frozen=True, slots=True)
class TenantPrincipalRoom:
    """Connections on a tenant grouped by the tenant their token belongs to."""

    tenant_id: str
    principal_tenant_id: str | None


@dataclass(frozen=True, slots=True)
class TenantAdminRoom:
    """Admins connected to one tenant."""

    tenant_id: str


@dataclass(frozen=True, slots=True)
class GlobalAdminRoom:
    """All admins across all tenants."""


RoomRef = TenantRoom | TenantUserRoom | TenantPrincipalRoom | TenantAdminRoom | GlobalAdminRoom

GLOBAL_ADMIN_ROOM = GlobalAdminRoom()


def room_key(room: RoomRef) -> str:
    """Serialise a room reference to its transport-level name."""
    match room:
        case TenantRoom(tenant_id=tenant_id):
            return f"tenant:{tenant_id}"
        case TenantUserRoom(tenant_id=tenant_id, subject_id=subject_id):
            return f"tenant:{tenant_id}:user:{subject_id}"
        case TenantPrincipalRoom(tenant_id=tenant_id, principal_tenant_id=principal):
            return f"tenant:{tenant_id}:principal:{principal or 'none'}"
        case TenantAdminRoom(tenant_id=tenant_id):
            return f"tenant:{tenant_id}:admins"
        case GlobalAdminRoom():
            return "admins"
    raise TypeError(f"Unknown room reference: {room!r}")


def rooms_for_session(
    subject_id: str,
    principal_tenant_id: str | None,
    resolved_tenant_id: str,
    *,
    is_admin: bool,
) -> list[RoomRef]:
    """Mandatory join set for an authenticated connection.

    The principal room is joined even when it coincides with the tenant the
    connection resolved to; it is what ``:member`` events target.
    """
    rooms: list[RoomRef] = [
        TenantRoom(resolved_tenant_id),
        TenantUserRoom(resolved_tenant_id, subject_id),
        TenantPrincipalRoom(resolved_tenant_id, principal_tenant_id),
    ]
    if is_admin:
        rooms.append(TenantAdminRoom(resolved_tenant_id))
        rooms.append(GLOBAL_ADMIN_ROOM)
    return rooms
