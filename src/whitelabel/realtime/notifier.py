"""Notification fan-out called by domain services after a committed change.

Services depend on :class:`Notifier`, never on the Socket.IO server. Every
public method is fire-and-forget: it logs and swallows any failure, so a
notification problem can never fail the mutation that triggered it.

Audience split for a change scoped to tenant ``T`` with owning tenant ``O``:

1. ``tenant:T``                  reduced payload, ``<entity>:<kind>``
2. ``tenant:T:admins``           full payload,    ``<entity>:<kind>:admin``
3. ``tenant:T:principal:O``      reduced payload, ``<entity>:<kind>:member``

Unscoped changes go once to the global ``admins`` room with the full payload.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, TypeVar

import structlog

from whitelabel.realtime.events import (
    Audience,
    ChangeKind,
    EntityType,
    NotificationEvent,
    ProductPayload,
    RemovedEntity,
    SupplierPayload,
    TenantPayload,
    UserPayload,
    WireModel,
    as_identifier,
)
from whitelabel.realtime.rooms import (
    GLOBAL_ADMIN_ROOM,
    TenantAdminRoom,
    TenantPrincipalRoom,
    TenantRoom,
    room_key,
)

if TYPE_CHECKING:
    from whitelabel.realtime.transport import RoomTransport

logger = structlog.get_logger()

M = TypeVar("M", bound=WireModel)


def plan_fan_out(
    entity_type: EntityType,
    kind: ChangeKind,
    *,
    full: dict[str, Any],
    reduced: dict[str, Any],
    scope: str | None,
    owner_tenant_id: str | None = None,
) -> list[NotificationEvent]:
    """Work out which rooms receive which payload, in dispatch order."""
    if not scope:
        return [
            NotificationEvent(
                kind=kind,
                entity_type=entity_type,
                audience=Audience.GLOBAL_ADMINS,
                room=room_key(GLOBAL_ADMIN_ROOM),
                payload=full,
            )
        ]

    events = [
        NotificationEvent(
            kind=kind,
            entity_type=entity_type,
            audience=Audience.ALL_TENANT_MEMBERS,
            room=room_key(TenantRoom(scope)),
            payload=reduced,
            tenant_id=scope,
        ),
        NotificationEvent(
            kind=kind,
            entity_type=entity_type,
            audience=Audience.TENANT_ADMINS,
            room=room_key(TenantAdminRoom(scope)),
            payload=full,
            tenant_id=scope,
        ),
    ]
    if owner_tenant_id:
        events.append(
            NotificationEvent(
                kind=kind,
                entity_type=entity_type,
                audience=Audience.OWNER_MEMBERS,
                room=room_key(TenantPrincipalRoom(scope, owner_tenant_id)),
                payload=reduced,
                tenant_id=scope,
            )
        )
    return events


def _coerce(model: type[M], entity: Any) -> M:
    if isinstance(entity, model):
        return entity
    return model.model_validate(entity)


class Notifier(ABC):
    """One method per entity and change kind. Returns the number of pushes issued."""

    # -- Tenants --
    # A tenant is its own scope only for updates; creations and removals
    # concern platform admins unless a scope is given explicitly.

    async def tenant_created(self, tenant: Any, tenant_id: str | None = None) -> int:
        return await self._notify_entity(
            EntityType.TENANT, ChangeKind.CREATED, TenantPayload, tenant, tenant_id, None
        )

    async def tenant_updated(self, tenant: Any, tenant_id: str | None = None) -> int:
        return await self._notify_entity(
            EntityType.TENANT, ChangeKind.UPDATED, TenantPayload, tenant, tenant_id, "id"
        )

    async def tenant_removed(self, entity_id: str, tenant_id: str | None = None) -> int:
        return await self._notify_removed(EntityType.TENANT, entity_id, tenant_id)

    # -- Products --

    async def product_created(self, product: Any, tenant_id: str | None = None) -> int:
        return await self._notify_entity(
            EntityType.PRODUCT, ChangeKind.CREATED, ProductPayload, product, tenant_id, "client_id"
        )

    async def product_updated(self, product: Any, tenant_id: str | None = None) -> int:
        return await self._notify_entity(
            EntityType.PRODUCT, ChangeKind.UPDATED, ProductPayload, product, tenant_id, "client_id"
        )

    async def product_removed(self, entity_id: str, tenant_id: str | None = None) -> int:
        return await self._notify_removed(EntityType.PRODUCT, entity_id, tenant_id)

    # -- Suppliers (platform-level, no owning tenant) --

    async def supplier_created(self, supplier: Any, tenant_id: str | None = None) -> int:
        return await self._notify_entity(
            EntityType.SUPPLIER, ChangeKind.CREATED, SupplierPayload, supplier, tenant_id, None
        )

    async def supplier_updated(self, supplier: Any, tenant_id: str | None = None) -> int:
        return await self._notify_entity(
            EntityType.SUPPLIER, ChangeKind.UPDATED, SupplierPayload, supplier, tenant_id, None
        )

    async def supplier_removed(self, entity_id: str, tenant_id: str | None = None) -> int:
        return await self._notify_removed(EntityType.SUPPLIER, entity_id, tenant_id)

    # -- Users --

    async def user_updated(self, user: Any, tenant_id: str | None = None) -> int:
        return await self._notify_entity(
            EntityType.USER, ChangeKind.UPDATED, UserPayload, user, tenant_id, "client_id"
        )

    async def user_removed(self, entity_id: str, tenant_id: str | None = None) -> int:
        return await self._notify_removed(EntityType.USER, entity_id, tenant_id)

    # -- Internals --

    async def _notify_entity(
        self,
        entity_type: EntityType,
        kind: ChangeKind,
        model: type[WireModel],
        entity: Any,
        tenant_id: str | None,
        owner_field: str | None,
    ) -> int:
        tenant_id = as_identifier(tenant_id)
        try:
            payload = _coerce(model, entity)
            owner = getattr(payload, owner_field) if owner_field else None
            events = plan_fan_out(
                entity_type,
                kind,
                full=payload.to_wire(),
                reduced=payload.summary().to_wire(),
                scope=tenant_id or owner,
                owner_tenant_id=owner,
            )
        except Exception:
            logger.exception(
                "notification_failed",
                entity_type=str(entity_type),
                kind=str(kind),
                tenant_id=tenant_id,
            )
            return 0
        return await self._dispatch(events)

    async def _notify_removed(
        self, entity_type: EntityType, entity_id: str, tenant_id: str | None
    ) -> int:
        tenant_id = as_identifier(tenant_id)
        try:
            identifier = RemovedEntity(id=str(entity_id))
            events = plan_fan_out(
                entity_type,
                ChangeKind.REMOVED,
                full=RemovedEntity(id=str(entity_id), tenant_id=tenant_id).to_wire(),
                reduced=identifier.to_wire(),
                scope=tenant_id,
                owner_tenant_id=tenant_id if entity_type is not EntityType.SUPPLIER else None,
            )
        except Exception:
            logger.exception(
                "notification_failed",
                entity_type=str(entity_type),
                kind=str(ChangeKind.REMOVED),
                tenant_id=tenant_id,
            )
            return 0
        return await self._dispatch(events)

    @abstractmethod
    async def _dispatch(self, events: list[NotificationEvent]) -> int: ...


class GatewayNotifier(Notifier):
    """Pushes notifications through the realtime transport."""

    def __init__(self, transport: RoomTransport) -> None:
        self._transport = transport

    async def _dispatch(self, events: list[NotificationEvent]) -> int:
        sent = 0
        for event in events:
            try:
                await self._transport.emit(event.event_name, event.envelope(), to=event.room)
            except Exception:
                logger.exception(
                    "notification_failed",
                    event_name=event.event_name,
                    room=event.room,
                    tenant_id=event.tenant_id,
                )
                continue
            sent += 1
            logger.debug(
                "notification_dispatched",
                event_name=event.event_name,
                room=event.room,
                audience=str(event.audience),
                tenant_id=event.tenant_id,
            )
        return sent


class NullNotifier(Notifier):
    """Discards every notification. For services running without a gateway."""

    async def _dispatch(self, events: list[NotificationEvent]) -> int:
        return 0
