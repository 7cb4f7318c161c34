"""Typed entity projections and notification events for the fan-out API.

Every entity has a *full* projection (admins) and a *reduced* projection (safe
subset for tenant members). Field names are camelCase on the wire: the browser
storefronts were written against that shape and must keep working.

Event names:
    <entity>:<kind>          tenant room, or global admins when unscoped
    <entity>:<kind>:admin    tenant admin room
    <entity>:<kind>:member   owning tenant's members on the scoped tenant
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, ConfigDict
from pydantic.alias_generators import to_camel


class EntityType(StrEnum):
    TENANT = "tenant"
    PRODUCT = "product"
    SUPPLIER = "supplier"
    USER = "user"


class ChangeKind(StrEnum):
    CREATED = "created"
    UPDATED = "updated"
    REMOVED = "removed"


class Audience(StrEnum):
    ALL_TENANT_MEMBERS = "all-tenant-members"
    TENANT_ADMINS = "tenant-admins"
    OWNER_MEMBERS = "owner-members"
    GLOBAL_ADMINS = "global-admins"


_AUDIENCE_SUFFIX: dict[Audience, str] = {
    Audience.ALL_TENANT_MEMBERS: "",
    Audience.TENANT_ADMINS: ":admin",
    Audience.OWNER_MEMBERS: ":member",
    Audience.GLOBAL_ADMINS: "",
}

_MESSAGES: dict[tuple[EntityType, ChangeKind], str] = {
    (EntityType.TENANT, ChangeKind.CREATED): "Store created",
    (EntityType.TENANT, ChangeKind.UPDATED): "Store settings updated",
    (EntityType.TENANT, ChangeKind.REMOVED): "Store removed",
    (EntityType.PRODUCT, ChangeKind.CREATED): "New product available",
    (EntityType.PRODUCT, ChangeKind.UPDATED): "Product updated",
    (EntityType.PRODUCT, ChangeKind.REMOVED): "Product is no longer available",
    (EntityType.SUPPLIER, ChangeKind.CREATED): "Supplier created",
    (EntityType.SUPPLIER, ChangeKind.UPDATED): "Supplier updated",
    (EntityType.SUPPLIER, ChangeKind.REMOVED): "Supplier removed",
    (EntityType.USER, ChangeKind.CREATED): "User created",
    (EntityType.USER, ChangeKind.UPDATED): "User updated",
    (EntityType.USER, ChangeKind.REMOVED): "User removed",
}


def event_name(entity_type: EntityType, kind: ChangeKind, audience: Audience) -> str:
    return f"{entity_type}:{kind}{_AUDIENCE_SUFFIX[audience]}"


# ---------------------------------------------------------------------------
# Entity projections
# ---------------------------------------------------------------------------


def as_identifier(value: Any) -> Any:
    """UUID (or integer) primary keys travel as strings."""
    if value is None or isinstance(value, str):
        return value
    return str(value)


WireId = Annotated[str, BeforeValidator(as_identifier)]


class WireModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
        extra="ignore",
    )

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    def summary(self) -> WireModel:
        """Reduced projection safe for every member of a tenant."""
        return self


class ProductSummary(WireModel):
    id: WireId
    name: str | None = None
    price: float | None = None


class ProductPayload(ProductSummary):
    description: str | None = None
    image: str | None = None
    gallery: list[str] | None = None
    category: str | None = None
    material: str | None = None
    department: str | None = None
    discount_value: str | None = None
    has_discount: bool | None = None
    details: Any = None
    external_id: WireId | None = None
    supplier_id: WireId | None = None
    client_id: WireId | None = None

    def summary(self) -> ProductSummary:
        return ProductSummary(id=self.id, name=self.name, price=self.price)


class TenantSummary(WireModel):
    id: WireId
    name: str | None = None
    domain: str | None = None
    logo: str | None = None
    primary_color: str | None = None
    secondary_color: str | None = None


class TenantPayload(TenantSummary):
    is_active: bool | None = None

    def summary(self) -> TenantSummary:
        return TenantSummary(
            id=self.id,
            name=self.name,
            domain=self.domain,
            logo=self.logo,
            primary_color=self.primary_color,
            secondary_color=self.secondary_color,
        )


class SupplierSummary(WireModel):
    id: WireId
    name: str | None = None
    type: str | None = None


class SupplierPayload(SupplierSummary):
    api_url: str | None = None
    is_active: bool | None = None

    def summary(self) -> SupplierSummary:
        return SupplierSummary(id=self.id, name=self.name, type=self.type)


class UserSummary(WireModel):
    id: WireId
    name: str | None = None


class UserPayload(UserSummary):
    email: str | None = None
    role: str | None = None
    is_active: bool | None = None
    client_id: WireId | None = None

    def summary(self) -> UserSummary:
        return UserSummary(id=self.id, name=self.name)


class RemovedEntity(WireModel):
    """Removal events never carry a snapshot of the removed entity."""

    id: WireId
    tenant_id: WireId | None = None


# ---------------------------------------------------------------------------
# Notification events
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class NotificationEvent:
    """One push to one room. Built and dispatched immediately, never stored."""

    kind: ChangeKind
    entity_type: EntityType
    audience: Audience
    room: str
    payload: dict[str, Any]
    tenant_id: str | None = None

    @property
    def event_name(self) -> str:
        return event_name(self.entity_type, self.kind, self.audience)

    @property
    def message(self) -> str:
        return _MESSAGES[(self.entity_type, self.kind)]

    def envelope(self) -> dict[str, Any]:
        """Wire body: ``{"message", "data"}`` plus the admin marker."""
        body: dict[str, Any] = {"message": self.message, "data": self.payload}
        if self.audience is Audience.TENANT_ADMINS:
            body["isAdminEvent"] = True
        return body
