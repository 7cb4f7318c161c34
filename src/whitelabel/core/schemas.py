"""Pydantic v2 schemas shared across the API and the realtime gateway."""

from __future__ import annotations

from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """Standard error response body."""

    code: str
    message: str
    detail: dict[str, object] | None = None


class TokenClaims(BaseModel):
    """Claims extracted from a verified access token.

    ``tenant_id`` may be absent for platform admins who work across tenants.
    """

    sub: str
    tenant_id: str | None = None
    role: str | None = None
    email: str | None = None
    exp: int | None = None


class TenantRecord(BaseModel):
    """Directory view of a tenant, as needed for connection scoping."""

    model_config = {"from_attributes": True}

    id: str
    name: str
    domain: str
    is_active: bool = True


class HealthResponse(BaseModel):
    status: str
    database: str
    realtime_connections: int
    version: str
