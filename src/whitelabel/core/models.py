"""SQLAlchemy 2.0 models for the tables the realtime layer reads.

Only the tenants table is modelled here: the gateway resolves a connection's
domain to a tenant and never touches users, products or suppliers directly.

Note: Uses dialect-agnostic types so models work with both PostgreSQL
(production) and SQLite (unit tests).
"""

from __future__ import annotations

from datetime import UTC, datetime

import uuid_utils
from sqlalchemy import Boolean, DateTime, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from whitelabel.core.database import Base


def _new_id() -> str:
    return str(uuid_utils.uuid7())


def _utcnow() -> datetime:
    return datetime.now(UTC)


class Tenant(Base):
    """A whitelabel storefront, identified by its domain."""

    __tablename__ = "clients"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    name: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    domain: Mapped[str] = mapped_column(Text, nullable=False, unique=True, index=True)
    logo: Mapped[str | None] = mapped_column(Text, nullable=True)
    primary_color: Mapped[str | None] = mapped_column(String(16), nullable=True)
    secondary_color: Mapped[str | None] = mapped_column(String(16), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=_utcnow, onupdate=_utcnow
    )
