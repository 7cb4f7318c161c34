"""Tenant directory — resolves a request domain to its tenant.

The tenants table is platform-level. Only active tenants are resolvable; an
inactive storefront behaves as if its domain were unknown.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog
from sqlalchemy import func, select

from whitelabel.core.models import Tenant
from whitelabel.core.schemas import TenantRecord

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

logger = structlog.get_logger()


class TenantDirectory:
    """Looks tenants up by domain, opening one short-lived session per lookup."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def lookup(self, domain: str) -> TenantRecord | None:
        """Return the active tenant owning ``domain``, or ``None``."""
        normalised = domain.strip().lower()
        async with self._session_factory() as session:
            result = await session.execute(
                select(Tenant).where(
                    func.lower(Tenant.domain) == normalised,
                    Tenant.is_active.is_(True),
                )
            )
            tenant = result.scalar_one_or_none()

        if tenant is None:
            logger.info("tenant_lookup_miss", domain=normalised)
            return None
        return TenantRecord.model_validate(tenant)
