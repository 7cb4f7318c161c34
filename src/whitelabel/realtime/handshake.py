"""Connection handshake: credential extraction, domain resolution, tenant check.

A connection carries two independent identity signals that must agree:

1. The bearer token, which names the user and the tenant they belong to.
2. The domain the browser is on (``Origin``, else ``Host``), which the tenant
   directory maps to the tenant the connection is actually talking to.

Browsers cannot set arbitrary headers on a WebSocket upgrade, so the token is
looked up in (order matters):

1. ``Authorization: Bearer <token>`` header
2. ``auth={"token": ...}`` payload sent with the Socket.IO connect packet
3. ``?token=<token>`` query parameter
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Protocol
from urllib.parse import parse_qs, urlsplit

import structlog

from whitelabel.core.exceptions import (
    MissingCredentialError,
    TenantMismatchError,
    TenantNotFoundError,
)
from whitelabel.realtime.registry import Session

if TYPE_CHECKING:
    from whitelabel.core.schemas import TenantRecord, TokenClaims

logger = structlog.get_logger()

UNKNOWN_DOMAIN = "unknown"


class TokenVerifier(Protocol):
    async def verify_token(self, token: str) -> TokenClaims: ...


class TenantLookup(Protocol):
    async def lookup(self, domain: str) -> TenantRecord | None: ...


@dataclass(frozen=True, slots=True)
class HandshakeRequest:
    """Transport-agnostic view of a connection attempt. Header names are lower-case."""

    headers: Mapping[str, str] = field(default_factory=dict)
    auth: Mapping[str, Any] | None = None
    query: Mapping[str, str] = field(default_factory=dict)

    @classmethod
    def from_environ(
        cls, environ: Mapping[str, Any], auth: Mapping[str, Any] | None = None
    ) -> HandshakeRequest:
        """Build from the WSGI-style environ python-socketio hands to ``connect``."""
        headers: dict[str, str] = {}
        for key, value in environ.items():
            if key.startswith("HTTP_"):
                headers[key[5:].replace("_", "-").lower()] = str(value)
        query = {
            name: values[0]
            for name, values in parse_qs(environ.get("QUERY_STRING", "")).items()
            if values
        }
        return cls(headers=headers, auth=auth if isinstance(auth, Mapping) else None, query=query)


def extract_token(request: HandshakeRequest) -> str:
    """Return the first credential found. Raises MissingCredentialError."""
    parts = request.headers.get("authorization", "").split(None, 1)
    if parts and parts[0].lower() == "bearer":
        parts = parts[1:]
    if parts:
        return parts[0].strip()

    if request.auth:
        token = request.auth.get("token")
        if isinstance(token, str) and token.strip():
            return token.strip()

    token = request.query.get("token", "").strip()
    if token:
        return token

    raise MissingCredentialError()


def _hostname(netloc: str) -> str | None:
    try:
        host = urlsplit(f"//{netloc}").hostname
    except ValueError:
        return None
    return host or None


def resolve_domain(request: HandshakeRequest, *, trust_forwarded_host: bool = False) -> str:
    """Hostname the client connected through, port stripped.

    Falls back to ``"unknown"``, which no tenant owns.
    """
    origin = request.headers.get("origin", "").strip()
    if origin and origin != "null":
        try:
            host = urlsplit(origin).hostname
        except ValueError:
            host = None
        if host:
            return host

    candidates = []
    if trust_forwarded_host:
        # Proxies may send a comma-separated chain; the first hop is the client's.
        candidates.append(request.headers.get("x-forwarded-host", "").split(",")[0].strip())
    candidates.append(request.headers.get("host", "").strip())

    for candidate in candidates:
        if candidate:
            host = _hostname(candidate)
            if host:
                return host

    return UNKNOWN_DOMAIN


class HandshakeAuthenticator:
    """Runs credential and tenant checks for a new connection.

    Returns a Session without rooms; the gateway computes and joins rooms
    afterwards. Every failure raises a HandshakeError subclass.
    """

    def __init__(
        self,
        verifier: TokenVerifier,
        directory: TenantLookup,
        *,
        admin_role: str = "admin",
        trust_forwarded_host: bool = False,
    ) -> None:
        self._verifier = verifier
        self._directory = directory
        self._admin_role = admin_role
        self._trust_forwarded_host = trust_forwarded_host

    async def authenticate(self, connection_id: str, request: HandshakeRequest) -> Session:
        token = extract_token(request)
        claims = await self._verifier.verify_token(token)

        domain = resolve_domain(request, trust_forwarded_host=self._trust_forwarded_host)
        tenant = await self._directory.lookup(domain)
        if tenant is None or not tenant.is_active:
            raise TenantNotFoundError(
                f"Tenant not found for domain: {domain}", detail={"domain": domain}
            )

        is_admin = claims.role == self._admin_role
        if claims.tenant_id != tenant.id and not is_admin:
            logger.warning(
                "realtime_tenant_mismatch",
                connection_id=connection_id,
                subject_id=claims.sub,
                principal_tenant_id=claims.tenant_id,
                resolved_tenant_id=tenant.id,
                domain=domain,
            )
            raise TenantMismatchError(
                detail={"domain": domain, "resolved_tenant_id": tenant.id},
            )

        return Session(
            connection_id=connection_id,
            subject_id=claims.sub,
            principal_tenant_id=claims.tenant_id,
            role=claims.role,
            resolved_domain=domain,
            resolved_tenant_id=tenant.id,
            is_admin=is_admin,
        )
