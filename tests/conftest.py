"""Shared test fixtures for the realtime layer.

Uses in-memory SQLite for the tenant directory (fast, no DB required) and a
recording transport in place of the Socket.IO server.
"""

from __future__ import annotations

from typing import Any

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from whitelabel.core.auth import AuthService
from whitelabel.core.database import Base
from whitelabel.core.models import Tenant
from whitelabel.core.tenant import TenantDirectory
from whitelabel.realtime.gateway import EventsGateway
from whitelabel.realtime.handshake import HandshakeAuthenticator
from whitelabel.realtime.registry import ConnectionRegistry

_TEST_DB_URL = "sqlite+aiosqlite:///:memory:"

TENANT_A_ID = "00000000-0000-0000-0000-00000000000a"
TENANT_B_ID = "00000000-0000-0000-0000-00000000000b"
TENANT_OFF_ID = "00000000-0000-0000-0000-0000000000ff"


class RecordingTransport:
    """In-memory RoomTransport that records every call and tracks room membership."""

    def __init__(self) -> None:
        self.rooms: dict[str, set[str]] = {}
        self.emitted: list[tuple[str, dict[str, Any], str]] = []
        self.disconnected: list[str] = []
        self.fail_on_room: str | None = None
        self.fail_emit_to: set[str] = set()

    async def enter_room(self, connection_id: str, room: str) -> None:
        if self.fail_on_room is not None and room == self.fail_on_room:
            raise RuntimeError(f"cannot join {room}")
        self.rooms.setdefault(room, set()).add(connection_id)

    async def leave_room(self, connection_id: str, room: str) -> None:
        self.rooms.get(room, set()).discard(connection_id)

    async def emit(self, event: str, data: dict[str, Any], *, to: str) -> None:
        if to in self.fail_emit_to:
            raise ConnectionError(f"emit to {to} failed")
        self.emitted.append((event, data, to))

    async def disconnect(self, connection_id: str) -> None:
        self.disconnected.append(connection_id)
        for members in self.rooms.values():
            members.discard(connection_id)

    def rooms_of(self, connection_id: str) -> set[str]:
        return {room for room, members in self.rooms.items() if connection_id in members}

    def events_to(self, room: str) -> list[tuple[str, dict[str, Any]]]:
        return [(event, data) for event, data, to in self.emitted if to == room]


def make_environ(
    *,
    origin: str | None = None,
    host: str | None = None,
    authorization: str | None = None,
    query: str = "",
    forwarded_host: str | None = None,
) -> dict[str, Any]:
    """WSGI-style environ as python-socketio passes it to the connect handler."""
    environ: dict[str, Any] = {"QUERY_STRING": query}
    if origin is not None:
        environ["HTTP_ORIGIN"] = origin
    if host is not None:
        environ["HTTP_HOST"] = host
    if authorization is not None:
        environ["HTTP_AUTHORIZATION"] = authorization
    if forwarded_host is not None:
        environ["HTTP_X_FORWARDED_HOST"] = forwarded_host
    return environ


@pytest.fixture
async def test_engine():
    """Create a test database engine with all tables."""
    engine = create_async_engine(_TEST_DB_URL, echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def session_factory(test_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(test_engine, expire_on_commit=False)


@pytest.fixture
async def tenants(session_factory: async_sessionmaker[AsyncSession]) -> dict[str, Tenant]:
    """Two active storefronts and one switched-off storefront."""
    rows = {
        "a": Tenant(id=TENANT_A_ID, name="Devnology", domain="devnology.com"),
        "b": Tenant(id=TENANT_B_ID, name="IN8", domain="in8.com"),
        "off": Tenant(id=TENANT_OFF_ID, name="Closed", domain="closed.shop", is_active=False),
    }
    async with session_factory() as session:
        session.add_all(rows.values())
        await session.commit()
    return rows


@pytest.fixture
def directory(session_factory: async_sessionmaker[AsyncSession], tenants) -> TenantDirectory:
    return TenantDirectory(session_factory)


@pytest.fixture
def auth_service() -> AuthService:
    return AuthService()


@pytest.fixture
def authenticator(auth_service: AuthService, directory: TenantDirectory) -> HandshakeAuthenticator:
    return HandshakeAuthenticator(auth_service, directory)


@pytest.fixture
def transport() -> RecordingTransport:
    return RecordingTransport()


@pytest.fixture
def registry() -> ConnectionRegistry:
    return ConnectionRegistry()


@pytest.fixture
async def gateway(
    transport: RecordingTransport,
    authenticator: HandshakeAuthenticator,
    registry: ConnectionRegistry,
):
    gw = EventsGateway(transport, authenticator, registry, rejection_grace_seconds=0.01)
    yield gw
    await gw.aclose()


@pytest.fixture(name="make_environ")
def make_environ_fixture():
    return make_environ


@pytest.fixture
def make_token(auth_service: AuthService):
    """Issue a dev token: ``make_token(user_id, tenant_id, role="user")``."""

    def _make(user_id: str, tenant_id: str | None, role: str = "user", **kwargs: Any) -> str:
        return auth_service.create_access_token(user_id, tenant_id, role=role, **kwargs)

    return _make
