"""FastAPI application entry point.

``app`` serves HTTP only; ``asgi_app`` wraps it with the Socket.IO server and is
what the process should run (``uvicorn whitelabel.api.main:asgi_app``).
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Annotated

import socketio
import structlog
from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from whitelabel.core.auth import AuthService
from whitelabel.core.config import settings
from whitelabel.core.database import get_async_session_maker, get_db_session
from whitelabel.core.exceptions import WhitelabelError
from whitelabel.core.schemas import ErrorResponse, HealthResponse
from whitelabel.core.tenant import TenantDirectory
from whitelabel.realtime.dependencies import get_gateway
from whitelabel.realtime.gateway import EventsGateway
from whitelabel.realtime.handshake import HandshakeAuthenticator
from whitelabel.realtime.notifier import GatewayNotifier
from whitelabel.realtime.transport import SocketIOTransport, create_socketio_server

logger = structlog.get_logger()

VERSION = "0.1.0"


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan: startup and shutdown hooks."""
    logger.info("app_started", namespace=settings.realtime_namespace)
    yield
    await app.state.gateway.aclose()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application and its realtime gateway."""
    app = FastAPI(
        title=settings.app_name,
        version=VERSION,
        docs_url="/api/docs" if settings.debug else None,
        redoc_url="/api/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # -- Realtime --
    sio = create_socketio_server(settings)
    transport = SocketIOTransport(sio, settings.realtime_namespace)
    authenticator = HandshakeAuthenticator(
        AuthService(),
        TenantDirectory(get_async_session_maker()),
        admin_role=settings.admin_role,
        trust_forwarded_host=settings.realtime_trust_forwarded_host,
    )
    gateway = EventsGateway(
        transport,
        authenticator,
        rejection_grace_seconds=settings.realtime_rejection_grace_seconds,
    )
    gateway.register(sio, settings.realtime_namespace)

    app.state.sio = sio
    app.state.gateway = gateway
    app.state.notifier = GatewayNotifier(transport)

    # -- Exception handlers --
    @app.exception_handler(WhitelabelError)
    async def whitelabel_error_handler(_request: Request, exc: WhitelabelError) -> JSONResponse:
        body = ErrorResponse(code=exc.code, message=exc.message, detail=exc.detail)
        return JSONResponse(status_code=exc.status_code, content=body.model_dump())

    @app.get("/api/health", response_model=HealthResponse)
    async def health_check(
        gateway: Annotated[EventsGateway, Depends(get_gateway)],
        session: Annotated[AsyncSession, Depends(get_db_session)],
    ) -> HealthResponse:
        """Health check probing the database and reporting live realtime connections."""
        db_status = "ok"
        try:
            await session.execute(text("SELECT 1"))
        except Exception:
            db_status = "error"

        return HealthResponse(
            status="healthy" if db_status == "ok" else "degraded",
            database=db_status,
            realtime_connections=gateway.connection_count(),
            version=VERSION,
        )

    return app


def create_asgi_app(app: FastAPI) -> socketio.ASGIApp:
    """Serve Socket.IO under ``/socket.io`` and hand everything else to FastAPI."""
    return socketio.ASGIApp(
        app.state.sio,
        other_asgi_app=app,
        socketio_path=settings.realtime_socketio_path,
    )


app = create_app()
asgi_app = create_asgi_app(app)
