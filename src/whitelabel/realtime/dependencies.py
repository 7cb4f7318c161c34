"""FastAPI dependencies for the realtime layer.

The gateway and notifier are built once per application in ``create_app`` and
kept on ``app.state``; route handlers and domain services receive them here.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import Request

from whitelabel.realtime.notifier import NullNotifier

if TYPE_CHECKING:
    from whitelabel.realtime.gateway import EventsGateway
    from whitelabel.realtime.notifier import Notifier

_null_notifier = NullNotifier()


def get_gateway(request: Request) -> EventsGateway:
    gateway: EventsGateway = request.app.state.gateway
    return gateway


def get_notifier(request: Request) -> Notifier:
    """Notifier for domain services. Falls back to a no-op when realtime is off."""
    notifier: Notifier | None = getattr(request.app.state, "notifier", None)
    return notifier if notifier is not None else _null_notifier
