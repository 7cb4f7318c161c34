"""Realtime event distribution: tenant-scoped Socket.IO rooms and notification fan-out."""

from whitelabel.realtime.gateway import EventsGateway
from whitelabel.realtime.notifier import GatewayNotifier, Notifier, NullNotifier
from whitelabel.realtime.registry import ConnectionRegistry, Session
from whitelabel.realtime.rooms import RoomRef, room_key

__all__ = [
    "ConnectionRegistry",
    "EventsGateway",
    "GatewayNotifier",
    "Notifier",
    "NullNotifier",
    "RoomRef",
    "Session",
    "room_key",
]
