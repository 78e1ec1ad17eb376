# src/duet_chat/realtime/__init__.py
"""Realtime session and delivery layer.

One ConnectionHub exists per process; it owns the presence registry that
every WebSocket handler shares.
"""

from .auth import ConnectionAuthenticator
from .connection import Connection, WebSocketConnection
from .delivery import MessageDeliveryEngine, SendResult
from .handlers import EventDispatcher
from .hub import ConnectionHub
from .presence import PresenceEntry, PresenceRegistry
from .typing_notifier import TypingNotifier

_hub: ConnectionHub | None = None


def get_hub() -> ConnectionHub:
    """Return the process-wide connection hub."""
    global _hub
    if _hub is None:
        _hub = ConnectionHub()
    return _hub


__all__ = [
    "Connection",
    "ConnectionAuthenticator",
    "ConnectionHub",
    "EventDispatcher",
    "MessageDeliveryEngine",
    "PresenceEntry",
    "PresenceRegistry",
    "SendResult",
    "TypingNotifier",
    "WebSocketConnection",
    "get_hub",
]
