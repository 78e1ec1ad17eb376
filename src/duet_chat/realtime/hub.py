"""Connection hub: routes frames to users and broadcasts presence changes."""

from __future__ import annotations

import logging
from typing import Any

from starlette.websockets import WebSocketDisconnect

from duet_chat.realtime.connection import Connection
from duet_chat.realtime.presence import PresenceRegistry

logger = logging.getLogger(__name__)

# Close code sent to a connection replaced by a newer one for the same user.
WS_CLOSE_SUPERSEDED = 4001


class ConnectionHub:
    """Tracks live connections and announces presence changes.

    Presence state itself lives in the PresenceRegistry; the hub owns the
    mapping from connection ids to the objects that can emit frames.
    """

    def __init__(self, registry: PresenceRegistry | None = None) -> None:
        self.registry = registry or PresenceRegistry()
        self._connections: dict[str, Connection] = {}

    def __len__(self) -> int:
        return len(self._connections)

    def get_connection(self, connection_id: str) -> Connection | None:
        return self._connections.get(connection_id)

    async def connect(self, connection: Connection) -> None:
        """Register ``connection`` and announce it.

        Other connections receive ``user_online``; the new connection receives
        the ``online_users`` snapshot. A connection previously recorded for the
        same user is closed.
        """
        identity = connection.identity
        self._connections[connection.connection_id] = connection
        superseded = self.registry.register_connection(
            identity.user_id,
            identity.username,
            connection.connection_id,
        )
        stale = self._connections.pop(superseded, None) if superseded is not None else None
        logger.info("User connected: %s (%s)", identity.username, connection.connection_id)

        await self.broadcast(
            "user_online",
            {"userId": identity.user_id, "username": identity.username},
            exclude=connection.connection_id,
        )
        snapshot = [user.model_dump(by_alias=True) for user in self.registry.list_online()]
        await self._safe_emit(connection, "online_users", snapshot)

        if stale is not None:
            await self._evict(stale)

    async def disconnect(self, connection: Connection) -> bool:
        """Forget ``connection`` and announce departure if it was current.

        Returns:
            True if the user's presence entry was removed
        """
        identity = connection.identity
        self._connections.pop(connection.connection_id, None)
        removed = self.registry.unregister_connection(identity.user_id, connection.connection_id)
        logger.info("User disconnected: %s (%s)", identity.username, connection.connection_id)

        if removed:
            await self.broadcast(
                "user_offline",
                {"userId": identity.user_id, "username": identity.username},
                exclude=connection.connection_id,
            )
        return removed

    async def send_to_user(self, user_id: int, event: str, data: Any) -> bool:
        """Emit to the connection currently registered for ``user_id``.

        Returns:
            True if a connection was found and the frame was written
        """
        connection_id = self.registry.connection_for(user_id)
        if connection_id is None:
            return False
        connection = self._connections.get(connection_id)
        if connection is None:
            return False
        return await self._safe_emit(connection, event, data)

    async def broadcast(self, event: str, data: Any, exclude: str | None = None) -> int:
        """Emit to every live connection except ``exclude``.

        Returns:
            Number of connections the frame was written to
        """
        targets = [
            connection
            for connection_id, connection in list(self._connections.items())
            if connection_id != exclude
        ]
        sent = 0
        for connection in targets:
            if await self._safe_emit(connection, event, data):
                sent += 1
        return sent

    async def _evict(self, connection: Connection) -> None:
        connection_id = connection.connection_id
        logger.info("Closing superseded connection %s", connection_id)
        try:
            await connection.close(WS_CLOSE_SUPERSEDED, "Superseded by a newer connection")
        except (RuntimeError, OSError, WebSocketDisconnect) as e:
            logger.debug("Superseded connection %s already closed: %s", connection_id, e)

    async def _safe_emit(self, connection: Connection, event: str, data: Any) -> bool:
        try:
            await connection.emit(event, data)
        except (RuntimeError, OSError, WebSocketDisconnect) as e:
            # Best-effort push; the peer may have gone away mid-send.
            logger.debug("Dropped %s for %s: %s", event, connection.connection_id, e)
            return False
        return True
