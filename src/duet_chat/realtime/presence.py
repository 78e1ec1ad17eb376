"""In-process presence registry.

The registry is the single source of truth for who is online on this process.
All access goes through one lock; nothing awaits while holding it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from threading import Lock

from duet_chat.db.time import utcnow
from duet_chat.schemas.presence import OnlineUser

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PresenceEntry:
    """Record that a user currently has an active connection."""

    user_id: int
    username: str
    connection_id: str
    last_seen: datetime


class PresenceRegistry:
    """Maps user ids to the connection currently recorded for them.

    At most one entry exists per user: a second connection from the same user
    replaces the first (last-connect-wins). Removal is keyed on the connection
    id as well, so a late disconnect from a replaced connection never evicts
    the newer entry.
    """

    def __init__(self) -> None:
        self._entries: dict[int, PresenceEntry] = {}
        self._lock = Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def register_connection(self, user_id: int, username: str, connection_id: str) -> str | None:
        """Upsert the entry for ``user_id``.

        Returns:
            The id of the connection this one replaced, or None
        """
        entry = PresenceEntry(
            user_id=user_id,
            username=username,
            connection_id=connection_id,
            last_seen=utcnow(),
        )
        with self._lock:
            previous = self._entries.get(user_id)
            self._entries[user_id] = entry

        if previous is not None and previous.connection_id != connection_id:
            logger.debug(
                "Connection %s replaced %s for user %s",
                connection_id,
                previous.connection_id,
                user_id,
            )
            return previous.connection_id
        return None

    def unregister_connection(self, user_id: int, connection_id: str) -> bool:
        """Remove the entry for ``user_id`` only if it belongs to ``connection_id``.

        Returns:
            True if an entry was removed, False for a stale or unknown connection
        """
        with self._lock:
            entry = self._entries.get(user_id)
            if entry is None or entry.connection_id != connection_id:
                return False
            del self._entries[user_id]
            return True

    def get(self, user_id: int) -> PresenceEntry | None:
        with self._lock:
            return self._entries.get(user_id)

    def connection_for(self, user_id: int) -> str | None:
        """Return the connection id currently recorded for ``user_id``."""
        entry = self.get(user_id)
        return entry.connection_id if entry is not None else None

    def touch(self, user_id: int, connection_id: str) -> None:
        """Refresh ``last_seen`` for the current connection of ``user_id``."""
        with self._lock:
            entry = self._entries.get(user_id)
            if entry is not None and entry.connection_id == connection_id:
                self._entries[user_id] = PresenceEntry(
                    user_id=entry.user_id,
                    username=entry.username,
                    connection_id=entry.connection_id,
                    last_seen=utcnow(),
                )

    def list_online(self) -> list[OnlineUser]:
        """Return a snapshot of online users in registration order."""
        with self._lock:
            entries = list(self._entries.values())
        return [OnlineUser(user_id=entry.user_id, username=entry.username) for entry in entries]
