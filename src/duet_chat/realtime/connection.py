"""Connection wrappers used by the realtime hub."""

from __future__ import annotations

import asyncio
import uuid
from typing import Any, Protocol

from fastapi import WebSocket

from duet_chat.core.security import Identity
from duet_chat.schemas.presence import ServerFrame


class Connection(Protocol):
    """A live, authenticated client connection."""

    connection_id: str
    identity: Identity

    async def emit(self, event: str, data: Any = None, ack_id: int | str | None = None) -> None:
        ...

    async def close(self, code: int, reason: str = "") -> None:
        ...


class WebSocketConnection:
    """Authenticated WebSocket with serialized outbound frames."""

    def __init__(self, websocket: WebSocket, identity: Identity, connection_id: str | None = None) -> None:
        self.websocket = websocket
        self.identity = identity
        self.connection_id = connection_id or uuid.uuid4().hex
        self._send_lock = asyncio.Lock()

    def __repr__(self) -> str:
        return f"<WebSocketConnection {self.connection_id} user={self.identity.user_id}>"

    async def emit(self, event: str, data: Any = None, ack_id: int | str | None = None) -> None:
        frame = ServerFrame(event=event, data=data, ack_id=ack_id)
        async with self._send_lock:
            await self.websocket.send_json(frame.to_wire())

    async def close(self, code: int, reason: str = "") -> None:
        async with self._send_lock:
            await self.websocket.close(code=code, reason=reason)
