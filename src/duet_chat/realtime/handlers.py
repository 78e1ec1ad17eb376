"""Per-connection event dispatch for the realtime endpoint."""

from __future__ import annotations

import logging
from collections.abc import Callable
from contextlib import AbstractContextManager
from typing import Any

from pydantic import ValidationError
from sqlalchemy.orm import Session
from starlette.websockets import WebSocketDisconnect

from duet_chat.core.errors import ChatError, InvalidRequest
from duet_chat.db.session import SessionLocal
from duet_chat.realtime.connection import Connection
from duet_chat.realtime.delivery import MessageDeliveryEngine
from duet_chat.realtime.hub import ConnectionHub
from duet_chat.realtime.typing_notifier import TypingNotifier
from duet_chat.schemas.presence import ClientFrame

logger = logging.getLogger(__name__)

SessionFactory = Callable[[], AbstractContextManager[Session]]


class EventDispatcher:
    """Routes client frames to the delivery engine and typing notifier.

    Every failure is caught here and reported to the requesting connection as
    an ``error`` event (plus an error ack when the frame asked for one); the
    connection itself stays open. Each ``send_message`` runs in its own
    short-lived database session; nothing is held open between frames.
    """

    def __init__(self, hub: ConnectionHub, session_factory: SessionFactory = SessionLocal) -> None:
        self.hub = hub
        self.session_factory = session_factory
        self.delivery = MessageDeliveryEngine(hub)
        self.typing = TypingNotifier(hub)

    async def dispatch(self, connection: Connection, raw: str) -> None:
        """Handle one raw text frame from ``connection``."""
        try:
            frame = ClientFrame.model_validate_json(raw)
        except ValidationError:
            await self._report(connection, None, InvalidRequest("Malformed frame"))
            return

        self.hub.registry.touch(connection.identity.user_id, connection.connection_id)

        try:
            await self._handle(connection, frame)
        except ChatError as err:
            logger.info(
                "%s from user %s failed: %s",
                frame.event,
                connection.identity.user_id,
                err,
            )
            await self._report(connection, frame.ack_id, err)
        except Exception:
            logger.exception(
                "Unhandled error processing %s from user %s",
                frame.event,
                connection.identity.user_id,
            )
            await self._report(connection, frame.ack_id, ChatError())

    async def _handle(self, connection: Connection, frame: ClientFrame) -> None:
        if frame.event == "send_message":
            with self.session_factory() as db:
                result = await self.delivery.send(db, connection, frame.data)
            if frame.ack_id is not None:
                await connection.emit(
                    "ack",
                    result.ack.model_dump(mode="json", by_alias=True),
                    ack_id=frame.ack_id,
                )
        elif frame.event == "typing":
            await self.typing.notify_typing(connection.identity, frame.data)
        elif frame.event == "stop_typing":
            await self.typing.notify_stopped_typing(connection.identity, frame.data)
        else:
            raise InvalidRequest(f"Unknown event: {frame.event}")

    @staticmethod
    async def _report(connection: Connection, ack_id: Any, err: ChatError) -> None:
        payload = {"error": err.detail}
        try:
            if ack_id is not None:
                await connection.emit("ack", payload, ack_id=ack_id)
            await connection.emit("error", payload)
        except (RuntimeError, OSError, WebSocketDisconnect) as e:
            logger.debug("Could not report error to %s: %s", connection.connection_id, e)
