"""Message delivery: persist first, then push to the receiver and ack the sender."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any, TypeVar

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from duet_chat.core.errors import Inconsistent, InvalidRequest, PersistenceError
from duet_chat.models import Message
from duet_chat.realtime.connection import Connection
from duet_chat.realtime.hub import ConnectionHub
from duet_chat.schemas.message import DeliveryEnvelope, SendAck, SendMessageRequest
from duet_chat.services import message_service, user_service

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class SendResult:
    """Outcome of an accepted send."""

    envelope: DeliveryEnvelope
    ack: SendAck
    delivered: bool


def parse_send_request(data: Mapping[str, Any]) -> SendMessageRequest:
    """Validate a raw ``send_message`` payload.

    Raises:
        InvalidRequest: If receiverId, payload or iv is missing, empty or malformed
    """
    try:
        return SendMessageRequest.model_validate(data)
    except ValidationError as err:
        raise InvalidRequest() from err


class MessageDeliveryEngine:
    """Accepts sends from authenticated connections.

    Every accepted send is written to the store exactly once before any
    realtime push is attempted. Pushing to the receiver is best effort: a
    receiver that is offline finds the message on its next conversation fetch.
    """

    def __init__(self, hub: ConnectionHub) -> None:
        self.hub = hub

    async def send(
        self,
        db: Session,
        sender: Connection,
        data: Mapping[str, Any],
    ) -> SendResult:
        """Persist and route one message.

        Args:
            db: Database session scoped to the sending connection
            sender: Authenticated connection issuing the send
            data: Raw ``send_message`` payload

        Returns:
            The envelope pushed to the receiver and the ack for the sender

        Raises:
            InvalidRequest: Malformed payload or unknown receiver; nothing is persisted
            PersistenceError: The store rejected the write; nothing is delivered
            Inconsistent: The authenticated sender has no row in the store
        """
        request = parse_send_request(data)

        receiver = await self._store(db, user_service.get_user, db, request.receiver_id)
        if receiver is None:
            raise InvalidRequest("Receiver not found")

        message, created = await self._store(
            db,
            message_service.create_message,
            db,
            sender.identity.user_id,
            request.receiver_id,
            request.payload,
            request.iv,
            request.client_token,
        )

        sender_user = await self._store(db, user_service.get_user, db, sender.identity.user_id)
        if sender_user is None:
            logger.error(
                "Authenticated user %s has no row in the store", sender.identity.user_id
            )
            raise Inconsistent()

        envelope = self._build_envelope(message, sender_user.username)

        delivered = False
        if created:
            delivered = await self.hub.send_to_user(
                message.receiver_id,
                "receive_message",
                envelope.model_dump(mode="json", by_alias=True),
            )
            if not delivered:
                logger.debug("Receiver %s offline; message %s stored", message.receiver_id, message.id)
        else:
            logger.info(
                "Duplicate send of message %s from user %s (token %s)",
                message.id,
                message.sender_id,
                message.client_token,
            )

        await sender.emit(
            "message_sent",
            {
                "id": message.id,
                "clientToken": message.client_token,
                "message": "Message sent successfully",
            },
        )

        ack = SendAck(
            message_id=message.id,
            client_token=message.client_token,
            duplicate=not created,
        )
        return SendResult(envelope=envelope, ack=ack, delivered=delivered)

    @staticmethod
    def _build_envelope(message: Message, sender_username: str) -> DeliveryEnvelope:
        return DeliveryEnvelope(
            id=message.id,
            sender_id=message.sender_id,
            sender_username=sender_username,
            receiver_id=message.receiver_id,
            payload=message.payload,
            iv=message.iv,
            created_at=message.created_at,
            client_token=message.client_token,
        )

    @staticmethod
    async def _store(db: Session, func: Callable[..., T], *args: Any) -> T:
        """Run a store call off the event loop, mapping driver errors."""
        try:
            return await asyncio.to_thread(func, *args)
        except SQLAlchemyError as err:
            db.rollback()
            logger.error("Store call %s failed: %s", func.__name__, err, exc_info=True)
            raise PersistenceError() from err
