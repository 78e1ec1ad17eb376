"""Persistence operations for chat messages.

Every write here is a single statement followed by a commit so that the
retention sweep and concurrent sends never observe a half-applied change.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta

from sqlalchemy import and_, desc, or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, aliased

from duet_chat.core.errors import PersistenceError
from duet_chat.db.time import utcnow
from duet_chat.models import Message, User

logger = logging.getLogger(__name__)

__all__ = [
    "ConversationRow",
    "create_message",
    "find_by_client_token",
    "get_conversation",
    "get_unread_count",
    "mark_as_read",
    "purge_older_than",
]


@dataclass(frozen=True)
class ConversationRow:
    """A stored message joined with both participants' usernames."""

    message: Message
    sender_username: str
    receiver_username: str


def find_by_client_token(db: Session, sender_id: int, client_token: str) -> Message | None:
    """Return the message a sender already stored under ``client_token``."""
    return (
        db.query(Message)
        .filter(Message.sender_id == sender_id, Message.client_token == client_token)
        .first()
    )


def create_message(
    db: Session,
    sender_id: int,
    receiver_id: int,
    payload: str,
    iv: str,
    client_token: str | None = None,
) -> tuple[Message, bool]:
    """Insert a message and return ``(message, created)``.

    When ``client_token`` matches a message this sender already stored, that
    row is returned with ``created=False`` and nothing new is written.

    Raises:
        PersistenceError: If the store rejects the write
    """
    if client_token is not None:
        existing = find_by_client_token(db, sender_id, client_token)
        if existing is not None:
            return existing, False

    message = Message(
        sender_id=sender_id,
        receiver_id=receiver_id,
        payload=payload,
        iv=iv,
        client_token=client_token,
        created_at=utcnow(),
    )
    try:
        db.add(message)
        db.commit()
    except IntegrityError as err:
        db.rollback()
        if client_token is not None:
            # A concurrent retry with the same token won the insert.
            existing = find_by_client_token(db, sender_id, client_token)
            if existing is not None:
                return existing, False
        logger.error("Message insert rejected: %s", err)
        raise PersistenceError() from err
    except SQLAlchemyError as err:
        db.rollback()
        logger.error("Message insert failed: %s", err, exc_info=True)
        raise PersistenceError() from err

    db.refresh(message)
    return message, True


def get_conversation(
    db: Session,
    user_a: int,
    user_b: int,
    limit: int,
    horizon: timedelta,
) -> list[ConversationRow]:
    """Return the most recent messages between two users, oldest first.

    Only rows created within ``horizon`` are considered; at most ``limit``
    of the newest are returned.
    """
    cutoff = utcnow() - horizon
    sender = aliased(User)
    receiver = aliased(User)

    rows = (
        db.query(Message, sender.username, receiver.username)
        .join(sender, Message.sender_id == sender.id)
        .join(receiver, Message.receiver_id == receiver.id)
        .filter(
            or_(
                and_(Message.sender_id == user_a, Message.receiver_id == user_b),
                and_(Message.sender_id == user_b, Message.receiver_id == user_a),
            ),
            Message.created_at >= cutoff,
        )
        .order_by(desc(Message.created_at), desc(Message.id))
        .limit(limit)
        .all()
    )
    rows.reverse()
    return [
        ConversationRow(message=message, sender_username=sender_name, receiver_username=receiver_name)
        for message, sender_name, receiver_name in rows
    ]


def get_unread_count(db: Session, user_id: int, horizon: timedelta) -> int:
    """Count unread messages received by ``user_id`` within ``horizon``."""
    cutoff = utcnow() - horizon
    return (
        db.query(Message)
        .filter(
            Message.receiver_id == user_id,
            Message.read_status.is_(False),
            Message.created_at >= cutoff,
        )
        .count()
    )


def mark_as_read(db: Session, message_id: int, user_id: int) -> bool:
    """Mark a message read if ``user_id`` is its receiver.

    Returns:
        True if a row was updated, False if no such message belongs to the user
    """
    updated = (
        db.query(Message)
        .filter(Message.id == message_id, Message.receiver_id == user_id)
        .update({Message.read_status: True}, synchronize_session=False)
    )
    db.commit()
    return bool(updated)


def purge_older_than(db: Session, horizon: timedelta) -> int:
    """Delete every message created before ``now - horizon``.

    Uses one ``DELETE ... WHERE`` so a send landing mid-sweep is either fully
    before or fully after it.

    Returns:
        Number of rows deleted
    """
    cutoff = utcnow() - horizon
    deleted = (
        db.query(Message)
        .filter(Message.created_at < cutoff)
        .delete(synchronize_session=False)
    )
    db.commit()
    return int(deleted or 0)

