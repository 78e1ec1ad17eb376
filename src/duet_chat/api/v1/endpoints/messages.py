# src/duet_chat/api/v1/endpoints/messages.py
"""Retained-message read endpoints for the Duet Chat API."""

from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, Query, status
from sqlalchemy.exc import SQLAlchemyError

from duet_chat.core.settings import settings
from duet_chat.schemas.message import ConversationMessage, UnreadCount
from duet_chat.services import message_service
from duet_chat.services.message_service import ConversationRow

from ..dependencies import CurrentUserDep, SessionDep

router = APIRouter(prefix="/messages", tags=["messages"])

logger = logging.getLogger(__name__)


def _internal_error() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail="Internal server error",
    )


def _serialize_row(row: ConversationRow) -> ConversationMessage:
    message = row.message
    return ConversationMessage(
        id=message.id,
        sender_id=message.sender_id,
        sender_username=row.sender_username,
        receiver_id=message.receiver_id,
        receiver_username=row.receiver_username,
        payload=message.payload,
        iv=message.iv,
        created_at=message.created_at,
        read_status=message.read_status,
        client_token=message.client_token,
    )


@router.get("/conversation/{user_id}")
async def get_conversation(
    user_id: int,
    current_user: CurrentUserDep,
    db: SessionDep,
    limit: int | None = Query(None, ge=1),
) -> list[ConversationMessage]:
    """Get the retained conversation with another user, oldest first."""
    effective_limit = min(
        limit or settings.conversation_default_limit,
        settings.conversation_max_limit,
    )
    try:
        rows = message_service.get_conversation(
            db,
            current_user.id,
            user_id,
            effective_limit,
            settings.retention_horizon,
        )
    except SQLAlchemyError as err:
        logger.error("Get conversation error: %s", err, exc_info=True)
        raise _internal_error() from err
    return [_serialize_row(row) for row in rows]


@router.get("/unread")
async def get_unread_count(
    current_user: CurrentUserDep,
    db: SessionDep,
) -> UnreadCount:
    """Count unread messages received within the retention horizon."""
    try:
        count = message_service.get_unread_count(db, current_user.id, settings.retention_horizon)
    except SQLAlchemyError as err:
        logger.error("Get unread count error: %s", err, exc_info=True)
        raise _internal_error() from err
    return UnreadCount(count=count)


@router.put("/{message_id}/read")
async def mark_message_read(
    message_id: int,
    current_user: CurrentUserDep,
    db: SessionDep,
) -> dict[str, str]:
    """Mark a received message as read."""
    try:
        updated = message_service.mark_as_read(db, message_id, current_user.id)
    except SQLAlchemyError as err:
        logger.error("Mark as read error: %s", err, exc_info=True)
        raise _internal_error() from err
    if not updated:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Message not found",
        )
    return {"status": "marked_as_read"}
