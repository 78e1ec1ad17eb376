# src/duet_chat/schemas/message.py
"""Message-related Pydantic schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_serializer
from pydantic.alias_generators import to_camel

from duet_chat.db.time import as_utc


class CamelModel(BaseModel):
    """Base model exchanging camelCase keys with clients."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SendMessageRequest(CamelModel):
    """Payload of a ``send_message`` event."""

    receiver_id: int = Field(..., gt=0, strict=True, description="Numeric id of the receiving user")
    payload: str = Field(..., min_length=1, description="Opaque message content")
    iv: str = Field(..., min_length=1, description="Opaque initialization vector")
    client_token: str | None = Field(
        None,
        min_length=1,
        max_length=128,
        description="Client-generated idempotency token echoed back on acknowledgement",
    )


class TypingRequest(CamelModel):
    """Payload of ``typing`` and ``stop_typing`` events."""

    receiver_id: int = Field(..., gt=0, strict=True)


class DeliveryEnvelope(CamelModel):
    """Message data routed over a live connection to the receiver."""

    id: int
    sender_id: int
    sender_username: str
    receiver_id: int
    payload: str
    iv: str
    created_at: datetime
    client_token: str | None = None

    @field_serializer("created_at")
    def serialize_created_at(self, value: datetime) -> str:
        """Render timestamps as ISO-8601 UTC."""
        return as_utc(value).isoformat()


class SendAck(CamelModel):
    """Reply-channel acknowledgement for an accepted send."""

    success: bool = True
    message_id: int
    client_token: str | None = None
    duplicate: bool = False


class ConversationMessage(CamelModel):
    """A stored message as returned by the conversation endpoint."""

    id: int
    sender_id: int
    sender_username: str
    receiver_id: int
    receiver_username: str
    payload: str
    iv: str
    created_at: datetime
    read_status: bool
    client_token: str | None = None

    @field_serializer("created_at")
    def serialize_created_at(self, value: datetime) -> str:
        """Render timestamps as ISO-8601 UTC."""
        return as_utc(value).isoformat()


class UnreadCount(BaseModel):
    """Number of unread messages inside the retention horizon."""

    count: int
