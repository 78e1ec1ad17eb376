# src/duet_chat/schemas/__init__.py
"""
Pydantic schemas for API and realtime payloads.

These schemas define the structure of wire data for serialization and validation.
"""

from .message import (
    ConversationMessage,
    DeliveryEnvelope,
    SendAck,
    SendMessageRequest,
    TypingRequest,
    UnreadCount,
)
from .presence import ClientFrame, OnlineUser, ServerFrame
from .user import UserResponse

__all__ = [
    "ClientFrame", "ServerFrame", "OnlineUser",
    "ConversationMessage", "DeliveryEnvelope", "SendAck",
    "SendMessageRequest", "TypingRequest", "UnreadCount",
    "UserResponse",
]
