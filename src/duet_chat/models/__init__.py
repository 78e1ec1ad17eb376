# src/duet_chat/models/__init__.py
"""SQLAlchemy models for the Duet Chat application."""

from .message import Message
from .session import UserSession
from .user import User

__all__ = [
    "Message",
    "User",
    "UserSession",
]
