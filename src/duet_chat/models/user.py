# src/duet_chat/models/user.py
"""SQLAlchemy model for registered chat users."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from duet_chat.db.session import Base
from duet_chat.db.time import utcnow


class User(Base):
    """A chat participant.

    Credential material lives with the external auth collaborator; this row
    only carries the identity fields the realtime layer needs.
    """

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    username: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    public_key: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(default=utcnow)
