# src/duet_chat/models/message.py
"""Models describing direct messages between two users."""

from datetime import datetime

from sqlalchemy import ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from duet_chat.db.session import Base
from duet_chat.db.time import utcnow


class Message(Base):
    """Opaque message exchanged between a sender and a receiver.

    ``payload`` and ``iv`` are never interpreted by the server. Rows are
    immutable apart from ``read_status`` and are deleted by the retention
    sweeper once ``created_at`` falls outside the retention horizon.
    """

    __tablename__ = "messages"
    __table_args__ = (
        UniqueConstraint("sender_id", "client_token", name="uq_messages_sender_client_token"),
        Index("idx_messages_sender", "sender_id"),
        Index("idx_messages_receiver", "receiver_id"),
        Index("idx_messages_created_at", "created_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    sender_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), nullable=False)
    receiver_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), nullable=False)

    payload: Mapped[str] = mapped_column(Text, nullable=False)
    iv: Mapped[str] = mapped_column(Text, nullable=False)
    # Client-supplied idempotency token, unique per sender.
    client_token: Mapped[str | None] = mapped_column(String(128), nullable=True)

    read_status: Mapped[bool] = mapped_column(default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
