# src/duet_chat/schemas/presence.py
"""Realtime frame and presence schemas."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class OnlineUser(BaseModel):
    """One entry of the online-users snapshot."""

    user_id: int
    username: str

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ClientFrame(BaseModel):
    """Envelope of every client-to-server WebSocket frame."""

    event: str = Field(..., min_length=1)
    data: dict[str, Any] = Field(default_factory=dict)
    ack_id: int | str | None = Field(None, alias="ackId")

    model_config = ConfigDict(populate_by_name=True)


class ServerFrame(BaseModel):
    """Envelope of every server-to-client WebSocket frame."""

    event: str
    data: Any = None
    ack_id: int | str | None = Field(None, alias="ackId")

    model_config = ConfigDict(populate_by_name=True)

    def to_wire(self) -> dict[str, Any]:
        """Return the JSON-ready frame, omitting ``ackId`` unless set."""
        exclude = {"ack_id"} if self.ack_id is None else None
        return self.model_dump(mode="json", by_alias=True, exclude=exclude)
