"""Ephemeral typing-indicator relay."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from pydantic import ValidationError

from duet_chat.core.errors import InvalidRequest
from duet_chat.core.security import Identity
from duet_chat.realtime.hub import ConnectionHub
from duet_chat.schemas.message import TypingRequest


class TypingNotifier:
    """Relays typing signals to the receiver's connection only.

    Nothing is persisted or acknowledged; signals for offline users are dropped.
    Clients are expected to re-send ``typing`` at most every 2 seconds and to
    send ``stop_typing`` after 3 seconds of inactivity, on empty input or on submit.
    """

    def __init__(self, hub: ConnectionHub) -> None:
        self.hub = hub

    async def notify_typing(self, sender: Identity, data: Mapping[str, Any]) -> bool:
        receiver_id = self._receiver_id(data)
        if receiver_id == sender.user_id:
            return False
        return await self.hub.send_to_user(
            receiver_id,
            "user_typing",
            {"userId": sender.user_id, "username": sender.username},
        )

    async def notify_stopped_typing(self, sender: Identity, data: Mapping[str, Any]) -> bool:
        receiver_id = self._receiver_id(data)
        if receiver_id == sender.user_id:
            return False
        return await self.hub.send_to_user(
            receiver_id,
            "user_stopped_typing",
            {"userId": sender.user_id},
        )

    @staticmethod
    def _receiver_id(data: Mapping[str, Any]) -> int:
        try:
            return TypingRequest.model_validate(data).receiver_id
        except ValidationError as err:
            raise InvalidRequest("Invalid typing data") from err
