# src/duet_chat/api/v1/endpoints/realtime.py
"""WebSocket endpoint carrying the realtime chat protocol."""

from __future__ import annotations

import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect, status
from starlette.websockets import WebSocketState

from duet_chat.core.errors import InvalidCredential, Unauthenticated
from duet_chat.realtime import (
    ConnectionAuthenticator,
    EventDispatcher,
    WebSocketConnection,
)

from ..dependencies import HubDep, SessionFactoryDep

router = APIRouter(tags=["realtime"])

logger = logging.getLogger(__name__)

authenticator = ConnectionAuthenticator()


@router.websocket("/ws")
async def realtime_session(
    websocket: WebSocket,
    hub: HubDep,
    session_factory: SessionFactoryDep,
) -> None:
    """Authenticate at handshake, then process frames until the client leaves.

    A connection whose credential is missing or invalid is refused before it
    is accepted, so no presence or message handler ever sees it.
    """
    token = authenticator.extract_token(websocket)
    try:
        identity = authenticator.authenticate(token)
    except (Unauthenticated, InvalidCredential) as err:
        logger.info("Refused realtime handshake: %s", err)
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason=err.detail)
        return

    await websocket.accept()
    connection = WebSocketConnection(websocket, identity)
    dispatcher = EventDispatcher(hub, session_factory)
    await hub.connect(connection)

    try:
        while websocket.application_state == WebSocketState.CONNECTED:
            raw = await websocket.receive_text()
            await dispatcher.dispatch(connection, raw)
    except WebSocketDisconnect:
        pass
    finally:
        await hub.disconnect(connection)
