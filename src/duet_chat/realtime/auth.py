"""Handshake authentication for realtime connections."""

from __future__ import annotations

from fastapi import WebSocket

from duet_chat.core.security import Identity, decode_access_token


class ConnectionAuthenticator:
    """Resolves the credential presented at handshake to an identity.

    Runs before the connection is accepted; it has no side effects beyond
    decoding the token.
    """

    @staticmethod
    def extract_token(websocket: WebSocket) -> str | None:
        """Return the token from the ``token`` query parameter or a Bearer header."""
        token = websocket.query_params.get("token")
        if token:
            return token

        authorization = websocket.headers.get("authorization")
        if authorization:
            scheme, _, credentials = authorization.partition(" ")
            if scheme.lower() == "bearer" and credentials.strip():
                return credentials.strip()
        return None

    def authenticate(self, token: str | None) -> Identity:
        """Decode ``token``.

        Raises:
            Unauthenticated: If no token was presented
            InvalidCredential: If the token is invalid or expired
        """
        return decode_access_token(token)
