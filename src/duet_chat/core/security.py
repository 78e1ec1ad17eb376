"""JWT helpers shared by the HTTP and WebSocket authentication paths."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any

from jose import ExpiredSignatureError, JWTError, jwt

from duet_chat.core.errors import InvalidCredential, Unauthenticated
from duet_chat.core.settings import settings


@dataclass(frozen=True)
class Identity:
    """Decoded identity attached to an authenticated connection or request."""

    user_id: int
    username: str


def create_access_token(
    user_id: int,
    username: str,
    expires_delta: timedelta | None = None,
) -> str:
    """Create a signed JWT access token for a user."""
    expire = datetime.now(UTC) + (
        expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    )
    to_encode: dict[str, Any] = {
        "sub": str(user_id),
        "username": username,
        "exp": expire,
    }
    encoded_jwt: str = jwt.encode(
        to_encode,
        settings.secret_key,
        algorithm=settings.jwt_algorithm,
    )
    return encoded_jwt


def decode_access_token(token: str | None) -> Identity:
    """Decode and validate an access token.

    Args:
        token: Raw JWT string as presented by the client

    Returns:
        The identity carried by the token

    Raises:
        Unauthenticated: If no token was presented
        InvalidCredential: If the signature, expiry or claims are invalid
    """
    if token is None or not token.strip():
        raise Unauthenticated()

    try:
        payload = jwt.decode(
            token.strip(),
            settings.secret_key,
            algorithms=[settings.jwt_algorithm],
        )
    except ExpiredSignatureError as err:
        raise InvalidCredential("Token has expired") from err
    except JWTError as err:
        raise InvalidCredential() from err

    subject = payload.get("sub")
    username = payload.get("username")
    if subject is None or not username:
        raise InvalidCredential("Token is missing required claims")

    try:
        user_id = int(subject)
    except (TypeError, ValueError) as err:
        raise InvalidCredential("Token subject is not a user id") from err

    return Identity(user_id=user_id, username=str(username))
