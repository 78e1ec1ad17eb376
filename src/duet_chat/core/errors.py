"""Exception hierarchy for the realtime session and delivery layer."""

from __future__ import annotations


class ChatError(RuntimeError):
    """Base exception for chat failures.

    ``public_message`` is the text reported back to the requesting connection.
    """

    public_message = "Request failed"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.public_message)

    @property
    def detail(self) -> str:
        return str(self)


class Unauthenticated(ChatError):
    """Raised when a connection presents no credential at handshake."""

    public_message = "Authentication required"


class InvalidCredential(ChatError):
    """Raised when a credential fails signature, expiry or claim checks."""

    public_message = "Invalid credentials"


class InvalidRequest(ChatError):
    """Raised for malformed send or typing payloads."""

    public_message = "Invalid message data"


class PersistenceError(ChatError):
    """Raised when the message store is unavailable or a write fails.

    The connection only ever sees the generic text; the cause is logged.
    """

    public_message = "Failed to send message"

    @property
    def detail(self) -> str:
        return self.public_message


class Inconsistent(ChatError):
    """Raised when an authenticated identity has no row in the store."""

    public_message = "Sender not found"
