# src/duet_chat/schemas/user.py
"""User-related Pydantic schemas."""

from pydantic import BaseModel, ConfigDict


class UserResponse(BaseModel):
    """Public user information returned by the API."""

    id: int
    username: str
    email: str
    public_key: str | None = None

    model_config = ConfigDict(from_attributes=True)
