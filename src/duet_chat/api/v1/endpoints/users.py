"""User directory and presence endpoints."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter

from duet_chat.schemas.user import UserResponse
from duet_chat.services import user_service

from ..dependencies import CurrentUserDep, HubDep, SessionDep

router = APIRouter(prefix="/users", tags=["users"])


@router.get("")
async def list_users(current_user: CurrentUserDep, db: SessionDep) -> list[UserResponse]:
    """List every user except the caller, for building a chat list."""
    users = user_service.list_users(db, exclude_user_id=current_user.id)
    return [UserResponse.model_validate(user) for user in users]


@router.get("/me")
async def read_me(current_user: CurrentUserDep) -> UserResponse:
    """Return the authenticated user."""
    return UserResponse.model_validate(current_user)


@router.get("/online")
async def list_online_users(current_user: CurrentUserDep, hub: HubDep) -> list[dict[str, Any]]:
    """Return the users currently connected to this process."""
    return [user.model_dump(by_alias=True) for user in hub.registry.list_online()]
