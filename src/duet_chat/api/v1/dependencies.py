"""Shared API dependencies for authentication and common functionality."""

from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session, sessionmaker

from duet_chat.core.errors import ChatError
from duet_chat.core.security import decode_access_token
from duet_chat.db.session import get_db, get_session_factory
from duet_chat.models import User
from duet_chat.realtime import ConnectionHub, get_hub

# HTTP Bearer scheme for JWT authentication
bearer_scheme = HTTPBearer()

# Type alias for database session dependency
SessionDep = Annotated[Session, Depends(get_db)]

# Type alias for the factory long-lived handlers open sessions from
SessionFactoryDep = Annotated[sessionmaker[Session], Depends(get_session_factory)]

# Type alias for the process-wide realtime hub
HubDep = Annotated[ConnectionHub, Depends(get_hub)]


def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(bearer_scheme)],
    db: SessionDep,
) -> User:
    """Get the current authenticated user from JWT token.

    Args:
        credentials: HTTP Bearer token credentials
        db: Database session

    Returns:
        User object for the authenticated user

    Raises:
        HTTPException: If token is invalid or user not found
    """
    try:
        identity = decode_access_token(credentials.credentials)
    except ChatError as err:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
        ) from err

    user = db.query(User).filter(User.id == identity.user_id).first()
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
        )
    return user


# Type alias for current user dependency
CurrentUserDep = Annotated[User, Depends(get_current_user)]
