"""Helpers for issuing and expiring access-token sessions."""
from __future__ import annotations

from datetime import timedelta

from sqlalchemy.orm import Session

from duet_chat.core.security import create_access_token
from duet_chat.core.settings import settings
from duet_chat.db.time import utcnow
from duet_chat.models import User, UserSession

__all__ = ["issue_session", "purge_expired_sessions"]


def issue_session(db: Session, user: User, expires_delta: timedelta | None = None) -> str:
    """Mint an access token for ``user`` and record it in the sessions table."""
    lifetime = expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    token = create_access_token(user.id, user.username, expires_delta=lifetime)
    db.add(UserSession(user_id=user.id, token=token, expires_at=utcnow() + lifetime))
    db.commit()
    return token


def purge_expired_sessions(db: Session) -> int:
    """Delete session rows whose token has expired."""
    deleted = (
        db.query(UserSession)
        .filter(UserSession.expires_at < utcnow())
        .delete(synchronize_session=False)
    )
    db.commit()
    return int(deleted or 0)
