"""CRUD-style helpers for managing users."""
from __future__ import annotations

from typing import Sequence

from sqlalchemy.orm import Session

from duet_chat.models.user import User

__all__ = [
    "get_user",
    "get_user_by_username",
    "list_users",
    "create_user",
    "get_or_create_user",
]


def get_user(db: Session, user_id: int) -> User | None:
    """Return a single user by primary key."""
    return db.query(User).filter(User.id == user_id).first()


def get_user_by_username(db: Session, username: str) -> User | None:
    """Return a user by unique username."""
    return db.query(User).filter(User.username == username).first()


def list_users(db: Session, exclude_user_id: int | None = None) -> Sequence[User]:
    """Return all users, optionally leaving out the caller."""
    query = db.query(User)
    if exclude_user_id is not None:
        query = query.filter(User.id != exclude_user_id)
    return query.order_by(User.username).all()


def create_user(db: Session, username: str, email: str, public_key: str | None = None) -> User:
    """Persist a new user."""
    db_user = User(username=username, email=email, public_key=public_key)
    db.add(db_user)
    db.commit()
    db.refresh(db_user)
    return db_user


def get_or_create_user(db: Session, username: str, email: str) -> tuple[User, bool]:
    """Return ``(user, created)`` for ``username``, creating it when absent."""
    user = get_user_by_username(db, username)
    if user is not None:
        return user, False
    return create_user(db, username, email), True
