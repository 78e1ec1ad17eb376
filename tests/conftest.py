# tests/conftest.py
from __future__ import annotations

import os
from collections.abc import Callable, Generator, Iterator
from contextlib import AbstractContextManager, nullcontext
from datetime import datetime, timedelta
from itertools import count
from typing import Any

import pytest

os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("RETENTION_SWEEP_ENABLED", "false")

from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from duet_chat.core.security import Identity, create_access_token
from duet_chat.db.session import Base
from duet_chat.db.session import get_db as app_get_session
from duet_chat.db.session import get_session_factory
from duet_chat.db.time import utcnow
from duet_chat.main import app as fastapi_app
from duet_chat.models import Message, User
from duet_chat.realtime import ConnectionHub, get_hub

TEST_DB_URL = "sqlite://"

_CONNECTION_COUNTER = count(1)


@pytest.fixture(scope="session")
def engine() -> Generator[Engine, None, None]:
    engine = create_engine(
        TEST_DB_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture()
def db_session(engine: Engine) -> Iterator[Session]:
    connection = engine.connect()
    transaction = connection.begin()
    SessionLocal = sessionmaker(
        bind=connection,
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
    )
    session = SessionLocal()
    session.begin_nested()

    @event.listens_for(session, "after_transaction_end")
    def restart_savepoint(sess: Session, trans) -> None:  # pragma: no cover - SQLAlchemy internals
        if trans.nested and not getattr(trans._parent, "nested", False):
            session.begin_nested()

    try:
        yield session
    finally:
        event.remove(session, "after_transaction_end", restart_savepoint)
        session.close()

        if transaction.is_active:
            transaction.rollback()
        connection.close()

        # Ensure each test sees a clean database even if commits occurred.
        with engine.begin() as cleanup_conn:
            for table in reversed(Base.metadata.sorted_tables):
                cleanup_conn.execute(table.delete())


@pytest.fixture(scope="session")
def app() -> FastAPI:
    return fastapi_app


@pytest.fixture(autouse=True)
def override_session_dependency(app: FastAPI, db_session: Session) -> Iterator[None]:
    def _get_session_override() -> Generator[Session, None, None]:
        yield db_session

    app.dependency_overrides[app_get_session] = _get_session_override
    try:
        yield
    finally:
        app.dependency_overrides.pop(app_get_session, None)


@pytest.fixture()
def session_factory(db_session: Session) -> Callable[[], AbstractContextManager[Session]]:
    """Hand out the test session for each realtime unit of work without closing it."""
    return lambda: nullcontext(db_session)


@pytest.fixture(autouse=True)
def override_session_factory_dependency(
    app: FastAPI, session_factory: Callable[[], AbstractContextManager[Session]]
) -> Iterator[None]:
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    try:
        yield
    finally:
        app.dependency_overrides.pop(get_session_factory, None)


@pytest.fixture()
def hub() -> ConnectionHub:
    """Return a fresh connection hub isolated from other tests."""
    return ConnectionHub()


@pytest.fixture(autouse=True)
def override_hub_dependency(app: FastAPI, hub: ConnectionHub) -> Iterator[None]:
    app.dependency_overrides[get_hub] = lambda: hub
    try:
        yield
    finally:
        app.dependency_overrides.pop(get_hub, None)


@pytest.fixture()
def client(app: FastAPI) -> Iterator[TestClient]:
    with TestClient(app, base_url="http://test") as test_client:
        yield test_client


def _create_user(db: Session, user_id: int, username: str) -> User:
    user = User(id=user_id, username=username, email=f"{username}@example.com")
    db.add(user)
    db.flush()
    db.refresh(user)
    return user


@pytest.fixture()
def alice(db_session: Session) -> User:
    """Create and return the primary test user (id=1)."""
    return _create_user(db_session, 1, "alice")


@pytest.fixture()
def bob(db_session: Session) -> User:
    """Create and return the secondary test user (id=2)."""
    return _create_user(db_session, 2, "bob")


@pytest.fixture()
def carol(db_session: Session) -> User:
    """Create and return a bystander user (id=3)."""
    return _create_user(db_session, 3, "carol")


def token_for(user: User) -> str:
    return create_access_token(user.id, user.username)


def auth_headers(user: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {token_for(user)}"}


def ws_url(user: User) -> str:
    return f"/api/v1/ws?token={token_for(user)}"


@pytest.fixture()
def store_message(db_session: Session) -> Callable[..., Message]:
    """Insert a message directly, optionally backdated by ``age``."""

    def _store(
        sender: User,
        receiver: User,
        payload: str = "ciphertext",
        iv: str = "nonce",
        age: timedelta = timedelta(0),
        read: bool = False,
    ) -> Message:
        created_at: datetime = utcnow() - age
        message = Message(
            sender_id=sender.id,
            receiver_id=receiver.id,
            payload=payload,
            iv=iv,
            created_at=created_at,
            read_status=read,
        )
        db_session.add(message)
        db_session.flush()
        db_session.refresh(message)
        return message

    return _store


class FakeConnection:
    """In-memory stand-in for a WebSocket connection that records frames."""

    def __init__(self, user_id: int, username: str, connection_id: str | None = None) -> None:
        self.identity = Identity(user_id=user_id, username=username)
        self.connection_id = connection_id or f"conn-{next(_CONNECTION_COUNTER)}"
        self.frames: list[tuple[str, Any, Any]] = []
        self.closed: tuple[int, str] | None = None

    async def emit(self, event: str, data: Any = None, ack_id: Any = None) -> None:
        self.frames.append((event, data, ack_id))

    async def close(self, code: int, reason: str = "") -> None:
        self.closed = (code, reason)

    def events(self, name: str) -> list[Any]:
        return [data for event, data, _ in self.frames if event == name]

    @property
    def event_names(self) -> list[str]:
        return [event for event, _, _ in self.frames]


@pytest.fixture()
def make_connection() -> Callable[..., FakeConnection]:
    def _make(user: User | None = None, *, user_id: int | None = None, username: str | None = None,
              connection_id: str | None = None) -> FakeConnection:
        if user is not None:
            return FakeConnection(user.id, user.username, connection_id)
        assert user_id is not None and username is not None
        return FakeConnection(user_id, username, connection_id)

    return _make
