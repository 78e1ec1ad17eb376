# tests/test_security.py
"""Tests for token decoding and handshake authentication."""

from datetime import UTC, datetime, timedelta
from unittest.mock import MagicMock

import pytest
from jose import jwt

from duet_chat.core.errors import InvalidCredential, Unauthenticated
from duet_chat.core.security import Identity, create_access_token, decode_access_token
from duet_chat.core.settings import settings
from duet_chat.realtime.auth import ConnectionAuthenticator


def _fake_websocket(query: dict[str, str] | None = None, headers: dict[str, str] | None = None):
    websocket = MagicMock()
    websocket.query_params = query or {}
    websocket.headers = headers or {}
    return websocket


class TestDecodeAccessToken:
    """Token decoding edge cases."""

    def test_round_trip_identity(self):
        token = create_access_token(7, "grace")
        assert decode_access_token(token) == Identity(user_id=7, username="grace")

    @pytest.mark.parametrize("token", [None, "", "   "])
    def test_missing_token_is_unauthenticated(self, token):
        with pytest.raises(Unauthenticated):
            decode_access_token(token)

    def test_malformed_token_is_invalid(self):
        with pytest.raises(InvalidCredential):
            decode_access_token("not.a.valid.jwt")

    def test_wrong_secret_is_invalid(self):
        token = jwt.encode(
            {"sub": "1", "username": "alice", "exp": datetime.now(UTC) + timedelta(hours=1)},
            "wrong_secret_key",
            algorithm=settings.jwt_algorithm,
        )
        with pytest.raises(InvalidCredential):
            decode_access_token(token)

    def test_expired_token_is_invalid(self):
        token = create_access_token(1, "alice", expires_delta=timedelta(seconds=-5))
        with pytest.raises(InvalidCredential) as exc_info:
            decode_access_token(token)
        assert "expired" in str(exc_info.value)

    def test_missing_username_claim_is_invalid(self):
        token = jwt.encode(
            {"sub": "1", "exp": datetime.now(UTC) + timedelta(hours=1)},
            settings.secret_key,
            algorithm=settings.jwt_algorithm,
        )
        with pytest.raises(InvalidCredential):
            decode_access_token(token)

    def test_non_numeric_subject_is_invalid(self):
        token = jwt.encode(
            {"sub": "abc", "username": "alice", "exp": datetime.now(UTC) + timedelta(hours=1)},
            settings.secret_key,
            algorithm=settings.jwt_algorithm,
        )
        with pytest.raises(InvalidCredential):
            decode_access_token(token)


class TestConnectionAuthenticator:
    """Handshake token extraction and validation."""

    def test_extract_token_from_query(self):
        websocket = _fake_websocket(query={"token": "abc"})
        assert ConnectionAuthenticator.extract_token(websocket) == "abc"

    def test_extract_token_from_bearer_header(self):
        websocket = _fake_websocket(headers={"authorization": "Bearer xyz"})
        assert ConnectionAuthenticator.extract_token(websocket) == "xyz"

    def test_extract_token_ignores_other_schemes(self):
        websocket = _fake_websocket(headers={"authorization": "Basic xyz"})
        assert ConnectionAuthenticator.extract_token(websocket) is None

    def test_authenticate_valid_token(self):
        authenticator = ConnectionAuthenticator()
        identity = authenticator.authenticate(create_access_token(3, "carol"))
        assert identity.user_id == 3
        assert identity.username == "carol"

    def test_authenticate_missing_token(self):
        with pytest.raises(Unauthenticated):
            ConnectionAuthenticator().authenticate(None)
