# tests/v1/test_users.py
"""Tests for user directory endpoints."""

from fastapi import status

from tests.conftest import auth_headers


def test_list_users_excludes_caller(client, alice, bob, carol) -> None:
    response = client.get("/api/v1/users", headers=auth_headers(alice))

    assert response.status_code == status.HTTP_200_OK
    assert [user["username"] for user in response.json()] == ["bob", "carol"]


def test_read_me(client, alice) -> None:
    response = client.get("/api/v1/users/me", headers=auth_headers(alice))

    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["id"] == alice.id
    assert data["username"] == "alice"
    assert data["email"] == "alice@example.com"


def test_token_for_deleted_user_is_rejected(client, alice, db_session) -> None:
    headers = auth_headers(alice)
    db_session.delete(alice)
    db_session.flush()

    response = client.get("/api/v1/users/me", headers=headers)

    assert response.status_code == status.HTTP_401_UNAUTHORIZED
    assert response.json()["detail"] == "User not found"


def test_online_users_reflects_hub(client, hub, alice, bob) -> None:
    hub.registry.register_connection(bob.id, bob.username, "conn-bob")

    response = client.get("/api/v1/users/online", headers=auth_headers(alice))

    assert response.status_code == status.HTTP_200_OK
    assert response.json() == [{"userId": bob.id, "username": "bob"}]
