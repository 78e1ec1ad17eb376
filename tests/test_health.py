# tests/test_health.py
from typing import Any


def test_health_responds(client: Any) -> None:
    """Verify that the health endpoint reports the service as up."""
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json() == {"status": "ok"}


def test_root_advertises_realtime_endpoint(client: Any) -> None:
    r = client.get("/")
    assert r.status_code == 200
    assert r.json()["realtime"] == "/api/v1/ws"
