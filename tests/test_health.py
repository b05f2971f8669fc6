"""
tests/test_health.py -- Integration tests for GET /api/v1/health.

Covers:
  - 200 response with status, version, and components fields
  - components.database reports 'ok' against a live store, 'error' when it fails
  - No authentication required
"""

from __future__ import annotations

from sqlalchemy.exc import OperationalError

from api.main import VERSION


def test_health_returns_200_with_components(api_client):
    """Health endpoint returns 200 with status, version, and components."""
    client, _ = api_client
    resp = client.get("/api/v1/health")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "healthy"
    assert data["version"] == VERSION
    assert data["components"]["app"] == "ok"
    assert data["components"]["database"] == "ok"


def test_health_reports_database_error(api_client, monkeypatch):
    """A failing store ping is reported, not raised."""
    client, _ = api_client

    def _broken_ping() -> None:
        raise OperationalError("SELECT 1", {}, Exception("disk I/O error"))

    monkeypatch.setattr(client.app.state.user_store, "ping", _broken_ping)
    resp = client.get("/api/v1/health")
    assert resp.status_code == 200
    assert resp.json()["components"]["database"] == "error"


def test_health_no_auth_required(api_client):
    """Health endpoint is accessible without any authentication headers."""
    client, _ = api_client
    resp = client.get("/api/v1/health", headers={})
    assert resp.status_code == 200
    assert resp.json()["status"] == "healthy"
