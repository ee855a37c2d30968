"""
tests/test_health.py -- Integration tests for GET /api/v1/health.

Covers:
  - 200 response with status, version, and components fields
  - both databases report 'ok'
  - no authentication required
"""

from __future__ import annotations


def test_health_returns_200_with_components(api_client):
    resp = api_client.client.get("/api/v1/health")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "healthy"
    assert "version" in data
    assert data["components"] == {"identity_db": "ok", "content_db": "ok"}


def test_health_no_auth_required(api_client):
    """Health endpoint is accessible without any authentication headers."""
    resp = api_client.client.get("/api/v1/health", headers={})
    assert resp.status_code == 200


def test_unknown_host_rejected(api_client):
    resp = api_client.client.get("/api/v1/health", headers={"Host": "evil.example"})
    assert resp.status_code == 400
