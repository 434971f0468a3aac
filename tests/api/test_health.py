from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from app.api import health


def test_health_returns_ok(client: TestClient) -> None:
    resp = client.get("/health")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "ok"
    # In tests neither Postgres nor Redis is configured
    assert data["checks"] == {"database": "not_configured", "redis": "not_configured"}


def test_health_reports_degraded_redis_without_failing(
    client: TestClient, monkeypatch: pytest.MonkeyPatch
) -> None:
    async def _down() -> str:
        return "degraded"

    monkeypatch.setattr(health, "_redis_status", _down)
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "degraded"
    assert resp.json()["checks"]["redis"] == "degraded"
    # Redis is not critical for readiness
    assert client.get("/ready").status_code == 200


def test_ready_returns_200(client: TestClient) -> None:
    resp = client.get("/ready")
    assert resp.status_code == 200


def test_ready_returns_503_when_database_down(
    client: TestClient, monkeypatch: pytest.MonkeyPatch
) -> None:
    async def _down() -> str:
        return "degraded"

    monkeypatch.setattr(health, "_database_status", _down)
    assert client.get("/ready").status_code == 503
