"""Tests for the FastAPI application wiring."""

import pytest
from fastapi.testclient import TestClient

from taskdesk.main import app


@pytest.mark.unit
def test_health_endpoint():
    response = TestClient(app).get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}


@pytest.mark.unit
def test_cron_route_registered():
    assert app.url_path_for("trigger_overdue_sweep") == "/api/cron/overdue"


@pytest.mark.unit
def test_cron_route_requires_secret(monkeypatch):
    monkeypatch.setattr("taskdesk.core.config.settings.cron_secret", "s3cret")

    response = TestClient(app).post("/api/cron/overdue")

    assert response.status_code == 401
