"""Smoke tests for FastAPI app startup and /health endpoint."""

import pytest
from fastapi.testclient import TestClient

from app.main import app


client = TestClient(app)


@pytest.fixture(autouse=True)
def _use_tmp_db(monkeypatch, tmp_path):
    monkeypatch.setenv("DB_PATH", str(tmp_path / "test.db"))
    from app.config import get_settings
    get_settings.cache_clear()


def test_health_returns_ok():
    response = client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ok"
    assert "version" in data


def test_health_version_matches_app():
    response = client.get("/health")
    data = response.json()
    assert data["version"] == app.version


def test_root_returns_home_page():
    with TestClient(app) as c:
        response = c.get("/")
    assert response.status_code == 200
    assert "Every Leaf Tells a Story" in response.text
    assert 'href="/login"' in response.text
    assert "music-player" in response.text


def test_static_assets_served():
    response = client.get("/static/app.js")
    assert response.status_code == 200
