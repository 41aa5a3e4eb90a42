"""Tests for the service description and health endpoints."""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from ragkit_engine import __version__
from ragkit_engine.app import create_app
from ragkit_engine.config import EngineSettings
from ragkit_engine.services import build_services


@pytest.fixture
def client(settings: EngineSettings, embedder, chat_backend):
    services = build_services(settings, embedder=embedder, backend=chat_backend, source=object())
    with TestClient(create_app(services=services)) as client:
        yield client


def test_root_lists_endpoints(client: TestClient) -> None:
    response = client.get("/")
    assert response.status_code == 200
    data = response.json()
    assert data["name"] == "ragkit-engine"
    assert data["version"] == __version__
    assert data["endpoints"]["chat"] == "POST /api/chat"


def test_health_returns_healthy(client: TestClient) -> None:
    response = client.get("/api/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["version"] == __version__
    assert "timestamp" in data


def test_health_reports_services(client: TestClient) -> None:
    services = client.get("/api/health").json()["services"]
    assert services["chat"] == {"available": True, "baseUrl": "http://chat.test", "model": "test-model"}
    assert services["embedding"] == {"model": "keyword-test"}
    assert services["vectorStore"]["totalDocuments"] == 0
    assert services["vectorStore"]["isIndexing"] is False


def test_health_reports_backend_down(client: TestClient, chat_backend) -> None:
    chat_backend.available = False
    assert client.get("/api/health").json()["services"]["chat"]["available"] is False


def test_cors_headers(client: TestClient) -> None:
    response = client.get("/api/health", headers={"Origin": "http://frontend.test"})
    assert "access-control-allow-origin" in response.headers


def test_invalid_settings_rejected(store_path) -> None:
    settings = EngineSettings(store_path=str(store_path), chunk_size=100, chunk_overlap=200)
    with pytest.raises(ValueError, match="chunk_overlap"):
        create_app(settings=settings)
