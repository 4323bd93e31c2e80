"""Tests for the mapping API endpoints."""

import uuid

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError
from sqlmodel import create_engine

from server.api import app
from server.database import init_db


@pytest.fixture
def test_db(tmp_path, monkeypatch):
    """Create a test database."""
    db_file = tmp_path / "test.db"
    engine = create_engine(f"sqlite:///{db_file}", connect_args={"check_same_thread": False})
    monkeypatch.setattr("server.database.engine", engine, raising=True)

    init_db()
    return engine


@pytest.fixture
def client(test_db):
    return TestClient(app)


def test_root_reports_service(client):
    response = client.get("/")
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "OK"
    assert body["service"] == "FMC Comic API"


def test_get_id_returns_uuid4(client):
    response = client.post("/api/get-id", json={"slug": "one-piece", "type": "series"})
    assert response.status_code == 200
    assert uuid.UUID(response.json()["uuid"]).version == 4


def test_get_id_is_idempotent(client):
    first = client.post("/api/get-id", json={"slug": "one-piece", "type": "series"}).json()
    second = client.post("/api/get-id", json={"slug": "one-piece", "type": "series"}).json()
    assert first["uuid"] == second["uuid"]


def test_same_slug_different_type_gets_different_uuid(client):
    series = client.post("/api/get-id", json={"slug": "one-piece", "type": "series"}).json()
    chapter = client.post("/api/get-id", json={"slug": "one-piece", "type": "chapter"}).json()
    assert series["uuid"] != chapter["uuid"]


def test_get_slug_resolves_created_uuid(client):
    created = client.post(
        "/api/get-id", json={"slug": "one-piece-chapter-1100", "type": "chapter"}
    ).json()

    response = client.get(f"/api/get-slug/{created['uuid']}")
    assert response.status_code == 200
    assert response.json() == {"slug": "one-piece-chapter-1100", "type": "chapter"}


def test_get_slug_unknown_uuid_returns_404(client):
    response = client.get(f"/api/get-slug/{uuid.uuid4()}")
    assert response.status_code == 404
    assert "error" in response.json()


@pytest.mark.parametrize(
    "payload",
    [
        {},
        {"slug": "one-piece"},
        {"type": "series"},
        {"slug": "", "type": "series"},
        {"slug": "   ", "type": "series"},
        {"slug": "one-piece", "type": "volume"},
    ],
)
def test_get_id_rejects_missing_or_invalid_fields(client, payload):
    response = client.post("/api/get-id", json=payload)
    assert response.status_code == 400
    assert "error" in response.json()


def test_get_id_rejects_malformed_json(client):
    response = client.post(
        "/api/get-id",
        content="not json",
        headers={"Content-Type": "application/json"},
    )
    assert response.status_code == 400
    assert "error" in response.json()


def test_routes_are_also_served_without_api_prefix(client):
    created = client.post("/get-id", json={"slug": "naruto", "type": "series"}).json()
    again = client.post("/api/get-id", json={"slug": "naruto", "type": "series"}).json()
    assert created["uuid"] == again["uuid"]
    assert client.get(f"/get-slug/{created['uuid']}").json()["slug"] == "naruto"


def test_datastore_failure_returns_500_with_message(client, monkeypatch):
    def broken(self, slug, mapping_type):
        raise OperationalError("INSERT", {}, Exception("database is locked"))

    monkeypatch.setattr("server.repository.MappingRepository.get_or_create", broken)

    response = client.post("/api/get-id", json={"slug": "one-piece", "type": "series"})
    assert response.status_code == 500
    assert "database is locked" in response.json()["error"]


def test_health_ok(client):
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.json() == {"status": "OK", "database": "Connected"}


def test_health_reports_database_error(client, monkeypatch):
    def unreachable():
        raise RuntimeError("connection refused")

    monkeypatch.setattr("server.database.ping", unreachable)

    response = client.get("/api/health")
    assert response.status_code == 500
    assert response.json() == {"status": "Error", "message": "connection refused"}


def test_cors_allows_wildcard_vercel_origin(client):
    origin = "https://fmc-comic-git-preview.vercel.app"
    response = client.options(
        "/api/get-id",
        headers={"Origin": origin, "Access-Control-Request-Method": "POST"},
    )
    assert response.status_code == 200
    assert response.headers["access-control-allow-origin"] == origin


def test_cors_rejects_unknown_origin(client):
    response = client.options(
        "/api/get-id",
        headers={"Origin": "https://evil.example.com", "Access-Control-Request-Method": "POST"},
    )
    assert "access-control-allow-origin" not in response.headers


def test_unexpected_error_returns_generic_500(test_db, monkeypatch):
    def broken(self, slug, mapping_type):
        raise RuntimeError("boom")

    monkeypatch.setattr("server.repository.MappingRepository.get_or_create", broken)
    client = TestClient(app, raise_server_exceptions=False)

    response = client.post("/api/get-id", json={"slug": "one-piece", "type": "series"})
    assert response.status_code == 500
    assert response.json() == {"error": "Something broke!", "details": "boom"}
