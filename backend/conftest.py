"""
Shared fixtures for backend tests.

backend.config reads the environment at import time, so test settings are
applied here, before any backend module is imported. Every test gets its own
app over a fresh SQLite file.

Run: pytest backend -v
"""

import os
import tempfile

os.environ["ENV"] = "dev"
os.environ["DATABASE_URL"] = ""
os.environ["DATABASE_PATH"] = os.path.join(tempfile.mkdtemp(prefix="teamboard-test-"), "import.db")
os.environ["PASSWORD_HASH_ITERATIONS"] = "1000"

import pytest
from fastapi.testclient import TestClient

from backend.main import create_app


@pytest.fixture
def app(tmp_path):
    return create_app(f"sqlite:///{tmp_path / 'teamboard.db'}")


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c


@pytest.fixture
def register(client):
    """Register a user; returns the register response (id, name, email, role, token)."""

    def _register(name="Alice", email=None, password="secret1", role=None):
        body = {"name": name, "email": email or f"{name.lower()}@example.com", "password": password}
        if role:
            body["role"] = role
        resp = client.post("/api/users/register", json=body)
        assert resp.status_code == 201, resp.text
        return resp.json()

    return _register


@pytest.fixture
def auth_headers():
    def _headers(user):
        return {"Authorization": f"Bearer {user['token']}"}

    return _headers


@pytest.fixture
def create_project(client, auth_headers):
    def _create(user, title="Sprint 1", **fields):
        resp = client.post("/api/projects", json={"title": title, **fields}, headers=auth_headers(user))
        assert resp.status_code == 201, resp.text
        return resp.json()

    return _create


@pytest.fixture
def create_task(client, auth_headers):
    def _create(user, project_id, title="Write docs", **fields):
        resp = client.post(
            f"/api/projects/{project_id}/tasks",
            json={"title": title, **fields},
            headers=auth_headers(user),
        )
        assert resp.status_code == 201, resp.text
        return resp.json()

    return _create
