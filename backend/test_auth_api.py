"""
Registration, login and bearer-token tests.

Run: pytest backend/test_auth_api.py -v
"""

from datetime import timedelta

from backend.documents import new_id
from backend.identity import create_access_token, hash_password, verify_password


def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}


def test_register_returns_user_and_token(client):
    resp = client.post(
        "/api/users/register",
        json={"name": "Alice", "email": "  Alice@Example.COM ", "password": "secret1"},
    )
    assert resp.status_code == 201
    data = resp.json()
    assert data["name"] == "Alice"
    assert data["email"] == "alice@example.com"
    assert data["role"] == "member"
    assert data["token"]
    assert len(data["id"]) == 32
    assert "password_hash" not in data
    assert "password" not in data


def test_register_duplicate_email_is_rejected(client, register):
    register("Alice")
    resp = client.post(
        "/api/users/register",
        json={"name": "Other", "email": "ALICE@example.com", "password": "secret1"},
    )
    assert resp.status_code == 400
    assert resp.json()["detail"] == "User already exists"


def test_register_missing_fields(client):
    resp = client.post("/api/users/register", json={"password": "secret1"})
    assert resp.status_code == 400
    detail = resp.json()["detail"]
    assert detail.startswith("Missing required fields")
    assert "name" in detail
    assert "email" in detail


def test_register_validation(client):
    bad_email = client.post("/api/users/register", json={"name": "A", "email": "not-an-email", "password": "secret1"})
    assert bad_email.status_code == 400
    assert bad_email.json()["detail"] == "Invalid email format"

    short_password = client.post("/api/users/register", json={"name": "A", "email": "a@example.com", "password": "12345"})
    assert short_password.status_code == 400
    assert "at least 6" in short_password.json()["detail"]

    blank_name = client.post("/api/users/register", json={"name": "   ", "email": "a@example.com", "password": "secret1"})
    assert blank_name.status_code == 400

    bad_role = client.post(
        "/api/users/register",
        json={"name": "A", "email": "a@example.com", "password": "secret1", "role": "superuser"},
    )
    assert bad_role.status_code == 400


def test_register_admin_role(register):
    admin = register("Root", role="admin")
    assert admin["role"] == "admin"


def test_login(client, register):
    alice = register("Alice")
    resp = client.post("/api/users/login", json={"email": "ALICE@example.com", "password": "secret1"})
    assert resp.status_code == 200
    data = resp.json()
    assert data["id"] == alice["id"]
    assert data["token"]


def test_login_rejects_bad_credentials(client, register):
    register("Alice")
    wrong_password = client.post("/api/users/login", json={"email": "alice@example.com", "password": "nope123"})
    assert wrong_password.status_code == 401
    assert wrong_password.json()["detail"] == "Invalid email or password"

    unknown = client.post("/api/users/login", json={"email": "ghost@example.com", "password": "secret1"})
    assert unknown.status_code == 401
    assert unknown.json()["detail"] == "Invalid email or password"


def test_protected_route_requires_token(client):
    resp = client.get("/api/projects")
    assert resp.status_code == 401
    assert resp.json()["detail"] == "Not authorized, no token"


def test_protected_route_rejects_garbage_token(client):
    resp = client.get("/api/projects", headers={"Authorization": "Bearer not-a-jwt"})
    assert resp.status_code == 401
    assert resp.json()["detail"] == "Not authorized, token failed"


def test_protected_route_rejects_expired_token(client, register):
    alice = register("Alice")
    token = create_access_token(alice["id"], expires_delta=timedelta(seconds=-10))
    resp = client.get("/api/projects", headers={"Authorization": f"Bearer {token}"})
    assert resp.status_code == 401
    assert resp.json()["detail"] == "Token expired"


def test_token_for_unknown_user_is_rejected(client):
    token = create_access_token(new_id())
    resp = client.get("/api/projects", headers={"Authorization": f"Bearer {token}"})
    assert resp.status_code == 401
    assert resp.json()["detail"] == "User not found"


def test_password_hash_is_salted():
    first = hash_password("secret1")
    second = hash_password("secret1")
    assert first != second
    assert verify_password("secret1", first)
    assert verify_password("secret1", second)
    assert not verify_password("secret2", first)
    assert not verify_password("secret1", "garbage")
