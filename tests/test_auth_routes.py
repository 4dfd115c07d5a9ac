"""Tests for the login, logout and current-user endpoints."""

from __future__ import annotations

from conftest import PASSWORD, TOKENS

from app.core.rate_limit import LOGIN_RATE_LIMIT_MESSAGE


def test_login_sets_session_cookie(client, store) -> None:
    resp = client.post("/api/auth/login", json={"username": "admin", "password": PASSWORD})

    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert body["user"] == {"id": "u-admin", "username": "admin", "full_name": "Admin Sekolah", "role": "ADMIN"}

    cookie = resp.headers["set-cookie"]
    assert "session_token=" in cookie
    assert "HttpOnly" in cookie
    assert "Max-Age=604800" in cookie
    assert "Path=/" in cookie
    assert "samesite=lax" in cookie.lower()
    assert "Secure" not in cookie

    token = resp.cookies.get("session_token")
    assert len(token) == 64
    assert any(row["token"] == token for row in store.table("sessions"))


def test_login_requires_both_fields(client) -> None:
    resp = client.post("/api/auth/login", json={"username": "admin"})

    assert resp.status_code == 400
    assert resp.json()["error"] == "Username dan password harus diisi"


def test_login_rejects_wrong_password(client) -> None:
    resp = client.post("/api/auth/login", json={"username": "admin", "password": "salah"})

    assert resp.status_code == 401
    assert resp.json()["error"] == "Username atau password salah"
    assert "set-cookie" not in resp.headers


def test_login_rejects_unknown_user(client) -> None:
    resp = client.post("/api/auth/login", json={"username": "nobody", "password": PASSWORD})

    assert resp.status_code == 401


def test_sixth_login_attempt_is_rate_limited(client) -> None:
    headers = {"X-Forwarded-For": "203.0.113.7, 10.0.0.1"}
    for _ in range(5):
        resp = client.post("/api/auth/login", json={"username": "admin", "password": "x"}, headers=headers)
        assert resp.status_code == 401

    resp = client.post("/api/auth/login", json={"username": "admin", "password": PASSWORD}, headers=headers)

    assert resp.status_code == 429
    assert resp.json()["error"] == LOGIN_RATE_LIMIT_MESSAGE
    assert int(resp.headers["Retry-After"]) > 0


def test_rate_limit_is_per_client(client) -> None:
    for _ in range(6):
        client.post("/api/auth/login", json={}, headers={"X-Real-IP": "198.51.100.1"})

    resp = client.post(
        "/api/auth/login",
        json={"username": "admin", "password": PASSWORD},
        headers={"X-Real-IP": "198.51.100.2"},
    )
    assert resp.status_code == 200


def test_me_returns_current_user(login_as) -> None:
    resp = login_as("GURU").get("/api/auth/me")

    assert resp.status_code == 200
    assert resp.json()["role"] == "GURU"
    assert resp.json()["username"] == "guru1"


def test_me_without_cookie_is_unauthorized(client) -> None:
    resp = client.get("/api/auth/me")

    assert resp.status_code == 401
    assert resp.json()["error"] == "Unauthorized"


def test_logout_deletes_session(login_as, store) -> None:
    client = login_as("SISWA")

    resp = client.post("/api/auth/logout")

    assert resp.status_code == 200
    assert resp.json() == {"success": True}
    assert all(row["token"] != TOKENS["SISWA"] for row in store.table("sessions"))
    assert client.get("/api/auth/me").status_code == 401
