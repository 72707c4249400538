"""
Auth API: login/logout/signup, `/api/me` and middleware enforcement.

Drives the full ASGI app with httpx; sessions and users live in the in-memory
stores installed by conftest.
"""
from __future__ import annotations

import pytest

from utils.accounts import SAME_ORIGIN, api_client, create_user, sign_in
from web import wiring
from web.auth_utils import SESSION_COOKIE_NAME

pytestmark = pytest.mark.anyio("asyncio")


@pytest.mark.anyio
async def test_login_success_sets_cookie_and_returns_identity():
    user = create_user("teacher", email="teacher.a@example.com", password="teacher123", full_name="Nguyen Van A")
    async with api_client() as client:
        r = await client.post("/auth/login", json={"email": " Teacher.A@Example.com ", "password": "teacher123"})
        assert r.status_code == 200
        assert r.headers.get("Cache-Control") == "private, no-store"
        assert r.json() == {
            "user": {"id": user.id, "name": "Nguyen Van A", "email": "teacher.a@example.com", "role": "teacher"}
        }
        set_cookie = r.headers.get("set-cookie", "")
        assert f"{SESSION_COOKIE_NAME}=" in set_cookie
        assert "HttpOnly" in set_cookie
        assert "Secure" in set_cookie
        assert "samesite=lax" in set_cookie.lower()

        me = await client.get("/api/me")
        assert me.status_code == 200
        body = me.json()
        assert body["id"] == user.id
        assert body["role"] == "teacher"
        assert body["expires_at"]


@pytest.mark.anyio
@pytest.mark.parametrize(
    "payload",
    [
        {"email": "teacher.a@example.com", "password": "wrong"},
        {"email": "nobody@example.com", "password": "teacher123"},
        {"email": "teacher.a@example.com"},
        {},
    ],
)
async def test_login_failures_are_indistinguishable(payload):
    create_user("teacher", email="teacher.a@example.com", password="teacher123")
    async with api_client() as client:
        r = await client.post("/auth/login", json=payload)
    assert r.status_code == 401
    assert r.json() == {"error": "invalid_credentials"}
    assert "set-cookie" not in r.headers


@pytest.mark.anyio
async def test_login_with_corrupted_role_is_internal_error():
    user = create_user("student", email="odd@example.com", password="student123")
    user.role = "principal"
    async with api_client() as client:
        r = await client.post("/auth/login", json={"email": "odd@example.com", "password": "student123"})
    assert r.status_code == 500
    assert r.json()["error"] == "internal_error"


@pytest.mark.anyio
async def test_login_rejects_cross_origin():
    create_user("student", email="s@example.com", password="student123")
    async with api_client() as client:
        r = await client.post(
            "/auth/login",
            json={"email": "s@example.com", "password": "student123"},
            headers={"Origin": "https://evil.example"},
        )
    assert r.status_code == 403
    assert r.json()["detail"] == "csrf_violation"


@pytest.mark.anyio
async def test_strict_csrf_requires_origin(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("STRICT_CSRF", "true")
    create_user("student", email="s@example.com", password="student123")
    async with api_client() as client:
        missing = await client.post("/auth/login", json={"email": "s@example.com", "password": "student123"})
        ok = await client.post(
            "/auth/login", json={"email": "s@example.com", "password": "student123"}, headers=SAME_ORIGIN
        )
    assert missing.status_code == 403
    assert ok.status_code == 200


@pytest.mark.anyio
async def test_logout_deletes_session_and_clears_cookie():
    user = create_user("student")
    async with api_client() as client:
        sid = sign_in(client, user)
        r = await client.post("/auth/logout")
        assert r.status_code == 204
        assert f"{SESSION_COOKIE_NAME}=" in r.headers.get("set-cookie", "")
        assert wiring.get_session_store().get(sid) is None
        client.cookies.set(SESSION_COOKIE_NAME, sid)
        assert (await client.get("/api/me")).status_code == 401


@pytest.mark.anyio
async def test_logout_without_session_is_204():
    async with api_client() as client:
        r = await client.post("/auth/logout")
    assert r.status_code == 204


@pytest.mark.anyio
async def test_signup_creates_student_and_signs_in():
    async with api_client() as client:
        r = await client.post(
            "/auth/signup",
            json={"fullName": "Le Van C", "email": "Student.C@Example.com", "password": "student123", "role": "student"},
        )
        assert r.status_code == 201
        user = r.json()["user"]
        assert user["email"] == "student.c@example.com"
        assert user["role"] == "student"
        me = await client.get("/api/me")
        assert me.status_code == 200 and me.json()["id"] == user["id"]


@pytest.mark.anyio
@pytest.mark.parametrize(
    "payload,status,detail",
    [
        ({"email": "x@example.com", "password": "secret1", "role": "student"}, 400, "missing_fields"),
        ({"fullName": "X", "email": "x@example.com", "password": "secret1", "role": "admin"}, 400, "invalid_role"),
        ({"fullName": "X", "email": "x@example.com", "password": "short", "role": "student"}, 400, "password_too_short"),
        ({"fullName": "X", "email": "x@example.com", "password": "\u00e9" * 37, "role": "student"}, 400, "password_too_long"),
        ({"fullName": "X", "email": "nope", "password": "secret1", "role": "teacher"}, 400, "invalid_email"),
        ({"fullName": "X", "email": "TAKEN@example.com", "password": "secret1", "role": "student"}, 409, "email_taken"),
    ],
)
async def test_signup_errors(payload, status, detail):
    create_user("student", email="taken@example.com")
    async with api_client() as client:
        r = await client.post("/auth/signup", json=payload)
    assert r.status_code == status
    assert r.json()["detail"] == detail


@pytest.mark.anyio
async def test_admin_signup_only_when_enabled(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("LINGUA_ALLOW_ADMIN_SIGNUP", "true")
    async with api_client() as client:
        r = await client.post(
            "/auth/signup",
            json={"fullName": "Boss", "email": "boss@example.com", "password": "admin123", "role": "admin"},
        )
    assert r.status_code == 201
    assert r.json()["user"]["role"] == "admin"


@pytest.mark.anyio
async def test_api_requires_session():
    async with api_client() as client:
        for path in ("/api/me", "/api/admin/dashboard", "/api/teacher/classes", "/api/student/courses"):
            r = await client.get(path)
            assert r.status_code == 401
            assert r.json() == {"error": "unauthenticated"}
            assert r.headers.get("Cache-Control") == "private, no-store"
        client.cookies.set(SESSION_COOKIE_NAME, "forged")
        assert (await client.get("/api/me")).status_code == 401


@pytest.mark.anyio
async def test_health_is_public_and_carries_security_headers():
    async with api_client() as client:
        r = await client.get("/health")
    assert r.status_code == 200
    assert r.json() == {"status": "healthy"}
    for header in (
        "Content-Security-Policy",
        "X-Frame-Options",
        "X-Content-Type-Options",
        "Referrer-Policy",
        "Permissions-Policy",
        "Strict-Transport-Security",
    ):
        assert header in r.headers


@pytest.mark.anyio
async def test_prod_cookie_is_persistent_with_ttl(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("LINGUA_ENV", "prod")
    monkeypatch.setenv("SESSION_TTL_SECONDS", "1800")
    create_user("student", email="s@example.com", password="student123")
    async with api_client() as client:
        r = await client.post(
            "/auth/login", json={"email": "s@example.com", "password": "student123"}, headers=SAME_ORIGIN
        )
    assert r.status_code == 200
    assert "Max-Age=1800" in r.headers.get("set-cookie", "")
