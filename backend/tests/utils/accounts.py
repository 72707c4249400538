"""
Account and client helpers shared by the API tests.

Users are created straight in the in-memory user store; signing in creates a
session record and sets the opaque cookie on the client, the same way the
login route does after a successful credential check.
"""
from __future__ import annotations

from itertools import count

import httpx
from httpx import ASGITransport

from identity_access.users import UserRecord
from web import wiring
from web.auth_utils import SESSION_COOKIE_NAME

DEFAULT_PASSWORD = "secret123"
BASE_URL = "https://test"
SAME_ORIGIN = {"Origin": BASE_URL}

_seq = count(1)


def create_user(role: str = "student", *, email: str | None = None, password: str = DEFAULT_PASSWORD,
                full_name: str | None = None) -> UserRecord:
    n = next(_seq)
    return wiring.get_user_store().create(
        full_name=full_name or f"{role.title()} {n}",
        email=email or f"{role}{n}@example.com",
        password=password,
        role=role,
    )


def api_client() -> httpx.AsyncClient:
    from web.main import app

    return httpx.AsyncClient(transport=ASGITransport(app=app), base_url=BASE_URL)


def sign_in(client: httpx.AsyncClient, user: UserRecord) -> str:
    sess = wiring.get_session_store().create(
        user_id=user.id, name=user.full_name, email=user.email, role=user.role, ttl_seconds=3600
    )
    client.cookies.set(SESSION_COOKIE_NAME, sess.session_id)
    return sess.session_id
