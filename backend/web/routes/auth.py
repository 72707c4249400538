"""
Authentication routes: email/password login, logout, self-signup, `/api/me`.

Why:
    Keep auth endpoints in a dedicated router. Credential checking lives in
    `identity_access.credentials`; this adapter only turns its result into a
    session cookie or a uniform 401.

Security:
    - Every login failure answers with the same body (`invalid_credentials`),
      whether the email is unknown or the password is wrong.
    - The cookie carries only an opaque session id; identity stays server-side.
    - Responses are `Cache-Control: private, no-store`.
"""

from __future__ import annotations

from datetime import datetime, timezone
import logging

from fastapi import APIRouter, Request
from fastapi.responses import Response
from pydantic import BaseModel, ConfigDict, Field

from identity_access.credentials import INVALID_CREDENTIALS, verify_credentials
from identity_access.domain import DataIntegrityFault, Role
from identity_access.users import credential_lookup
from web import wiring
from web.auth_utils import SESSION_COOKIE_NAME, clear_session_cookie, set_session_cookie
from web.config import load_settings
from .security import _csrf_guard, _json_private, _private_error

auth_router = APIRouter(tags=["Auth"])
logger = logging.getLogger("lingua.web.auth")

_SIGNUP_ROLES = {Role.STUDENT.value, Role.TEACHER.value}


class LoginRequest(BaseModel):
    # Optional on purpose: missing fields must yield the uniform 401, not 422.
    email: str | None = None
    password: str | None = None


class SignupRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    full_name: str | None = Field(default=None, alias="fullName")
    email: str | None = None
    password: str | None = None
    role: str | None = None


def _cookie_max_age(settings) -> int | None:
    # Session cookies in dev; persistent cookies bounded by the session TTL in prod.
    return settings.session_ttl_seconds if settings.prod_like else None


def _start_session(user: dict, settings, *, status_code: int) -> Response:
    sess = wiring.get_session_store().create(
        user_id=user["id"],
        name=user["name"],
        email=user["email"],
        role=user["role"],
        ttl_seconds=settings.session_ttl_seconds,
    )
    resp = _json_private({"user": user}, status_code=status_code)
    set_session_cookie(resp, sess.session_id, environment=settings.environment, max_age=_cookie_max_age(settings))
    return resp


@auth_router.post("/auth/login")
async def auth_login(request: Request, payload: LoginRequest):
    """Verify email/password and open a session.

    Behavior:
        - 200 `{user: {id, name, email, role}}` + session cookie on success
        - 401 `invalid_credentials` on any failure (no hint which part was wrong)
        - 500 when a stored record carries an unknown role (data integrity)
    """
    csrf = _csrf_guard(request)
    if csrf:
        return csrf
    settings = load_settings()
    lookup = credential_lookup(wiring.get_user_store())
    try:
        result = verify_credentials(payload.email, payload.password, lookup=lookup)
    except DataIntegrityFault:
        return _private_error("internal_error", status_code=500)
    if not result.ok:
        return _private_error(INVALID_CREDENTIALS, status_code=401)
    return _start_session(result.identity.to_dict(), settings, status_code=200)


@auth_router.post("/auth/logout")
async def auth_logout(request: Request):
    """Delete the server-side session (if any) and clear the cookie; always 204."""
    settings = load_settings()
    sid = request.cookies.get(SESSION_COOKIE_NAME)
    if sid:
        try:
            wiring.get_session_store().delete(sid)
        except Exception as exc:
            logger.warning("Session delete failed: %s", exc.__class__.__name__)
    resp = Response(status_code=204, headers={"Cache-Control": "private, no-store"})
    clear_session_cookie(resp, environment=settings.environment)
    return resp


@auth_router.post("/auth/signup")
async def auth_signup(request: Request, payload: SignupRequest):
    """Create an account and sign the new user in.

    Behavior:
        - 201 `{user}` + session cookie
        - 400 `missing_fields` | `invalid_email` | `password_too_short` | `password_too_long` |
          `invalid_full_name` | `invalid_role`
        - 409 `email_taken` when the normalized email already exists

    Permissions:
        Public. `admin` is only accepted when LINGUA_ALLOW_ADMIN_SIGNUP=true.
    """
    csrf = _csrf_guard(request)
    if csrf:
        return csrf
    settings = load_settings()
    if not (payload.full_name and payload.email and payload.password and payload.role):
        return _private_error("bad_request", status_code=400, detail="missing_fields")
    allowed = set(_SIGNUP_ROLES)
    if settings.allow_admin_signup:
        allowed.add(Role.ADMIN.value)
    if payload.role not in allowed:
        return _private_error("bad_request", status_code=400, detail="invalid_role")
    try:
        user = wiring.get_user_store().create(
            full_name=payload.full_name,
            email=payload.email,
            password=payload.password,
            role=payload.role,
        )
    except ValueError as exc:
        code = str(exc.args[0]) if exc.args else "invalid_input"
        if code == "email_taken":
            return _private_error("conflict", status_code=409, detail=code)
        return _private_error("bad_request", status_code=400, detail=code)
    logger.info("Account created id=%s role=%s", user.id, user.role)
    identity = {"id": user.id, "name": user.full_name, "email": user.email, "role": user.role}
    return _start_session(identity, settings, status_code=201)


@auth_router.get("/api/me")
async def get_me(request: Request):
    """Return the identity bound to the current session (auth middleware enforces presence)."""
    user = getattr(request.state, "user", None)
    if not user:
        return _private_error("unauthenticated", status_code=401)
    expires_at = user.get("expires_at")
    exp_iso = (
        datetime.fromtimestamp(expires_at, tz=timezone.utc).isoformat(timespec="seconds") if expires_at else None
    )
    return _json_private(
        {
            "id": user["id"],
            "name": user.get("name", ""),
            "email": user.get("email", ""),
            "role": user["role"],
            "expires_at": exp_iso,
        }
    )
