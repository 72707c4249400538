"""
Shared session-cookie helpers.

Why:
    Login, logout and signup all touch the session cookie. A single helper
    keeps the flags identical so no route can issue a weaker cookie.

Design:
    Pure functions over a Starlette `Response`; callers pass the environment
    (from `AppSettings`) and decide the lifetime.
"""

from __future__ import annotations

from starlette.responses import Response

SESSION_COOKIE_NAME = "lingua_session"


def cookie_opts(environment: str) -> dict:
    """Return hardened cookie flags (dev = prod).

    Returns a mapping with keys:
      - secure: True
      - samesite: "lax"
    """
    # Same flags everywhere; local development runs behind https as well.
    return {"secure": True, "samesite": "lax"}


def set_session_cookie(response: Response, session_id: str, *, environment: str, max_age: int | None = None) -> None:
    opts = cookie_opts(environment)
    response.set_cookie(
        key=SESSION_COOKIE_NAME,
        value=session_id,
        httponly=True,
        secure=opts["secure"],
        samesite=opts["samesite"],
        path="/",
        max_age=max_age,
    )


def clear_session_cookie(response: Response, *, environment: str) -> None:
    opts = cookie_opts(environment)
    response.delete_cookie(
        key=SESSION_COOKIE_NAME,
        path="/",
        secure=opts["secure"],
        httponly=True,
        samesite=opts["samesite"],
    )
