"""
Shared web security helpers for the route modules.

Contains the same-origin (CSRF) check used by every state-changing endpoint,
plus the private JSON response helpers. Keeping a single implementation avoids
security drift between the admin, teacher and student adapters.
"""
from __future__ import annotations

from typing import Any
from urllib.parse import urlparse
import os

from fastapi import Request
from fastapi.responses import JSONResponse

_PRIVATE_HEADERS = {"Cache-Control": "private, no-store"}


def _default_port(scheme: str) -> int:
    return 443 if scheme == "https" else 80


def _parse_origin(url: str) -> tuple[str, str, int]:
    p = urlparse(url)
    if not p.scheme or not p.hostname:
        raise ValueError("invalid_origin")
    scheme = p.scheme.lower()
    port = p.port if p.port is not None else _default_port(scheme)
    return scheme, p.hostname.lower(), int(port)


def _server_origin(request: Request) -> tuple[str, str, int]:
    """Origin the server is reachable under; X-Forwarded-* only with LINGUA_TRUST_PROXY=true."""
    trust_proxy = (os.getenv("LINGUA_TRUST_PROXY", "false") or "").lower() == "true"
    if trust_proxy:
        proto = (request.headers.get("x-forwarded-proto") or request.url.scheme or "http").split(",")[0].strip()
        raw_host = (request.headers.get("x-forwarded-host") or request.headers.get("host") or "").split(",")[0].strip()
        scheme = (proto or "http").lower()
        port = _default_port(scheme)
        host = raw_host
        if ":" in raw_host:
            host, port_str = raw_host.rsplit(":", 1)
            try:
                port = int(port_str)
            except ValueError:
                port = _default_port(scheme)
        xf_port = (request.headers.get("x-forwarded-port") or "").split(",")[0].strip()
        if xf_port:
            try:
                port = int(xf_port)
            except ValueError:
                port = _default_port(scheme)
        return scheme, (host or request.url.hostname or "").lower(), port

    scheme = (request.url.scheme or "http").lower()
    host = (request.url.hostname or "").lower()
    port = int(request.url.port) if request.url.port else _default_port(scheme)
    return scheme, host, port


def _is_same_origin(request: Request) -> bool:
    """Verify same-origin using Origin or Referer headers.

    Behavior:
    - If Origin is present, require exact scheme/host/port match with server.
    - Else if Referer is present, validate its origin similarly.
    - Else (no headers): allow to not break non-browser clients.
    """
    claimed = request.headers.get("origin") or request.headers.get("referer")
    if not claimed:
        return True
    try:
        return _parse_origin(claimed) == _server_origin(request)
    except ValueError:
        return False


def _json_private(payload: Any, *, status_code: int = 200) -> JSONResponse:
    """JSON response kept out of shared caches (all payloads are user-scoped)."""
    return JSONResponse(content=payload, status_code=status_code, headers=dict(_PRIVATE_HEADERS))


def _private_error(error: str, *, status_code: int, detail: str | None = None) -> JSONResponse:
    payload = {"error": error}
    if detail:
        payload["detail"] = detail
    return JSONResponse(content=payload, status_code=status_code, headers=dict(_PRIVATE_HEADERS))


def _csrf_guard(request: Request) -> JSONResponse | None:
    """Enforce same-origin for browser write requests.

    In prod-like environments (or with STRICT_CSRF=true) an Origin or Referer
    header is mandatory; otherwise requests without either are let through for
    server-to-server clients.
    """
    env = (os.getenv("LINGUA_ENV", "dev") or "").lower()
    strict = env in {"prod", "production", "stage", "staging"} or (
        (os.getenv("STRICT_CSRF", "false") or "").lower() == "true"
    )
    present = request.headers.get("origin") or request.headers.get("referer")
    if strict and not present:
        return _private_error("forbidden", status_code=403, detail="csrf_violation")
    if not _is_same_origin(request):
        return _private_error("forbidden", status_code=403, detail="csrf_violation")
    return None
