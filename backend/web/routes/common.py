"""
Helpers shared by the admin, teacher, student and notification routers.

Role checks read `request.state.user`, which the auth middleware populates
from the session record. Repository exceptions carry snake_case codes and are
translated here so every router answers with the same error shape.
"""
from __future__ import annotations

from dataclasses import asdict, is_dataclass
from typing import Any, Dict, Iterable, Optional

from fastapi import Request
from fastapi.responses import JSONResponse

from web import wiring
from .security import _private_error

_CONFLICT_CODES = frozenset(
    {
        "already_registered",
        "already_assigned",
        "email_taken",
        "course_name_taken",
        "course_has_registrations",
        "course_has_classes",
    }
)


def _role_in(user: dict | None, role: str) -> bool:
    if not user:
        return False
    return user.get("role") == role


def _current_user_id(user: dict | None) -> int:
    if not user:
        return 0
    try:
        return int(user.get("id") or 0)
    except (TypeError, ValueError):
        return 0


def _require_role(request: Request, role: str):
    """Return (user, error_response) ensuring the caller has `role`."""
    user = getattr(request.state, "user", None)
    if not _role_in(user, role):
        return None, _private_error("forbidden", status_code=403)
    return user, None


def _serialize(obj: Any) -> Any:
    if obj is None:
        return None
    if is_dataclass(obj):
        return asdict(obj)
    if isinstance(obj, dict):
        return dict(obj)
    return obj


def _repo_error(exc: Exception) -> JSONResponse:
    """Translate repository exceptions into contract error responses."""
    code = str(exc.args[0]) if exc.args else "invalid_input"
    if isinstance(exc, PermissionError):
        return _private_error("forbidden", status_code=403, detail=code)
    if isinstance(exc, LookupError):
        return _private_error("not_found", status_code=404, detail=code)
    if code in _CONFLICT_CODES:
        return _private_error("conflict", status_code=409, detail=code)
    return _private_error("bad_request", status_code=400, detail=code)


def _user_summaries(ids: Iterable[int]) -> Dict[int, Dict[str, Any]]:
    """Resolve user ids to `{id, full_name, email}` (unknown ids are skipped)."""
    store = wiring.get_user_store()
    out: Dict[int, Dict[str, Any]] = {}
    for uid in set(int(i) for i in ids if i is not None):
        user = store.get(uid)
        if user is not None:
            out[uid] = {"id": user.id, "full_name": user.full_name, "email": user.email}
    return out


def _with_person(items: list, key: str, field: str) -> list:
    """Attach the user summary for `item[key]` under `item[field]`."""
    people = _user_summaries(item.get(key) for item in items)
    for item in items:
        item[field] = people.get(item.get(key))
    return items


def _int_or_none(raw: Optional[str]) -> Optional[int]:
    if raw is None or str(raw).strip() == "":
        return None
    try:
        return int(str(raw).strip())
    except ValueError:
        return None
