"""
In-memory session store for development and tests.

Why: Keep session state server-side and opaque to the client. For production,
use the Postgres-backed `DBSessionStore` (SESSIONS_BACKEND=db).

Security: Cookies carry only an opaque session id. Identity data stays server-side.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional
import secrets
import time


def _now() -> int:
    return int(time.time())


@dataclass
class SessionRecord:
    session_id: str
    user_id: int
    name: str
    email: str
    role: str
    expires_at: Optional[int] = None
    ttl_seconds: int = 3600


class SessionStore:
    def __init__(self):
        self._data: Dict[str, SessionRecord] = {}

    def create(self, *, user_id: int, name: str, email: str, role: str, ttl_seconds: int = 3600) -> SessionRecord:
        sid = secrets.token_urlsafe(24)
        rec = SessionRecord(
            session_id=sid,
            user_id=int(user_id),
            name=name,
            email=email,
            role=role,
            expires_at=_now() + ttl_seconds,
            ttl_seconds=ttl_seconds,
        )
        self._data[sid] = rec
        return rec

    def get(self, session_id: str) -> Optional[SessionRecord]:
        rec = self._data.get(session_id)
        if not rec:
            return None
        if rec.expires_at and rec.expires_at < _now():
            self._data.pop(session_id, None)
            return None
        return rec

    def delete(self, session_id: str) -> None:
        self._data.pop(session_id, None)

    def delete_for_user(self, user_id: int) -> int:
        """Drop every session of `user_id`; returns how many were removed."""
        sids = [sid for sid, rec in self._data.items() if rec.user_id == int(user_id)]
        for sid in sids:
            self._data.pop(sid, None)
        return len(sids)
