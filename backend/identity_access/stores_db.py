"""
Database-backed SessionStore for production use (Postgres).

Why: In-memory sessions are not durable and do not scale across instances. This
store persists sessions in Postgres while keeping the cookie opaque.

Schema (owned by the deployment, not created here):
    app_sessions(session_id text primary key, user_id bigint, name text,
                 email text, role text, expires_at timestamptz)

Note: This module uses psycopg3. It is imported only when enabled via
`SESSIONS_BACKEND=db`. Tests use the in-memory store or a fake driver.
"""
from __future__ import annotations

from typing import Optional
import os
import re
import time

try:
    import psycopg
    from psycopg import sql
    HAVE_PSYCOPG = True
except Exception:  # pragma: no cover - optional dependency in dev
    psycopg = None  # type: ignore
    sql = None  # type: ignore
    HAVE_PSYCOPG = False

from identity_access.stores import SessionRecord

_TABLE_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]{0,62}(?:\.[A-Za-z_][A-Za-z0-9_]{0,62})?$")


def _now() -> int:
    return int(time.time())


class DBSessionStore:
    """Postgres-backed session store.

    Parameters
    ----------
    dsn:
        Psycopg3 connection string. Defaults to SESSION_DATABASE_URL or DATABASE_URL.
    table:
        Optionally schema-qualified table name. Defaults to `public.app_sessions`.
    """

    def __init__(self, dsn: str | None = None, table: str = "public.app_sessions") -> None:
        if not HAVE_PSYCOPG:
            raise RuntimeError("psycopg3 is required for DBSessionStore")
        self._dsn = dsn or os.getenv("SESSION_DATABASE_URL") or os.getenv("DATABASE_URL", "")
        if not self._dsn:
            raise RuntimeError("No database DSN provided for DBSessionStore")
        if not _TABLE_RE.match(table or ""):
            raise ValueError("Invalid table name")
        self._table = table

    def _ident(self):
        if "." in self._table:
            schema, name = self._table.split(".", 1)
        else:
            schema, name = "public", self._table
        return sql.Identifier(schema, name)

    def create(self, *, user_id: int, name: str, email: str, role: str, ttl_seconds: int = 3600) -> SessionRecord:
        expires_at = _now() + ttl_seconds
        stmt = sql.SQL(
            "insert into {} (session_id, user_id, name, email, role, expires_at) "
            "values (gen_random_uuid()::text, %s, %s, %s, %s, to_timestamp(%s)) returning session_id"
        ).format(self._ident())
        with psycopg.connect(self._dsn, autocommit=True) as conn:
            with conn.cursor() as cur:
                cur.execute(stmt, (int(user_id), name, email, role, expires_at))
                row = cur.fetchone()
        sid = str(row[0]) if row else ""
        return SessionRecord(
            session_id=sid,
            user_id=int(user_id),
            name=name,
            email=email,
            role=role,
            expires_at=expires_at,
            ttl_seconds=ttl_seconds,
        )

    def get(self, session_id: str) -> Optional[SessionRecord]:
        stmt = sql.SQL(
            "select session_id, user_id, name, email, role, extract(epoch from expires_at)::bigint "
            "from {} where session_id = %s and expires_at > now()"
        ).format(self._ident())
        with psycopg.connect(self._dsn) as conn:
            with conn.cursor() as cur:
                cur.execute(stmt, (session_id,))
                row = cur.fetchone()
        if not row:
            return None
        return SessionRecord(
            session_id=row[0],
            user_id=int(row[1]),
            name=row[2],
            email=row[3],
            role=row[4],
            expires_at=int(row[5]) if row[5] is not None else None,
        )

    def delete(self, session_id: str) -> None:
        stmt = sql.SQL("delete from {} where session_id = %s").format(self._ident())
        with psycopg.connect(self._dsn, autocommit=True) as conn:
            with conn.cursor() as cur:
                cur.execute(stmt, (session_id,))

    def delete_for_user(self, user_id: int) -> int:
        stmt = sql.SQL("delete from {} where user_id = %s").format(self._ident())
        with psycopg.connect(self._dsn, autocommit=True) as conn:
            with conn.cursor() as cur:
                cur.execute(stmt, (int(user_id),))
                return int(cur.rowcount or 0)
