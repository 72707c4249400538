"""
Postgres-backed user store.

Design:
- Minimal psycopg3 usage; each call opens a short-lived connection.
- Emails are stored normalized; a unique index on `email` backs the
  one-record-per-normalized-email invariant. UniqueViolation maps to
  ValueError("email_taken").

Schema (owned by the deployment):
    users(id bigserial primary key, full_name text, email text unique,
          password_hash text, role text, created_at timestamptz default now())
"""
from __future__ import annotations

from typing import Any, List, Optional, Tuple
import os

try:
    import psycopg
    from psycopg.errors import UniqueViolation
    HAVE_PSYCOPG = True
except Exception:  # pragma: no cover - optional in some dev envs
    psycopg = None  # type: ignore
    UniqueViolation = None  # type: ignore
    HAVE_PSYCOPG = False

from identity_access.credentials import normalize_email
from identity_access.domain import Role
from identity_access.passwords import hash_password
from identity_access.users import (
    _UNSET,
    UserRecord,
    validate_email,
    validate_full_name,
    validate_password,
    validate_role,
)

_COLUMNS_SQL = """
    id,
    full_name,
    email,
    role,
    password_hash,
    to_char(created_at at time zone 'utc', 'YYYY-MM-DD"T"HH24:MI:SS"+00:00"')
"""


def _row_to_user(row: Tuple[Any, ...]) -> UserRecord:
    return UserRecord(
        id=int(row[0]),
        full_name=row[1],
        email=row[2],
        role=row[3],
        password_hash=row[4],
        created_at=row[5],
    )


def _is_unique_violation(exc: Exception) -> bool:
    return UniqueViolation is not None and isinstance(exc, UniqueViolation)


class DBUserStore:
    def __init__(self, dsn: Optional[str] = None) -> None:
        if not HAVE_PSYCOPG:
            raise RuntimeError("psycopg3 is required for DBUserStore")
        self._dsn = dsn or os.getenv("DATABASE_URL", "")
        if not self._dsn:
            raise RuntimeError("Database DSN unavailable for DBUserStore")

    def find_by_email(self, email: str) -> Optional[UserRecord]:
        with psycopg.connect(self._dsn) as conn:
            with conn.cursor() as cur:
                cur.execute(f"select {_COLUMNS_SQL} from public.users where email = %s limit 1", (normalize_email(email),))
                row = cur.fetchone()
        return _row_to_user(row) if row else None

    def get(self, user_id: int) -> Optional[UserRecord]:
        with psycopg.connect(self._dsn) as conn:
            with conn.cursor() as cur:
                cur.execute(f"select {_COLUMNS_SQL} from public.users where id = %s", (int(user_id),))
                row = cur.fetchone()
        return _row_to_user(row) if row else None

    def create(self, *, full_name: str, email: str, password: str, role: str) -> UserRecord:
        name = validate_full_name(full_name)
        normalized = validate_email(email)
        validate_role(role)
        password_hash = hash_password(validate_password(password))
        try:
            with psycopg.connect(self._dsn) as conn:
                with conn.cursor() as cur:
                    cur.execute(
                        f"""
                        insert into public.users (full_name, email, password_hash, role)
                        values (%s, %s, %s, %s)
                        returning {_COLUMNS_SQL}
                        """,
                        (name, normalized, password_hash, role),
                    )
                    row = cur.fetchone()
        except Exception as exc:
            if _is_unique_violation(exc):
                raise ValueError("email_taken") from exc
            raise
        return _row_to_user(row)

    def update(self, user_id: int, *, full_name=_UNSET, email=_UNSET, role=_UNSET, password=_UNSET) -> Optional[UserRecord]:
        sets: List[str] = []
        params: List[Any] = []
        if full_name is not _UNSET:
            sets.append("full_name = %s")
            params.append(validate_full_name(full_name))
        if email is not _UNSET:
            sets.append("email = %s")
            params.append(validate_email(email))
        if role is not _UNSET:
            sets.append("role = %s")
            params.append(validate_role(role))
        if password is not _UNSET:
            sets.append("password_hash = %s")
            params.append(hash_password(validate_password(password)))
        if not sets:
            return self.get(user_id)
        params.append(int(user_id))
        try:
            with psycopg.connect(self._dsn) as conn:
                with conn.cursor() as cur:
                    cur.execute(
                        f"update public.users set {', '.join(sets)} where id = %s returning {_COLUMNS_SQL}",
                        tuple(params),
                    )
                    row = cur.fetchone()
        except Exception as exc:
            if _is_unique_violation(exc):
                raise ValueError("email_taken") from exc
            raise
        return _row_to_user(row) if row else None

    def delete(self, user_id: int) -> bool:
        with psycopg.connect(self._dsn) as conn:
            with conn.cursor() as cur:
                cur.execute("delete from public.users where id = %s", (int(user_id),))
                return bool(cur.rowcount)

    def list(self, *, search: str | None = None, role: str | None = None) -> List[UserRecord]:
        clauses: List[str] = []
        params: List[Any] = []
        if search:
            clauses.append("(full_name ilike %s or email ilike %s)")
            pattern = f"%{search.strip()}%"
            params.extend([pattern, pattern])
        if role:
            clauses.append("role = %s")
            params.append(role)
        where = f"where {' and '.join(clauses)}" if clauses else ""
        with psycopg.connect(self._dsn) as conn:
            with conn.cursor() as cur:
                cur.execute(
                    f"select {_COLUMNS_SQL} from public.users {where} order by created_at desc, id desc",
                    tuple(params),
                )
                rows = cur.fetchall()
        return [_row_to_user(r) for r in rows]

    def stats(self) -> dict:
        with psycopg.connect(self._dsn) as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    select count(*),
                           count(*) filter (where role = %s),
                           count(*) filter (where role = %s),
                           count(*) filter (where role = %s)
                      from public.users
                    """,
                    (Role.STUDENT.value, Role.TEACHER.value, Role.ADMIN.value),
                )
                row = cur.fetchone() or (0, 0, 0, 0)
        return {
            "totalUsers": int(row[0] or 0),
            "totalStudents": int(row[1] or 0),
            "totalTeachers": int(row[2] or 0),
            "totalAdmins": int(row[3] or 0),
        }
