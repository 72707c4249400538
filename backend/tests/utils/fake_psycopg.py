"""
Lightweight psycopg stand-in for unit tests.

Provides ``install_fake_psycopg`` which monkeypatches a target module so that
``psycopg.connect`` returns an in-memory session table and ``psycopg.sql``
composes plain strings. Supports the subset of SQL used by DBSessionStore
(INSERT/SELECT/DELETE by session or user) and records every executed statement.
"""
from __future__ import annotations

from dataclasses import dataclass
import itertools
import time
import types
from typing import Any, Dict, List, Tuple


class _FakeIdentifier:
    def __init__(self, *parts: str) -> None:
        self.parts = parts

    def __str__(self) -> str:
        return ".".join(f'"{p}"' for p in self.parts)


class _FakeSQL:
    def __init__(self, text: str) -> None:
        self.text = text

    def format(self, *args: Any) -> str:
        return self.text.format(*(str(a) for a in args))


fake_sql = types.SimpleNamespace(SQL=_FakeSQL, Identifier=_FakeIdentifier)


@dataclass
class _Record:
    user_id: int
    name: str
    email: str
    role: str
    expires_at: int


class _FakeCursor:
    def __init__(self, store: Dict[str, _Record], log: List[Tuple[str, tuple]], now_func, ids) -> None:
        self._store = store
        self._log = log
        self._now = now_func
        self._ids = ids
        self._row = None
        self.rowcount = 0

    def execute(self, stmt: str, params: tuple | list) -> None:
        self._log.append((stmt, tuple(params)))
        sql_low = (stmt or "").lower().strip()
        if sql_low.startswith("insert into"):
            user_id, name, email, role, expires_at = params
            sid = f"fake-{next(self._ids)}"
            self._store[sid] = _Record(
                user_id=int(user_id), name=name, email=email, role=role, expires_at=int(expires_at)
            )
            self._row = (sid,)
        elif sql_low.startswith("select"):
            sid = str(params[0])
            rec = self._store.get(sid)
            if rec and rec.expires_at > int(self._now()):
                self._row = (sid, rec.user_id, rec.name, rec.email, rec.role, rec.expires_at)
            else:
                self._row = None
        elif sql_low.startswith("delete") and "where user_id" in sql_low:
            doomed = [sid for sid, rec in self._store.items() if rec.user_id == int(params[0])]
            for sid in doomed:
                self._store.pop(sid, None)
            self.rowcount = len(doomed)
            self._row = None
        elif sql_low.startswith("delete"):
            self.rowcount = 1 if self._store.pop(str(params[0]), None) else 0
            self._row = None
        else:
            raise AssertionError(f"Unexpected SQL in fake psycopg: {stmt}")

    def fetchone(self):
        return self._row

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        return False


class _FakeConn:
    def __init__(self, cursor_factory) -> None:
        self._cursor_factory = cursor_factory

    def cursor(self):
        return self._cursor_factory()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        return False


def install_fake_psycopg(monkeypatch, target_module, now_func=time.time):
    """
    Patch ``target_module`` so psycopg operations go against an in-memory store.

    Returns ``(store, log)``: the backing dictionary and the list of executed
    ``(statement, params)`` pairs.
    """
    fake_store: Dict[str, _Record] = {}
    log: List[Tuple[str, tuple]] = []
    ids = itertools.count(1)

    def fake_connect(dsn: str, autocommit: bool | None = None):
        return _FakeConn(lambda: _FakeCursor(fake_store, log, now_func, ids))

    monkeypatch.setattr(target_module, "HAVE_PSYCOPG", True, raising=False)
    monkeypatch.setattr(target_module, "psycopg", types.SimpleNamespace(connect=fake_connect), raising=False)
    monkeypatch.setattr(target_module, "sql", fake_sql, raising=False)
    return fake_store, log


__all__ = ["install_fake_psycopg", "fake_sql"]
