"""
Process-wide wiring of stores and repositories.

Why:
    Routes need the session store, the user store and the academy repository
    without importing `main` (circular) and without touching the database at
    import time. Each accessor builds its backend lazily and tests swap
    implementations via the `set_*` helpers.

Behavior:
    - Postgres-backed implementations are used when psycopg imports and a DSN
      is configured; otherwise in-memory ones (dev/tests).
    - Under pytest the in-memory backends are always chosen unless a test
      injects something else explicitly.
"""
from __future__ import annotations

import logging
import os
import sys

from academy.repo_memory import InMemoryAcademyRepo
from identity_access.stores import SessionStore
from identity_access.users import UserStore

logger = logging.getLogger("lingua.web")

_SESSION_STORE = None
_USER_STORE = None
_ACADEMY_REPO = None


def _under_pytest() -> bool:
    return "pytest" in sys.modules or bool(os.getenv("PYTEST_CURRENT_TEST"))


def _db_configured() -> bool:
    return bool(os.getenv("DATABASE_URL")) and not _under_pytest()


def _build_session_store():
    if (not _under_pytest()) and (os.getenv("SESSIONS_BACKEND", "memory") or "").lower() == "db":
        try:
            from identity_access.stores_db import DBSessionStore

            return DBSessionStore()
        except Exception as exc:
            logger.warning("DB session store unavailable (%s); using in-memory store", exc.__class__.__name__)
    return SessionStore()


def _build_user_store():
    if _db_configured():
        try:
            from identity_access.users_db import DBUserStore

            return DBUserStore()
        except Exception as exc:  # pragma: no cover - exercised when psycopg missing
            logger.warning("User store unavailable (%s); using in-memory fallback", exc.__class__.__name__)
    return UserStore()


def _build_academy_repo():
    backend = (os.getenv("ACADEMY_BACKEND", "auto") or "auto").lower()
    if backend == "memory" or not _db_configured():
        return InMemoryAcademyRepo()
    try:
        from academy.repo_db import DBAcademyRepo

        return DBAcademyRepo()
    except Exception as exc:  # pragma: no cover - exercised when psycopg missing
        logger.warning("Academy repo unavailable (%s); using in-memory fallback", exc.__class__.__name__)
        return InMemoryAcademyRepo()


def get_session_store():
    global _SESSION_STORE
    if _SESSION_STORE is None:
        _SESSION_STORE = _build_session_store()
    return _SESSION_STORE


def get_user_store():
    global _USER_STORE
    if _USER_STORE is None:
        _USER_STORE = _build_user_store()
    return _USER_STORE


def get_repo():
    global _ACADEMY_REPO
    if _ACADEMY_REPO is None:
        _ACADEMY_REPO = _build_academy_repo()
    return _ACADEMY_REPO


def set_session_store(store) -> None:
    """Allow tests to swap the session store implementation."""
    global _SESSION_STORE
    _SESSION_STORE = store


def set_user_store(store) -> None:
    """Allow tests to swap the user store implementation."""
    global _USER_STORE
    _USER_STORE = store


def set_repo(repo) -> None:
    """Allow tests to swap the academy repository implementation."""
    global _ACADEMY_REPO
    _ACADEMY_REPO = repo
