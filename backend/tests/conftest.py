"""
Pytest configuration for backend tests.

Why: Force AnyIO to use the asyncio backend and give every test a fresh set of
in-memory stores, so API tests never leak users, sessions or courses into each
other and never need a running Postgres.
"""
import os
import sys
from pathlib import Path

import pytest

# bcrypt at production cost makes every signup/login take ~250ms.
os.environ["LINGUA_BCRYPT_ROUNDS"] = "4"

# Ensure modules in backend/ and the test helpers are importable across tests
REPO_ROOT = Path(__file__).resolve().parents[2]
BACKEND_DIR = REPO_ROOT / "backend"
TESTS_DIR = BACKEND_DIR / "tests"
for p in (str(BACKEND_DIR), str(TESTS_DIR)):
    if p not in sys.path:
        sys.path.insert(0, p)


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture(autouse=True)
def _clear_env_toggles(monkeypatch: pytest.MonkeyPatch):
    """Clear env-driven toggles that may leak across tests.

    Behavior:
        - Default to the dev environment unless a test opts into prod.
        - Drop proxy trust / strict CSRF / admin signup switches.
        - Keep DSNs out of the process so wiring never picks a DB backend.
    """
    monkeypatch.setenv("LINGUA_BCRYPT_ROUNDS", "4")
    for var in (
        "LINGUA_ENV",
        "STRICT_CSRF",
        "LINGUA_TRUST_PROXY",
        "LINGUA_ALLOW_ADMIN_SIGNUP",
        "SESSIONS_BACKEND",
        "SESSION_TTL_SECONDS",
        "DATABASE_URL",
        "SESSION_DATABASE_URL",
        "ACADEMY_DATABASE_URL",
    ):
        monkeypatch.delenv(var, raising=False)
    yield


@pytest.fixture(autouse=True)
def _reset_wiring():
    """Swap in fresh in-memory stores and the real calendar before each test."""
    from academy.repo_memory import InMemoryAcademyRepo
    from identity_access.stores import SessionStore
    from identity_access.users import UserStore
    from web import clock, wiring

    wiring.set_session_store(SessionStore())
    wiring.set_user_store(UserStore())
    wiring.set_repo(InMemoryAcademyRepo())
    clock.set_today_provider(None)
    yield
    clock.set_today_provider(None)


@pytest.fixture(autouse=True)
def _reset_settings_environment_override():
    """Reset main.SETTINGS.override_environment between tests."""
    main = sys.modules.get("web.main")
    if main is not None:
        main.SETTINGS.override_environment(None)
    yield
