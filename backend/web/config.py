"""
Configuration and startup security checks for Lingua.

Why: A course platform stores student credentials and personal schedules. We
must prevent accidental insecure deployments without burdening local
development.

Permissions: The caller needs no special privileges. The functions read
environment variables; the guard raises `SystemExit` on fatal misconfiguration.
"""
from __future__ import annotations

from dataclasses import dataclass
import os

from identity_access.passwords import bcrypt_rounds

MIN_PROD_BCRYPT_ROUNDS = 10


def _is_prod_like(env: str) -> bool:
    env_l = (env or "").lower()
    return env_l in {"prod", "production", "stage", "staging"}


def _flag(name: str, default: str = "false") -> bool:
    return (os.getenv(name, default) or "").strip().lower() in ("1", "true", "yes")


def _int_env(name: str, default: int, *, minimum: int = 1) -> int:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        return default
    return value if value >= minimum else default


@dataclass(frozen=True)
class AppSettings:
    environment: str
    sessions_backend: str
    session_ttl_seconds: int
    bcrypt_rounds: int
    allow_admin_signup: bool
    academy_backend: str

    @property
    def prod_like(self) -> bool:
        return _is_prod_like(self.environment)


def load_settings() -> AppSettings:
    """Read runtime settings from the environment (no caching; cheap to call)."""
    return AppSettings(
        environment=(os.getenv("LINGUA_ENV", "dev") or "dev").strip().lower(),
        sessions_backend=(os.getenv("SESSIONS_BACKEND", "memory") or "memory").strip().lower(),
        session_ttl_seconds=_int_env("SESSION_TTL_SECONDS", 3600, minimum=60),
        bcrypt_rounds=bcrypt_rounds(),
        allow_admin_signup=_flag("LINGUA_ALLOW_ADMIN_SIGNUP"),
        academy_backend=(os.getenv("ACADEMY_BACKEND", "auto") or "auto").strip().lower(),
    )


def ensure_secure_config_on_startup() -> None:
    """Fail fast on insecure production configuration.

    Checks (prod/staging only):
    - Sessions must live in Postgres (SESSIONS_BACKEND=db).
    - DATABASE_URL must not explicitly disable TLS.
    - bcrypt cost must be at least MIN_PROD_BCRYPT_ROUNDS.
    - Admin self-signup must be off.
    """
    env = os.getenv("LINGUA_ENV", "dev")
    if not _is_prod_like(env):
        return  # dev/test remain permissive

    if (os.getenv("SESSIONS_BACKEND", "memory") or "").strip().lower() != "db":
        raise SystemExit(
            "Refusing to start: SESSIONS_BACKEND must be 'db' in production (in-memory sessions are not durable)."
        )

    for key in ("DATABASE_URL", "SESSION_DATABASE_URL", "ACADEMY_DATABASE_URL"):
        if "sslmode=disable" in (os.getenv(key, "") or ""):
            raise SystemExit(
                f"Refusing to start: {key} contains sslmode=disable in production. Use sslmode=require or verify TLS."
            )

    try:
        rounds = bcrypt_rounds()
    except ValueError as exc:
        raise SystemExit(f"Refusing to start: LINGUA_BCRYPT_ROUNDS is invalid ({exc}).") from exc
    if rounds < MIN_PROD_BCRYPT_ROUNDS:
        raise SystemExit(
            f"Refusing to start: LINGUA_BCRYPT_ROUNDS must be >= {MIN_PROD_BCRYPT_ROUNDS} in production."
        )

    if _flag("LINGUA_ALLOW_ADMIN_SIGNUP"):
        raise SystemExit(
            "Refusing to start: LINGUA_ALLOW_ADMIN_SIGNUP must be false in production/staging."
        )
