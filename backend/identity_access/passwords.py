"""
Password hashing helpers (bcrypt).

Security:
- bcrypt is salted and adaptive; the cost factor comes from
  LINGUA_BCRYPT_ROUNDS (default 12, accepted range 4..16).
- `check_password` never raises for malformed stored hashes; a hash that
  bcrypt cannot parse simply does not match.
"""
from __future__ import annotations

import os

import bcrypt

DEFAULT_ROUNDS = 12
# bcrypt only reads the first 72 bytes of a secret; recent releases reject longer input.
MAX_PASSWORD_BYTES = 72


def bcrypt_rounds() -> int:
    raw = os.getenv("LINGUA_BCRYPT_ROUNDS")
    if raw is None or not raw.strip():
        return DEFAULT_ROUNDS
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"LINGUA_BCRYPT_ROUNDS must be an integer, got: {raw!r}")
    if value < 4 or value > 16:
        raise ValueError(f"LINGUA_BCRYPT_ROUNDS out of range (4..16), got: {value}")
    return value


def hash_password(secret: str, *, rounds: int | None = None) -> str:
    if not isinstance(secret, str) or not secret:
        raise ValueError("invalid_password")
    if len(secret.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise ValueError("password_too_long")
    salt = bcrypt.gensalt(rounds=rounds or bcrypt_rounds())
    return bcrypt.hashpw(secret.encode("utf-8"), salt).decode("utf-8")


def check_password(secret: str, hashed: str | bytes | None) -> bool:
    if not secret or not hashed:
        return False
    hashed_bytes = hashed.encode("utf-8") if isinstance(hashed, str) else bytes(hashed)
    try:
        return bcrypt.checkpw(secret.encode("utf-8"), hashed_bytes)
    except ValueError:
        # Invalid salt / not a bcrypt hash
        return False
