"""
Identity domain constants and simple helpers.

Why:
- Centralize allowed roles to avoid drift between the verifier, the session
  middleware and the route guards.
- Model roles as a closed set so that a guard can only name a real role.
"""

from __future__ import annotations

from enum import Enum


class DataIntegrityFault(RuntimeError):
    """Stored identity data violates an invariant (e.g. unknown role tag).

    Not a user input error: callers log it and fail the request without retry.
    """


class Role(str, Enum):
    ADMIN = "admin"
    TEACHER = "teacher"
    STUDENT = "student"

    @classmethod
    def parse(cls, value: object) -> "Role":
        """Return the Role for a stored tag or raise DataIntegrityFault."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value)
            except ValueError:
                pass
        raise DataIntegrityFault(f"unknown role tag: {value!r}")


# Keep roles minimal and explicit. Immutable to prevent accidental mutation.
ALLOWED_ROLES = frozenset(r.value for r in Role)

__all__ = ["ALLOWED_ROLES", "DataIntegrityFault", "Role"]
