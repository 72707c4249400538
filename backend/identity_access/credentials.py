"""
Credential verification for password logins.

Why:
    Login is the only place where untrusted input meets stored secrets. Keep
    the flow in one pure function so every entry point (web route, tooling,
    tests) normalizes and compares the same way.

Behavior:
    - Email identifiers are trimmed and lowercased before lookup; account
      creation uses the same `normalize_email` helper.
    - Secrets are compared with bcrypt (constant time, salted).
    - Every failure collapses into one opaque outcome (`invalid_credentials`).
      The specific reason is logged, never returned.
    - A stored role outside the closed Role set raises DataIntegrityFault.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional
import logging

from identity_access.domain import Role
from identity_access.passwords import check_password

logger = logging.getLogger("lingua.identity_access")

INVALID_CREDENTIALS = "invalid_credentials"


def normalize_email(raw: object) -> str:
    """Return the canonical lookup key for an email identifier ("" if unusable)."""
    if not isinstance(raw, str):
        return ""
    return raw.strip().lower()


def mask_email(email: str) -> str:
    """Reduce an email to a log-safe hint, e.g. `a***@example.com`."""
    if "@" not in email:
        return "***"
    local, domain = email.rsplit("@", 1)
    return f"{local[:1]}***@{domain}"


@dataclass(frozen=True)
class CredentialRecord:
    id: int
    full_name: str
    email: str
    password_hash: str
    role: str


@dataclass(frozen=True)
class AuthenticatedIdentity:
    id: int
    name: str
    email: str
    role: Role

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "email": self.email, "role": self.role.value}


class FailureReason(str, Enum):
    MISSING_CREDENTIALS = "missing_credentials"
    USER_NOT_FOUND = "user_not_found"
    INVALID_SECRET = "invalid_secret"
    LOOKUP_FAILED = "lookup_failed"


@dataclass(frozen=True)
class VerificationResult:
    identity: Optional[AuthenticatedIdentity] = None
    reason: Optional[FailureReason] = None

    @property
    def ok(self) -> bool:
        return self.identity is not None

    @property
    def error(self) -> Optional[str]:
        """Caller-visible error code; identical for every failure reason."""
        return None if self.ok else INVALID_CREDENTIALS


CredentialLookup = Callable[[str], Optional[CredentialRecord]]


def _fail(reason: FailureReason, email: str) -> VerificationResult:
    logger.info("login rejected: reason=%s email=%s", reason.value, mask_email(email) if email else "-")
    return VerificationResult(reason=reason)


def verify_credentials(identifier_raw: object, secret_raw: object, *, lookup: CredentialLookup) -> VerificationResult:
    """Verify an email/password pair against the credential store.

    Parameters:
        identifier_raw: untrusted email input (any case, may carry whitespace)
        secret_raw: untrusted password input
        lookup: returns the single record for a normalized email, or None

    Returns a VerificationResult; `result.error` is the same opaque code for
    missing input, unknown user and wrong password.
    """
    email = normalize_email(identifier_raw)
    if not email or not isinstance(secret_raw, str) or not secret_raw:
        return _fail(FailureReason.MISSING_CREDENTIALS, email)

    try:
        record = lookup(email)
    except Exception as exc:
        logger.warning("credential lookup failed: %s", exc.__class__.__name__)
        return _fail(FailureReason.LOOKUP_FAILED, email)
    if record is None:
        return _fail(FailureReason.USER_NOT_FOUND, email)

    if not check_password(secret_raw, record.password_hash):
        return _fail(FailureReason.INVALID_SECRET, email)

    try:
        role = Role.parse(record.role)
    except Exception:
        logger.error("stored role invalid for user_id=%s", record.id)
        raise
    identity = AuthenticatedIdentity(id=int(record.id), name=record.full_name, email=normalize_email(record.email), role=role)
    logger.info("login accepted: user_id=%s role=%s", identity.id, role.value)
    return VerificationResult(identity=identity)


__all__ = [
    "AuthenticatedIdentity",
    "CredentialLookup",
    "CredentialRecord",
    "FailureReason",
    "INVALID_CREDENTIALS",
    "VerificationResult",
    "mask_email",
    "normalize_email",
    "verify_credentials",
]
