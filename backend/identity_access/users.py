"""
User (credential) store: in-memory implementation and shared helpers.

Why:
    The credential verifier only needs "find one record by normalized email".
    Admin tooling additionally lists, creates, updates and deletes accounts.
    Both go through one store so the normalization rule cannot drift.

Invariant:
    Exactly one record per normalized email. `create` and `update` reject a
    second account whose email differs only by case or surrounding whitespace.
"""
from __future__ import annotations

from dataclasses import dataclass, asdict
from datetime import datetime, timezone
from typing import Dict, List, Optional, Protocol
import re

from identity_access.credentials import CredentialLookup, CredentialRecord, normalize_email
from identity_access.domain import ALLOWED_ROLES, Role
from identity_access.passwords import MAX_PASSWORD_BYTES, hash_password

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
MIN_PASSWORD_LENGTH = 6
MAX_NAME_LENGTH = 120

_UNSET = object()


@dataclass
class UserRecord:
    id: int
    full_name: str
    email: str
    role: str
    password_hash: str
    created_at: str

    def public(self) -> dict:
        data = asdict(self)
        data.pop("password_hash", None)
        return data


class UserStoreProtocol(Protocol):
    def find_by_email(self, email: str) -> Optional[UserRecord]:
        ...

    def get(self, user_id: int) -> Optional[UserRecord]:
        ...

    def create(self, *, full_name: str, email: str, password: str, role: str) -> UserRecord:
        ...

    def update(self, user_id: int, *, full_name=_UNSET, email=_UNSET, role=_UNSET, password=_UNSET) -> Optional[UserRecord]:
        ...

    def delete(self, user_id: int) -> bool:
        ...

    def list(self, *, search: str | None = None, role: str | None = None) -> List[UserRecord]:
        ...

    def stats(self) -> dict:
        ...


def validate_full_name(value: object) -> str:
    name = value.strip() if isinstance(value, str) else ""
    if not name or len(name) > MAX_NAME_LENGTH:
        raise ValueError("invalid_full_name")
    return name


def validate_email(value: object) -> str:
    email = normalize_email(value)
    if not email or not EMAIL_RE.match(email):
        raise ValueError("invalid_email")
    return email


def validate_role(value: object) -> str:
    if not isinstance(value, str) or value not in ALLOWED_ROLES:
        raise ValueError("invalid_role")
    return value


def validate_password(value: object) -> str:
    if not isinstance(value, str) or len(value) < MIN_PASSWORD_LENGTH:
        raise ValueError("password_too_short")
    if len(value.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise ValueError("password_too_long")
    return value


def credential_lookup(store: UserStoreProtocol) -> CredentialLookup:
    """Adapt a user store to the verifier's `lookup(normalized_email)` callable."""

    def _lookup(email: str) -> Optional[CredentialRecord]:
        user = store.find_by_email(email)
        if user is None:
            return None
        return CredentialRecord(
            id=user.id,
            full_name=user.full_name,
            email=user.email,
            password_hash=user.password_hash,
            role=user.role,
        )

    return _lookup


class UserStore:
    """In-memory user store (dev/tests)."""

    def __init__(self) -> None:
        self._users: Dict[int, UserRecord] = {}
        self._next_id = 1

    def _email_taken(self, email: str, *, exclude_id: int | None = None) -> bool:
        return any(u.email == email and u.id != exclude_id for u in self._users.values())

    def find_by_email(self, email: str) -> Optional[UserRecord]:
        key = normalize_email(email)
        for user in self._users.values():
            if user.email == key:
                return user
        return None

    def get(self, user_id: int) -> Optional[UserRecord]:
        return self._users.get(int(user_id))

    def create(self, *, full_name: str, email: str, password: str, role: str) -> UserRecord:
        name = validate_full_name(full_name)
        normalized = validate_email(email)
        validate_role(role)
        validate_password(password)
        if self._email_taken(normalized):
            raise ValueError("email_taken")
        user = UserRecord(
            id=self._next_id,
            full_name=name,
            email=normalized,
            role=role,
            password_hash=hash_password(password),
            created_at=datetime.now(timezone.utc).isoformat(),
        )
        self._users[user.id] = user
        self._next_id += 1
        return user

    def update(self, user_id: int, *, full_name=_UNSET, email=_UNSET, role=_UNSET, password=_UNSET) -> Optional[UserRecord]:
        user = self._users.get(int(user_id))
        if not user:
            return None
        if full_name is not _UNSET:
            user.full_name = validate_full_name(full_name)
        if email is not _UNSET:
            normalized = validate_email(email)
            if self._email_taken(normalized, exclude_id=user.id):
                raise ValueError("email_taken")
            user.email = normalized
        if role is not _UNSET:
            user.role = validate_role(role)
        if password is not _UNSET:
            user.password_hash = hash_password(validate_password(password))
        return user

    def delete(self, user_id: int) -> bool:
        return self._users.pop(int(user_id), None) is not None

    def list(self, *, search: str | None = None, role: str | None = None) -> List[UserRecord]:
        items = list(self._users.values())
        if role:
            items = [u for u in items if u.role == role]
        if search:
            needle = search.strip().lower()
            items = [u for u in items if needle in u.full_name.lower() or needle in u.email]
        items.sort(key=lambda u: (u.created_at, u.id), reverse=True)
        return items

    def stats(self) -> dict:
        users = list(self._users.values())
        return {
            "totalUsers": len(users),
            "totalStudents": sum(1 for u in users if u.role == Role.STUDENT.value),
            "totalTeachers": sum(1 for u in users if u.role == Role.TEACHER.value),
            "totalAdmins": sum(1 for u in users if u.role == Role.ADMIN.value),
        }


__all__ = [
    "EMAIL_RE",
    "MIN_PASSWORD_LENGTH",
    "UserRecord",
    "UserStore",
    "UserStoreProtocol",
    "credential_lookup",
    "validate_email",
    "validate_full_name",
    "validate_password",
    "validate_role",
]
