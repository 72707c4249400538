"""
In-memory user store: normalized-email uniqueness, validation codes and the
credential lookup adapter used by the login route.
"""
from __future__ import annotations

import pytest

from identity_access.credentials import verify_credentials
from identity_access.users import UserStore, credential_lookup


@pytest.fixture
def store() -> UserStore:
    return UserStore()


def _create(store: UserStore, email="Student@Example.com", role="student", **kw):
    return store.create(full_name=kw.pop("full_name", "Le Van C"), email=email,
                        password=kw.pop("password", "student123"), role=role)


def test_create_normalizes_email_and_hides_hash(store: UserStore):
    user = _create(store, email="  Student@Example.COM ")
    assert user.id == 1
    assert user.email == "student@example.com"
    assert user.password_hash != "student123"
    public = user.public()
    assert "password_hash" not in public
    assert public["email"] == "student@example.com"


def test_email_unique_ignoring_case(store: UserStore):
    _create(store)
    with pytest.raises(ValueError, match="email_taken"):
        _create(store, email="STUDENT@example.com")


@pytest.mark.parametrize(
    "kwargs,code",
    [
        ({"email": "no-at-sign"}, "invalid_email"),
        ({"role": "principal"}, "invalid_role"),
        ({"password": "12345"}, "password_too_short"),
        ({"password": "x" * 73}, "password_too_long"),
        ({"full_name": "   "}, "invalid_full_name"),
    ],
)
def test_create_validation_codes(store: UserStore, kwargs, code):
    with pytest.raises(ValueError, match=code):
        _create(store, **kwargs)


def test_update_fields_and_password(store: UserStore):
    user = _create(store)
    updated = store.update(user.id, full_name="Le Van D", password="newpass1")
    assert updated.full_name == "Le Van D"
    lookup = credential_lookup(store)
    assert verify_credentials("student@example.com", "newpass1", lookup=lookup).ok
    assert not verify_credentials("student@example.com", "student123", lookup=lookup).ok


def test_update_rejects_email_of_other_user(store: UserStore):
    _create(store, email="a@example.com")
    other = _create(store, email="b@example.com")
    with pytest.raises(ValueError, match="email_taken"):
        store.update(other.id, email="A@EXAMPLE.com")
    # Keeping one's own email is fine
    assert store.update(other.id, email="B@example.com").email == "b@example.com"


def test_update_unknown_returns_none(store: UserStore):
    assert store.update(99, full_name="X") is None


def test_list_filters_and_stats(store: UserStore):
    _create(store, email="t@example.com", role="teacher", full_name="Nguyen Van A")
    _create(store, email="s1@example.com", full_name="Pham Thi D")
    _create(store, email="admin@example.com", role="admin", full_name="Admin")
    assert [u.email for u in store.list(role="teacher")] == ["t@example.com"]
    assert [u.email for u in store.list(search="pham")] == ["s1@example.com"]
    assert store.stats() == {"totalUsers": 3, "totalStudents": 1, "totalTeachers": 1, "totalAdmins": 1}


def test_delete(store: UserStore):
    user = _create(store)
    assert store.delete(user.id) is True
    assert store.delete(user.id) is False
    assert store.get(user.id) is None


def test_credential_lookup_finds_by_normalized_email(store: UserStore):
    _create(store, role="teacher")
    lookup = credential_lookup(store)
    record = lookup("student@example.com")
    assert record is not None and record.role == "teacher"
    assert lookup("missing@example.com") is None
