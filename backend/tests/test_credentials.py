"""
Credential verifier: normalization, bcrypt comparison and the single opaque
failure outcome.
"""
from __future__ import annotations

import logging

import pytest

from identity_access.credentials import (
    INVALID_CREDENTIALS,
    CredentialRecord,
    FailureReason,
    mask_email,
    normalize_email,
    verify_credentials,
)
from identity_access.domain import DataIntegrityFault, Role
from identity_access.passwords import hash_password


def _lookup_for(*records: CredentialRecord):
    by_email = {r.email: r for r in records}
    seen = []

    def _lookup(email: str):
        seen.append(email)
        return by_email.get(email)

    _lookup.seen = seen  # type: ignore[attr-defined]
    return _lookup


def _record(email="teacher@school.test", password="s3cret!", role="teacher", uid=7):
    return CredentialRecord(
        id=uid, full_name="Tran Thi B", email=email, password_hash=hash_password(password, rounds=4), role=role
    )


def test_normalize_email_trims_and_lowercases():
    assert normalize_email("  Teacher@School.TEST ") == "teacher@school.test"
    assert normalize_email(None) == ""
    assert normalize_email(42) == ""


def test_mask_email_keeps_domain_only():
    assert mask_email("student@example.com") == "s***@example.com"
    assert mask_email("not-an-email") == "***"


def test_valid_credentials_return_identity():
    lookup = _lookup_for(_record())
    result = verify_credentials("teacher@school.test", "s3cret!", lookup=lookup)
    assert result.ok
    assert result.error is None
    assert result.identity.to_dict() == {
        "id": 7,
        "name": "Tran Thi B",
        "email": "teacher@school.test",
        "role": "teacher",
    }
    assert result.identity.role is Role.TEACHER


def test_identifier_is_normalized_before_lookup():
    lookup = _lookup_for(_record())
    result = verify_credentials("  TEACHER@School.test\t", "s3cret!", lookup=lookup)
    assert result.ok
    assert lookup.seen == ["teacher@school.test"]


@pytest.mark.parametrize(
    "email,password,reason",
    [
        ("", "s3cret!", FailureReason.MISSING_CREDENTIALS),
        ("teacher@school.test", "", FailureReason.MISSING_CREDENTIALS),
        (None, None, FailureReason.MISSING_CREDENTIALS),
        ("nobody@school.test", "s3cret!", FailureReason.USER_NOT_FOUND),
        ("teacher@school.test", "wrong", FailureReason.INVALID_SECRET),
        ("teacher@school.test", "S3CRET!", FailureReason.INVALID_SECRET),
    ],
)
def test_every_failure_is_the_same_opaque_error(email, password, reason):
    result = verify_credentials(email, password, lookup=_lookup_for(_record()))
    assert not result.ok
    assert result.identity is None
    assert result.reason is reason
    assert result.error == INVALID_CREDENTIALS


def test_missing_input_skips_lookup():
    lookup = _lookup_for(_record())
    verify_credentials("   ", "pw", lookup=lookup)
    assert lookup.seen == []


def test_lookup_failure_collapses_into_invalid_credentials():
    def _boom(email: str):
        raise ConnectionError("db down")

    result = verify_credentials("teacher@school.test", "s3cret!", lookup=_boom)
    assert result.reason is FailureReason.LOOKUP_FAILED
    assert result.error == INVALID_CREDENTIALS


def test_unknown_stored_role_is_a_data_integrity_fault():
    lookup = _lookup_for(_record(role="principal"))
    with pytest.raises(DataIntegrityFault):
        verify_credentials("teacher@school.test", "s3cret!", lookup=lookup)


def test_wrong_password_is_not_checked_against_role():
    # A corrupted role only surfaces after the secret matched.
    lookup = _lookup_for(_record(role="principal"))
    result = verify_credentials("teacher@school.test", "nope", lookup=lookup)
    assert result.error == INVALID_CREDENTIALS


def test_logs_never_contain_secret_or_full_email(caplog: pytest.LogCaptureFixture):
    caplog.set_level(logging.INFO, logger="lingua.identity_access")
    verify_credentials("teacher@school.test", "hunter2-secret", lookup=_lookup_for(_record()))
    text = caplog.text
    assert "hunter2-secret" not in text
    assert "teacher@school.test" not in text
    assert "invalid_secret" in text


def test_padded_mixed_case_admin_email_signs_in():
    lookup = _lookup_for(_record(email="admin@example.com", password="admin123", role="admin", uid=1))
    result = verify_credentials("  Admin@Example.com ", "admin123", lookup=lookup)
    assert result.ok
    assert result.identity.role is Role.ADMIN
    assert result.identity.email == "admin@example.com"
    assert lookup.seen == ["admin@example.com"]
