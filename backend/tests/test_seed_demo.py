"""
Demo seeding tool: idempotent data set and the prod-environment refusal.
"""
from __future__ import annotations

from datetime import date

import pytest
from click.testing import CliRunner

from academy.repo_memory import InMemoryAcademyRepo
from identity_access.credentials import verify_credentials
from identity_access.users import UserStore, credential_lookup
from tools import seed_demo


def test_seed_creates_demo_data_once():
    users, repo = UserStore(), InMemoryAcademyRepo()
    today = date(2024, 6, 12)

    first = seed_demo.seed(users, repo, today=today)
    assert first == {"users": 5, "courses": 2, "classes": 1}
    second = seed_demo.seed(users, repo, today=today)
    assert second == {"users": 0, "courses": 0, "classes": 0}

    assert users.stats() == {"totalUsers": 5, "totalStudents": 2, "totalTeachers": 2, "totalAdmins": 1}
    assert verify_credentials("admin@example.com", "admin123", lookup=credential_lookup(users)).ok

    group = repo.list_classes()[0]
    assert group["student_count"] == 2
    assert group["schedule_count"] == 3
    teacher = users.find_by_email("teacher.a@example.com")
    assert repo.list_teacher_classes(teacher.id, today)[0]["next_lesson"] == "2024-06-12"


def test_cli_refuses_prod(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("LINGUA_ENV", "production")
    result = CliRunner().invoke(seed_demo.cli, ["--db-dsn", "postgresql://x@localhost/lingua"])
    assert result.exit_code != 0
    assert "production-like" in result.output
