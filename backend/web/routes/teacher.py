"""
Teacher API routes: own classes, students, week schedule and attendance.

Permissions:
    Role `teacher`. Class-scoped endpoints additionally require that the
    caller teaches the class (404 unknown class, 403 foreign class).
"""

from __future__ import annotations

import logging
from typing import List, Optional

from fastapi import APIRouter, Request
from pydantic import BaseModel, Field

from identity_access.domain import Role
from scheduling.week import compute_week
from web import clock, wiring
from .common import (
    _current_user_id,
    _int_or_none,
    _repo_error,
    _require_role,
    _serialize,
    _with_person,
)
from .security import _csrf_guard, _json_private, _private_error

teacher_router = APIRouter(tags=["Teacher"])
logger = logging.getLogger("lingua.web.teacher")


class AttendanceEntry(BaseModel):
    student_id: int
    status: str
    note: Optional[str] = Field(default=None, max_length=500)


class AttendanceSave(BaseModel):
    class_id: int
    date: str
    attendance: List[AttendanceEntry]


def _owned_class(class_id: int, teacher_id: int):
    """Return (class, error_response) mapping unknown/foreign classes to 404/403."""
    group = _serialize(wiring.get_repo().get_class(class_id))
    if group is None:
        return None, _private_error("not_found", status_code=404)
    if int(group["teacher_id"]) != int(teacher_id):
        return None, _private_error("forbidden", status_code=403)
    return group, None


@teacher_router.get("/api/teacher/dashboard")
async def teacher_dashboard(request: Request, weekOffset: str | None = None):  # noqa: N803 - query contract
    """Counters, next lessons per class, today's lessons and the requested week for the caller."""
    user, error = _require_role(request, Role.TEACHER.value)
    if error:
        return error
    me = _current_user_id(user)
    today = clock.today()
    repo = wiring.get_repo()
    window = compute_week(today, weekOffset)
    return _json_private(
        {
            "stats": repo.teacher_stats(me, today),
            "upcomingClasses": repo.upcoming_classes_for_teacher(me, today),
            "todaySchedule": repo.list_schedules(start=today, end=today, teacher_id=me),
            "weekInfo": window.to_dict(),
            "schedule": repo.list_schedules(start=window.start, end=window.end, teacher_id=me),
        }
    )


@teacher_router.get("/api/teacher/classes")
async def teacher_classes(request: Request):
    user, error = _require_role(request, Role.TEACHER.value)
    if error:
        return error
    classes = wiring.get_repo().list_teacher_classes(_current_user_id(user), clock.today())
    return _json_private({"classes": classes})


@teacher_router.get("/api/teacher/classes/{class_id}")
async def teacher_class_detail(request: Request, class_id: int):
    user, error = _require_role(request, Role.TEACHER.value)
    if error:
        return error
    me = _current_user_id(user)
    group, error = _owned_class(class_id, me)
    if error:
        return error
    repo = wiring.get_repo()
    view = next((c for c in repo.list_teacher_classes(me, clock.today()) if c["id"] == group["id"]), group)
    students = _with_person(repo.list_class_students(class_id), "student_id", "student")
    schedules = repo.list_schedules(class_id=class_id)
    return _json_private({"class": view, "students": students, "schedules": schedules})


@teacher_router.get("/api/teacher/classes/{class_id}/students")
async def teacher_class_students(request: Request, class_id: int):
    user, error = _require_role(request, Role.TEACHER.value)
    if error:
        return error
    _, error = _owned_class(class_id, _current_user_id(user))
    if error:
        return error
    students = wiring.get_repo().list_class_students(class_id)
    return _json_private({"students": _with_person(students, "student_id", "student")})


@teacher_router.get("/api/teacher/schedule")
async def teacher_week_schedule(request: Request, weekOffset: str | None = None):  # noqa: N803 - query contract
    """Lessons of the caller's classes within the requested Sunday-Saturday week."""
    user, error = _require_role(request, Role.TEACHER.value)
    if error:
        return error
    window = compute_week(clock.today(), weekOffset)
    items = wiring.get_repo().list_schedules(start=window.start, end=window.end, teacher_id=_current_user_id(user))
    return _json_private({"weekInfo": window.to_dict(), "schedules": items})


@teacher_router.get("/api/teacher/upcoming")
async def teacher_upcoming(request: Request, limit: int = 5):
    user, error = _require_role(request, Role.TEACHER.value)
    if error:
        return error
    limit = max(1, min(20, int(limit)))
    items = wiring.get_repo().upcoming_classes_for_teacher(_current_user_id(user), clock.today(), limit=limit)
    return _json_private({"classes": items})


@teacher_router.post("/api/teacher/attendance")
async def save_attendance(request: Request, payload: AttendanceSave):
    """Replace the attendance list of the caller's lesson on `date`.

    Behavior:
        - 200 `{saved: n}`
        - 400 invalid status / date, or a student outside the class
        - 403 foreign class; 404 unknown class or no lesson on that date
    """
    user, error = _require_role(request, Role.TEACHER.value)
    if error:
        return error
    csrf = _csrf_guard(request)
    if csrf:
        return csrf
    try:
        saved = wiring.get_repo().save_attendance(
            class_id=payload.class_id,
            teacher_id=_current_user_id(user),
            lesson_date=payload.date,
            records=[entry.model_dump() for entry in payload.attendance],
        )
    except (ValueError, LookupError, PermissionError) as exc:
        return _repo_error(exc)
    logger.info("Attendance saved class=%s date=%s entries=%s", payload.class_id, payload.date, saved)
    return _json_private({"saved": saved})


@teacher_router.get("/api/teacher/attendance")
async def get_attendance(request: Request, classId: str | None = None, date: str | None = None):  # noqa: N803
    user, error = _require_role(request, Role.TEACHER.value)
    if error:
        return error
    class_id = _int_or_none(classId)
    if class_id is None or not date:
        return _private_error("bad_request", status_code=400, detail="missing_class_or_date")
    try:
        records = wiring.get_repo().get_attendance(
            class_id=class_id, teacher_id=_current_user_id(user), lesson_date=date
        )
    except (ValueError, LookupError, PermissionError) as exc:
        return _repo_error(exc)
    return _json_private({"records": _with_person(records, "student_id", "student")})
