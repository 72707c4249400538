"""
Admin API routes: users, courses, classes, schedules, registrations and analytics.

Why:
    Administrators run the school: they manage accounts and the course
    catalogue, open classes, assign registered students to classes, plan
    lessons and approve or reject registrations.

Notes:
    - Every endpoint requires role `admin` (403 otherwise); the auth middleware
      has already rejected anonymous callers with 401.
    - Writes pass the same-origin CSRF guard.
    - Persistence is delegated to the academy repository and the user store
      obtained from `web.wiring`; repository error codes map to 400/403/404/409.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Request
from fastapi.responses import Response
from pydantic import BaseModel, ConfigDict, Field

from academy.repo import parse_iso_date
from identity_access.domain import Role
from identity_access.users import _UNSET
from scheduling.week import compute_week
from web import clock, wiring
from .common import (
    _current_user_id,
    _int_or_none,
    _repo_error,
    _require_role,
    _serialize,
    _user_summaries,
    _with_person,
)
from .security import _csrf_guard, _json_private, _private_error

admin_router = APIRouter(tags=["Admin"])
logger = logging.getLogger("lingua.web.admin")

# Changing any of these invalidates the account's open sessions.
_SESSION_FIELDS = frozenset({"email", "role", "password"})

_NO_STORE = {"Cache-Control": "private, no-store"}


def _no_content() -> Response:
    return Response(status_code=204, headers=dict(_NO_STORE))


def _guard(request: Request, *, write: bool = False):
    """Return (user, error_response) for admin endpoints."""
    user, error = _require_role(request, Role.ADMIN.value)
    if error:
        return None, error
    if write:
        csrf = _csrf_guard(request)
        if csrf:
            return None, csrf
    return user, None


# --- Request models ---------------------------------------------------------------

class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class UserCreate(_CamelModel):
    full_name: str = Field(..., alias="fullName")
    email: str
    password: str
    role: str


class UserUpdate(_CamelModel):
    full_name: Optional[str] = Field(default=None, alias="fullName")
    email: Optional[str] = None
    role: Optional[str] = None
    password: Optional[str] = None


class CourseCreate(_CamelModel):
    name: str = Field(..., alias="courseName")
    description: str
    level: str
    duration_weeks: int = Field(default=12, alias="durationWeeks")
    price: float = 0.0
    max_students: int = Field(default=30, alias="maxStudents")
    is_active: bool = Field(default=True, alias="isActive")


class CourseUpdate(_CamelModel):
    name: Optional[str] = Field(default=None, alias="courseName")
    description: Optional[str] = None
    level: Optional[str] = None
    duration_weeks: Optional[int] = Field(default=None, alias="durationWeeks")
    price: Optional[float] = None
    max_students: Optional[int] = Field(default=None, alias="maxStudents")
    is_active: Optional[bool] = Field(default=None, alias="isActive")


class ClassCreate(_CamelModel):
    course_id: int = Field(..., alias="courseId")
    teacher_id: int = Field(..., alias="teacherId")
    name: str = Field(..., alias="className")
    start_date: str = Field(..., alias="startDate")
    end_date: str = Field(..., alias="endDate")


class AssignStudent(_CamelModel):
    student_id: int = Field(..., alias="studentId")
    class_id: int = Field(..., alias="classId")


class ScheduleCreate(_CamelModel):
    class_id: int = Field(..., alias="classId")
    lesson_date: str = Field(..., alias="lessonDate")
    start_time: str = Field(..., alias="startTime")
    end_time: str = Field(..., alias="endTime")
    room_or_link: Optional[str] = Field(default=None, alias="roomOrLink")


class RegistrationStatusUpdate(_CamelModel):
    status: str


# --- Dashboard ----------------------------------------------------------------------

@admin_router.get("/api/admin/dashboard")
async def admin_dashboard(request: Request, weekOffset: str | None = None):  # noqa: N803
    """Aggregate counters, the latest registrations and the lessons of the requested week."""
    _, error = _guard(request)
    if error:
        return error
    repo = wiring.get_repo()
    today = clock.today()
    window = compute_week(today, weekOffset)
    stats = dict(wiring.get_user_store().stats())
    stats.update(repo.admin_stats(today))
    recent = _with_person(repo.list_registrations()[:5], "student_id", "student")
    schedule = _with_person(repo.list_schedules(start=window.start, end=window.end), "teacher_id", "teacher")
    return _json_private(
        {"stats": stats, "recentRegistrations": recent, "weekInfo": window.to_dict(), "schedule": schedule}
    )


# --- Users --------------------------------------------------------------------------

def _user_view(user, repo) -> dict:
    data = user.public()
    data.update(repo.user_activity(user.id))
    return data


@admin_router.get("/api/admin/users")
async def list_users(request: Request, search: str | None = None, role: str | None = None):
    _, error = _guard(request)
    if error:
        return error
    repo = wiring.get_repo()
    users = wiring.get_user_store().list(search=search, role=role or None)
    return _json_private({"users": [_user_view(u, repo) for u in users]})


@admin_router.get("/api/admin/users/stats")
async def user_stats(request: Request):
    _, error = _guard(request)
    if error:
        return error
    return _json_private(wiring.get_user_store().stats())


@admin_router.post("/api/admin/users")
async def create_user(request: Request, payload: UserCreate):
    """Create an account of any role (admin only). 201 / 400 / 409."""
    _, error = _guard(request, write=True)
    if error:
        return error
    try:
        user = wiring.get_user_store().create(
            full_name=payload.full_name, email=payload.email, password=payload.password, role=payload.role
        )
    except ValueError as exc:
        return _repo_error(exc)
    logger.info("Admin created user id=%s role=%s", user.id, user.role)
    return _json_private(user.public(), status_code=201)


@admin_router.get("/api/admin/users/{user_id}")
async def get_user(request: Request, user_id: int):
    _, error = _guard(request)
    if error:
        return error
    user = wiring.get_user_store().get(user_id)
    if user is None:
        return _private_error("not_found", status_code=404)
    return _json_private(_user_view(user, wiring.get_repo()))


@admin_router.patch("/api/admin/users/{user_id}")
async def update_user(request: Request, user_id: int, payload: UserUpdate):
    _, error = _guard(request, write=True)
    if error:
        return error
    changes = {k: getattr(payload, k) for k in payload.model_fields_set}
    if not changes:
        return _private_error("bad_request", status_code=400, detail="empty_payload")
    try:
        user = wiring.get_user_store().update(
            user_id,
            full_name=changes.get("full_name", _UNSET),
            email=changes.get("email", _UNSET),
            role=changes.get("role", _UNSET),
            password=changes.get("password", _UNSET),
        )
    except ValueError as exc:
        return _repo_error(exc)
    if user is None:
        return _private_error("not_found", status_code=404)
    if _SESSION_FIELDS & changes.keys():
        revoked = wiring.get_session_store().delete_for_user(user.id)
        logger.info("Admin updated user id=%s; revoked %s session(s)", user.id, revoked)
    return _json_private(user.public())


@admin_router.delete("/api/admin/users/{user_id}")
async def delete_user(request: Request, user_id: int):
    """Delete an account unless it still has registrations or taught classes.

    Behavior:
        - 204 on success; 404 when unknown
        - 400 `cannot_delete_self` for the caller's own account
        - 409 `user_has_registrations` | `user_has_classes`
    """
    user, error = _guard(request, write=True)
    if error:
        return error
    if _current_user_id(user) == int(user_id):
        return _private_error("bad_request", status_code=400, detail="cannot_delete_self")
    store = wiring.get_user_store()
    if store.get(user_id) is None:
        return _private_error("not_found", status_code=404)
    activity = wiring.get_repo().user_activity(user_id)
    if activity.get("registrations"):
        return _private_error("conflict", status_code=409, detail="user_has_registrations")
    if activity.get("classes_taught"):
        return _private_error("conflict", status_code=409, detail="user_has_classes")
    store.delete(user_id)
    revoked = wiring.get_session_store().delete_for_user(user_id)
    logger.info("Admin deleted user id=%s; revoked %s session(s)", user_id, revoked)
    return _no_content()


# --- Courses ------------------------------------------------------------------------

@admin_router.get("/api/admin/courses")
async def list_courses(request: Request, level: str | None = None, search: str | None = None,
                       limit: int = 50, offset: int = 0):
    _, error = _guard(request)
    if error:
        return error
    repo = wiring.get_repo()
    limit = max(1, min(100, int(limit)))
    offset = max(0, int(offset))
    courses = repo.list_courses(level=level, search=search, limit=limit, offset=offset)
    return _json_private({"courses": [_serialize(c) for c in courses], "stats": repo.course_stats()})


@admin_router.post("/api/admin/courses")
async def create_course(request: Request, payload: CourseCreate):
    _, error = _guard(request, write=True)
    if error:
        return error
    try:
        course = wiring.get_repo().create_course(
            name=payload.name,
            description=payload.description,
            level=payload.level,
            duration_weeks=payload.duration_weeks,
            price=payload.price,
            max_students=payload.max_students,
            is_active=payload.is_active,
        )
    except ValueError as exc:
        return _repo_error(exc)
    return _json_private(_serialize(course), status_code=201)


@admin_router.get("/api/admin/courses/{course_id}")
async def get_course(request: Request, course_id: int):
    """Course detail with its classes (incl. teacher) and registered students."""
    _, error = _guard(request)
    if error:
        return error
    repo = wiring.get_repo()
    course = repo.get_course(course_id)
    if course is None:
        return _private_error("not_found", status_code=404)
    classes = _with_person(repo.list_classes(course_id=course_id), "teacher_id", "teacher")
    students = _with_person(repo.list_course_students(course_id), "student_id", "student")
    return _json_private({"course": _serialize(course), "classes": classes, "students": students})


@admin_router.patch("/api/admin/courses/{course_id}")
async def update_course(request: Request, course_id: int, payload: CourseUpdate):
    _, error = _guard(request, write=True)
    if error:
        return error
    changes = {k: getattr(payload, k) for k in payload.model_fields_set}
    if not changes:
        return _private_error("bad_request", status_code=400, detail="empty_payload")
    try:
        course = wiring.get_repo().update_course(course_id, **changes)
    except ValueError as exc:
        return _repo_error(exc)
    if course is None:
        return _private_error("not_found", status_code=404)
    return _json_private(_serialize(course))


@admin_router.delete("/api/admin/courses/{course_id}")
async def delete_course(request: Request, course_id: int):
    _, error = _guard(request, write=True)
    if error:
        return error
    try:
        deleted = wiring.get_repo().delete_course(course_id)
    except ValueError as exc:
        return _repo_error(exc)
    if not deleted:
        return _private_error("not_found", status_code=404)
    return _no_content()


@admin_router.get("/api/admin/courses/{course_id}/students")
async def course_students(request: Request, course_id: int):
    _, error = _guard(request)
    if error:
        return error
    try:
        students = wiring.get_repo().list_course_students(course_id)
    except LookupError as exc:
        return _repo_error(exc)
    return _json_private({"students": _with_person(students, "student_id", "student")})


@admin_router.post("/api/admin/courses/{course_id}/assign")
async def assign_student(request: Request, course_id: int, payload: AssignStudent):
    """Place a registered student into one class of the course (capacity 30)."""
    _, error = _guard(request, write=True)
    if error:
        return error
    try:
        assignment = wiring.get_repo().assign_student_to_class(
            course_id=course_id, student_id=payload.student_id, class_id=payload.class_id
        )
    except (ValueError, LookupError) as exc:
        return _repo_error(exc)
    return _json_private(assignment, status_code=201)


@admin_router.delete("/api/admin/courses/{course_id}/assign/{student_id}")
async def unassign_student(request: Request, course_id: int, student_id: int):
    _, error = _guard(request, write=True)
    if error:
        return error
    if not wiring.get_repo().unassign_student_from_class(course_id=course_id, student_id=student_id):
        return _private_error("not_found", status_code=404, detail="not_assigned")
    return _no_content()


# --- Classes ------------------------------------------------------------------------

@admin_router.get("/api/admin/classes")
async def list_classes(request: Request, courseId: str | None = None):  # noqa: N803 - query contract
    _, error = _guard(request)
    if error:
        return error
    classes = wiring.get_repo().list_classes(course_id=_int_or_none(courseId))
    return _json_private({"classes": _with_person(classes, "teacher_id", "teacher")})


@admin_router.post("/api/admin/classes")
async def create_class(request: Request, payload: ClassCreate):
    _, error = _guard(request, write=True)
    if error:
        return error
    teacher = wiring.get_user_store().get(payload.teacher_id)
    if teacher is None or teacher.role != Role.TEACHER.value:
        return _private_error("bad_request", status_code=400, detail="invalid_teacher")
    try:
        group = wiring.get_repo().create_class(
            course_id=payload.course_id,
            teacher_id=payload.teacher_id,
            name=payload.name,
            start_date=payload.start_date,
            end_date=payload.end_date,
        )
    except (ValueError, LookupError) as exc:
        return _repo_error(exc)
    return _json_private(_serialize(group), status_code=201)


# --- Schedules ----------------------------------------------------------------------

@admin_router.get("/api/admin/schedules")
async def list_schedules(request: Request, classId: str | None = None,  # noqa: N803
                         startDate: str | None = None, endDate: str | None = None):  # noqa: N803
    _, error = _guard(request)
    if error:
        return error
    try:
        start = parse_iso_date(startDate, code="invalid_start_date") if startDate else None
        end = parse_iso_date(endDate, code="invalid_end_date") if endDate else None
    except ValueError as exc:
        return _repo_error(exc)
    items = wiring.get_repo().list_schedules(start=start, end=end, class_id=_int_or_none(classId))
    return _json_private({"schedules": _with_person(items, "teacher_id", "teacher")})


@admin_router.post("/api/admin/schedules")
async def create_schedule(request: Request, payload: ScheduleCreate):
    _, error = _guard(request, write=True)
    if error:
        return error
    try:
        sched = wiring.get_repo().create_schedule(
            class_id=payload.class_id,
            lesson_date=payload.lesson_date,
            start_time=payload.start_time,
            end_time=payload.end_time,
            room_or_link=payload.room_or_link,
        )
    except (ValueError, LookupError) as exc:
        return _repo_error(exc)
    return _json_private(_serialize(sched), status_code=201)


@admin_router.delete("/api/admin/schedules/{schedule_id}")
async def delete_schedule(request: Request, schedule_id: int):
    _, error = _guard(request, write=True)
    if error:
        return error
    if not wiring.get_repo().delete_schedule(schedule_id):
        return _private_error("not_found", status_code=404)
    return _no_content()


@admin_router.get("/api/admin/schedule")
async def week_schedule(request: Request, weekOffset: str | None = None):  # noqa: N803
    """All lessons in the Sunday-Saturday week `weekOffset` weeks from today."""
    _, error = _guard(request)
    if error:
        return error
    window = compute_week(clock.today(), weekOffset)
    items = wiring.get_repo().list_schedules(start=window.start, end=window.end)
    return _json_private({"weekInfo": window.to_dict(), "schedules": _with_person(items, "teacher_id", "teacher")})


# --- Registrations ------------------------------------------------------------------

@admin_router.get("/api/admin/registrations")
async def list_registrations(request: Request, status: str | None = None):
    _, error = _guard(request)
    if error:
        return error
    repo = wiring.get_repo()
    regs = _with_person(repo.list_registrations(status=status or None), "student_id", "student")
    return _json_private({"registrations": regs, "stats": repo.registration_stats()})


@admin_router.get("/api/admin/registrations/stats")
async def registration_stats(request: Request):
    _, error = _guard(request)
    if error:
        return error
    return _json_private(wiring.get_repo().registration_stats())


@admin_router.patch("/api/admin/registrations/{registration_id}")
async def update_registration(request: Request, registration_id: int, payload: RegistrationStatusUpdate):
    """Approve or reject a registration; the student is notified of the change."""
    _, error = _guard(request, write=True)
    if error:
        return error
    if payload.status not in ("approved", "rejected"):
        return _private_error("bad_request", status_code=400, detail="invalid_status")
    try:
        reg = wiring.get_repo().set_registration_status(registration_id, payload.status)
    except (ValueError, LookupError) as exc:
        return _repo_error(exc)
    data = _serialize(reg)
    data["student"] = _user_summaries([data["student_id"]]).get(data["student_id"])
    return _json_private(data)


# --- Analytics ----------------------------------------------------------------------

@admin_router.get("/api/admin/analytics")
async def school_analytics(request: Request, period: str | None = None):
    """Enrollment by level and course, attendance totals; `period` is all | month | quarter | year."""
    _, error = _guard(request)
    if error:
        return error
    key = (period or "all").strip().lower()
    try:
        data = wiring.get_repo().analytics(key, clock.today())
    except ValueError as exc:
        return _repo_error(exc)
    users = wiring.get_user_store().stats()
    data["totalStudents"] = users["totalStudents"]
    data["totalTeachers"] = users["totalTeachers"]
    return _json_private({"period": key, "analytics": data})


@admin_router.get("/api/admin/courses/{course_id}/analytics")
async def course_analytics(request: Request, course_id: int, days: str | None = None):
    """Daily registrations and attendance of one course over the last `days` (1..365, default 30)."""
    _, error = _guard(request)
    if error:
        return error
    window = 30 if days is None else _int_or_none(days)
    if window is None:
        return _private_error("bad_request", status_code=400, detail="invalid_days")
    try:
        data = wiring.get_repo().course_analytics(course_id, window, clock.today())
    except (ValueError, LookupError) as exc:
        return _repo_error(exc)
    return _json_private({"analytics": data, "period": f"{window} days"})
