"""
Course catalogue and student API routes.

Why:
    Any signed-in user may browse active courses; students register for a
    course, get placed into a class by an administrator, and then follow their
    classes and weekly lessons.

Notes:
    - `/api/courses*` reads are open to every role; registration is students only.
    - Class-scoped student endpoints answer 404 for classes the caller is not
      a member of, so class ids of other groups are not confirmed.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Request
from fastapi.responses import Response

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

student_router = APIRouter(tags=["Student"])
logger = logging.getLogger("lingua.web.student")


def _student_class(class_id: int, student_id: int):
    """Return (class view, error_response) for a class the student belongs to."""
    for item in wiring.get_repo().list_student_classes(student_id):
        if int(item["id"]) == int(class_id):
            return item, None
    return None, _private_error("not_found", status_code=404)


def _next_steps(status: str, assigned: bool) -> list[str]:
    if status == "rejected":
        return ["Contact the school office for details", "Browse other courses"]
    if assigned:
        return ["Check your class schedule", "Prepare for your first class"]
    if status == "approved":
        return ["Wait for class assignment by administrator", "Check your dashboard for updates"]
    return [
        "Wait for registration approval",
        "Wait for class assignment by administrator",
        "Check your dashboard for updates",
    ]


# --- Catalogue ----------------------------------------------------------------------

@student_router.get("/api/courses")
async def list_courses(request: Request, level: str | None = None, search: str | None = None,
                       limit: int = 50, offset: int = 0):
    """Active courses, newest first; students also see their own registration status."""
    user = getattr(request.state, "user", None)
    repo = wiring.get_repo()
    limit = max(1, min(100, int(limit)))
    offset = max(0, int(offset))
    courses = [_serialize(c) for c in repo.list_courses(level=level, search=search, active_only=True,
                                                          limit=limit, offset=offset)]
    if user and user.get("role") == Role.STUDENT.value:
        me = _current_user_id(user)
        for course in courses:
            reg = _serialize(repo.get_registration(course["id"], me))
            course["registration_status"] = reg["status"] if reg else None
    return _json_private({"courses": courses})


@student_router.get("/api/courses/{course_id}")
async def get_course(request: Request, course_id: int):
    user = getattr(request.state, "user", None)
    repo = wiring.get_repo()
    course = _serialize(repo.get_course(course_id))
    if course is None or (not course["is_active"] and (user or {}).get("role") != Role.ADMIN.value):
        return _private_error("not_found", status_code=404)
    classes = _with_person(repo.list_classes(course_id=course_id), "teacher_id", "teacher")
    payload = {"course": course, "classes": classes, "registration": None}
    if user and user.get("role") == Role.STUDENT.value:
        payload["registration"] = _serialize(repo.get_registration(course_id, _current_user_id(user)))
    return _json_private(payload)


@student_router.post("/api/courses/{course_id}/register")
async def register_for_course(request: Request, course_id: int):
    """Register the calling student (status `pending`).

    Behavior:
        - 201 with the registration
        - 400 `course_inactive` | `course_full`; 404 unknown course
        - 409 `already_registered`
    """
    user, error = _require_role(request, Role.STUDENT.value)
    if error:
        return error
    csrf = _csrf_guard(request)
    if csrf:
        return csrf
    try:
        reg = wiring.get_repo().register_student(course_id, _current_user_id(user))
    except (ValueError, LookupError) as exc:
        return _repo_error(exc)
    logger.info("Student %s registered for course %s", _current_user_id(user), course_id)
    return _json_private(_serialize(reg), status_code=201)


@student_router.delete("/api/courses/{course_id}/register")
async def unregister_from_course(request: Request, course_id: int):
    """Withdraw the caller's registration (and class placement); 404 when not registered."""
    user, error = _require_role(request, Role.STUDENT.value)
    if error:
        return error
    csrf = _csrf_guard(request)
    if csrf:
        return csrf
    if not wiring.get_repo().unregister_student(course_id, _current_user_id(user)):
        return _private_error("not_found", status_code=404, detail="not_registered")
    return Response(status_code=204, headers={"Cache-Control": "private, no-store"})


# --- Student area -------------------------------------------------------------------

@student_router.get("/api/student/courses")
async def student_courses(request: Request):
    user, error = _require_role(request, Role.STUDENT.value)
    if error:
        return error
    items = wiring.get_repo().list_student_courses(_current_user_id(user))
    return _json_private({"courses": [_serialize(i) for i in items]})


@student_router.get("/api/student/classes")
async def student_classes(request: Request):
    user, error = _require_role(request, Role.STUDENT.value)
    if error:
        return error
    classes = wiring.get_repo().list_student_classes(_current_user_id(user))
    return _json_private({"classes": _with_person(classes, "teacher_id", "teacher")})


@student_router.get("/api/student/classes/{class_id}")
async def student_class_detail(request: Request, class_id: int):
    user, error = _require_role(request, Role.STUDENT.value)
    if error:
        return error
    view, error = _student_class(class_id, _current_user_id(user))
    if error:
        return error
    _with_person([view], "teacher_id", "teacher")
    today = clock.today()
    upcoming = wiring.get_repo().list_schedules(start=today, class_id=class_id)
    return _json_private({"class": view, "upcomingLessons": upcoming})


@student_router.get("/api/student/classes/{class_id}/schedules")
async def student_class_schedules(request: Request, class_id: int):
    user, error = _require_role(request, Role.STUDENT.value)
    if error:
        return error
    _, error = _student_class(class_id, _current_user_id(user))
    if error:
        return error
    return _json_private({"schedules": wiring.get_repo().list_schedules(class_id=class_id)})


@student_router.get("/api/student/schedule")
async def student_week_schedule(request: Request, weekOffset: str | None = None):  # noqa: N803 - query contract
    """Lessons of the caller's classes within the requested Sunday-Saturday week."""
    user, error = _require_role(request, Role.STUDENT.value)
    if error:
        return error
    window = compute_week(clock.today(), weekOffset)
    items = wiring.get_repo().list_schedules(start=window.start, end=window.end, student_id=_current_user_id(user))
    return _json_private({"weekInfo": window.to_dict(), "schedules": _with_person(items, "teacher_id", "teacher")})


@student_router.get("/api/student/dashboard")
async def student_dashboard(request: Request, weekOffset: str | None = None):  # noqa: N803 - query contract
    user, error = _require_role(request, Role.STUDENT.value)
    if error:
        return error
    me = _current_user_id(user)
    today = clock.today()
    repo = wiring.get_repo()
    window = compute_week(today, weekOffset)
    schedule = repo.list_schedules(start=window.start, end=window.end, student_id=me)
    return _json_private(
        {
            "stats": repo.student_stats(me, today),
            "weekInfo": window.to_dict(),
            "schedule": _with_person(schedule, "teacher_id", "teacher"),
            "notifications": [_serialize(n) for n in repo.list_notifications(me, unread_only=True, limit=5)],
        }
    )


@student_router.get("/api/student/registrations/confirmation")
async def registration_confirmation(request: Request, courseId: str | None = None):  # noqa: N803
    """Summary shown right after registering: course, registration status and next steps."""
    user, error = _require_role(request, Role.STUDENT.value)
    if error:
        return error
    course_id = _int_or_none(courseId)
    if course_id is None or course_id <= 0:
        return _private_error("bad_request", status_code=400, detail="invalid_course_id")
    repo = wiring.get_repo()
    course = _serialize(repo.get_course(course_id))
    if course is None:
        return _private_error("not_found", status_code=404, detail="course_not_found")
    me = _current_user_id(user)
    reg = _serialize(repo.get_registration(course_id, me))
    if reg is None:
        return _private_error("not_found", status_code=404, detail="registration_not_found")
    assigned = any(
        (_serialize(i).get("class") is not None)
        for i in repo.list_student_courses(me)
        if int(_serialize(i)["course"]["id"]) == course_id
    )
    return _json_private(
        {
            "course": {
                "id": course["id"],
                "name": course["name"],
                "description": course["description"],
                "level": course["level"],
            },
            "registration": {"registered_at": reg["registered_at"], "status": reg["status"]},
            "nextSteps": _next_steps(reg["status"], assigned),
        }
    )
