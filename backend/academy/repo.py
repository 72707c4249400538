"""
Academy repository contract and shared value types.

Why:
    Courses, classes, schedules, registrations, attendance and notifications
    are persisted either in memory (dev/tests) or in Postgres. Both
    implementations share the validation helpers and constants below so the
    web adapter gets identical error codes regardless of backend.

Errors:
    - ValueError(code): invalid input or a violated business rule (HTTP 400/409)
    - LookupError(code): referenced entity does not exist (HTTP 404)
    - PermissionError(code): caller does not own the entity (HTTP 403)
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, time
from typing import Any, Dict, Iterable, List, Optional, Protocol

LEVELS = ("Beginner", "Intermediate", "Advanced")
REGISTRATION_STATUSES = ("pending", "approved", "rejected")
ATTENDANCE_STATUSES = ("present", "absent", "late")
CLASS_CAPACITY = 30
MAX_COURSE_STUDENTS = 100
MAX_COURSE_NAME_LENGTH = 200

_UNSET = object()


@dataclass
class Course:
    id: int
    name: str
    description: str
    level: str
    duration_weeks: int
    price: float
    max_students: int
    is_active: bool
    created_at: str
    enrolled_count: int = 0
    class_count: int = 0


@dataclass
class ClassGroup:
    id: int
    course_id: int
    teacher_id: int
    name: str
    start_date: str
    end_date: str
    created_at: str


@dataclass
class Registration:
    id: int
    course_id: int
    student_id: int
    status: str
    registered_at: str


@dataclass
class Schedule:
    id: int
    class_id: int
    lesson_date: str
    start_time: str
    end_time: str
    room_or_link: str | None


@dataclass
class Notification:
    id: int
    user_id: int
    type: str
    title: str
    message: str
    read: bool
    created_at: str


# --- validation helpers -----------------------------------------------------------

def validate_course_fields(
    *,
    name: Any = _UNSET,
    description: Any = _UNSET,
    level: Any = _UNSET,
    duration_weeks: Any = _UNSET,
    price: Any = _UNSET,
    max_students: Any = _UNSET,
    is_active: Any = _UNSET,
) -> Dict[str, Any]:
    """Validate the provided course fields; return the normalized subset."""
    out: Dict[str, Any] = {}
    if name is not _UNSET:
        text = name.strip() if isinstance(name, str) else ""
        if not text or len(text) > MAX_COURSE_NAME_LENGTH:
            raise ValueError("invalid_name")
        out["name"] = text
    if description is not _UNSET:
        text = description.strip() if isinstance(description, str) else ""
        if not text:
            raise ValueError("invalid_description")
        out["description"] = text
    if level is not _UNSET:
        if level not in LEVELS:
            raise ValueError("invalid_level")
        out["level"] = level
    if duration_weeks is not _UNSET:
        if isinstance(duration_weeks, bool) or not isinstance(duration_weeks, int) or not 1 <= duration_weeks <= 104:
            raise ValueError("invalid_duration_weeks")
        out["duration_weeks"] = duration_weeks
    if price is not _UNSET:
        if isinstance(price, bool) or not isinstance(price, (int, float)) or price < 0:
            raise ValueError("invalid_price")
        out["price"] = float(price)
    if max_students is not _UNSET:
        if isinstance(max_students, bool) or not isinstance(max_students, int) or not 1 <= max_students <= MAX_COURSE_STUDENTS:
            raise ValueError("invalid_max_students")
        out["max_students"] = max_students
    if is_active is not _UNSET:
        if not isinstance(is_active, bool):
            raise ValueError("invalid_is_active")
        out["is_active"] = is_active
    return out


def parse_iso_date(value: Any, *, code: str = "invalid_date") -> date:
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value))
    except (TypeError, ValueError) as exc:
        raise ValueError(code) from exc


def parse_clock_time(value: Any, *, code: str = "invalid_time") -> str:
    """Normalize `HH:MM` or `HH:MM:SS` to `HH:MM`."""
    if isinstance(value, time):
        return value.strftime("%H:%M")
    try:
        parsed = time.fromisoformat(str(value))
    except (TypeError, ValueError) as exc:
        raise ValueError(code) from exc
    return parsed.strftime("%H:%M")


def validate_class_fields(*, name: Any, start_date: Any, end_date: Any) -> Dict[str, Any]:
    text = name.strip() if isinstance(name, str) else ""
    if not text or len(text) > MAX_COURSE_NAME_LENGTH:
        raise ValueError("invalid_name")
    start = parse_iso_date(start_date, code="invalid_start_date")
    end = parse_iso_date(end_date, code="invalid_end_date")
    if end < start:
        raise ValueError("invalid_date_range")
    return {"name": text, "start_date": start.isoformat(), "end_date": end.isoformat()}


def validate_schedule_fields(*, lesson_date: Any, start_time: Any, end_time: Any, room_or_link: Any) -> Dict[str, Any]:
    day = parse_iso_date(lesson_date, code="invalid_lesson_date")
    start = parse_clock_time(start_time, code="invalid_start_time")
    end = parse_clock_time(end_time, code="invalid_end_time")
    if end <= start:
        raise ValueError("invalid_time_range")
    room = room_or_link.strip() if isinstance(room_or_link, str) else None
    return {"lesson_date": day.isoformat(), "start_time": start, "end_time": end, "room_or_link": room or None}


def validate_attendance_records(records: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Return normalized `{student_id, status, note}` entries, last write wins per student."""
    by_student: Dict[int, Dict[str, Any]] = {}
    for entry in records:
        try:
            student_id = int(entry["student_id"])
        except (KeyError, TypeError, ValueError) as exc:
            raise ValueError("invalid_student_id") from exc
        status = entry.get("status")
        if status not in ATTENDANCE_STATUSES:
            raise ValueError("invalid_status")
        note = entry.get("note")
        note = note.strip() if isinstance(note, str) and note.strip() else None
        by_student[student_id] = {"student_id": student_id, "status": status, "note": note}
    return list(by_student.values())


def class_status(start_date: str, end_date: str, today: date) -> str:
    if today < date.fromisoformat(start_date):
        return "upcoming"
    if today > date.fromisoformat(end_date):
        return "completed"
    return "active"


def period_start(period: str | None, today: date) -> Optional[date]:
    """First day of the analytics period containing `today`; None for `all`."""
    key = (period or "all").strip().lower()
    if key == "all":
        return None
    if key == "month":
        return today.replace(day=1)
    if key == "quarter":
        return date(today.year, (today.month - 1) // 3 * 3 + 1, 1)
    if key == "year":
        return date(today.year, 1, 1)
    raise ValueError("invalid_period")


def attendance_summary(present: int, absent: int, late: int) -> Dict[str, int]:
    total = present + absent + late
    return {
        "totalRecords": total,
        "present": present,
        "absent": absent,
        "late": late,
        # Share of records marked present, rounded half up.
        "averageAttendance": (present * 100 + total // 2) // total if total else 0,
    }


def registration_message(course_name: str, status: str) -> Dict[str, str]:
    if status == "approved":
        return {
            "type": "registration_approved",
            "title": "Registration approved",
            "message": f"Your registration for {course_name} has been approved.",
        }
    if status == "rejected":
        return {
            "type": "registration_rejected",
            "title": "Registration rejected",
            "message": f"Your registration for {course_name} has been rejected.",
        }
    return {
        "type": "registration_pending",
        "title": "Registration pending",
        "message": f"Your registration for {course_name} is pending review.",
    }


def assignment_message(class_name: str, course_name: str) -> Dict[str, str]:
    return {
        "type": "class_assigned",
        "title": "Class assigned",
        "message": f"You have been assigned to {class_name} ({course_name}).",
    }


class AcademyRepo(Protocol):
    # courses
    def list_courses(self, *, level: str | None = None, search: str | None = None,
                     active_only: bool = False, limit: int = 50, offset: int = 0) -> List[Any]: ...
    def get_course(self, course_id: int) -> Optional[Any]: ...
    def create_course(self, **fields: Any) -> Any: ...
    def update_course(self, course_id: int, **fields: Any) -> Optional[Any]: ...
    def delete_course(self, course_id: int) -> bool: ...
    def course_stats(self) -> Dict[str, Any]: ...

    # registrations
    def register_student(self, course_id: int, student_id: int) -> Any: ...
    def unregister_student(self, course_id: int, student_id: int) -> bool: ...
    def get_registration(self, course_id: int, student_id: int) -> Optional[Any]: ...
    def list_registrations(self, *, status: str | None = None) -> List[Dict[str, Any]]: ...
    def registration_stats(self) -> Dict[str, int]: ...
    def set_registration_status(self, registration_id: int, status: str) -> Any: ...
    def list_student_courses(self, student_id: int) -> List[Dict[str, Any]]: ...
    def list_course_students(self, course_id: int) -> List[Dict[str, Any]]: ...
    def user_activity(self, user_id: int) -> Dict[str, int]: ...

    # classes
    def list_classes(self, *, course_id: int | None = None) -> List[Dict[str, Any]]: ...
    def create_class(self, *, course_id: int, teacher_id: int, name: str, start_date: Any, end_date: Any) -> Any: ...
    def get_class(self, class_id: int) -> Optional[Any]: ...
    def list_teacher_classes(self, teacher_id: int, today: date) -> List[Dict[str, Any]]: ...
    def list_student_classes(self, student_id: int) -> List[Dict[str, Any]]: ...
    def list_class_students(self, class_id: int) -> List[Dict[str, Any]]: ...
    def assign_student_to_class(self, *, course_id: int, student_id: int, class_id: int) -> Dict[str, Any]: ...
    def unassign_student_from_class(self, *, course_id: int, student_id: int) -> bool: ...

    # schedules
    def create_schedule(self, *, class_id: int, lesson_date: Any, start_time: Any,
                        end_time: Any, room_or_link: Any = None) -> Any: ...
    def delete_schedule(self, schedule_id: int) -> bool: ...
    def list_schedules(self, *, start: date | None = None, end: date | None = None,
                       teacher_id: int | None = None, student_id: int | None = None,
                       class_id: int | None = None) -> List[Dict[str, Any]]: ...
    def upcoming_classes_for_teacher(self, teacher_id: int, today: date, limit: int = 5) -> List[Dict[str, Any]]: ...

    # attendance
    def save_attendance(self, *, class_id: int, teacher_id: int, lesson_date: Any,
                        records: Iterable[Dict[str, Any]]) -> int: ...
    def get_attendance(self, *, class_id: int, teacher_id: int, lesson_date: Any) -> List[Dict[str, Any]]: ...

    # notifications
    def create_notification(self, *, user_id: int, type: str, title: str, message: str) -> Any: ...
    def list_notifications(self, user_id: int, *, unread_only: bool = False, limit: int = 50) -> List[Any]: ...
    def mark_notification_read(self, notification_id: int, user_id: int) -> bool: ...
    def count_unread(self, user_id: int) -> int: ...
    def mark_all_read(self, user_id: int) -> int: ...

    # dashboards
    def admin_stats(self, today: date) -> Dict[str, int]: ...
    def teacher_stats(self, teacher_id: int, today: date) -> Dict[str, int]: ...
    def student_stats(self, student_id: int, today: date) -> Dict[str, int]: ...

    # analytics
    def analytics(self, period: str | None, today: date) -> Dict[str, Any]: ...
    def course_analytics(self, course_id: int, days: int, today: date) -> Dict[str, Any]: ...


__all__ = [
    "ATTENDANCE_STATUSES",
    "AcademyRepo",
    "CLASS_CAPACITY",
    "ClassGroup",
    "Course",
    "LEVELS",
    "Notification",
    "REGISTRATION_STATUSES",
    "Registration",
    "Schedule",
    "attendance_summary",
    "period_start",
    "validate_attendance_records",
    "validate_class_fields",
    "validate_course_fields",
    "validate_schedule_fields",
]
