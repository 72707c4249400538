"""
Postgres-backed academy repository.

Design:
- Minimal psycopg3 usage; each call opens a short-lived connection and the
  connection context commits (or rolls back) the whole operation.
- Returns plain dicts shaped like the dataclasses in `academy.repo` so the web
  adapter serializes both backends the same way.
- Validation and error codes are shared with `InMemoryAcademyRepo`.

Schema (owned by the deployment):
    courses(id, name unique, description, level, duration_weeks, price,
            max_students, is_active, created_at)
    classes(id, course_id, teacher_id, name, start_date, end_date, created_at)
    class_students(class_id, student_id, joined_at, primary key(class_id, student_id))
    course_registrations(id, course_id, student_id, status, registered_at,
                         unique(course_id, student_id))
    schedules(id, class_id, lesson_date, start_time, end_time, room_or_link)
    attendance(schedule_id, student_id, status, note, unique(schedule_id, student_id))
    notifications(id, user_id, type, title, message, is_read, created_at)
"""
from __future__ import annotations

from datetime import date, timedelta
from typing import Any, Dict, Iterable, List, Optional, Tuple
import os

try:
    import psycopg
    from psycopg.errors import UniqueViolation
    HAVE_PSYCOPG = True
except Exception:  # pragma: no cover - optional in some dev envs
    psycopg = None  # type: ignore
    UniqueViolation = None  # type: ignore
    HAVE_PSYCOPG = False

from academy.repo import (
    CLASS_CAPACITY,
    LEVELS,
    REGISTRATION_STATUSES,
    _UNSET,
    assignment_message,
    attendance_summary,
    class_status,
    parse_iso_date,
    period_start,
    registration_message,
    validate_attendance_records,
    validate_class_fields,
    validate_course_fields,
    validate_schedule_fields,
)

_TS = "to_char({col} at time zone 'utc', 'YYYY-MM-DD\"T\"HH24:MI:SS\"+00:00\"')"

_COURSE_COLUMNS_SQL = f"""
    c.id, c.name, c.description, c.level, c.duration_weeks, c.price::float8,
    c.max_students, c.is_active, {_TS.format(col="c.created_at")},
    (select count(*) from public.course_registrations r
      where r.course_id = c.id and r.status <> 'rejected'),
    (select count(*) from public.classes k where k.course_id = c.id)
"""

_CLASS_COLUMNS_SQL = f"""
    k.id, k.course_id, k.teacher_id, k.name, k.start_date::text, k.end_date::text,
    {_TS.format(col="k.created_at")}
"""

_CLASS_VIEW_SQL = f"""
    {_CLASS_COLUMNS_SQL},
    c.name, c.level,
    (select count(*) from public.class_students m where m.class_id = k.id),
    (select count(*) from public.schedules s where s.class_id = k.id)
"""

_REGISTRATION_COLUMNS_SQL = f"""
    r.id, r.course_id, r.student_id, r.status, {_TS.format(col="r.registered_at")}
"""

_SCHEDULE_COLUMNS_SQL = """
    s.id, s.class_id, s.lesson_date::text, to_char(s.start_time, 'HH24:MI'),
    to_char(s.end_time, 'HH24:MI'), s.room_or_link
"""

_NOTIFICATION_COLUMNS_SQL = f"""
    id, user_id, type, title, message, is_read, {_TS.format(col="created_at")}
"""


def _course_row(row: Tuple) -> Dict[str, Any]:
    return {
        "id": int(row[0]),
        "name": row[1],
        "description": row[2],
        "level": row[3],
        "duration_weeks": int(row[4]),
        "price": float(row[5] or 0),
        "max_students": int(row[6]),
        "is_active": bool(row[7]),
        "created_at": row[8],
        "enrolled_count": int(row[9] or 0),
        "class_count": int(row[10] or 0),
    }


def _class_row(row: Tuple) -> Dict[str, Any]:
    return {
        "id": int(row[0]),
        "course_id": int(row[1]),
        "teacher_id": int(row[2]),
        "name": row[3],
        "start_date": row[4],
        "end_date": row[5],
        "created_at": row[6],
    }


def _class_view_row(row: Tuple) -> Dict[str, Any]:
    data = _class_row(row)
    data.update(
        {
            "course_name": row[7],
            "level": row[8],
            "student_count": int(row[9] or 0),
            "schedule_count": int(row[10] or 0),
        }
    )
    return data


def _registration_row(row: Tuple) -> Dict[str, Any]:
    return {
        "id": int(row[0]),
        "course_id": int(row[1]),
        "student_id": int(row[2]),
        "status": row[3],
        "registered_at": row[4],
    }


def _schedule_row(row: Tuple) -> Dict[str, Any]:
    return {
        "id": int(row[0]),
        "class_id": int(row[1]),
        "lesson_date": row[2],
        "start_time": row[3],
        "end_time": row[4],
        "room_or_link": row[5],
    }


def _notification_row(row: Tuple) -> Dict[str, Any]:
    return {
        "id": int(row[0]),
        "user_id": int(row[1]),
        "type": row[2],
        "title": row[3],
        "message": row[4],
        "read": bool(row[5]),
        "created_at": row[6],
    }


def _is_unique_violation(exc: Exception) -> bool:
    return UniqueViolation is not None and isinstance(exc, UniqueViolation)


class DBAcademyRepo:
    def __init__(self, dsn: Optional[str] = None) -> None:
        if not HAVE_PSYCOPG:
            raise RuntimeError("psycopg3 is required for DBAcademyRepo")
        self._dsn = dsn or os.getenv("ACADEMY_DATABASE_URL") or os.getenv("DATABASE_URL", "")
        if not self._dsn:
            raise RuntimeError("Database DSN unavailable for DBAcademyRepo")

    def _connect(self):
        return psycopg.connect(self._dsn)

    @staticmethod
    def _notify(cur, user_id: int, payload: Dict[str, str]) -> None:
        cur.execute(
            "insert into public.notifications (user_id, type, title, message) values (%s, %s, %s, %s)",
            (int(user_id), payload["type"], payload["title"], payload["message"]),
        )

    # --- courses -----------------------------------------------------------------

    def list_courses(self, *, level: str | None = None, search: str | None = None,
                     active_only: bool = False, limit: int = 50, offset: int = 0) -> List[Dict[str, Any]]:
        clauses: List[str] = []
        params: List[Any] = []
        if active_only:
            clauses.append("c.is_active")
        if level:
            clauses.append("c.level = %s")
            params.append(level)
        if search:
            clauses.append("(c.name ilike %s or c.description ilike %s)")
            pattern = f"%{search.strip()}%"
            params.extend([pattern, pattern])
        where = f"where {' and '.join(clauses)}" if clauses else ""
        params.extend([max(0, int(limit)), max(0, int(offset))])
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    f"select {_COURSE_COLUMNS_SQL} from public.courses c {where} "
                    "order by c.created_at desc, c.id desc limit %s offset %s",
                    tuple(params),
                )
                rows = cur.fetchall()
        return [_course_row(r) for r in rows]

    def get_course(self, course_id: int) -> Optional[Dict[str, Any]]:
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(f"select {_COURSE_COLUMNS_SQL} from public.courses c where c.id = %s", (int(course_id),))
                row = cur.fetchone()
        return _course_row(row) if row else None

    def create_course(
        self,
        *,
        name: str,
        description: str,
        level: str,
        duration_weeks: int = 12,
        price: float = 0.0,
        max_students: int = 30,
        is_active: bool = True,
    ) -> Dict[str, Any]:
        f = validate_course_fields(
            name=name,
            description=description,
            level=level,
            duration_weeks=duration_weeks,
            price=price,
            max_students=max_students,
            is_active=is_active,
        )
        try:
            with self._connect() as conn:
                with conn.cursor() as cur:
                    cur.execute(
                        """
                        insert into public.courses (name, description, level, duration_weeks, price, max_students, is_active)
                        values (%s, %s, %s, %s, %s, %s, %s)
                        returning id
                        """,
                        (f["name"], f["description"], f["level"], f["duration_weeks"], f["price"],
                         f["max_students"], f["is_active"]),
                    )
                    new_id = cur.fetchone()[0]
                    cur.execute(f"select {_COURSE_COLUMNS_SQL} from public.courses c where c.id = %s", (new_id,))
                    row = cur.fetchone()
        except Exception as exc:
            if _is_unique_violation(exc):
                raise ValueError("course_name_taken") from exc
            raise
        return _course_row(row)

    def update_course(self, course_id: int, **changes: Any) -> Optional[Dict[str, Any]]:
        fields = validate_course_fields(**{k: v for k, v in changes.items() if v is not _UNSET})
        if not fields:
            return self.get_course(course_id)
        sets = ", ".join(f"{key} = %s" for key in fields)
        params = list(fields.values()) + [int(course_id)]
        try:
            with self._connect() as conn:
                with conn.cursor() as cur:
                    cur.execute(f"update public.courses set {sets} where id = %s", tuple(params))
                    if not cur.rowcount:
                        return None
                    cur.execute(f"select {_COURSE_COLUMNS_SQL} from public.courses c where c.id = %s", (int(course_id),))
                    row = cur.fetchone()
        except Exception as exc:
            if _is_unique_violation(exc):
                raise ValueError("course_name_taken") from exc
            raise
        return _course_row(row) if row else None

    def delete_course(self, course_id: int) -> bool:
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute("select 1 from public.courses where id = %s", (int(course_id),))
                if cur.fetchone() is None:
                    return False
                cur.execute("select count(*) from public.course_registrations where course_id = %s", (int(course_id),))
                if int(cur.fetchone()[0] or 0) > 0:
                    raise ValueError("course_has_registrations")
                cur.execute("select count(*) from public.classes where course_id = %s", (int(course_id),))
                if int(cur.fetchone()[0] or 0) > 0:
                    raise ValueError("course_has_classes")
                cur.execute("delete from public.courses where id = %s", (int(course_id),))
                return bool(cur.rowcount)

    def course_stats(self) -> Dict[str, Any]:
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute("select count(*), count(*) filter (where is_active) from public.courses")
                total, active = cur.fetchone() or (0, 0)
                cur.execute("select level, count(*) from public.courses group by level order by level")
                levels = cur.fetchall()
        return {
            "totalCourses": int(total or 0),
            "activeCourses": int(active or 0),
            "byLevel": [{"level": lv, "count": int(n)} for lv, n in levels],
        }

    # --- registrations -----------------------------------------------------------

    def register_student(self, course_id: int, student_id: int) -> Dict[str, Any]:
        try:
            with self._connect() as conn:
                with conn.cursor() as cur:
                    cur.execute(
                        "select is_active, max_students from public.courses where id = %s for update",
                        (int(course_id),),
                    )
                    course = cur.fetchone()
                    if course is None:
                        raise LookupError("course_not_found")
                    if not course[0]:
                        raise ValueError("course_inactive")
                    cur.execute(
                        "select 1 from public.course_registrations where course_id = %s and student_id = %s",
                        (int(course_id), int(student_id)),
                    )
                    if cur.fetchone() is not None:
                        raise ValueError("already_registered")
                    cur.execute(
                        "select count(*) from public.course_registrations where course_id = %s and status <> 'rejected'",
                        (int(course_id),),
                    )
                    if int(cur.fetchone()[0] or 0) >= int(course[1]):
                        raise ValueError("course_full")
                    cur.execute(
                        f"""
                        insert into public.course_registrations as r (course_id, student_id, status)
                        values (%s, %s, 'pending')
                        returning {_REGISTRATION_COLUMNS_SQL}
                        """,
                        (int(course_id), int(student_id)),
                    )
                    row = cur.fetchone()
        except Exception as exc:
            if _is_unique_violation(exc):
                raise ValueError("already_registered") from exc
            raise
        return _registration_row(row)

    def unregister_student(self, course_id: int, student_id: int) -> bool:
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    delete from public.class_students m
                     using public.classes k
                     where m.class_id = k.id and k.course_id = %s and m.student_id = %s
                    """,
                    (int(course_id), int(student_id)),
                )
                cur.execute(
                    "delete from public.course_registrations where course_id = %s and student_id = %s",
                    (int(course_id), int(student_id)),
                )
                return bool(cur.rowcount)

    def get_registration(self, course_id: int, student_id: int) -> Optional[Dict[str, Any]]:
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    f"select {_REGISTRATION_COLUMNS_SQL} from public.course_registrations r "
                    "where r.course_id = %s and r.student_id = %s",
                    (int(course_id), int(student_id)),
                )
                row = cur.fetchone()
        return _registration_row(row) if row else None

    def list_registrations(self, *, status: str | None = None) -> List[Dict[str, Any]]:
        where = "where r.status = %s" if status else ""
        params: Tuple = (status,) if status else ()
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    f"""
                    select {_REGISTRATION_COLUMNS_SQL}, c.name, c.level, k.id, k.name
                      from public.course_registrations r
                      join public.courses c on c.id = r.course_id
                      left join public.class_students m on m.student_id = r.student_id
                           and m.class_id in (select id from public.classes where course_id = r.course_id)
                      left join public.classes k on k.id = m.class_id
                     {where}
                     order by r.registered_at desc, r.id desc
                    """,
                    params,
                )
                rows = cur.fetchall()
        out: List[Dict[str, Any]] = []
        for row in rows:
            data = _registration_row(row)
            data.update(
                {
                    "course_name": row[5],
                    "level": row[6],
                    "class_id": int(row[7]) if row[7] is not None else None,
                    "class_name": row[8],
                }
            )
            out.append(data)
        return out

    def registration_stats(self) -> Dict[str, int]:
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    select count(*),
                           count(*) filter (where status = 'pending'),
                           count(*) filter (where status = 'approved'),
                           count(*) filter (where status = 'rejected')
                      from public.course_registrations
                    """
                )
                row = cur.fetchone() or (0, 0, 0, 0)
        return {
            "total": int(row[0] or 0),
            "pending": int(row[1] or 0),
            "approved": int(row[2] or 0),
            "rejected": int(row[3] or 0),
        }

    def set_registration_status(self, registration_id: int, status: str) -> Dict[str, Any]:
        if status not in REGISTRATION_STATUSES:
            raise ValueError("invalid_status")
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    f"""
                    select {_REGISTRATION_COLUMNS_SQL}, c.name, c.max_students
                      from public.course_registrations r
                      join public.courses c on c.id = r.course_id
                     where r.id = %s
                     for update of r, c
                    """,
                    (int(registration_id),),
                )
                row = cur.fetchone()
                if row is None:
                    raise LookupError("registration_not_found")
                reg = _registration_row(row)
                if reg["status"] == status:
                    return reg
                if reg["status"] == "rejected":
                    cur.execute(
                        "select count(*) from public.course_registrations where course_id = %s and status <> 'rejected'",
                        (reg["course_id"],),
                    )
                    if int(cur.fetchone()[0] or 0) >= int(row[6]):
                        raise ValueError("course_full")
                cur.execute(
                    "update public.course_registrations set status = %s where id = %s",
                    (status, reg["id"]),
                )
                if status == "rejected":
                    cur.execute(
                        """
                        delete from public.class_students m
                         using public.classes k
                         where m.class_id = k.id and k.course_id = %s and m.student_id = %s
                        """,
                        (reg["course_id"], reg["student_id"]),
                    )
                self._notify(cur, reg["student_id"], registration_message(row[5], status))
        reg["status"] = status
        return reg

    def list_student_courses(self, student_id: int) -> List[Dict[str, Any]]:
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    f"""
                    select {_COURSE_COLUMNS_SQL}, {_REGISTRATION_COLUMNS_SQL}
                      from public.course_registrations r
                      join public.courses c on c.id = r.course_id
                     where r.student_id = %s
                     order by r.registered_at desc, r.id desc
                    """,
                    (int(student_id),),
                )
                rows = cur.fetchall()
                cur.execute(
                    f"""
                    select {_CLASS_COLUMNS_SQL}
                      from public.classes k
                      join public.class_students m on m.class_id = k.id
                     where m.student_id = %s
                    """,
                    (int(student_id),),
                )
                class_rows = cur.fetchall()
        classes_by_course = {int(r[1]): _class_row(r) for r in class_rows}
        return [
            {
                "course": _course_row(row[:11]),
                "registration": _registration_row(row[11:]),
                "class": classes_by_course.get(int(row[0])),
            }
            for row in rows
        ]

    def list_course_students(self, course_id: int) -> List[Dict[str, Any]]:
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute("select 1 from public.courses where id = %s", (int(course_id),))
                if cur.fetchone() is None:
                    raise LookupError("course_not_found")
                cur.execute(
                    f"""
                    select r.student_id, r.id, r.status, {_TS.format(col="r.registered_at")}, k.id, k.name
                      from public.course_registrations r
                      left join public.classes k on k.course_id = r.course_id
                           and exists (select 1 from public.class_students m
                                        where m.class_id = k.id and m.student_id = r.student_id)
                     where r.course_id = %s
                     order by r.registered_at, r.id
                    """,
                    (int(course_id),),
                )
                rows = cur.fetchall()
        return [
            {
                "student_id": int(r[0]),
                "registration_id": int(r[1]),
                "status": r[2],
                "registered_at": r[3],
                "class_id": int(r[4]) if r[4] is not None else None,
                "class_name": r[5],
            }
            for r in rows
        ]

    def user_activity(self, user_id: int) -> Dict[str, int]:
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    select (select count(*) from public.course_registrations where student_id = %s),
                           (select count(*) from public.classes where teacher_id = %s)
                    """,
                    (int(user_id), int(user_id)),
                )
                row = cur.fetchone() or (0, 0)
        return {"registrations": int(row[0] or 0), "classes_taught": int(row[1] or 0)}

    # --- classes -----------------------------------------------------------------

    def list_classes(self, *, course_id: int | None = None) -> List[Dict[str, Any]]:
        where = "where k.course_id = %s" if course_id is not None else ""
        params: Tuple = (int(course_id),) if course_id is not None else ()
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    f"select {_CLASS_VIEW_SQL} from public.classes k join public.courses c on c.id = k.course_id "
                    f"{where} order by k.start_date, k.id",
                    params,
                )
                rows = cur.fetchall()
        return [_class_view_row(r) for r in rows]

    def create_class(self, *, course_id: int, teacher_id: int, name: str, start_date: Any, end_date: Any) -> Dict[str, Any]:
        f = validate_class_fields(name=name, start_date=start_date, end_date=end_date)
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute("select 1 from public.courses where id = %s", (int(course_id),))
                if cur.fetchone() is None:
                    raise LookupError("course_not_found")
                cur.execute(
                    f"""
                    insert into public.classes as k (course_id, teacher_id, name, start_date, end_date)
                    values (%s, %s, %s, %s, %s)
                    returning {_CLASS_COLUMNS_SQL}
                    """,
                    (int(course_id), int(teacher_id), f["name"], f["start_date"], f["end_date"]),
                )
                row = cur.fetchone()
        return _class_row(row)

    def get_class(self, class_id: int) -> Optional[Dict[str, Any]]:
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(f"select {_CLASS_COLUMNS_SQL} from public.classes k where k.id = %s", (int(class_id),))
                row = cur.fetchone()
        return _class_row(row) if row else None

    def list_teacher_classes(self, teacher_id: int, today: date) -> List[Dict[str, Any]]:
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    f"""
                    select {_CLASS_VIEW_SQL},
                           (select min(s.lesson_date)::text from public.schedules s
                             where s.class_id = k.id and s.lesson_date >= %s)
                      from public.classes k
                      join public.courses c on c.id = k.course_id
                     where k.teacher_id = %s
                     order by k.start_date, k.id
                    """,
                    (today, int(teacher_id)),
                )
                rows = cur.fetchall()
        out: List[Dict[str, Any]] = []
        for row in rows:
            data = _class_view_row(row)
            data["status"] = class_status(data["start_date"], data["end_date"], today)
            data["next_lesson"] = row[11]
            out.append(data)
        return out

    def list_student_classes(self, student_id: int) -> List[Dict[str, Any]]:
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    f"""
                    select {_CLASS_VIEW_SQL}, {_TS.format(col="sm.joined_at")}
                      from public.classes k
                      join public.courses c on c.id = k.course_id
                      join public.class_students sm on sm.class_id = k.id
                     where sm.student_id = %s
                     order by k.start_date, k.id
                    """,
                    (int(student_id),),
                )
                rows = cur.fetchall()
        out: List[Dict[str, Any]] = []
        for row in rows:
            data = _class_view_row(row)
            data["joined_at"] = row[11]
            out.append(data)
        return out

    def list_class_students(self, class_id: int) -> List[Dict[str, Any]]:
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute("select course_id from public.classes where id = %s", (int(class_id),))
                found = cur.fetchone()
                if found is None:
                    raise LookupError("class_not_found")
                cur.execute(
                    f"""
                    select m.student_id, {_TS.format(col="m.joined_at")}, r.status
                      from public.class_students m
                      left join public.course_registrations r
                        on r.student_id = m.student_id and r.course_id = %s
                     where m.class_id = %s
                     order by m.joined_at, m.student_id
                    """,
                    (int(found[0]), int(class_id)),
                )
                rows = cur.fetchall()
        return [{"student_id": int(r[0]), "joined_at": r[1], "registration_status": r[2]} for r in rows]

    def assign_student_to_class(self, *, course_id: int, student_id: int, class_id: int) -> Dict[str, Any]:
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    "select status from public.course_registrations where course_id = %s and student_id = %s",
                    (int(course_id), int(student_id)),
                )
                reg = cur.fetchone()
                if reg is None or reg[0] == "rejected":
                    raise ValueError("student_not_registered")
                cur.execute(
                    "select k.course_id, k.name, c.name from public.classes k "
                    "join public.courses c on c.id = k.course_id where k.id = %s for update of k",
                    (int(class_id),),
                )
                group = cur.fetchone()
                if group is None:
                    raise LookupError("class_not_found")
                if int(group[0]) != int(course_id):
                    raise ValueError("class_not_in_course")
                cur.execute("select count(*) from public.class_students where class_id = %s", (int(class_id),))
                if int(cur.fetchone()[0] or 0) >= CLASS_CAPACITY:
                    raise ValueError("class_full")
                cur.execute(
                    """
                    select 1 from public.class_students m
                      join public.classes k on k.id = m.class_id
                     where m.student_id = %s and k.course_id = %s
                    """,
                    (int(student_id), int(course_id)),
                )
                if cur.fetchone() is not None:
                    raise ValueError("already_assigned")
                cur.execute(
                    f"""
                    insert into public.class_students (class_id, student_id)
                    values (%s, %s)
                    returning {_TS.format(col="joined_at")}
                    """,
                    (int(class_id), int(student_id)),
                )
                joined_at = cur.fetchone()[0]
                self._notify(cur, int(student_id), assignment_message(group[1], group[2]))
        return {"class_id": int(class_id), "student_id": int(student_id), "joined_at": joined_at}

    def unassign_student_from_class(self, *, course_id: int, student_id: int) -> bool:
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    delete from public.class_students m
                     using public.classes k
                     where m.class_id = k.id and k.course_id = %s and m.student_id = %s
                    """,
                    (int(course_id), int(student_id)),
                )
                return bool(cur.rowcount)

    # --- schedules ---------------------------------------------------------------

    def create_schedule(self, *, class_id: int, lesson_date: Any, start_time: Any,
                        end_time: Any, room_or_link: Any = None) -> Dict[str, Any]:
        f = validate_schedule_fields(
            lesson_date=lesson_date, start_time=start_time, end_time=end_time, room_or_link=room_or_link
        )
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute("select 1 from public.classes where id = %s", (int(class_id),))
                if cur.fetchone() is None:
                    raise LookupError("class_not_found")
                cur.execute(
                    f"""
                    insert into public.schedules as s (class_id, lesson_date, start_time, end_time, room_or_link)
                    values (%s, %s, %s, %s, %s)
                    returning {_SCHEDULE_COLUMNS_SQL}
                    """,
                    (int(class_id), f["lesson_date"], f["start_time"], f["end_time"], f["room_or_link"]),
                )
                row = cur.fetchone()
        return _schedule_row(row)

    def delete_schedule(self, schedule_id: int) -> bool:
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute("delete from public.attendance where schedule_id = %s", (int(schedule_id),))
                cur.execute("delete from public.schedules where id = %s", (int(schedule_id),))
                return bool(cur.rowcount)

    def list_schedules(self, *, start: date | None = None, end: date | None = None,
                       teacher_id: int | None = None, student_id: int | None = None,
                       class_id: int | None = None) -> List[Dict[str, Any]]:
        clauses: List[str] = []
        params: List[Any] = []
        if start is not None:
            clauses.append("s.lesson_date >= %s")
            params.append(start)
        if end is not None:
            clauses.append("s.lesson_date <= %s")
            params.append(end)
        if class_id is not None:
            clauses.append("k.id = %s")
            params.append(int(class_id))
        if teacher_id is not None:
            clauses.append("k.teacher_id = %s")
            params.append(int(teacher_id))
        if student_id is not None:
            clauses.append("exists (select 1 from public.class_students m where m.class_id = k.id and m.student_id = %s)")
            params.append(int(student_id))
        where = f"where {' and '.join(clauses)}" if clauses else ""
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    f"""
                    select {_SCHEDULE_COLUMNS_SQL}, k.name, k.course_id, c.name, c.level, k.teacher_id,
                           (select count(*) from public.class_students m where m.class_id = k.id)
                      from public.schedules s
                      join public.classes k on k.id = s.class_id
                      join public.courses c on c.id = k.course_id
                     {where}
                     order by s.lesson_date, s.start_time, s.id
                    """,
                    tuple(params),
                )
                rows = cur.fetchall()
        out: List[Dict[str, Any]] = []
        for row in rows:
            data = _schedule_row(row)
            data.update(
                {
                    "class_name": row[6],
                    "course_id": int(row[7]),
                    "course_name": row[8],
                    "level": row[9],
                    "teacher_id": int(row[10]),
                    "student_count": int(row[11] or 0),
                }
            )
            out.append(data)
        return out

    def upcoming_classes_for_teacher(self, teacher_id: int, today: date, limit: int = 5) -> List[Dict[str, Any]]:
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    select distinct on (k.id)
                           k.id, k.name, c.name, s.lesson_date::text,
                           to_char(s.start_time, 'HH24:MI'), to_char(s.end_time, 'HH24:MI'), s.room_or_link,
                           (select count(*) from public.class_students m where m.class_id = k.id),
                           (select count(*) from public.schedules x where x.class_id = k.id),
                           (select count(*) from public.schedules x where x.class_id = k.id and x.lesson_date < %s)
                      from public.classes k
                      join public.courses c on c.id = k.course_id
                      join public.schedules s on s.class_id = k.id and s.lesson_date >= %s
                     where k.teacher_id = %s
                     order by k.id, s.lesson_date, s.start_time
                    """,
                    (today, today, int(teacher_id)),
                )
                rows = cur.fetchall()
        items = [
            {
                "class_id": int(r[0]),
                "class_name": r[1],
                "course_name": r[2],
                "next_lesson": r[3],
                "start_time": r[4],
                "end_time": r[5],
                "room_or_link": r[6],
                "student_count": int(r[7] or 0),
                "total_lessons": int(r[8] or 0),
                "completed_lessons": int(r[9] or 0),
            }
            for r in rows
        ]
        items.sort(key=lambda d: (d["next_lesson"], d["start_time"]))
        return items[: max(0, int(limit))]

    # --- attendance --------------------------------------------------------------

    @staticmethod
    def _owned_class(cur, class_id: int, teacher_id: int) -> None:
        cur.execute("select teacher_id from public.classes where id = %s", (int(class_id),))
        row = cur.fetchone()
        if row is None:
            raise LookupError("class_not_found")
        if int(row[0]) != int(teacher_id):
            raise PermissionError("class_forbidden")

    @staticmethod
    def _lesson_on(cur, class_id: int, lesson_date: date) -> int:
        cur.execute(
            "select id from public.schedules where class_id = %s and lesson_date = %s order by start_time, id limit 1",
            (int(class_id), lesson_date),
        )
        row = cur.fetchone()
        if row is None:
            raise LookupError("schedule_not_found")
        return int(row[0])

    def save_attendance(self, *, class_id: int, teacher_id: int, lesson_date: Any,
                        records: Iterable[Dict[str, Any]]) -> int:
        day = parse_iso_date(lesson_date, code="invalid_lesson_date")
        entries = validate_attendance_records(records)
        with self._connect() as conn:
            with conn.cursor() as cur:
                self._owned_class(cur, class_id, teacher_id)
                schedule_id = self._lesson_on(cur, class_id, day)
                cur.execute("select student_id from public.class_students where class_id = %s", (int(class_id),))
                members = {int(r[0]) for r in cur.fetchall()}
                if any(e["student_id"] not in members for e in entries):
                    raise ValueError("student_not_in_class")
                cur.execute("delete from public.attendance where schedule_id = %s", (schedule_id,))
                for e in entries:
                    cur.execute(
                        "insert into public.attendance (schedule_id, student_id, status, note) values (%s, %s, %s, %s)",
                        (schedule_id, e["student_id"], e["status"], e["note"]),
                    )
        return len(entries)

    def get_attendance(self, *, class_id: int, teacher_id: int, lesson_date: Any) -> List[Dict[str, Any]]:
        day = parse_iso_date(lesson_date, code="invalid_lesson_date")
        with self._connect() as conn:
            with conn.cursor() as cur:
                self._owned_class(cur, class_id, teacher_id)
                schedule_id = self._lesson_on(cur, class_id, day)
                cur.execute(
                    "select student_id, status, note from public.attendance where schedule_id = %s order by student_id",
                    (schedule_id,),
                )
                rows = cur.fetchall()
        return [{"student_id": int(r[0]), "status": r[1], "note": r[2]} for r in rows]

    # --- notifications -----------------------------------------------------------

    def create_notification(self, *, user_id: int, type: str, title: str, message: str) -> Dict[str, Any]:
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    f"""
                    insert into public.notifications (user_id, type, title, message)
                    values (%s, %s, %s, %s)
                    returning {_NOTIFICATION_COLUMNS_SQL}
                    """,
                    (int(user_id), type, title, message),
                )
                row = cur.fetchone()
        return _notification_row(row)

    def list_notifications(self, user_id: int, *, unread_only: bool = False, limit: int = 50) -> List[Dict[str, Any]]:
        unread = "and not is_read" if unread_only else ""
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    f"select {_NOTIFICATION_COLUMNS_SQL} from public.notifications "
                    f"where user_id = %s {unread} order by created_at desc, id desc limit %s",
                    (int(user_id), max(0, int(limit))),
                )
                rows = cur.fetchall()
        return [_notification_row(r) for r in rows]

    def mark_notification_read(self, notification_id: int, user_id: int) -> bool:
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    "update public.notifications set is_read = true where id = %s and user_id = %s",
                    (int(notification_id), int(user_id)),
                )
                return bool(cur.rowcount)

    def count_unread(self, user_id: int) -> int:
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    "select count(*) from public.notifications where user_id = %s and not is_read",
                    (int(user_id),),
                )
                row = cur.fetchone()
        return int(row[0] or 0) if row else 0

    def mark_all_read(self, user_id: int) -> int:
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    "update public.notifications set is_read = true where user_id = %s and not is_read",
                    (int(user_id),),
                )
                return int(cur.rowcount or 0)

    # --- dashboards --------------------------------------------------------------

    def admin_stats(self, today: date) -> Dict[str, int]:
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    select (select count(*) from public.courses),
                           (select count(*) from public.courses where is_active),
                           (select count(*) from public.classes),
                           (select count(*) from public.course_registrations),
                           (select count(*) from public.course_registrations where status = 'pending'),
                           (select count(*) from public.schedules where lesson_date >= %s)
                    """,
                    (today,),
                )
                row = cur.fetchone() or (0, 0, 0, 0, 0, 0)
        keys = ("totalCourses", "activeCourses", "totalClasses", "totalRegistrations",
                "pendingRegistrations", "upcomingLessons")
        return {k: int(v or 0) for k, v in zip(keys, row)}

    def teacher_stats(self, teacher_id: int, today: date) -> Dict[str, int]:
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    select count(*),
                           count(*) filter (where start_date <= %s and end_date >= %s),
                           count(*) filter (where start_date > %s),
                           count(*) filter (where end_date < %s),
                           (select count(distinct m.student_id) from public.class_students m
                              join public.classes x on x.id = m.class_id where x.teacher_id = %s)
                      from public.classes where teacher_id = %s
                    """,
                    (today, today, today, today, int(teacher_id), int(teacher_id)),
                )
                row = cur.fetchone() or (0, 0, 0, 0, 0)
        return {
            "totalClasses": int(row[0] or 0),
            "totalStudents": int(row[4] or 0),
            "activeClasses": int(row[1] or 0),
            "upcomingClasses": int(row[2] or 0),
            "completedClasses": int(row[3] or 0),
        }

    def student_stats(self, student_id: int, today: date) -> Dict[str, int]:
        sid = int(student_id)
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    select (select count(*) from public.course_registrations where student_id = %s and status <> 'rejected'),
                           (select count(*) from public.course_registrations where student_id = %s and status = 'pending'),
                           (select count(*) from public.classes k join public.class_students m on m.class_id = k.id
                             where m.student_id = %s and k.start_date <= %s and k.end_date >= %s),
                           (select count(*) from public.schedules s join public.class_students m on m.class_id = s.class_id
                             where m.student_id = %s and s.lesson_date >= %s)
                    """,
                    (sid, sid, sid, today, today, sid, today),
                )
                row = cur.fetchone() or (0, 0, 0, 0)
        return {
            "enrolledCourses": int(row[0] or 0),
            "pendingRegistrations": int(row[1] or 0),
            "activeClasses": int(row[2] or 0),
            "upcomingLessons": int(row[3] or 0),
        }

    # --- analytics ---------------------------------------------------------------

    def analytics(self, period: str | None, today: date) -> Dict[str, Any]:
        since = period_start(period, today)
        floor = since or date.min
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute("select (select count(*) from public.courses), (select count(*) from public.classes)")
                totals = cur.fetchone() or (0, 0)
                cur.execute(
                    """
                    select c.id, c.name, c.level,
                           (select count(distinct r.student_id) from public.course_registrations r
                             where r.course_id = c.id and r.status <> 'rejected'
                               and (r.registered_at at time zone 'utc')::date >= %s),
                           (select count(*) from public.classes k where k.course_id = c.id)
                      from public.courses c
                    """,
                    (floor,),
                )
                course_rows = cur.fetchall()
                cur.execute(
                    """
                    select c.level, count(distinct r.student_id)
                      from public.courses c
                      left join public.course_registrations r on r.course_id = c.id
                           and r.status <> 'rejected'
                           and (r.registered_at at time zone 'utc')::date >= %s
                     group by c.level
                    """,
                    (floor,),
                )
                level_rows = dict(cur.fetchall())
                cur.execute(
                    """
                    select count(*) filter (where a.status = 'present'),
                           count(*) filter (where a.status = 'absent'),
                           count(*) filter (where a.status = 'late')
                      from public.attendance a
                      join public.schedules s on s.id = a.schedule_id
                     where s.lesson_date >= %s
                    """,
                    (floor,),
                )
                marks = cur.fetchone() or (0, 0, 0)
        courses = [
            {
                "course_id": int(r[0]),
                "course_name": r[1],
                "level": r[2],
                "enrolled_count": int(r[3] or 0),
                "capacity": int(r[4] or 0) * CLASS_CAPACITY,
            }
            for r in course_rows
        ]
        courses.sort(key=lambda d: (-d["enrolled_count"], d["course_name"]))
        return {
            "since": since.isoformat() if since else None,
            "totalCourses": int(totals[0] or 0),
            "totalClasses": int(totals[1] or 0),
            "enrollmentByLevel": [
                {"level": level, "count": int(level_rows[level] or 0)} for level in LEVELS if level in level_rows
            ],
            "courseEnrollments": courses,
            "attendanceStats": attendance_summary(*(int(n or 0) for n in marks)),
        }

    def course_analytics(self, course_id: int, days: int, today: date) -> Dict[str, Any]:
        if isinstance(days, bool) or not isinstance(days, int) or not 1 <= days <= 365:
            raise ValueError("invalid_days")
        since = today - timedelta(days=days)
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute("select 1 from public.courses where id = %s", (int(course_id),))
                if cur.fetchone() is None:
                    raise LookupError("course_not_found")
                cur.execute(
                    """
                    select (registered_at at time zone 'utc')::date::text as day, status, count(*)
                      from public.course_registrations
                     where course_id = %s and (registered_at at time zone 'utc')::date between %s and %s
                     group by day, status
                     order by day
                    """,
                    (int(course_id), since, today),
                )
                reg_rows = cur.fetchall()
                cur.execute(
                    """
                    select count(distinct s.id),
                           count(a.student_id) filter (where a.status = 'present'),
                           count(a.student_id) filter (where a.status = 'absent'),
                           count(a.student_id) filter (where a.status = 'late')
                      from public.schedules s
                      join public.classes k on k.id = s.class_id
                      left join public.attendance a on a.schedule_id = s.id
                     where k.course_id = %s and s.lesson_date between %s and %s
                    """,
                    (int(course_id), since, today),
                )
                lesson_row = cur.fetchone() or (0, 0, 0, 0)
        daily: Dict[str, int] = {}
        by_status = {status: 0 for status in REGISTRATION_STATUSES}
        for day, status, n in reg_rows:
            daily[day] = daily.get(day, 0) + int(n)
            by_status[status] = by_status.get(status, 0) + int(n)
        return {
            "course_id": int(course_id),
            "days": days,
            "since": since.isoformat(),
            "until": today.isoformat(),
            "registrations": [{"date": day, "count": n} for day, n in sorted(daily.items())],
            "registrationsByStatus": by_status,
            "lessons": int(lesson_row[0] or 0),
            "attendanceStats": attendance_summary(*(int(n or 0) for n in lesson_row[1:])),
        }


__all__ = ["DBAcademyRepo"]
