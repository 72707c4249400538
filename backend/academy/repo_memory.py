"""
In-memory academy repository (dev/tests).

Mirrors `DBAcademyRepo` behavior: same validation, same error codes, same
notification side effects. Entities are dataclasses; joined views are dicts.
"""
from __future__ import annotations

from dataclasses import asdict, replace
from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List, Optional, Tuple

from academy.repo import (
    ATTENDANCE_STATUSES,
    CLASS_CAPACITY,
    LEVELS,
    REGISTRATION_STATUSES,
    _UNSET,
    ClassGroup,
    Course,
    Notification,
    Registration,
    Schedule,
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


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class InMemoryAcademyRepo:
    def __init__(self) -> None:
        self.courses: Dict[int, Course] = {}
        self.classes: Dict[int, ClassGroup] = {}
        # class_members[class_id] = { student_id: joined_at_iso }
        self.class_members: Dict[int, Dict[int, str]] = {}
        self.registrations: Dict[int, Registration] = {}
        self.schedules: Dict[int, Schedule] = {}
        # attendance[schedule_id] = { student_id: {status, note} }
        self.attendance: Dict[int, Dict[int, Dict[str, Any]]] = {}
        self.notifications: Dict[int, Notification] = {}
        self._seq: Dict[str, int] = {}

    def _next_id(self, kind: str) -> int:
        value = self._seq.get(kind, 0) + 1
        self._seq[kind] = value
        return value

    # --- internal lookups --------------------------------------------------------

    def _course_or_raise(self, course_id: int) -> Course:
        course = self.courses.get(int(course_id))
        if course is None:
            raise LookupError("course_not_found")
        return course

    def _class_or_raise(self, class_id: int) -> ClassGroup:
        group = self.classes.get(int(class_id))
        if group is None:
            raise LookupError("class_not_found")
        return group

    def _owned_class(self, class_id: int, teacher_id: int) -> ClassGroup:
        group = self._class_or_raise(class_id)
        if group.teacher_id != int(teacher_id):
            raise PermissionError("class_forbidden")
        return group

    def _find_registration(self, course_id: int, student_id: int) -> Optional[Registration]:
        for reg in self.registrations.values():
            if reg.course_id == int(course_id) and reg.student_id == int(student_id):
                return reg
        return None

    def _student_class_in_course(self, course_id: int, student_id: int) -> Optional[ClassGroup]:
        for group in self.classes.values():
            if group.course_id == int(course_id) and int(student_id) in self.class_members.get(group.id, {}):
                return group
        return None

    def _drop_course_assignments(self, course_id: int, student_id: int) -> bool:
        group = self._student_class_in_course(course_id, student_id)
        if group is None:
            return False
        self.class_members.get(group.id, {}).pop(int(student_id), None)
        return True

    def _active_registrations(self, course_id: int) -> List[Registration]:
        return [
            r for r in self.registrations.values()
            if r.course_id == int(course_id) and r.status != "rejected"
        ]

    def _with_counts(self, course: Course) -> Course:
        return replace(
            course,
            enrolled_count=len(self._active_registrations(course.id)),
            class_count=sum(1 for g in self.classes.values() if g.course_id == course.id),
        )

    def _class_schedules(self, class_id: int) -> List[Schedule]:
        items = [s for s in self.schedules.values() if s.class_id == int(class_id)]
        items.sort(key=lambda s: (s.lesson_date, s.start_time, s.id))
        return items

    def _next_lesson(self, class_id: int, today: date) -> Optional[Schedule]:
        iso = today.isoformat()
        for sched in self._class_schedules(class_id):
            if sched.lesson_date >= iso:
                return sched
        return None

    def _class_view(self, group: ClassGroup) -> Dict[str, Any]:
        course = self.courses.get(group.course_id)
        data = asdict(group)
        data.update(
            {
                "course_name": course.name if course else None,
                "level": course.level if course else None,
                "student_count": len(self.class_members.get(group.id, {})),
                "schedule_count": len(self._class_schedules(group.id)),
            }
        )
        return data

    # --- courses -----------------------------------------------------------------

    def list_courses(self, *, level: str | None = None, search: str | None = None,
                     active_only: bool = False, limit: int = 50, offset: int = 0) -> List[Course]:
        items = list(self.courses.values())
        if active_only:
            items = [c for c in items if c.is_active]
        if level:
            items = [c for c in items if c.level == level]
        if search:
            needle = search.strip().lower()
            items = [c for c in items if needle in c.name.lower() or needle in c.description.lower()]
        items.sort(key=lambda c: (c.created_at, c.id), reverse=True)
        start = max(0, int(offset))
        return [self._with_counts(c) for c in items[start:start + max(0, int(limit))]]

    def get_course(self, course_id: int) -> Optional[Course]:
        course = self.courses.get(int(course_id))
        return self._with_counts(course) if course else None

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
    ) -> Course:
        fields = validate_course_fields(
            name=name,
            description=description,
            level=level,
            duration_weeks=duration_weeks,
            price=price,
            max_students=max_students,
            is_active=is_active,
        )
        if any(c.name == fields["name"] for c in self.courses.values()):
            raise ValueError("course_name_taken")
        course = Course(id=self._next_id("course"), created_at=_now_iso(), **fields)
        self.courses[course.id] = course
        return self._with_counts(course)

    def update_course(self, course_id: int, **changes: Any) -> Optional[Course]:
        course = self.courses.get(int(course_id))
        if course is None:
            return None
        fields = validate_course_fields(**{k: v for k, v in changes.items() if v is not _UNSET})
        if "name" in fields and any(
            c.name == fields["name"] and c.id != course.id for c in self.courses.values()
        ):
            raise ValueError("course_name_taken")
        for key, value in fields.items():
            setattr(course, key, value)
        return self._with_counts(course)

    def delete_course(self, course_id: int) -> bool:
        course = self.courses.get(int(course_id))
        if course is None:
            return False
        if any(r.course_id == course.id for r in self.registrations.values()):
            raise ValueError("course_has_registrations")
        if any(g.course_id == course.id for g in self.classes.values()):
            raise ValueError("course_has_classes")
        del self.courses[course.id]
        return True

    def course_stats(self) -> Dict[str, Any]:
        courses = list(self.courses.values())
        by_level: Dict[str, int] = {}
        for course in courses:
            by_level[course.level] = by_level.get(course.level, 0) + 1
        return {
            "totalCourses": len(courses),
            "activeCourses": sum(1 for c in courses if c.is_active),
            "byLevel": [{"level": k, "count": v} for k, v in sorted(by_level.items())],
        }

    # --- registrations -----------------------------------------------------------

    def register_student(self, course_id: int, student_id: int) -> Registration:
        course = self._course_or_raise(course_id)
        if not course.is_active:
            raise ValueError("course_inactive")
        if self._find_registration(course.id, student_id) is not None:
            raise ValueError("already_registered")
        if len(self._active_registrations(course.id)) >= course.max_students:
            raise ValueError("course_full")
        reg = Registration(
            id=self._next_id("registration"),
            course_id=course.id,
            student_id=int(student_id),
            status="pending",
            registered_at=_now_iso(),
        )
        self.registrations[reg.id] = reg
        return reg

    def unregister_student(self, course_id: int, student_id: int) -> bool:
        reg = self._find_registration(course_id, student_id)
        if reg is None:
            return False
        self._drop_course_assignments(reg.course_id, reg.student_id)
        del self.registrations[reg.id]
        return True

    def get_registration(self, course_id: int, student_id: int) -> Optional[Registration]:
        return self._find_registration(course_id, student_id)

    def _registration_view(self, reg: Registration) -> Dict[str, Any]:
        course = self.courses.get(reg.course_id)
        group = self._student_class_in_course(reg.course_id, reg.student_id)
        data = asdict(reg)
        data.update(
            {
                "course_name": course.name if course else None,
                "level": course.level if course else None,
                "class_id": group.id if group else None,
                "class_name": group.name if group else None,
            }
        )
        return data

    def list_registrations(self, *, status: str | None = None) -> List[Dict[str, Any]]:
        items = list(self.registrations.values())
        if status:
            items = [r for r in items if r.status == status]
        items.sort(key=lambda r: (r.registered_at, r.id), reverse=True)
        return [self._registration_view(r) for r in items]

    def registration_stats(self) -> Dict[str, int]:
        regs = list(self.registrations.values())
        out = {"total": len(regs)}
        for status in REGISTRATION_STATUSES:
            out[status] = sum(1 for r in regs if r.status == status)
        return out

    def set_registration_status(self, registration_id: int, status: str) -> Registration:
        if status not in REGISTRATION_STATUSES:
            raise ValueError("invalid_status")
        reg = self.registrations.get(int(registration_id))
        if reg is None:
            raise LookupError("registration_not_found")
        if reg.status == status:
            return reg
        course = self.courses.get(reg.course_id)
        if reg.status == "rejected" and course is not None:
            if len(self._active_registrations(course.id)) >= course.max_students:
                raise ValueError("course_full")
        reg.status = status
        if status == "rejected":
            self._drop_course_assignments(reg.course_id, reg.student_id)
        self.create_notification(
            user_id=reg.student_id,
            **registration_message(course.name if course else "your course", status),
        )
        return reg

    def list_student_courses(self, student_id: int) -> List[Dict[str, Any]]:
        regs = [r for r in self.registrations.values() if r.student_id == int(student_id)]
        regs.sort(key=lambda r: (r.registered_at, r.id), reverse=True)
        out: List[Dict[str, Any]] = []
        for reg in regs:
            course = self.courses.get(reg.course_id)
            if course is None:
                continue
            group = self._student_class_in_course(reg.course_id, reg.student_id)
            out.append(
                {
                    "course": asdict(self._with_counts(course)),
                    "registration": asdict(reg),
                    "class": asdict(group) if group else None,
                }
            )
        return out

    def list_course_students(self, course_id: int) -> List[Dict[str, Any]]:
        self._course_or_raise(course_id)
        regs = [r for r in self.registrations.values() if r.course_id == int(course_id)]
        regs.sort(key=lambda r: (r.registered_at, r.id))
        out: List[Dict[str, Any]] = []
        for reg in regs:
            group = self._student_class_in_course(reg.course_id, reg.student_id)
            out.append(
                {
                    "student_id": reg.student_id,
                    "registration_id": reg.id,
                    "status": reg.status,
                    "registered_at": reg.registered_at,
                    "class_id": group.id if group else None,
                    "class_name": group.name if group else None,
                }
            )
        return out

    def user_activity(self, user_id: int) -> Dict[str, int]:
        uid = int(user_id)
        return {
            "registrations": sum(1 for r in self.registrations.values() if r.student_id == uid),
            "classes_taught": sum(1 for g in self.classes.values() if g.teacher_id == uid),
        }

    # --- classes -----------------------------------------------------------------

    def list_classes(self, *, course_id: int | None = None) -> List[Dict[str, Any]]:
        items = list(self.classes.values())
        if course_id is not None:
            items = [g for g in items if g.course_id == int(course_id)]
        items.sort(key=lambda g: (g.start_date, g.id))
        return [self._class_view(g) for g in items]

    def create_class(self, *, course_id: int, teacher_id: int, name: str, start_date: Any, end_date: Any) -> ClassGroup:
        fields = validate_class_fields(name=name, start_date=start_date, end_date=end_date)
        course = self._course_or_raise(course_id)
        group = ClassGroup(
            id=self._next_id("class"),
            course_id=course.id,
            teacher_id=int(teacher_id),
            created_at=_now_iso(),
            **fields,
        )
        self.classes[group.id] = group
        self.class_members[group.id] = {}
        return group

    def get_class(self, class_id: int) -> Optional[ClassGroup]:
        return self.classes.get(int(class_id))

    def list_teacher_classes(self, teacher_id: int, today: date) -> List[Dict[str, Any]]:
        items = [g for g in self.classes.values() if g.teacher_id == int(teacher_id)]
        items.sort(key=lambda g: (g.start_date, g.id))
        out: List[Dict[str, Any]] = []
        for group in items:
            data = self._class_view(group)
            nxt = self._next_lesson(group.id, today)
            data["status"] = class_status(group.start_date, group.end_date, today)
            data["next_lesson"] = nxt.lesson_date if nxt else None
            out.append(data)
        return out

    def list_student_classes(self, student_id: int) -> List[Dict[str, Any]]:
        sid = int(student_id)
        out: List[Dict[str, Any]] = []
        for group in sorted(self.classes.values(), key=lambda g: (g.start_date, g.id)):
            joined_at = self.class_members.get(group.id, {}).get(sid)
            if joined_at is None:
                continue
            data = self._class_view(group)
            data["joined_at"] = joined_at
            out.append(data)
        return out

    def list_class_students(self, class_id: int) -> List[Dict[str, Any]]:
        group = self._class_or_raise(class_id)
        out: List[Dict[str, Any]] = []
        for student_id, joined_at in sorted(self.class_members.get(group.id, {}).items(), key=lambda kv: kv[1]):
            reg = self._find_registration(group.course_id, student_id)
            out.append(
                {
                    "student_id": student_id,
                    "joined_at": joined_at,
                    "registration_status": reg.status if reg else None,
                }
            )
        return out

    def assign_student_to_class(self, *, course_id: int, student_id: int, class_id: int) -> Dict[str, Any]:
        reg = self._find_registration(course_id, student_id)
        if reg is None or reg.status == "rejected":
            raise ValueError("student_not_registered")
        group = self._class_or_raise(class_id)
        if group.course_id != int(course_id):
            raise ValueError("class_not_in_course")
        members = self.class_members.setdefault(group.id, {})
        if len(members) >= CLASS_CAPACITY:
            raise ValueError("class_full")
        if self._student_class_in_course(course_id, student_id) is not None:
            raise ValueError("already_assigned")
        joined_at = _now_iso()
        members[int(student_id)] = joined_at
        course = self.courses.get(group.course_id)
        self.create_notification(
            user_id=int(student_id),
            **assignment_message(group.name, course.name if course else ""),
        )
        return {"class_id": group.id, "student_id": int(student_id), "joined_at": joined_at}

    def unassign_student_from_class(self, *, course_id: int, student_id: int) -> bool:
        return self._drop_course_assignments(course_id, student_id)

    # --- schedules ---------------------------------------------------------------

    def create_schedule(self, *, class_id: int, lesson_date: Any, start_time: Any,
                        end_time: Any, room_or_link: Any = None) -> Schedule:
        fields = validate_schedule_fields(
            lesson_date=lesson_date, start_time=start_time, end_time=end_time, room_or_link=room_or_link
        )
        group = self._class_or_raise(class_id)
        sched = Schedule(id=self._next_id("schedule"), class_id=group.id, **fields)
        self.schedules[sched.id] = sched
        return sched

    def delete_schedule(self, schedule_id: int) -> bool:
        sched = self.schedules.pop(int(schedule_id), None)
        if sched is None:
            return False
        self.attendance.pop(sched.id, None)
        return True

    def list_schedules(self, *, start: date | None = None, end: date | None = None,
                       teacher_id: int | None = None, student_id: int | None = None,
                       class_id: int | None = None) -> List[Dict[str, Any]]:
        out: List[Dict[str, Any]] = []
        for sched in self.schedules.values():
            group = self.classes.get(sched.class_id)
            if group is None:
                continue
            if start is not None and sched.lesson_date < start.isoformat():
                continue
            if end is not None and sched.lesson_date > end.isoformat():
                continue
            if class_id is not None and group.id != int(class_id):
                continue
            if teacher_id is not None and group.teacher_id != int(teacher_id):
                continue
            if student_id is not None and int(student_id) not in self.class_members.get(group.id, {}):
                continue
            course = self.courses.get(group.course_id)
            data = asdict(sched)
            data.update(
                {
                    "class_name": group.name,
                    "course_id": group.course_id,
                    "course_name": course.name if course else None,
                    "level": course.level if course else None,
                    "teacher_id": group.teacher_id,
                    "student_count": len(self.class_members.get(group.id, {})),
                }
            )
            out.append(data)
        out.sort(key=lambda d: (d["lesson_date"], d["start_time"], d["id"]))
        return out

    def upcoming_classes_for_teacher(self, teacher_id: int, today: date, limit: int = 5) -> List[Dict[str, Any]]:
        rows: List[Tuple[Tuple[str, str], Dict[str, Any]]] = []
        iso = today.isoformat()
        for group in self.classes.values():
            if group.teacher_id != int(teacher_id):
                continue
            nxt = self._next_lesson(group.id, today)
            if nxt is None:
                continue
            lessons = self._class_schedules(group.id)
            course = self.courses.get(group.course_id)
            rows.append(
                (
                    (nxt.lesson_date, nxt.start_time),
                    {
                        "class_id": group.id,
                        "class_name": group.name,
                        "course_name": course.name if course else None,
                        "next_lesson": nxt.lesson_date,
                        "start_time": nxt.start_time,
                        "end_time": nxt.end_time,
                        "room_or_link": nxt.room_or_link,
                        "student_count": len(self.class_members.get(group.id, {})),
                        "total_lessons": len(lessons),
                        "completed_lessons": sum(1 for s in lessons if s.lesson_date < iso),
                    },
                )
            )
        rows.sort(key=lambda pair: pair[0])
        return [data for _, data in rows[: max(0, int(limit))]]

    # --- attendance --------------------------------------------------------------

    def _lesson_on(self, class_id: int, lesson_date: Any) -> Schedule:
        day = parse_iso_date(lesson_date, code="invalid_lesson_date").isoformat()
        for sched in self._class_schedules(class_id):
            if sched.lesson_date == day:
                return sched
        raise LookupError("schedule_not_found")

    def save_attendance(self, *, class_id: int, teacher_id: int, lesson_date: Any,
                        records: Iterable[Dict[str, Any]]) -> int:
        group = self._owned_class(class_id, teacher_id)
        entries = validate_attendance_records(records)
        sched = self._lesson_on(group.id, lesson_date)
        members = self.class_members.get(group.id, {})
        if any(e["student_id"] not in members for e in entries):
            raise ValueError("student_not_in_class")
        self.attendance[sched.id] = {
            e["student_id"]: {"status": e["status"], "note": e["note"]} for e in entries
        }
        return len(entries)

    def get_attendance(self, *, class_id: int, teacher_id: int, lesson_date: Any) -> List[Dict[str, Any]]:
        group = self._owned_class(class_id, teacher_id)
        sched = self._lesson_on(group.id, lesson_date)
        marks = self.attendance.get(sched.id, {})
        return [
            {"student_id": sid, "status": mark["status"], "note": mark["note"]}
            for sid, mark in sorted(marks.items())
        ]

    # --- notifications -----------------------------------------------------------

    def create_notification(self, *, user_id: int, type: str, title: str, message: str) -> Notification:
        note = Notification(
            id=self._next_id("notification"),
            user_id=int(user_id),
            type=type,
            title=title,
            message=message,
            read=False,
            created_at=_now_iso(),
        )
        self.notifications[note.id] = note
        return note

    def list_notifications(self, user_id: int, *, unread_only: bool = False, limit: int = 50) -> List[Notification]:
        items = [n for n in self.notifications.values() if n.user_id == int(user_id)]
        if unread_only:
            items = [n for n in items if not n.read]
        items.sort(key=lambda n: (n.created_at, n.id), reverse=True)
        return items[: max(0, int(limit))]

    def mark_notification_read(self, notification_id: int, user_id: int) -> bool:
        note = self.notifications.get(int(notification_id))
        if note is None or note.user_id != int(user_id):
            return False
        note.read = True
        return True

    def count_unread(self, user_id: int) -> int:
        return sum(1 for n in self.notifications.values() if n.user_id == int(user_id) and not n.read)

    def mark_all_read(self, user_id: int) -> int:
        count = 0
        for note in self.notifications.values():
            if note.user_id == int(user_id) and not note.read:
                note.read = True
                count += 1
        return count

    # --- dashboards --------------------------------------------------------------

    def admin_stats(self, today: date) -> Dict[str, int]:
        iso = today.isoformat()
        regs = list(self.registrations.values())
        return {
            "totalCourses": len(self.courses),
            "activeCourses": sum(1 for c in self.courses.values() if c.is_active),
            "totalClasses": len(self.classes),
            "totalRegistrations": len(regs),
            "pendingRegistrations": sum(1 for r in regs if r.status == "pending"),
            "upcomingLessons": sum(1 for s in self.schedules.values() if s.lesson_date >= iso),
        }

    def teacher_stats(self, teacher_id: int, today: date) -> Dict[str, int]:
        groups = [g for g in self.classes.values() if g.teacher_id == int(teacher_id)]
        students = set()
        for group in groups:
            students.update(self.class_members.get(group.id, {}).keys())
        statuses = [class_status(g.start_date, g.end_date, today) for g in groups]
        return {
            "totalClasses": len(groups),
            "totalStudents": len(students),
            "activeClasses": statuses.count("active"),
            "upcomingClasses": statuses.count("upcoming"),
            "completedClasses": statuses.count("completed"),
        }

    def student_stats(self, student_id: int, today: date) -> Dict[str, int]:
        sid = int(student_id)
        regs = [r for r in self.registrations.values() if r.student_id == sid]
        class_ids = {g.id for g in self.classes.values() if sid in self.class_members.get(g.id, {})}
        iso = today.isoformat()
        return {
            "enrolledCourses": sum(1 for r in regs if r.status != "rejected"),
            "pendingRegistrations": sum(1 for r in regs if r.status == "pending"),
            "activeClasses": sum(
                1 for cid in class_ids
                if class_status(self.classes[cid].start_date, self.classes[cid].end_date, today) == "active"
            ),
            "upcomingLessons": sum(
                1 for s in self.schedules.values() if s.class_id in class_ids and s.lesson_date >= iso
            ),
        }

    # --- analytics ---------------------------------------------------------------

    def _attendance_counts(self, schedule_ids: Iterable[int]) -> Dict[str, int]:
        counts = {status: 0 for status in ATTENDANCE_STATUSES}
        for sched_id in schedule_ids:
            for mark in self.attendance.get(sched_id, {}).values():
                counts[mark["status"]] += 1
        return counts

    def analytics(self, period: str | None, today: date) -> Dict[str, Any]:
        since = period_start(period, today)
        floor = since.isoformat() if since else ""
        enrolled: Dict[int, set] = {cid: set() for cid in self.courses}
        for reg in self.registrations.values():
            if reg.status != "rejected" and reg.registered_at[:10] >= floor and reg.course_id in enrolled:
                enrolled[reg.course_id].add(reg.student_id)
        by_level: Dict[str, set] = {}
        for course in self.courses.values():
            by_level.setdefault(course.level, set()).update(enrolled[course.id])
        class_counts: Dict[int, int] = {}
        for group in self.classes.values():
            class_counts[group.course_id] = class_counts.get(group.course_id, 0) + 1
        courses = [
            {
                "course_id": course.id,
                "course_name": course.name,
                "level": course.level,
                "enrolled_count": len(enrolled[course.id]),
                "capacity": class_counts.get(course.id, 0) * CLASS_CAPACITY,
            }
            for course in self.courses.values()
        ]
        courses.sort(key=lambda d: (-d["enrolled_count"], d["course_name"]))
        lessons = [s.id for s in self.schedules.values() if s.lesson_date >= floor]
        return {
            "since": floor or None,
            "totalCourses": len(self.courses),
            "totalClasses": len(self.classes),
            "enrollmentByLevel": [
                {"level": level, "count": len(by_level[level])} for level in LEVELS if level in by_level
            ],
            "courseEnrollments": courses,
            "attendanceStats": attendance_summary(**self._attendance_counts(lessons)),
        }

    def course_analytics(self, course_id: int, days: int, today: date) -> Dict[str, Any]:
        if isinstance(days, bool) or not isinstance(days, int) or not 1 <= days <= 365:
            raise ValueError("invalid_days")
        course = self._course_or_raise(course_id)
        since = (today - timedelta(days=days)).isoformat()
        until = today.isoformat()
        daily: Dict[str, int] = {}
        by_status = {status: 0 for status in REGISTRATION_STATUSES}
        for reg in self.registrations.values():
            day = reg.registered_at[:10]
            if reg.course_id == course.id and since <= day <= until:
                daily[day] = daily.get(day, 0) + 1
                by_status[reg.status] += 1
        class_ids = {g.id for g in self.classes.values() if g.course_id == course.id}
        lessons = [
            s.id for s in self.schedules.values()
            if s.class_id in class_ids and since <= s.lesson_date <= until
        ]
        return {
            "course_id": course.id,
            "days": days,
            "since": since,
            "until": until,
            "registrations": [{"date": day, "count": n} for day, n in sorted(daily.items())],
            "registrationsByStatus": by_status,
            "lessons": len(lessons),
            "attendanceStats": attendance_summary(**self._attendance_counts(lessons)),
        }


__all__ = ["InMemoryAcademyRepo"]
