"""
In-memory academy repository semantics.

Covers the invariants the routes rely on: registration uniqueness and
capacity, one class per student and course, class capacity, cascade of
placements on rejection/withdrawal and notification side effects.
"""
from __future__ import annotations

from datetime import date

import pytest

from academy.repo import CLASS_CAPACITY
from academy.repo_memory import InMemoryAcademyRepo


@pytest.fixture
def repo() -> InMemoryAcademyRepo:
    return InMemoryAcademyRepo()


def _course(repo, name="IELTS Foundation", **kw):
    return repo.create_course(name=name, description="Exam prep", level=kw.pop("level", "Intermediate"), **kw)


def _class(repo, course_id, teacher_id=10, name="IELTS B1", start="2024-06-01", end="2024-08-31"):
    return repo.create_class(course_id=course_id, teacher_id=teacher_id, name=name, start_date=start, end_date=end)


@pytest.mark.parametrize(
    "field,value,code",
    [
        ("name", "  ", "invalid_name"),
        ("level", "beginner", "invalid_level"),
        ("duration_weeks", 0, "invalid_duration_weeks"),
        ("price", -1, "invalid_price"),
        ("max_students", 101, "invalid_max_students"),
    ],
)
def test_course_validation(repo, field, value, code):
    kwargs = {"name": "Course", "description": "d", "level": "Beginner", field: value}
    with pytest.raises(ValueError, match=code):
        repo.create_course(**kwargs)


def test_list_courses_filters(repo):
    _course(repo, "IELTS Foundation")
    _course(repo, "Kids English", level="Beginner", is_active=False)
    assert [c.name for c in repo.list_courses(level="Beginner")] == ["Kids English"]
    assert [c.name for c in repo.list_courses(active_only=True)] == ["IELTS Foundation"]
    assert [c.name for c in repo.list_courses(search="ielts")] == ["IELTS Foundation"]
    stats = repo.course_stats()
    assert stats["totalCourses"] == 2 and stats["activeCourses"] == 1


def test_update_course_rejects_taken_name(repo):
    first = _course(repo, "A")
    _course(repo, "B")
    with pytest.raises(ValueError, match="course_name_taken"):
        repo.update_course(first.id, name="B")
    assert repo.update_course(first.id, name="A2").name == "A2"
    assert repo.update_course(999, name="C") is None


def test_registration_uniqueness_and_capacity(repo):
    course = _course(repo, max_students=2)
    repo.register_student(course.id, 1)
    with pytest.raises(ValueError, match="already_registered"):
        repo.register_student(course.id, 1)
    second = repo.register_student(course.id, 2)
    with pytest.raises(ValueError, match="course_full"):
        repo.register_student(course.id, 3)
    # Rejected registrations free a seat
    repo.set_registration_status(second.id, "rejected")
    repo.register_student(course.id, 3)
    with pytest.raises(LookupError):
        repo.register_student(999, 1)


def test_status_change_notifies_once(repo):
    course = _course(repo)
    reg = repo.register_student(course.id, 5)
    repo.set_registration_status(reg.id, "approved")
    repo.set_registration_status(reg.id, "approved")
    notes = repo.list_notifications(5)
    assert [n.type for n in notes] == ["registration_approved"]
    assert "IELTS Foundation" in notes[0].message
    with pytest.raises(ValueError, match="invalid_status"):
        repo.set_registration_status(reg.id, "maybe")
    with pytest.raises(LookupError, match="registration_not_found"):
        repo.set_registration_status(999, "approved")


def test_assignment_rules(repo):
    course = _course(repo)
    other_course = _course(repo, "Other")
    group = _class(repo, course.id)
    second_group = _class(repo, course.id, name="IELTS B2")
    foreign = _class(repo, other_course.id, name="Other A")

    with pytest.raises(ValueError, match="student_not_registered"):
        repo.assign_student_to_class(course_id=course.id, student_id=1, class_id=group.id)
    repo.register_student(course.id, 1)
    with pytest.raises(ValueError, match="class_not_in_course"):
        repo.assign_student_to_class(course_id=course.id, student_id=1, class_id=foreign.id)
    with pytest.raises(LookupError):
        repo.assign_student_to_class(course_id=course.id, student_id=1, class_id=999)

    placed = repo.assign_student_to_class(course_id=course.id, student_id=1, class_id=group.id)
    assert placed["class_id"] == group.id
    with pytest.raises(ValueError, match="already_assigned"):
        repo.assign_student_to_class(course_id=course.id, student_id=1, class_id=second_group.id)
    assert repo.list_notifications(1)[0].type == "class_assigned"


def test_class_capacity(repo):
    course = _course(repo, max_students=100)
    group = _class(repo, course.id)
    for sid in range(1, CLASS_CAPACITY + 2):
        repo.register_student(course.id, sid)
    for sid in range(1, CLASS_CAPACITY + 1):
        repo.assign_student_to_class(course_id=course.id, student_id=sid, class_id=group.id)
    with pytest.raises(ValueError, match="class_full"):
        repo.assign_student_to_class(course_id=course.id, student_id=CLASS_CAPACITY + 1, class_id=group.id)


def test_rejection_and_withdrawal_drop_placement(repo):
    course = _course(repo)
    group = _class(repo, course.id)
    first = repo.register_student(course.id, 1)
    repo.register_student(course.id, 2)
    for sid in (1, 2):
        repo.assign_student_to_class(course_id=course.id, student_id=sid, class_id=group.id)

    repo.set_registration_status(first.id, "rejected")
    assert repo.unregister_student(course.id, 2) is True
    assert repo.list_class_students(group.id) == []
    assert repo.unregister_student(course.id, 2) is False


def test_class_date_and_schedule_validation(repo):
    course = _course(repo)
    with pytest.raises(ValueError, match="invalid_date_range"):
        _class(repo, course.id, start="2024-09-01", end="2024-08-01")
    group = _class(repo, course.id)
    with pytest.raises(ValueError, match="invalid_time_range"):
        repo.create_schedule(class_id=group.id, lesson_date="2024-06-10", start_time="19:00", end_time="19:00")
    with pytest.raises(LookupError):
        repo.create_schedule(class_id=999, lesson_date="2024-06-10", start_time="18:00", end_time="19:00")
    sched = repo.create_schedule(class_id=group.id, lesson_date="2024-06-10", start_time="18:00:00",
                                 end_time="19:30", room_or_link="  ")
    assert sched.start_time == "18:00"
    assert sched.room_or_link is None


def test_deleting_schedule_drops_attendance(repo):
    course = _course(repo)
    group = _class(repo, course.id, teacher_id=10)
    repo.register_student(course.id, 1)
    repo.assign_student_to_class(course_id=course.id, student_id=1, class_id=group.id)
    sched = repo.create_schedule(class_id=group.id, lesson_date="2024-06-10", start_time="18:00", end_time="19:00")
    assert repo.save_attendance(class_id=group.id, teacher_id=10, lesson_date="2024-06-10",
                                records=[{"student_id": 1, "status": "present"},
                                         {"student_id": 1, "status": "late"}]) == 1
    assert repo.get_attendance(class_id=group.id, teacher_id=10, lesson_date="2024-06-10")[0]["status"] == "late"
    with pytest.raises(PermissionError):
        repo.get_attendance(class_id=group.id, teacher_id=11, lesson_date="2024-06-10")
    assert repo.delete_schedule(sched.id) is True
    assert repo.attendance == {}


def test_delete_course_guards(repo):
    course = _course(repo)
    _class(repo, course.id)
    with pytest.raises(ValueError, match="course_has_classes"):
        repo.delete_course(course.id)
    assert repo.delete_course(999) is False


def test_stats(repo):
    course = _course(repo)
    group = _class(repo, course.id, teacher_id=10)
    _class(repo, course.id, teacher_id=10, name="Later", start="2024-07-01", end="2024-09-01")
    repo.register_student(course.id, 1)
    repo.assign_student_to_class(course_id=course.id, student_id=1, class_id=group.id)
    repo.create_schedule(class_id=group.id, lesson_date="2024-06-20", start_time="18:00", end_time="19:00")
    today = date(2024, 6, 12)
    assert repo.teacher_stats(10, today) == {
        "totalClasses": 2,
        "totalStudents": 1,
        "activeClasses": 1,
        "upcomingClasses": 1,
        "completedClasses": 0,
    }
    assert repo.admin_stats(today)["upcomingLessons"] == 1
    assert repo.student_stats(1, today)["pendingRegistrations"] == 1
    assert repo.user_activity(10) == {"registrations": 0, "classes_taught": 2}


def test_reopening_rejected_registration_respects_capacity(repo):
    course = _course(repo, max_students=1)
    first = repo.register_student(course.id, 1)
    repo.set_registration_status(first.id, "rejected")
    repo.register_student(course.id, 2)

    with pytest.raises(ValueError, match="course_full"):
        repo.set_registration_status(first.id, "approved")
    with pytest.raises(ValueError, match="course_full"):
        repo.set_registration_status(first.id, "pending")
    assert repo.registrations[first.id].status == "rejected"
    assert repo.get_course(course.id).enrolled_count == 1
    assert repo.list_notifications(1)[0].type == "registration_rejected"

    repo.unregister_student(course.id, 2)
    assert repo.set_registration_status(first.id, "approved").status == "approved"


def _placed_school(repo):
    """Two courses, one class with two students and attendance on two lessons."""
    ielts = _course(repo, "IELTS Foundation")
    kids = _course(repo, "Kids English", level="Beginner")
    group = _class(repo, ielts.id, teacher_id=10)
    for sid in (1, 2):
        repo.register_student(ielts.id, sid)
        repo.assign_student_to_class(course_id=ielts.id, student_id=sid, class_id=group.id)
    repo.register_student(kids.id, 1)
    rejected = repo.register_student(kids.id, 3)
    repo.set_registration_status(rejected.id, "rejected")
    for day in ("2024-03-20", "2024-06-10"):
        repo.create_schedule(class_id=group.id, lesson_date=day, start_time="18:00", end_time="19:00")
    repo.save_attendance(class_id=group.id, teacher_id=10, lesson_date="2024-03-20",
                         records=[{"student_id": 1, "status": "present"}, {"student_id": 2, "status": "absent"}])
    repo.save_attendance(class_id=group.id, teacher_id=10, lesson_date="2024-06-10",
                         records=[{"student_id": 1, "status": "present"}, {"student_id": 2, "status": "late"}])
    # Pin registration dates so periods are deterministic
    for reg in repo.registrations.values():
        reg.registered_at = "2024-06-05T09:00:00+00:00"
    repo.registrations[1].registered_at = "2024-02-01T09:00:00+00:00"
    return ielts, kids, group


def test_analytics_all_time(repo):
    ielts, kids, _ = _placed_school(repo)
    data = repo.analytics("all", date(2024, 6, 12))
    assert data["since"] is None
    assert data["totalCourses"] == 2 and data["totalClasses"] == 1
    assert data["enrollmentByLevel"] == [
        {"level": "Beginner", "count": 1},
        {"level": "Intermediate", "count": 2},
    ]
    assert [(c["course_name"], c["enrolled_count"], c["capacity"]) for c in data["courseEnrollments"]] == [
        ("IELTS Foundation", 2, CLASS_CAPACITY),
        ("Kids English", 1, 0),
    ]
    assert data["attendanceStats"] == {
        "totalRecords": 4, "present": 2, "absent": 1, "late": 1, "averageAttendance": 50,
    }


@pytest.mark.parametrize(
    "period,since,ielts_enrolled,records",
    [
        ("month", "2024-06-01", 1, 2),
        ("quarter", "2024-04-01", 1, 2),
        ("year", "2024-01-01", 2, 4),
    ],
)
def test_analytics_periods(repo, period, since, ielts_enrolled, records):
    _placed_school(repo)
    data = repo.analytics(period, date(2024, 6, 12))
    assert data["since"] == since
    ielts = next(c for c in data["courseEnrollments"] if c["course_name"] == "IELTS Foundation")
    assert ielts["enrolled_count"] == ielts_enrolled
    assert data["attendanceStats"]["totalRecords"] == records


def test_analytics_rejects_unknown_period(repo):
    with pytest.raises(ValueError, match="invalid_period"):
        repo.analytics("decade", date(2024, 6, 12))


def test_course_analytics_window(repo):
    ielts, _, _ = _placed_school(repo)
    data = repo.course_analytics(ielts.id, 30, date(2024, 6, 12))
    assert (data["since"], data["until"]) == ("2024-05-13", "2024-06-12")
    assert data["registrations"] == [{"date": "2024-06-05", "count": 1}]
    assert data["registrationsByStatus"] == {"pending": 1, "approved": 0, "rejected": 0}
    assert data["lessons"] == 1
    assert data["attendanceStats"]["late"] == 1
    assert repo.course_analytics(ielts.id, 365, date(2024, 6, 12))["lessons"] == 2

    for days in (0, 366, True):
        with pytest.raises(ValueError, match="invalid_days"):
            repo.course_analytics(ielts.id, days, date(2024, 6, 12))
    with pytest.raises(LookupError):
        repo.course_analytics(999, 30, date(2024, 6, 12))


def test_count_unread(repo):
    first = repo.create_notification(user_id=1, type="registration_pending", title="a", message="a")
    repo.create_notification(user_id=1, type="registration_pending", title="b", message="b")
    repo.create_notification(user_id=2, type="registration_pending", title="c", message="c")
    repo.mark_notification_read(first.id, 1)
    assert repo.count_unread(1) == 1
    assert repo.count_unread(3) == 0
