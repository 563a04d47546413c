from datetime import date, datetime, time, timedelta

import pytest
from django.core.exceptions import ValidationError
from django.utils import timezone

from academics.exceptions import CrossClassMismatchError
from academics.models import (
    AttendanceRecord,
    Class,
    ClassSession,
    Enrollment,
    Semester,
    Student,
)

from .conftest import MWF_SCHEDULE


@pytest.mark.django_db
def test_attendance_duration_follows_clock_times(enrollment):
    session = enrollment.klass.sessions.get(scheduled_date=date(2026, 2, 2))
    start = timezone.make_aware(datetime(2026, 2, 2, 8, 2))
    rec = AttendanceRecord.objects.create(
        enrollment=enrollment, class_session=session,
        clock_in_time=start, clock_out_time=start + timedelta(minutes=89),
        session_duration=5,
    )
    assert rec.session_duration == 89

    rec.clock_out_time = None
    rec.save()
    rec.refresh_from_db()
    assert rec.session_duration is None


@pytest.mark.django_db
def test_attendance_rejects_session_from_other_class(enrollment, course, semester, school):
    other = Class.objects.create(section="B", course=course, semester=semester, school=school,
                                 schedule=dict(MWF_SCHEDULE))
    foreign_session = other.sessions.first()
    rec = AttendanceRecord(enrollment=enrollment, class_session=foreign_session)
    with pytest.raises(CrossClassMismatchError):
        rec.save()
    with pytest.raises(ValidationError):
        rec.full_clean()


@pytest.mark.django_db
def test_deleting_class_cascades(enrollment):
    klass = enrollment.klass
    AttendanceRecord.objects.create(enrollment=enrollment, class_session=klass.sessions.first())
    klass.delete()
    assert not ClassSession.objects.exists()
    assert not Enrollment.objects.exists()
    assert not AttendanceRecord.objects.exists()


@pytest.mark.django_db
def test_enrollment_timestamps(student, klass):
    e = Enrollment.objects.create(student=student, klass=klass)
    assert e.enrolled_at is not None
    assert e.dropped_at is None
    e.status = "dropped"
    e.save()
    assert e.dropped_at is not None

    waiting = Enrollment.objects.create(
        student=Student.objects.create(student_id="S-2", first_name="B", last_name="C",
                                       email="b@example.com", school_system=student.school_system),
        klass=klass, status="waitlisted", waitlist_position=1,
    )
    assert waiting.enrolled_at is None


@pytest.mark.django_db
def test_student_gets_qr_code(student):
    assert student.qr_code
    blank = Student.objects.create(student_id="S-3", first_name="D", last_name="E", email="d@example.com",
                                   school_system=student.school_system, qr_code="")
    assert blank.qr_code and blank.qr_code != student.qr_code


@pytest.mark.django_db
def test_session_day_name_and_moved_start_time(klass):
    session = klass.sessions.get(scheduled_date=date(2026, 1, 21))
    assert session.day_of_week == "Wednesday"
    assert not session.is_midterm and not session.is_final

    session.scheduled_start_time = time(10, 0)
    session.save()
    session.refresh_from_db()
    assert session.scheduled_end_time == time(11, 30)


@pytest.mark.django_db
def test_session_type_drives_exam_flags(klass):
    session = klass.sessions.get(scheduled_date=date(2026, 3, 6))
    assert session.is_midterm
    session.session_type = "final"
    session.save()
    assert session.is_final and not session.is_midterm


@pytest.mark.django_db
def test_semester_validation(school_system):
    sem = Semester(
        name="Bad", start_date=date(2026, 1, 19), end_date=date(2026, 5, 15),
        midterm_start_date=date(2026, 3, 6), midterm_end_date=date(2026, 3, 2),
        final_start_date=date(2026, 5, 11), school_system=school_system,
    )
    with pytest.raises(ValidationError) as exc:
        sem.full_clean()
    assert "midterm_end_date" in exc.value.message_dict
    assert "final_end_date" in exc.value.message_dict

    sem.midterm_start_date, sem.midterm_end_date = date(2026, 6, 1), date(2026, 6, 5)
    sem.final_start_date = sem.final_end_date = None
    with pytest.raises(ValidationError) as exc:
        sem.full_clean()
    assert "midterm_start_date" in exc.value.message_dict


@pytest.mark.django_db
def test_class_validation(klass, school_system):
    klass.schedule = {"days": ["M", "Xyz"], "startTime": "08:00", "endTime": "09:00"}
    with pytest.raises(ValidationError) as exc:
        klass.full_clean()
    assert "schedule" in exc.value.message_dict

    klass.schedule = dict(MWF_SCHEDULE)
    klass.full_clean()


@pytest.mark.django_db
def test_class_with_unusable_schedule_is_still_saved(course, semester, school):
    klass = Class.objects.create(section="Broken", course=course, semester=semester, school=school,
                                 schedule={"days": ["M"], "startTime": "later", "endTime": "09:00"})
    assert Class.objects.filter(pk=klass.pk).exists()
    assert not klass.sessions.exists()


@pytest.mark.django_db
def test_session_move_past_midnight_is_rejected(klass):
    session = klass.sessions.get(scheduled_date=date(2026, 1, 21))
    session.scheduled_start_time = time(23, 30)
    with pytest.raises(ValidationError) as exc:
        session.full_clean()
    assert "scheduled_start_time" in exc.value.message_dict
    with pytest.raises(ValidationError):
        session.save()
    session.refresh_from_db()
    assert session.scheduled_start_time == time(8, 0)
    assert session.scheduled_end_time == time(9, 30)


@pytest.mark.django_db
def test_hand_made_session_gets_course_number(klass):
    session = ClassSession.objects.create(
        klass=klass, scheduled_date=date(2026, 1, 24),
        scheduled_start_time=time(9, 0), scheduled_end_time=time(12, 0), session_type="lab",
    )
    assert session.course_number == "AUTO-302"
    assert session.day_of_week == "Saturday"

    custom = ClassSession.objects.create(
        klass=klass, scheduled_date=date(2026, 1, 31), course_number="AUTO-302L",
        scheduled_start_time=time(9, 0), scheduled_end_time=time(12, 0),
    )
    assert custom.course_number == "AUTO-302L"
