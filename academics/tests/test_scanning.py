from datetime import datetime, timedelta, timezone as dt_timezone

import pytest
from django.db import DatabaseError

from academics import scanning
from academics.models import AttendanceRecord, Class, Course, Enrollment
from academics.scanning import (
    ClockState,
    Outcome,
    ScanAction,
    derive_duration,
    process_scan,
    reconcile,
)


CLOCK_IN = datetime(2026, 2, 2, 8, 2, tzinfo=dt_timezone.utc)
CLOCK_OUT = datetime(2026, 2, 2, 9, 31, tzinfo=dt_timezone.utc)


def test_derive_duration_whole_minutes():
    assert derive_duration(CLOCK_IN, CLOCK_OUT) == 89


def test_derive_duration_rounds_half_up():
    assert derive_duration(CLOCK_IN, CLOCK_IN + timedelta(seconds=30)) == 1
    assert derive_duration(CLOCK_IN, CLOCK_IN + timedelta(seconds=29)) == 0
    assert derive_duration(CLOCK_IN, CLOCK_IN + timedelta(minutes=10, seconds=30)) == 11


def test_derive_duration_needs_both_times():
    assert derive_duration(CLOCK_IN, None) is None
    assert derive_duration(None, CLOCK_OUT) is None


def test_first_scan_clocks_in():
    result = reconcile(None, CLOCK_IN)
    assert result.action == ScanAction.CLOCK_IN
    assert result.record.status == "present"
    assert result.record.clock_in_time == CLOCK_IN
    assert result.record.clock_out_time is None
    assert result.record.session_duration is None


def test_second_scan_clocks_out_with_duration():
    result = reconcile(ClockState(clock_in_time=CLOCK_IN), CLOCK_OUT)
    assert result.action == ScanAction.CLOCK_OUT
    assert result.record.clock_in_time == CLOCK_IN
    assert result.record.clock_out_time == CLOCK_OUT
    assert result.record.session_duration == 89


def test_third_scan_changes_nothing():
    done = ClockState(clock_in_time=CLOCK_IN, clock_out_time=CLOCK_OUT, session_duration=89)
    result = reconcile(done, CLOCK_OUT + timedelta(minutes=5))
    assert result.action == ScanAction.NO_OP
    assert result.record == done


def test_record_without_clock_in_is_clocked_in():
    marked_absent = ClockState(status="absent")
    result = reconcile(marked_absent, CLOCK_IN)
    assert result.action == ScanAction.CLOCK_IN
    assert result.record.status == "present"
    assert result.record.clock_in_time == CLOCK_IN


@pytest.mark.django_db
def test_scan_unknown_code(enrollment):
    report = process_scan("nope", now=CLOCK_IN)
    assert not report.found
    assert report.messages == ["Student not found"]
    assert report.to_dict()["student"] is None


@pytest.mark.django_db
def test_scan_in_then_out_then_noop(enrollment, student):
    first = process_scan(student.qr_code, now=CLOCK_IN)
    assert [o.outcome for o in first.outcomes] == [Outcome.CLOCKED_IN]
    assert first.messages == ["Ana Reyes clocked IN to AUTO-302"]

    second = process_scan(student.qr_code, now=CLOCK_OUT)
    assert [o.outcome for o in second.outcomes] == [Outcome.CLOCKED_OUT]
    assert second.messages == ["Ana Reyes clocked OUT of AUTO-302"]

    record = AttendanceRecord.objects.get(enrollment=enrollment)
    assert record.class_session.scheduled_date.isoformat() == "2026-02-02"
    assert record.clock_in_time == CLOCK_IN
    assert record.clock_out_time == CLOCK_OUT
    assert record.session_duration == 89

    third = process_scan(student.qr_code, now=CLOCK_OUT + timedelta(minutes=3))
    assert [o.outcome for o in third.outcomes] == [Outcome.ALREADY_COMPLETED]
    record.refresh_from_db()
    assert record.clock_out_time == CLOCK_OUT
    assert AttendanceRecord.objects.count() == 1


@pytest.mark.django_db
def test_scan_by_student_id(enrollment, student):
    report = process_scan("  S-1001 ", now=CLOCK_IN)
    assert report.student == student
    assert report.processed_any


@pytest.mark.django_db
def test_scan_on_day_without_session(enrollment, student):
    tuesday = CLOCK_IN + timedelta(days=1)
    report = process_scan(student.qr_code, now=tuesday)
    assert [o.outcome for o in report.outcomes] == [Outcome.NO_SESSION]
    assert not report.processed_any
    assert report.messages == ["No scheduled sessions today for Ana Reyes"]
    assert not AttendanceRecord.objects.exists()


@pytest.mark.django_db
def test_scan_clocks_into_every_class_meeting_today(enrollment, student, semester, school, school_system):
    other_course = Course.objects.create(code="WELD-101", name="Welding Basics", school_system=school_system)
    monday_only = Class.objects.create(
        section="Evening", course=other_course, semester=semester, school=school,
        schedule={"days": ["M"], "startTime": "18:00", "endTime": "20:00"},
    )
    tuesday_only = Class.objects.create(
        section="Lab", course=other_course, semester=semester, school=school,
        schedule={"days": ["T"], "startTime": "10:00", "endTime": "11:00"},
    )
    Enrollment.objects.create(student=student, klass=monday_only)
    Enrollment.objects.create(student=student, klass=tuesday_only)

    report = process_scan(student.qr_code, now=CLOCK_IN)
    by_class = {o.class_id: o.outcome for o in report.outcomes}
    assert by_class == {
        enrollment.klass_id: Outcome.CLOCKED_IN,
        monday_only.id: Outcome.CLOCKED_IN,
        tuesday_only.id: Outcome.NO_SESSION,
    }
    assert AttendanceRecord.objects.count() == 2
    assert "No scheduled session" not in " ".join(report.messages)


@pytest.mark.django_db
def test_dropped_enrollment_is_not_scanned(enrollment, student):
    enrollment.status = "dropped"
    enrollment.save()
    report = process_scan(student.qr_code, now=CLOCK_IN)
    assert report.found
    assert report.outcomes == []
    assert not AttendanceRecord.objects.exists()


@pytest.mark.django_db
def test_cancelled_session_is_not_used(enrollment, student):
    enrollment.klass.sessions.filter(scheduled_date="2026-02-02").update(status="cancelled")
    report = process_scan(student.qr_code, now=CLOCK_IN)
    assert [o.outcome for o in report.outcomes] == [Outcome.NO_SESSION]


@pytest.mark.django_db
def test_scan_limited_to_given_classes(enrollment, student):
    report = process_scan(student.qr_code, now=CLOCK_IN, classes=Class.objects.none())
    assert report.outcomes == []


@pytest.mark.django_db
def test_report_to_dict(enrollment, student):
    data = process_scan(student.qr_code, now=CLOCK_IN).to_dict()
    assert data["found"] is True
    assert data["student"]["student_id"] == "S-1001"
    assert data["outcomes"][0]["outcome"] == "clocked_in"
    assert data["outcomes"][0]["record_id"] == AttendanceRecord.objects.get().pk


@pytest.mark.django_db
def test_failure_in_one_class_does_not_block_others(enrollment, student, semester, school, school_system, monkeypatch):
    other_course = Course.objects.create(code="WELD-101", name="Welding Basics", school_system=school_system)
    evening = Class.objects.create(
        section="Evening", course=other_course, semester=semester, school=school,
        schedule={"days": ["M"], "startTime": "18:00", "endTime": "20:00"},
    )
    Enrollment.objects.create(student=student, klass=evening)

    real_apply_scan = scanning.apply_scan

    def failing_for_evening(enr, session, now, marked_by=None):
        if enr.klass_id == evening.id:
            raise DatabaseError("database is locked")
        return real_apply_scan(enr, session, now, marked_by=marked_by)

    monkeypatch.setattr(scanning, "apply_scan", failing_for_evening)

    report = process_scan(student.qr_code, now=CLOCK_IN)
    by_class = {o.class_id: o.outcome for o in report.outcomes}
    assert by_class == {enrollment.klass_id: Outcome.CLOCKED_IN, evening.id: Outcome.ERROR}
    assert report.processed_any
    assert "Error recording attendance for Ana Reyes in WELD-101" in report.messages

    record = AttendanceRecord.objects.get()
    assert record.enrollment == enrollment
    assert record.clock_in_time == CLOCK_IN
