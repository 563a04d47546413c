"""Clock-in / clock-out attendance from QR or ID scans.

The first scan of the day for a class clocks the student in, the second one
clocks them out and fixes the session duration; any further scan leaves the
record alone. ``reconcile`` holds that state machine and never touches the
database; ``process_scan`` resolves the student and today's sessions and
persists each class independently.
"""
import logging
import math
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import List, Optional

from django.db import DatabaseError, transaction
from django.db.models import Q
from django.utils import timezone

from .exceptions import AcademicsError, StudentNotFoundError
from .models import AttendanceRecord, ClassSession, Student

logger = logging.getLogger(__name__)


class ScanAction(str, Enum):
    CLOCK_IN = "clock_in"
    CLOCK_OUT = "clock_out"
    NO_OP = "no_op"


class Outcome(str, Enum):
    CLOCKED_IN = "clocked_in"
    CLOCKED_OUT = "clocked_out"
    ALREADY_COMPLETED = "already_completed"
    NO_SESSION = "no_session"
    ERROR = "error"


ACTION_OUTCOMES = {
    ScanAction.CLOCK_IN: Outcome.CLOCKED_IN,
    ScanAction.CLOCK_OUT: Outcome.CLOCKED_OUT,
    ScanAction.NO_OP: Outcome.ALREADY_COMPLETED,
}


def derive_duration(clock_in: Optional[datetime], clock_out: Optional[datetime]) -> Optional[int]:
    """Whole minutes between the two clock times, rounded half up."""
    if clock_in is None or clock_out is None:
        return None
    minutes = (clock_out - clock_in).total_seconds() / 60
    return int(math.floor(minutes + 0.5))


@dataclass(frozen=True)
class ClockState:
    status: str = "present"
    clock_in_time: Optional[datetime] = None
    clock_out_time: Optional[datetime] = None
    session_duration: Optional[int] = None

    @classmethod
    def from_record(cls, record: AttendanceRecord) -> "ClockState":
        return cls(
            status=record.status,
            clock_in_time=record.clock_in_time,
            clock_out_time=record.clock_out_time,
            session_duration=record.session_duration,
        )


@dataclass(frozen=True)
class ReconcileResult:
    action: ScanAction
    record: ClockState


def reconcile(existing: Optional[ClockState], now: datetime) -> ReconcileResult:
    if existing is None or existing.clock_in_time is None:
        # A hand-made record without a clock-in counts as not yet arrived.
        base = existing or ClockState()
        clocked_in = replace(base, status="present", clock_in_time=now, clock_out_time=None, session_duration=None)
        return ReconcileResult(ScanAction.CLOCK_IN, clocked_in)
    if existing.clock_out_time is None:
        clocked_out = replace(
            existing,
            clock_out_time=now,
            session_duration=derive_duration(existing.clock_in_time, now),
        )
        return ReconcileResult(ScanAction.CLOCK_OUT, clocked_out)
    return ReconcileResult(ScanAction.NO_OP, existing)


@dataclass
class ClassOutcome:
    enrollment_id: int
    class_id: int
    course_code: str
    outcome: Outcome
    message: str
    record_id: Optional[int] = None

    def to_dict(self):
        return {
            "enrollment_id": self.enrollment_id,
            "class_id": self.class_id,
            "course_code": self.course_code,
            "outcome": self.outcome.value,
            "message": self.message,
            "record_id": self.record_id,
        }


@dataclass
class ScanReport:
    code: str
    student: Optional[Student] = None
    outcomes: List[ClassOutcome] = field(default_factory=list)

    @property
    def found(self) -> bool:
        return self.student is not None

    @property
    def processed_any(self) -> bool:
        return any(o.outcome not in (Outcome.NO_SESSION, Outcome.ERROR) for o in self.outcomes)

    @property
    def messages(self) -> List[str]:
        if not self.found:
            return ["Student not found"]
        if not any(o.outcome != Outcome.NO_SESSION for o in self.outcomes):
            return [f"No scheduled sessions today for {self.student.first_name} {self.student.last_name}"]
        return [o.message for o in self.outcomes if o.outcome != Outcome.NO_SESSION]

    def to_dict(self):
        return {
            "code": self.code,
            "found": self.found,
            "student": None if not self.found else {
                "id": self.student.pk,
                "student_id": self.student.student_id,
                "name": f"{self.student.first_name} {self.student.last_name}",
            },
            "outcomes": [o.to_dict() for o in self.outcomes],
            "messages": self.messages,
        }


def find_student(code: str) -> Student:
    code = (code or "").strip()
    student = None
    if code:
        student = Student.objects.filter(Q(qr_code=code) | Q(student_id=code)).first()
    if student is None:
        raise StudentNotFoundError(code)
    return student


def todays_session(enrollment, today) -> Optional[ClassSession]:
    return (
        ClassSession.objects.filter(klass_id=enrollment.klass_id, scheduled_date=today)
        .exclude(status="cancelled")
        .order_by("scheduled_start_time")
        .first()
    )


def apply_scan(enrollment, session, now: datetime, marked_by=None):
    """Reconcile one (enrollment, session) pair and write the result."""
    with transaction.atomic():
        record = (
            AttendanceRecord.objects.select_for_update()
            .filter(enrollment=enrollment, class_session=session)
            .first()
        )
        result = reconcile(ClockState.from_record(record) if record else None, now)
        if result.action == ScanAction.NO_OP:
            return result.action, record
        if record is None:
            record = AttendanceRecord(enrollment=enrollment, class_session=session, marked_by=marked_by)
        state = result.record
        record.status = state.status
        record.clock_in_time = state.clock_in_time
        record.clock_out_time = state.clock_out_time
        record.marked_at = now
        record.save()
    return result.action, record


def _outcome_message(student, course_code, outcome):
    name = f"{student.first_name} {student.last_name}"
    if outcome == Outcome.CLOCKED_IN:
        return f"{name} clocked IN to {course_code}"
    if outcome == Outcome.CLOCKED_OUT:
        return f"{name} clocked OUT of {course_code}"
    if outcome == Outcome.ALREADY_COMPLETED:
        return f"{name} already completed attendance for {course_code}"
    if outcome == Outcome.NO_SESSION:
        return f"No scheduled session today for {course_code}"
    return f"Error recording attendance for {name} in {course_code}"


def process_scan(code: str, now: Optional[datetime] = None, marked_by=None, classes=None) -> ScanReport:
    """Clock a scanned student in or out of every class meeting today.

    ``classes`` optionally narrows the classes considered (for example to the
    ones the scanning user may see). Each class is written in its own
    transaction, so a failure in one does not undo the others.
    """
    now = now or timezone.now()
    today = timezone.localdate(now) if timezone.is_aware(now) else now.date()
    report = ScanReport(code=code)
    try:
        student = find_student(code)
    except StudentNotFoundError:
        logger.info("Scan %r did not match any student", code)
        return report
    report.student = student

    enrollments = student.enrollments.filter(status="enrolled").select_related("klass__course")
    if classes is not None:
        enrollments = enrollments.filter(klass__in=classes)

    for enrollment in enrollments:
        course_code = enrollment.klass.course.code
        session = todays_session(enrollment, today)
        if session is None:
            report.outcomes.append(ClassOutcome(
                enrollment.pk, enrollment.klass_id, course_code, Outcome.NO_SESSION,
                _outcome_message(student, course_code, Outcome.NO_SESSION),
            ))
            continue
        try:
            action, record = apply_scan(enrollment, session, now, marked_by=marked_by)
        except (DatabaseError, AcademicsError):
            logger.exception("Scan for student %s failed in class %s", student.student_id, enrollment.klass_id)
            report.outcomes.append(ClassOutcome(
                enrollment.pk, enrollment.klass_id, course_code, Outcome.ERROR,
                _outcome_message(student, course_code, Outcome.ERROR),
            ))
            continue
        outcome = ACTION_OUTCOMES[action]
        logger.info("Student %s %s for class %s", student.student_id, outcome.value, enrollment.klass_id)
        report.outcomes.append(ClassOutcome(
            enrollment.pk, enrollment.klass_id, course_code, outcome,
            _outcome_message(student, course_code, outcome),
            record_id=record.pk if record else None,
        ))
    return report
