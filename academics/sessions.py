"""Class-session calendar generation.

A class meets on a fixed set of weekdays for the whole semester. The
generator walks the semester one day at a time, skips holidays, and tags the
last meeting inside the midterm and final windows so instructors can find the
exam days.
"""
import logging
from dataclasses import dataclass, field, replace
from datetime import date, datetime, time, timedelta
from typing import FrozenSet, Iterable, List, Optional, Tuple

from django.db import transaction

from .exceptions import MissingScheduleError
from .models import DAY_NAMES, ClassSession

logger = logging.getLogger(__name__)

# Monday=0 ... Sunday=6, matching date.weekday()
DAY_CODES = {
    "m": 0, "t": 1, "w": 2, "r": 3, "f": 4, "s": 5, "u": 6,
    "mon": 0, "tue": 1, "wed": 2, "thu": 3, "fri": 4, "sat": 5, "sun": 6,
}

DateRange = Tuple[date, date]


def _parse_time(value) -> time:
    if isinstance(value, time):
        return value
    try:
        return datetime.strptime(str(value).strip(), "%H:%M").time()
    except (TypeError, ValueError):
        raise ValueError(f"Invalid time {value!r}; expected HH:MM.") from None


@dataclass(frozen=True)
class Schedule:
    days: Tuple[str, ...]
    start_time: time
    end_time: time

    @classmethod
    def from_json(cls, data, strict: bool = False) -> "Schedule":
        """Build a schedule from the JSON stored on a class.

        With ``strict`` the day codes must all be known and non-empty and the
        end time must come after the start time; otherwise unknown codes are
        carried along and ignored when matching weekdays.
        """
        if not isinstance(data, dict):
            raise ValueError("Schedule must be an object with days, startTime and endTime.")
        days = data.get("days") or []
        if isinstance(days, str):
            days = [days]
        days = tuple(str(d).strip() for d in days)
        start = _parse_time(data.get("startTime"))
        end = _parse_time(data.get("endTime"))
        if strict:
            unknown = [d for d in days if d.lower() not in DAY_CODES]
            if unknown:
                raise ValueError(f"Unknown day code(s): {', '.join(unknown)}")
            if not days:
                raise ValueError("Schedule needs at least one day.")
            if end <= start:
                raise ValueError("End time must be after start time.")
        return cls(days=days, start_time=start, end_time=end)

    @property
    def weekdays(self) -> FrozenSet[int]:
        return frozenset(DAY_CODES[d.lower()] for d in self.days if d.lower() in DAY_CODES)

    @property
    def duration_minutes(self) -> int:
        start = self.start_time.hour * 60 + self.start_time.minute
        end = self.end_time.hour * 60 + self.end_time.minute
        return end - start


@dataclass(frozen=True)
class SemesterCalendar:
    start_date: date
    end_date: date
    midterm_range: Optional[DateRange] = None
    final_range: Optional[DateRange] = None

    @classmethod
    def from_semester(cls, semester) -> "SemesterCalendar":
        return cls(
            start_date=semester.start_date,
            end_date=semester.end_date,
            midterm_range=semester.midterm_range,
            final_range=semester.final_range,
        )


@dataclass(frozen=True)
class ClassSessionDraft:
    scheduled_date: date
    day_of_week: str
    scheduled_start_time: time
    scheduled_end_time: time
    session_type: str = field(default="regular")

    @property
    def is_midterm(self) -> bool:
        return self.session_type == "midterm"

    @property
    def is_final(self) -> bool:
        return self.session_type == "final"


def _within(d: date, window: Optional[DateRange]) -> bool:
    return window is not None and window[0] <= d <= window[1]


def generate(
    schedule: Optional[Schedule],
    semester: Optional[SemesterCalendar],
    holidays: Iterable[date] = (),
) -> List[ClassSessionDraft]:
    if schedule is None or semester is None:
        raise MissingScheduleError("A schedule and a semester are required to generate sessions.")

    weekdays = schedule.weekdays
    skip = set(holidays)
    drafts: List[ClassSessionDraft] = []
    midterm_idx: List[int] = []
    final_idx: List[int] = []

    d = semester.start_date
    while d <= semester.end_date:
        if d.weekday() in weekdays and d not in skip:
            if _within(d, semester.midterm_range):
                midterm_idx.append(len(drafts))
            if _within(d, semester.final_range):
                final_idx.append(len(drafts))
            drafts.append(ClassSessionDraft(
                scheduled_date=d,
                day_of_week=DAY_NAMES[d.weekday()],
                scheduled_start_time=schedule.start_time,
                scheduled_end_time=schedule.end_time,
            ))
        d += timedelta(days=1)

    # Final is tagged after midterm, so it wins when the windows overlap.
    if midterm_idx:
        i = midterm_idx[-1]
        drafts[i] = replace(drafts[i], session_type="midterm")
    if final_idx:
        i = final_idx[-1]
        drafts[i] = replace(drafts[i], session_type="final")
    return drafts


def drafts_for_class(klass) -> List[ClassSessionDraft]:
    semester = klass.semester if klass.semester_id else None
    schedule = Schedule.from_json(klass.schedule) if klass.schedule else None
    calendar = SemesterCalendar.from_semester(semester) if semester else None
    holidays = list(semester.holidays.values_list("date", flat=True)) if semester else []
    return generate(schedule, calendar, holidays)


def create_sessions_for_class(klass) -> List[ClassSession]:
    """Persist the generated sessions for a class in one bulk insert.

    Callers decide whether the class may receive sessions; nothing here checks
    for sessions that already exist.
    """
    drafts = drafts_for_class(klass)
    course_number = klass.course.code if klass.course_id else ""
    rows = [
        ClassSession(
            klass=klass,
            course_number=course_number,
            scheduled_date=draft.scheduled_date,
            day_of_week=draft.day_of_week,
            scheduled_start_time=draft.scheduled_start_time,
            scheduled_end_time=draft.scheduled_end_time,
            session_type=draft.session_type,
        )
        for draft in drafts
    ]
    if not rows:
        logger.info("No sessions to generate for class %s", klass.pk)
        return []
    with transaction.atomic():
        created = ClassSession.objects.bulk_create(rows)
    logger.info("Generated %d sessions for class %s", len(created), klass.pk)
    return created


def regenerate_sessions_for_class(klass) -> List[ClassSession]:
    """Drop every session of the class (and its attendance) and generate again."""
    with transaction.atomic():
        deleted, _ = ClassSession.objects.filter(klass=klass).delete()
        if deleted:
            logger.warning("Deleted %d rows while regenerating sessions for class %s", deleted, klass.pk)
        return create_sessions_for_class(klass)
