from datetime import date

import pytest
from django.contrib.auth import get_user_model
from django.contrib.auth.models import Group

from academics.models import (
    Class,
    Course,
    Enrollment,
    Holiday,
    School,
    SchoolSystem,
    Semester,
    StaffProfile,
    Student,
)


MWF_SCHEDULE = {"days": ["M", "W", "F"], "startTime": "08:00", "endTime": "09:30"}


@pytest.fixture
def school_system(db):
    return SchoolSystem.objects.create(name="Central District")


@pytest.fixture
def school(school_system):
    return School.objects.create(name="Central Tech", school_system=school_system)


@pytest.fixture
def course(school_system):
    return Course.objects.create(code="AUTO-302", name="Transmission Repair", school_system=school_system)


@pytest.fixture
def semester(school_system):
    sem = Semester.objects.create(
        name="Spring 2026",
        start_date=date(2026, 1, 19),
        end_date=date(2026, 5, 15),
        midterm_start_date=date(2026, 3, 2),
        midterm_end_date=date(2026, 3, 6),
        final_start_date=date(2026, 5, 11),
        final_end_date=date(2026, 5, 15),
        school_system=school_system,
    )
    Holiday.objects.create(semester=sem, date=date(2026, 1, 19), name="MLK Day")
    return sem


@pytest.fixture
def klass(course, semester, school):
    # Sessions are generated by the post_save hook
    return Class.objects.create(
        section="Morning A", course=course, semester=semester, school=school, schedule=dict(MWF_SCHEDULE),
    )


@pytest.fixture
def student(school_system):
    return Student.objects.create(
        student_id="S-1001", first_name="Ana", last_name="Reyes",
        email="ana@example.com", school_system=school_system,
    )


@pytest.fixture
def enrollment(student, klass):
    return Enrollment.objects.create(student=student, klass=klass)


@pytest.fixture
def make_user(db):
    """Create a user in the group for ``role`` with a staff profile."""
    User = get_user_model()

    def _make(username, group=None, school_system=None, **extra):
        user = User.objects.create_user(username=username, password="pass12345", **extra)
        if group:
            user.groups.add(Group.objects.get_or_create(name=group)[0])
        StaffProfile.objects.create(user=user, school_system=school_system)
        return user

    return _make
