import uuid
from datetime import datetime, timedelta

from django.db import models
from django.conf import settings
from django.core.exceptions import ValidationError
from django.utils import timezone

from .exceptions import CrossClassMismatchError


DAY_NAMES = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")


def _default_schedule():
    return {"days": ["M", "W", "F"], "startTime": "08:00", "endTime": "09:30"}


def _new_qr_code():
    return str(uuid.uuid4())


class SchoolSystem(models.Model):
    name = models.CharField(max_length=150, unique=True)
    subdomain = models.CharField(
        max_length=63, unique=True, blank=True, null=True,
        help_text="Subdomain for multi-tenant URLs (e.g., district1)",
    )

    class Meta:
        ordering = ["name"]

    def __str__(self):
        return self.name


class School(models.Model):
    name = models.CharField(max_length=150)
    address = models.CharField(max_length=255, blank=True)
    school_system = models.ForeignKey(SchoolSystem, on_delete=models.CASCADE, related_name="schools")

    class Meta:
        ordering = ["name"]

    def __str__(self):
        return self.name


class StaffProfile(models.Model):
    """Ties a staff user to the school system they administer or teach in."""
    user = models.OneToOneField(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="staff_profile")
    school_system = models.ForeignKey(
        SchoolSystem, on_delete=models.SET_NULL, null=True, blank=True, related_name="staff",
    )

    def __str__(self):
        return f"{self.user} ({self.school_system or 'no school system'})"


class Course(models.Model):
    code = models.CharField(max_length=32, help_text="Course code (e.g., AUTO-302)")
    name = models.CharField(max_length=150, help_text="Course name (e.g., Transmission Repair)")
    description = models.TextField(blank=True)
    prerequisites = models.TextField(blank=True, help_text="Free text description of prerequisites")
    school_system = models.ForeignKey(SchoolSystem, on_delete=models.CASCADE, related_name="courses")

    class Meta:
        ordering = ["code"]

    def __str__(self):
        return f"{self.code} - {self.name}"


class Semester(models.Model):
    name = models.CharField(max_length=64, help_text="e.g., Fall 2025")
    start_date = models.DateField()
    end_date = models.DateField()
    midterm_start_date = models.DateField(blank=True, null=True)
    midterm_end_date = models.DateField(blank=True, null=True)
    final_start_date = models.DateField(blank=True, null=True)
    final_end_date = models.DateField(blank=True, null=True)
    school_system = models.ForeignKey(SchoolSystem, on_delete=models.CASCADE, related_name="semesters")

    class Meta:
        ordering = ["-start_date"]

    def __str__(self):
        return self.name

    @property
    def midterm_range(self):
        if self.midterm_start_date and self.midterm_end_date:
            return (self.midterm_start_date, self.midterm_end_date)
        return None

    @property
    def final_range(self):
        if self.final_start_date and self.final_end_date:
            return (self.final_start_date, self.final_end_date)
        return None

    def clean(self):
        errors = {}
        if self.start_date and self.end_date and self.start_date > self.end_date:
            errors["end_date"] = "End date must be on or after the start date."
        for label, start_field, end_field in (
            ("Midterm", "midterm_start_date", "midterm_end_date"),
            ("Final", "final_start_date", "final_end_date"),
        ):
            start, end = getattr(self, start_field), getattr(self, end_field)
            if bool(start) != bool(end):
                errors[end_field if start else start_field] = f"{label} period needs both a start and an end date."
                continue
            if not start:
                continue
            if start > end:
                errors[end_field] = f"{label} period ends before it starts."
            elif self.start_date and self.end_date and (start < self.start_date or end > self.end_date):
                errors[start_field] = f"{label} period must fall within the semester."
        if errors:
            raise ValidationError(errors)


class Holiday(models.Model):
    TYPE_CHOICES = (
        ("HOL", "Holiday"),
        ("SUS", "Class Suspension"),
    )

    semester = models.ForeignKey(Semester, on_delete=models.CASCADE, related_name="holidays")
    date = models.DateField()
    kind = models.CharField(max_length=3, choices=TYPE_CHOICES, default="HOL")
    name = models.CharField(max_length=150, help_text="Holiday name (e.g., Labor Day, Thanksgiving)")
    notes = models.CharField(max_length=255, blank=True)

    class Meta:
        unique_together = ("semester", "date")
        ordering = ["date"]
        indexes = [
            models.Index(fields=["semester", "date"], name="idx_holiday_sem_date"),
        ]

    def __str__(self):
        return f"{self.get_kind_display()} - {self.name} ({self.date})"


class Class(models.Model):
    section = models.CharField(max_length=100, help_text="Section identifier (e.g., Morning II, Evening A)")
    max_enrollment = models.PositiveIntegerField(default=30)
    room = models.CharField(max_length=64, blank=True)
    building = models.CharField(max_length=100, blank=True)
    schedule = models.JSONField(default=_default_schedule, help_text="Class schedule: days, start time, end time")
    course = models.ForeignKey(Course, on_delete=models.CASCADE, related_name="classes")
    semester = models.ForeignKey(Semester, on_delete=models.CASCADE, related_name="classes")
    school = models.ForeignKey(School, on_delete=models.CASCADE, related_name="classes")
    instructor = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True,
        related_name="instructor_classes",
    )
    teaching_assistants = models.ManyToManyField(
        settings.AUTH_USER_MODEL, blank=True, related_name="ta_classes",
    )

    class Meta:
        verbose_name_plural = "classes"
        ordering = ["course__code", "section"]

    def __str__(self):
        return f"{self.course.code} {self.section}"

    def clean(self):
        from .sessions import Schedule

        errors = {}
        if self.max_enrollment is not None and self.max_enrollment < 1:
            errors["max_enrollment"] = "Maximum enrollment must be at least 1."
        try:
            Schedule.from_json(self.schedule, strict=True)
        except ValueError as exc:
            errors["schedule"] = str(exc)
        systems = set()
        for rel in ("course", "semester", "school"):
            obj = getattr(self, rel, None) if getattr(self, f"{rel}_id", None) else None
            if obj is not None:
                systems.add(obj.school_system_id)
        if len(systems) > 1:
            errors["school"] = "Course, semester, and school must all belong to the same school system."
        if errors:
            raise ValidationError(errors)

    def scheduled_minutes(self):
        from .sessions import Schedule

        return Schedule.from_json(self.schedule).duration_minutes


class ClassSession(models.Model):
    TYPE_CHOICES = (
        ("regular", "Regular"),
        ("midterm", "Midterm"),
        ("final", "Final"),
        ("lab", "Lab"),
    )
    STATUS_CHOICES = (
        ("scheduled", "Scheduled"),
        ("completed", "Completed"),
        ("cancelled", "Cancelled"),
    )

    klass = models.ForeignKey(Class, on_delete=models.CASCADE, related_name="sessions", verbose_name="class")
    scheduled_date = models.DateField()
    day_of_week = models.CharField(max_length=9, blank=True)
    course_number = models.CharField(max_length=32, blank=True)
    scheduled_start_time = models.TimeField()
    scheduled_end_time = models.TimeField()
    actual_date = models.DateField(blank=True, null=True, help_text="Actual date if rescheduled")
    session_type = models.CharField(max_length=8, choices=TYPE_CHOICES, default="regular")
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default="scheduled")
    room = models.CharField(max_length=64, blank=True, help_text="Room for this meeting (overrides class default)")

    class Meta:
        ordering = ["scheduled_date", "scheduled_start_time"]
        indexes = [
            models.Index(fields=["klass", "scheduled_date"], name="idx_session_class_date"),
            models.Index(fields=["scheduled_date"], name="idx_session_date"),
        ]

    def __str__(self):
        return f"{self.course_number or self.klass_id} {self.scheduled_date}"

    @property
    def is_midterm(self):
        return self.session_type == "midterm"

    @property
    def is_final(self):
        return self.session_type == "final"

    def moved_end_time(self):
        """End time keeping the class's normal length after the start time moved.

        Returns None when the start time is unchanged. Raises ValidationError
        when the meeting would run past midnight.
        """
        if not (self.pk and self.scheduled_date and self.scheduled_start_time):
            return None
        previous = (
            ClassSession.objects.filter(pk=self.pk)
            .values_list("scheduled_start_time", flat=True)
            .first()
        )
        if previous is None or previous == self.scheduled_start_time:
            return None
        start = datetime.combine(self.scheduled_date, self.scheduled_start_time)
        end = start + timedelta(minutes=self.klass.scheduled_minutes())
        if end.date() != start.date():
            raise ValidationError({
                "scheduled_start_time": "The meeting would end after midnight; pick an earlier start time.",
            })
        return end.time()

    def clean(self):
        self.moved_end_time()

    def save(self, *args, **kwargs):
        if self.scheduled_date:
            self.day_of_week = DAY_NAMES[self.scheduled_date.weekday()]
        if not self.course_number and self.klass_id:
            self.course_number = self.klass.course.code
        end = self.moved_end_time()
        if end is not None:
            self.scheduled_end_time = end
        super().save(*args, **kwargs)


class Student(models.Model):
    student_id = models.CharField(max_length=32, unique=True, help_text="Unique student identifier")
    first_name = models.CharField(max_length=100)
    last_name = models.CharField(max_length=100)
    email = models.EmailField()
    qr_code = models.CharField(
        max_length=64, unique=True, blank=True, default=_new_qr_code,
        help_text="Unique QR code for attendance scanning",
    )
    school_system = models.ForeignKey(SchoolSystem, on_delete=models.CASCADE, related_name="students")
    is_active = models.BooleanField(default=True)

    class Meta:
        ordering = ["last_name", "first_name"]

    def __str__(self):
        return f"{self.last_name}, {self.first_name}"

    def save(self, *args, **kwargs):
        if not self.qr_code:
            self.qr_code = _new_qr_code()
        super().save(*args, **kwargs)


class Enrollment(models.Model):
    STATUS_CHOICES = (
        ("enrolled", "Enrolled"),
        ("waitlisted", "Waitlisted"),
        ("dropped", "Dropped"),
    )

    student = models.ForeignKey(Student, on_delete=models.CASCADE, related_name="enrollments")
    klass = models.ForeignKey(Class, on_delete=models.CASCADE, related_name="enrollments", verbose_name="class")
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default="enrolled")
    waitlist_position = models.PositiveIntegerField(blank=True, null=True, help_text="Position on waitlist (null if enrolled)")
    enrolled_at = models.DateTimeField(blank=True, null=True)
    dropped_at = models.DateTimeField(blank=True, null=True)

    class Meta:
        unique_together = ("student", "klass")
        ordering = ["student__last_name", "student__first_name"]

    def __str__(self):
        return f"{self.student} - {self.klass}"

    def save(self, *args, **kwargs):
        if self.status == "enrolled" and not self.enrolled_at and self._state.adding:
            self.enrolled_at = timezone.now()
        if self.status == "dropped" and not self.dropped_at:
            self.dropped_at = timezone.now()
        super().save(*args, **kwargs)


class AttendanceRecord(models.Model):
    STATUS_CHOICES = (
        ("present", "Present"),
        ("absent", "Absent"),
        ("excused", "Excused"),
    )

    enrollment = models.ForeignKey(Enrollment, on_delete=models.CASCADE, related_name="attendance_records")
    class_session = models.ForeignKey(ClassSession, on_delete=models.CASCADE, related_name="attendance_records")
    status = models.CharField(max_length=8, choices=STATUS_CHOICES, default="present")
    clock_in_time = models.DateTimeField(blank=True, null=True)
    clock_out_time = models.DateTimeField(blank=True, null=True)
    session_duration = models.IntegerField(blank=True, null=True, help_text="Minutes between clock in and clock out")
    notes = models.TextField(blank=True)
    marked_at = models.DateTimeField(default=timezone.now)
    marked_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name="+",
    )

    class Meta:
        unique_together = ("enrollment", "class_session")
        ordering = ["class_session__scheduled_date", "enrollment__student__last_name"]

    def __str__(self):
        return f"{self.enrollment} - {self.class_session.scheduled_date}: {self.get_status_display()}"

    def check_same_class(self):
        session_class = ClassSession.objects.filter(pk=self.class_session_id).values_list("klass_id", flat=True).first()
        enrollment_class = Enrollment.objects.filter(pk=self.enrollment_id).values_list("klass_id", flat=True).first()
        if session_class != enrollment_class:
            raise CrossClassMismatchError(
                f"Session {self.class_session_id} and enrollment {self.enrollment_id} belong to different classes."
            )

    def clean(self):
        if self.class_session_id and self.enrollment_id:
            try:
                self.check_same_class()
            except CrossClassMismatchError as exc:
                raise ValidationError(str(exc))

    def save(self, *args, **kwargs):
        from .scanning import derive_duration

        self.check_same_class()
        self.session_duration = derive_duration(self.clock_in_time, self.clock_out_time)
        super().save(*args, **kwargs)


class FeatureAccess(models.Model):
    """Per-user feature overrides (allow or deny) to customize access without changing groups."""
    FEATURE_CHOICES = (
        ('dashboard', 'Dashboard'),
        ('scan_attendance', 'Scan Attendance'),
        ('attendance_sheet', 'Attendance Sheet'),
        ('export_attendance', 'Export Attendance'),
        ('import_holidays', 'Import Holidays'),
        ('manage_sessions', 'Manage Sessions'),
    )
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='feature_access')
    feature = models.CharField(max_length=64, choices=FEATURE_CHOICES)
    allow = models.BooleanField(default=True, help_text="Allow if checked, deny if unchecked")

    class Meta:
        unique_together = ("user", "feature")
        indexes = [
            models.Index(fields=["user", "feature"], name="idx_feataccess_user_feature"),
        ]

    def __str__(self):
        state = 'allow' if self.allow else 'deny'
        return f"{self.user} {state} {self.feature}"
