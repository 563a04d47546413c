from django.contrib import admin, messages
from django.utils.html import format_html
from django.urls import reverse

from .forms import ClassAdminForm, SemesterForm
from .models import (
    SchoolSystem,
    School,
    StaffProfile,
    Course,
    Semester,
    Holiday,
    Class,
    ClassSession,
    Student,
    Enrollment,
    AttendanceRecord,
    FeatureAccess,
)
from .permissions import can, role_for, scoped

# Related model -> entity used to narrow foreign key and many-to-many choices
RELATED_ENTITIES = {
    SchoolSystem: 'school_system',
    School: 'school',
    Course: 'course',
    Semester: 'semester',
    Holiday: 'holiday',
    Class: 'class',
    ClassSession: 'class_session',
    Student: 'student',
    Enrollment: 'enrollment',
}


class ScopedAdmin(admin.ModelAdmin):
    """Limits rows, related choices and actions to what the signed-in user's role allows."""
    entity = None

    def get_queryset(self, request):
        return scoped(super().get_queryset(request), request.user, self.entity)

    def _narrow(self, db_field, request, kwargs):
        entity = RELATED_ENTITIES.get(db_field.related_model)
        if entity is not None:
            queryset = kwargs.get("queryset", db_field.related_model._default_manager.all())
            kwargs["queryset"] = scoped(queryset, request.user, entity)
        return kwargs

    def formfield_for_foreignkey(self, db_field, request, **kwargs):
        kwargs = self._narrow(db_field, request, kwargs)
        return super().formfield_for_foreignkey(db_field, request, **kwargs)

    def formfield_for_manytomany(self, db_field, request, **kwargs):
        kwargs = self._narrow(db_field, request, kwargs)
        return super().formfield_for_manytomany(db_field, request, **kwargs)

    def _allowed(self, request, operation):
        return can(role_for(request.user), operation, self.entity)

    def has_view_permission(self, request, obj=None):
        return self._allowed(request, 'view')

    def has_module_permission(self, request):
        return self._allowed(request, 'view')

    def has_add_permission(self, request):
        return self._allowed(request, 'add')

    def has_change_permission(self, request, obj=None):
        return self._allowed(request, 'change')

    def has_delete_permission(self, request, obj=None):
        return self._allowed(request, 'delete')


@admin.register(SchoolSystem)
class SchoolSystemAdmin(ScopedAdmin):
    entity = 'school_system'
    list_display = ("name", "subdomain")
    search_fields = ("name", "subdomain")


@admin.register(School)
class SchoolAdmin(ScopedAdmin):
    entity = 'school'
    list_display = ("name", "school_system", "address")
    list_filter = ("school_system",)
    search_fields = ("name", "address")


@admin.register(Course)
class CourseAdmin(ScopedAdmin):
    entity = 'course'
    list_display = ("code", "name", "school_system")
    list_filter = ("school_system",)
    search_fields = ("code", "name")


class HolidayInline(admin.TabularInline):
    model = Holiday
    extra = 0


@admin.register(Semester)
class SemesterAdmin(ScopedAdmin):
    entity = 'semester'
    form = SemesterForm
    list_display = ("name", "start_date", "end_date", "midterm_start_date", "final_start_date", "school_system")
    list_filter = ("school_system",)
    search_fields = ("name",)
    inlines = [HolidayInline]


@admin.register(Holiday)
class HolidayAdmin(ScopedAdmin):
    entity = 'holiday'
    list_display = ("date", "semester", "kind", "name")
    list_filter = ("semester", "kind")
    search_fields = ("name", "notes")
    date_hierarchy = "date"


@admin.register(Class)
class ClassAdmin(ScopedAdmin):
    entity = 'class'
    form = ClassAdminForm
    list_display = ("__str__", "semester", "school", "instructor", "session_count", "sheet_link")
    list_filter = ("semester", "school")
    search_fields = ("course__code", "course__name", "section")
    filter_horizontal = ("teaching_assistants",)

    def session_count(self, obj):
        return obj.sessions.count()
    session_count.short_description = 'Sessions'

    def sheet_link(self, obj):
        url = reverse('academics:attendance_sheet', args=[obj.id])
        return format_html('<a class="button" href="{}">Attendance</a>', url)
    sheet_link.short_description = 'Attendance'

    def delete_view(self, request, object_id, extra_context=None):
        obj = self.get_object(request, object_id)
        if obj is not None and request.method == 'GET':
            sessions = obj.sessions.count()
            enrollments = obj.enrollments.count()
            if sessions or enrollments:
                messages.warning(
                    request,
                    f'Deleting {obj} also deletes {sessions} session(s), {enrollments} enrollment(s) '
                    f'and their attendance records.',
                )
        return super().delete_view(request, object_id, extra_context)


@admin.register(ClassSession)
class ClassSessionAdmin(ScopedAdmin):
    entity = 'class_session'
    list_display = ("klass", "scheduled_date", "day_of_week", "scheduled_start_time",
                    "scheduled_end_time", "session_type", "status")
    list_filter = ("session_type", "status", "klass__semester")
    search_fields = ("klass__course__code", "course_number", "room")
    readonly_fields = ("day_of_week",)
    date_hierarchy = "scheduled_date"


@admin.register(Student)
class StudentAdmin(ScopedAdmin):
    entity = 'student'
    list_display = ("last_name", "first_name", "student_id", "email", "is_active", "card_button")
    list_filter = ("school_system", "is_active")
    search_fields = ("last_name", "first_name", "student_id", "email", "qr_code")

    def card_button(self, obj):
        url = reverse('academics:student_card', args=[obj.id])
        return format_html('<a class="button" href="{}" target="_blank">QR card</a>', url)
    card_button.short_description = 'Card'


@admin.register(Enrollment)
class EnrollmentAdmin(ScopedAdmin):
    entity = 'enrollment'
    list_display = ("student", "klass", "status", "enrolled_at", "dropped_at")
    list_filter = ("status", "klass__semester")
    search_fields = ("student__last_name", "student__first_name", "student__student_id")
    readonly_fields = ("enrolled_at", "dropped_at")


@admin.register(AttendanceRecord)
class AttendanceRecordAdmin(ScopedAdmin):
    entity = 'attendance_record'
    list_display = ("enrollment", "class_session", "status", "clock_in_time", "clock_out_time", "session_duration")
    list_filter = ("status", "class_session__klass__semester")
    search_fields = (
        "enrollment__student__last_name",
        "enrollment__student__first_name",
        "notes",
    )
    readonly_fields = ("session_duration",)


@admin.register(StaffProfile)
class StaffProfileAdmin(admin.ModelAdmin):
    list_display = ("user", "school_system")
    list_filter = ("school_system",)
    search_fields = ("user__username", "user__first_name", "user__last_name")


@admin.register(FeatureAccess)
class FeatureAccessAdmin(admin.ModelAdmin):
    list_display = ("user", "feature", "allow")
    list_filter = ("feature", "allow")
    search_fields = ("user__username", "user__first_name", "user__last_name")
