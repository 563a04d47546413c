from django.db import migrations, models
import django.db.models.deletion
import django.utils.timezone
from django.conf import settings

import academics.models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='SchoolSystem',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=150, unique=True)),
                ('subdomain', models.CharField(blank=True, help_text='Subdomain for multi-tenant URLs (e.g., district1)', max_length=63, null=True, unique=True)),
            ],
            options={
                'ordering': ['name'],
            },
        ),
        migrations.CreateModel(
            name='School',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=150)),
                ('address', models.CharField(blank=True, max_length=255)),
                ('school_system', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='schools', to='academics.schoolsystem')),
            ],
            options={
                'ordering': ['name'],
            },
        ),
        migrations.CreateModel(
            name='StaffProfile',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('school_system', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='staff', to='academics.schoolsystem')),
                ('user', models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, related_name='staff_profile', to=settings.AUTH_USER_MODEL)),
            ],
        ),
        migrations.CreateModel(
            name='Course',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('code', models.CharField(help_text='Course code (e.g., AUTO-302)', max_length=32)),
                ('name', models.CharField(help_text='Course name (e.g., Transmission Repair)', max_length=150)),
                ('description', models.TextField(blank=True)),
                ('prerequisites', models.TextField(blank=True, help_text='Free text description of prerequisites')),
                ('school_system', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='courses', to='academics.schoolsystem')),
            ],
            options={
                'ordering': ['code'],
            },
        ),
        migrations.CreateModel(
            name='Semester',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(help_text='e.g., Fall 2025', max_length=64)),
                ('start_date', models.DateField()),
                ('end_date', models.DateField()),
                ('midterm_start_date', models.DateField(blank=True, null=True)),
                ('midterm_end_date', models.DateField(blank=True, null=True)),
                ('final_start_date', models.DateField(blank=True, null=True)),
                ('final_end_date', models.DateField(blank=True, null=True)),
                ('school_system', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='semesters', to='academics.schoolsystem')),
            ],
            options={
                'ordering': ['-start_date'],
            },
        ),
        migrations.CreateModel(
            name='Holiday',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('date', models.DateField()),
                ('kind', models.CharField(choices=[('HOL', 'Holiday'), ('SUS', 'Class Suspension')], default='HOL', max_length=3)),
                ('name', models.CharField(help_text='Holiday name (e.g., Labor Day, Thanksgiving)', max_length=150)),
                ('notes', models.CharField(blank=True, max_length=255)),
                ('semester', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='holidays', to='academics.semester')),
            ],
            options={
                'ordering': ['date'],
                'indexes': [models.Index(fields=['semester', 'date'], name='idx_holiday_sem_date')],
                'unique_together': {('semester', 'date')},
            },
        ),
        migrations.CreateModel(
            name='Class',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('section', models.CharField(help_text='Section identifier (e.g., Morning II, Evening A)', max_length=100)),
                ('max_enrollment', models.PositiveIntegerField(default=30)),
                ('room', models.CharField(blank=True, max_length=64)),
                ('building', models.CharField(blank=True, max_length=100)),
                ('schedule', models.JSONField(default=academics.models._default_schedule, help_text='Class schedule: days, start time, end time')),
                ('course', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='classes', to='academics.course')),
                ('semester', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='classes', to='academics.semester')),
                ('school', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='classes', to='academics.school')),
                ('instructor', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='instructor_classes', to=settings.AUTH_USER_MODEL)),
                ('teaching_assistants', models.ManyToManyField(blank=True, related_name='ta_classes', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name_plural': 'classes',
                'ordering': ['course__code', 'section'],
            },
        ),
        migrations.CreateModel(
            name='ClassSession',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('scheduled_date', models.DateField()),
                ('day_of_week', models.CharField(blank=True, max_length=9)),
                ('course_number', models.CharField(blank=True, max_length=32)),
                ('scheduled_start_time', models.TimeField()),
                ('scheduled_end_time', models.TimeField()),
                ('actual_date', models.DateField(blank=True, help_text='Actual date if rescheduled', null=True)),
                ('session_type', models.CharField(choices=[('regular', 'Regular'), ('midterm', 'Midterm'), ('final', 'Final'), ('lab', 'Lab')], default='regular', max_length=8)),
                ('status', models.CharField(choices=[('scheduled', 'Scheduled'), ('completed', 'Completed'), ('cancelled', 'Cancelled')], default='scheduled', max_length=10)),
                ('room', models.CharField(blank=True, help_text='Room for this meeting (overrides class default)', max_length=64)),
                ('klass', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='sessions', to='academics.class', verbose_name='class')),
            ],
            options={
                'ordering': ['scheduled_date', 'scheduled_start_time'],
                'indexes': [
                    models.Index(fields=['klass', 'scheduled_date'], name='idx_session_class_date'),
                    models.Index(fields=['scheduled_date'], name='idx_session_date'),
                ],
            },
        ),
        migrations.CreateModel(
            name='Student',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('student_id', models.CharField(help_text='Unique student identifier', max_length=32, unique=True)),
                ('first_name', models.CharField(max_length=100)),
                ('last_name', models.CharField(max_length=100)),
                ('email', models.EmailField(max_length=254)),
                ('qr_code', models.CharField(blank=True, default=academics.models._new_qr_code, help_text='Unique QR code for attendance scanning', max_length=64, unique=True)),
                ('is_active', models.BooleanField(default=True)),
                ('school_system', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='students', to='academics.schoolsystem')),
            ],
            options={
                'ordering': ['last_name', 'first_name'],
            },
        ),
        migrations.CreateModel(
            name='Enrollment',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('status', models.CharField(choices=[('enrolled', 'Enrolled'), ('waitlisted', 'Waitlisted'), ('dropped', 'Dropped')], default='enrolled', max_length=10)),
                ('waitlist_position', models.PositiveIntegerField(blank=True, help_text='Position on waitlist (null if enrolled)', null=True)),
                ('enrolled_at', models.DateTimeField(blank=True, null=True)),
                ('dropped_at', models.DateTimeField(blank=True, null=True)),
                ('student', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='enrollments', to='academics.student')),
                ('klass', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='enrollments', to='academics.class', verbose_name='class')),
            ],
            options={
                'ordering': ['student__last_name', 'student__first_name'],
                'unique_together': {('student', 'klass')},
            },
        ),
        migrations.CreateModel(
            name='AttendanceRecord',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('status', models.CharField(choices=[('present', 'Present'), ('absent', 'Absent'), ('excused', 'Excused')], default='present', max_length=8)),
                ('clock_in_time', models.DateTimeField(blank=True, null=True)),
                ('clock_out_time', models.DateTimeField(blank=True, null=True)),
                ('session_duration', models.IntegerField(blank=True, help_text='Minutes between clock in and clock out', null=True)),
                ('notes', models.TextField(blank=True)),
                ('marked_at', models.DateTimeField(default=django.utils.timezone.now)),
                ('enrollment', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='attendance_records', to='academics.enrollment')),
                ('class_session', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='attendance_records', to='academics.classsession')),
                ('marked_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'ordering': ['class_session__scheduled_date', 'enrollment__student__last_name'],
                'unique_together': {('enrollment', 'class_session')},
            },
        ),
        migrations.CreateModel(
            name='FeatureAccess',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('feature', models.CharField(choices=[('dashboard', 'Dashboard'), ('scan_attendance', 'Scan Attendance'), ('attendance_sheet', 'Attendance Sheet'), ('export_attendance', 'Export Attendance'), ('import_holidays', 'Import Holidays'), ('manage_sessions', 'Manage Sessions')], max_length=64)),
                ('allow', models.BooleanField(default=True, help_text='Allow if checked, deny if unchecked')),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='feature_access', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'indexes': [models.Index(fields=['user', 'feature'], name='idx_feataccess_user_feature')],
                'unique_together': {('user', 'feature')},
            },
        ),
    ]
