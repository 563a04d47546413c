import csv
import logging
from datetime import date, timedelta
from io import TextIOWrapper

from django.contrib import messages
from django.contrib.auth.decorators import login_required
from django.db import transaction
from django.http import HttpResponse, JsonResponse
from django.shortcuts import get_object_or_404, redirect, render
from django.urls import reverse
from django.utils import timezone
from django.utils.dateparse import parse_datetime
from django.views.decorators.http import require_POST

from .exceptions import AcademicsError
from .forms import HolidayImportForm, ScanForm
from .models import AttendanceRecord, Class, ClassSession, Enrollment, Holiday, Semester, Student
from .permissions import has_feature, scoped
from .scanning import process_scan
from .sessions import create_sessions_for_class

logger = logging.getLogger(__name__)

STATUS_LETTERS = {'present': 'P', 'absent': 'A', 'excused': 'E'}


def _parse_day(value):
    if not value:
        return None
    try:
        y, m, d = [int(x) for x in value.split('-')]
        return date(y, m, d)
    except (TypeError, ValueError):
        return None


def _parse_clock(value):
    """Parse a datetime-local input value in the current time zone."""
    if not value:
        return None
    dt = parse_datetime(value.strip())
    if dt is None:
        raise ValueError(f"Invalid date/time {value!r}")
    if timezone.is_naive(dt):
        dt = timezone.make_aware(dt)
    return dt


def _user_classes(user):
    return scoped(Class.objects.select_related('course', 'semester', 'school'), user, 'class')


@login_required
def dashboard(request):
    if not has_feature(request.user, 'dashboard'):
        messages.warning(request, 'You are not allowed to view the dashboard.')
        return redirect('login')
    target_date = _parse_day(request.GET.get('date')) or timezone.localdate()
    classes = _user_classes(request.user)
    sessions = list(
        ClassSession.objects.filter(klass__in=classes, scheduled_date=target_date)
        .exclude(status='cancelled')
        .select_related('klass__course')
        .order_by('scheduled_start_time')
    )
    rows = []
    for s in sessions:
        enrolled = Enrollment.objects.filter(klass_id=s.klass_id, status='enrolled').count()
        records = AttendanceRecord.objects.filter(class_session=s)
        rows.append({
            'session': s,
            'enrolled': enrolled,
            'clocked_in': records.filter(clock_in_time__isnull=False).count(),
            'completed': records.filter(clock_out_time__isnull=False).count(),
        })
    return render(request, 'academics/dashboard.html', {
        'target_date': target_date,
        'prev_date': target_date - timedelta(days=1),
        'next_date': target_date + timedelta(days=1),
        'rows': rows,
        'class_count': classes.count(),
    })


@login_required
def scan(request):
    if not has_feature(request.user, 'scan_attendance'):
        messages.warning(request, 'You are not allowed to scan attendance.')
        return redirect('academics:dashboard')
    report = None
    if request.method == 'POST':
        form = ScanForm(request.POST)
        if form.is_valid():
            report = process_scan(
                form.cleaned_data['code'],
                marked_by=request.user,
                classes=_user_classes(request.user),
            )
            level = messages.SUCCESS if report.processed_any else messages.WARNING
            for text in report.messages:
                messages.add_message(request, level, text)
            # Fresh, empty form for the next scan
            form = ScanForm()
    else:
        form = ScanForm()
    return render(request, 'academics/scan.html', {'form': form, 'report': report})


@login_required
@require_POST
def scan_api(request):
    if not has_feature(request.user, 'scan_attendance'):
        return JsonResponse({'error': 'You are not allowed to scan attendance.'}, status=403)
    code = (request.POST.get('code') or '').strip()
    if not code:
        return JsonResponse({'error': 'Missing code.'}, status=400)
    report = process_scan(code, marked_by=request.user, classes=_user_classes(request.user))
    return JsonResponse(report.to_dict(), status=200 if report.found else 404)


def _sheet_context(klass):
    sessions = list(klass.sessions.exclude(status='cancelled').order_by('scheduled_date', 'scheduled_start_time'))
    enrollments = list(
        klass.enrollments.filter(status='enrolled').select_related('student')
    )
    records = AttendanceRecord.objects.filter(enrollment__in=enrollments, class_session__in=sessions)
    by_key = {(r.enrollment_id, r.class_session_id): r for r in records}
    return sessions, enrollments, by_key


@login_required
def attendance_sheet(request, class_id: int):
    if not has_feature(request.user, 'attendance_sheet'):
        messages.warning(request, 'You are not allowed to view attendance sheets.')
        return redirect('academics:dashboard')
    klass = get_object_or_404(_user_classes(request.user), pk=class_id)
    sessions, enrollments, by_key = _sheet_context(klass)

    if request.method == 'POST':
        saved = 0
        errors = []
        with transaction.atomic():
            for e in enrollments:
                for s in sessions:
                    prefix = f"{e.id}_{s.id}"
                    if f"st_{prefix}" not in request.POST:
                        continue
                    status = request.POST.get(f"st_{prefix}") or ''
                    try:
                        clock_in = _parse_clock(request.POST.get(f"in_{prefix}"))
                        clock_out = _parse_clock(request.POST.get(f"out_{prefix}"))
                    except ValueError as exc:
                        errors.append(f"{e.student}: {exc}")
                        continue
                    rec = by_key.get((e.id, s.id))
                    if rec is None:
                        if not (status or clock_in or clock_out):
                            continue
                        rec = AttendanceRecord(enrollment=e, class_session=s, marked_by=request.user)
                    before = (rec.pk, rec.status, rec.clock_in_time, rec.clock_out_time)
                    rec.status = status or rec.status
                    rec.clock_in_time = clock_in
                    rec.clock_out_time = clock_out
                    if (rec.pk, rec.status, rec.clock_in_time, rec.clock_out_time) == before:
                        continue
                    rec.save()
                    saved += 1
        for err in errors:
            messages.error(request, err)
        messages.success(request, f'Saved {saved} attendance record(s) for {klass}.')
        return redirect('academics:attendance_sheet', class_id=klass.id)

    rows = []
    for e in enrollments:
        cells = [by_key.get((e.id, s.id)) for s in sessions]
        rows.append({
            'enrollment': e,
            'cells': list(zip(sessions, cells)),
            'total_minutes': sum(c.session_duration or 0 for c in cells if c),
        })
    return render(request, 'academics/attendance_sheet.html', {
        'klass': klass,
        'sessions': sessions,
        'rows': rows,
        'statuses': AttendanceRecord.STATUS_CHOICES,
        'today': timezone.localdate(),
    })


@login_required
def export_attendance_sheet(request, class_id: int):
    if not has_feature(request.user, 'export_attendance'):
        messages.warning(request, 'You are not allowed to export attendance.')
        return redirect('academics:dashboard')
    try:
        import openpyxl
        from openpyxl.styles import Alignment, Font, PatternFill
        from openpyxl.utils import get_column_letter
    except ImportError:  # pragma: no cover
        messages.error(request, 'openpyxl is required. Please install the project dependencies.')
        return redirect('academics:attendance_sheet', class_id=class_id)

    klass = get_object_or_404(_user_classes(request.user), pk=class_id)
    sessions, enrollments, by_key = _sheet_context(klass)

    wb = openpyxl.Workbook()
    ws = wb.active
    ws.title = f"{klass.course.code}"[:31]

    headers = ['Student ID', 'Name'] + [
        f"{s.scheduled_date:%m/%d}" + (' MT' if s.is_midterm else ' FN' if s.is_final else '')
        for s in sessions
    ] + ['Present', 'Absent', 'Excused', 'Minutes']
    header_font = Font(bold=True, color='FFFFFF')
    header_fill = PatternFill('solid', fgColor='0D6EFD')
    exam_fill = PatternFill('solid', fgColor='FFF3CD')
    for c, h in enumerate(headers, 1):
        cell = ws.cell(row=1, column=c, value=h)
        cell.font = header_font
        cell.fill = header_fill
        cell.alignment = Alignment(horizontal='center', vertical='center', wrap_text=True)

    for r, e in enumerate(enrollments, 2):
        ws.cell(row=r, column=1, value=e.student.student_id)
        ws.cell(row=r, column=2, value=f"{e.student.last_name}, {e.student.first_name}")
        counts = {'present': 0, 'absent': 0, 'excused': 0}
        minutes = 0
        for c, s in enumerate(sessions, 3):
            rec = by_key.get((e.id, s.id))
            value = ''
            if rec:
                counts[rec.status] += 1
                minutes += rec.session_duration or 0
                value = STATUS_LETTERS.get(rec.status, rec.status)
                if rec.session_duration is not None:
                    value = f"{value} ({rec.session_duration})"
            cell = ws.cell(row=r, column=c, value=value)
            cell.alignment = Alignment(horizontal='center')
            if s.is_midterm or s.is_final:
                cell.fill = exam_fill
        base = 3 + len(sessions)
        ws.cell(row=r, column=base, value=counts['present'])
        ws.cell(row=r, column=base + 1, value=counts['absent'])
        ws.cell(row=r, column=base + 2, value=counts['excused'])
        ws.cell(row=r, column=base + 3, value=minutes)

    ws.column_dimensions['A'].width = 14
    ws.column_dimensions['B'].width = 28
    for c in range(3, len(headers) + 1):
        ws.column_dimensions[get_column_letter(c)].width = 10
    ws.freeze_panes = 'C2'

    resp = HttpResponse(content_type='application/vnd.openxmlformats-officedocument.spreadsheetml.sheet')
    filename = f"attendance-{klass.course.code}-{klass.section}".replace(' ', '_')
    resp['Content-Disposition'] = f'attachment; filename="{filename}.xlsx"'
    wb.save(resp)
    return resp


@login_required
@require_POST
def generate_class_sessions(request, class_id: int):
    if not has_feature(request.user, 'manage_sessions'):
        messages.warning(request, 'You are not allowed to generate sessions.')
        return redirect('academics:dashboard')
    klass = get_object_or_404(_user_classes(request.user), pk=class_id)
    existing = klass.sessions.count()
    if existing:
        messages.info(request, f'{klass} already has {existing} session(s); nothing generated.')
        return redirect('academics:attendance_sheet', class_id=klass.id)
    try:
        created = create_sessions_for_class(klass)
    except (AcademicsError, ValueError) as exc:
        logger.warning("Session generation failed for class %s: %s", klass.pk, exc)
        messages.error(request, f'Could not generate sessions: {exc}')
        return redirect('academics:attendance_sheet', class_id=klass.id)
    messages.success(request, f'Generated {len(created)} session(s) for {klass}.')
    return redirect('academics:attendance_sheet', class_id=klass.id)


@login_required
def student_card(request, pk: int):
    student = get_object_or_404(scoped(Student.objects.all(), request.user, 'student'), pk=pk)
    return render(request, 'academics/student_card.html', {
        'student': student,
        'qr_url': reverse('student_qr', args=[student.pk]),
    })


@login_required
def holidays_import(request):
    if not has_feature(request.user, 'import_holidays'):
        messages.error(request, 'You are not allowed to import holidays.')
        return redirect('academics:dashboard')

    semesters = scoped(Semester.objects.all(), request.user, 'semester')
    if request.method == 'POST':
        form = HolidayImportForm(request.POST, request.FILES, semesters=semesters)
        if not form.is_valid():
            messages.error(request, 'Please select a semester and choose a CSV file to upload.')
            return render(request, 'academics/holidays_import.html', {'form': form})
        semester = form.cleaned_data['semester']
        try:
            wrapper = TextIOWrapper(form.cleaned_data['file'].file, encoding='utf-8-sig')
            reader = csv.DictReader(wrapper)
            rows = list(reader)
        except (UnicodeDecodeError, csv.Error):
            messages.error(request, 'Invalid CSV file. Ensure it has a header: date,kind,name,notes')
            return redirect('academics:holidays_import')

        kind_map = {
            'hol': 'HOL', 'holiday': 'HOL', 'h': 'HOL',
            'sus': 'SUS', 'suspension': 'SUS', 'class suspension': 'SUS', 'c': 'SUS'
        }

        created = 0
        updated = 0
        skipped = 0
        for row in rows:
            dt = _parse_day((row.get('date') or '').strip())
            name = (row.get('name') or row.get('title') or '').strip()
            if dt is None or not name:
                skipped += 1
                continue
            if dt < semester.start_date or dt > semester.end_date:
                skipped += 1
                continue
            kind = kind_map.get((row.get('kind') or '').strip().lower(), 'HOL')
            _, was_created = Holiday.objects.update_or_create(
                semester=semester, date=dt,
                defaults={'kind': kind, 'name': name, 'notes': (row.get('notes') or '').strip()},
            )
            if was_created:
                created += 1
            else:
                updated += 1
        logger.info("Holiday import for semester %s: %d created, %d updated, %d skipped",
                    semester.pk, created, updated, skipped)
        messages.success(request, f'Imported: created {created}, updated {updated}, skipped {skipped}.')
        if created or updated:
            messages.info(request, 'Sessions already generated are not changed by new holidays.')
        return redirect('academics:dashboard')

    return render(request, 'academics/holidays_import.html', {
        'form': HolidayImportForm(semesters=semesters),
    })
