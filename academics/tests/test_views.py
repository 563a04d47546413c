from datetime import date, datetime
from io import BytesIO

import openpyxl
import pytest
from django.core.files.uploadedfile import SimpleUploadedFile
from django.urls import reverse
from django.utils import timezone

from academics.models import AttendanceRecord, Holiday


@pytest.fixture
def frozen_now(monkeypatch):
    now = timezone.make_aware(datetime(2026, 2, 2, 8, 2))
    monkeypatch.setattr(timezone, "now", lambda: now)
    return now


@pytest.mark.django_db
def test_dashboard_lists_sessions_for_day(admin_client, enrollment):
    resp = admin_client.get(reverse("academics:dashboard"), {"date": "2026-02-02"})
    assert resp.status_code == 200
    rows = resp.context["rows"]
    assert len(rows) == 1
    assert rows[0]["session"].klass == enrollment.klass
    assert rows[0]["enrolled"] == 1
    assert resp.context["prev_date"] == date(2026, 2, 1)


@pytest.mark.django_db
def test_dashboard_requires_login(client):
    resp = client.get(reverse("academics:dashboard"))
    assert resp.status_code == 302
    assert reverse("login") in resp["Location"]


@pytest.mark.django_db
def test_scan_page_clocks_in(admin_client, enrollment, student, frozen_now):
    resp = admin_client.post(reverse("academics:scan"), {"code": student.qr_code}, follow=True)
    assert resp.status_code == 200
    texts = [str(m) for m in resp.context["messages"]]
    assert "Ana Reyes clocked IN to AUTO-302" in texts
    rec = AttendanceRecord.objects.get(enrollment=enrollment)
    assert rec.clock_in_time == frozen_now


@pytest.mark.django_db
def test_scan_api(admin_client, enrollment, student, frozen_now):
    url = reverse("academics:scan_api")
    assert admin_client.post(url, {"code": "unknown"}).status_code == 404
    assert admin_client.post(url, {}).status_code == 400
    assert admin_client.get(url).status_code == 405

    data = admin_client.post(url, {"code": student.student_id}).json()
    assert data["found"] is True
    assert data["outcomes"][0]["outcome"] == "clocked_in"


@pytest.mark.django_db
def test_scan_api_forbidden_without_feature(client, make_user, school_system):
    user = make_user("plain", school_system=school_system)
    client.force_login(user)
    resp = client.post(reverse("academics:scan_api"), {"code": "x"})
    assert resp.status_code == 403


@pytest.mark.django_db
def test_ta_scan_ignores_classes_they_do_not_assist(client, make_user, enrollment, student, school_system, frozen_now):
    ta = make_user("ta", "TA", school_system)
    client.force_login(ta)
    data = client.post(reverse("academics:scan_api"), {"code": student.qr_code}).json()
    assert data["outcomes"] == []
    assert not AttendanceRecord.objects.exists()


@pytest.mark.django_db
def test_attendance_sheet_get_and_post(admin_client, enrollment):
    klass = enrollment.klass
    session = klass.sessions.get(scheduled_date=date(2026, 2, 2))
    url = reverse("academics:attendance_sheet", args=[klass.id])

    resp = admin_client.get(url)
    assert resp.status_code == 200
    assert len(resp.context["sessions"]) == 50

    key = f"{enrollment.id}_{session.id}"
    resp = admin_client.post(url, {
        f"st_{key}": "present",
        f"in_{key}": "2026-02-02T08:02",
        f"out_{key}": "2026-02-02T09:31",
    })
    assert resp.status_code == 302
    rec = AttendanceRecord.objects.get(enrollment=enrollment, class_session=session)
    assert rec.session_duration == 89

    # Clearing the clock-out clears the duration
    admin_client.post(url, {f"st_{key}": "present", f"in_{key}": "2026-02-02T08:02", f"out_{key}": ""})
    rec.refresh_from_db()
    assert rec.clock_out_time is None
    assert rec.session_duration is None


@pytest.mark.django_db
def test_attendance_sheet_reports_bad_times(admin_client, enrollment):
    klass = enrollment.klass
    session = klass.sessions.first()
    key = f"{enrollment.id}_{session.id}"
    resp = admin_client.post(
        reverse("academics:attendance_sheet", args=[klass.id]),
        {f"st_{key}": "present", f"in_{key}": "yesterday"},
        follow=True,
    )
    assert any("Invalid date/time" in str(m) for m in resp.context["messages"])
    assert not AttendanceRecord.objects.exists()


@pytest.mark.django_db
def test_attendance_sheet_hidden_from_other_instructor(client, make_user, klass, school_system):
    client.force_login(make_user("stranger", "Instructor", school_system))
    resp = client.get(reverse("academics:attendance_sheet", args=[klass.id]))
    assert resp.status_code == 404


@pytest.mark.django_db
def test_export_attendance_workbook(admin_client, enrollment):
    klass = enrollment.klass
    session = klass.sessions.get(scheduled_date=date(2026, 2, 2))
    start = timezone.make_aware(datetime(2026, 2, 2, 8, 2))
    AttendanceRecord.objects.create(
        enrollment=enrollment, class_session=session,
        clock_in_time=start, clock_out_time=start.replace(hour=9, minute=31),
    )
    resp = admin_client.get(reverse("academics:export_attendance_sheet", args=[klass.id]))
    assert resp.status_code == 200
    assert resp["Content-Type"].startswith("application/vnd.openxmlformats")
    assert "attendance-AUTO-302-Morning_A.xlsx" in resp["Content-Disposition"]

    ws = openpyxl.load_workbook(BytesIO(resp.content)).active
    headers = [c.value for c in ws[1]]
    assert headers[:3] == ["Student ID", "Name", "01/21"]
    assert "03/06 MT" in headers
    assert "05/15 FN" in headers
    assert ws.cell(row=2, column=1).value == "S-1001"
    assert ws.cell(row=2, column=headers.index("Present") + 1).value == 1
    assert ws.cell(row=2, column=headers.index("Minutes") + 1).value == 89


@pytest.mark.django_db
def test_export_needs_feature(client, make_user, klass, school_system):
    ta = make_user("ta3", "TA", school_system)
    klass.teaching_assistants.add(ta)
    client.force_login(ta)
    resp = client.get(reverse("academics:export_attendance_sheet", args=[klass.id]))
    assert resp.status_code == 302
    assert resp["Location"] == reverse("academics:dashboard")


@pytest.mark.django_db
def test_generate_sessions_view(admin_client, klass):
    url = reverse("academics:generate_class_sessions", args=[klass.id])
    admin_client.post(url)
    assert klass.sessions.count() == 50

    klass.sessions.all().delete()
    resp = admin_client.post(url, follow=True)
    assert klass.sessions.count() == 50
    assert any("Generated 50 session(s)" in str(m) for m in resp.context["messages"])


@pytest.mark.django_db
def test_holiday_import(admin_client, semester):
    csv_bytes = (
        "date,kind,name,notes\n"
        "2026-02-16,HOL,Presidents Day,\n"
        "2026-03-13,sus,Weather closure,ice\n"
        "2026-01-19,holiday,Martin Luther King Jr. Day,\n"
        "2026-08-01,HOL,Summer,\n"
        "not-a-date,HOL,Oops,\n"
    ).encode("utf-8")
    upload = SimpleUploadedFile("holidays.csv", csv_bytes, content_type="text/csv")
    resp = admin_client.post(
        reverse("academics:holidays_import"), {"semester": semester.id, "file": upload}, follow=True,
    )
    assert resp.status_code == 200
    assert any("created 2, updated 1, skipped 2" in str(m) for m in resp.context["messages"])
    assert Holiday.objects.get(semester=semester, date=date(2026, 3, 13)).kind == "SUS"
    assert Holiday.objects.get(semester=semester, date=date(2026, 1, 19)).name == "Martin Luther King Jr. Day"


@pytest.mark.django_db
def test_student_card_and_qr_png(admin_client, student):
    resp = admin_client.get(reverse("academics:student_card", args=[student.id]))
    assert resp.status_code == 200
    assert resp.context["qr_url"] == reverse("student_qr", args=[student.id])

    png = admin_client.get(reverse("student_qr", args=[student.id]), {"size": "s"})
    assert png.status_code == 200
    assert png["Content-Type"] == "image/png"
    assert png.content.startswith(b"\x89PNG")


@pytest.mark.django_db
def test_qr_png_scoped_to_school_system(client, make_user, student):
    client.force_login(make_user("elsewhere", "Admin"))
    assert client.get(reverse("student_qr", args=[student.id])).status_code == 404
