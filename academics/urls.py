from django.urls import path
from . import views

app_name = 'academics'

urlpatterns = [
    path('', views.dashboard, name='dashboard'),
    path('scan/', views.scan, name='scan'),
    path('scan/api/', views.scan_api, name='scan_api'),
    path('classes/<int:class_id>/attendance/', views.attendance_sheet, name='attendance_sheet'),
    path('classes/<int:class_id>/attendance/export/', views.export_attendance_sheet, name='export_attendance_sheet'),
    path('classes/<int:class_id>/sessions/generate/', views.generate_class_sessions, name='generate_class_sessions'),
    path('students/<int:pk>/card/', views.student_card, name='student_card'),
    path('holidays/import/', views.holidays_import, name='holidays_import'),
]
