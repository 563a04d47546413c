from django.contrib import admin
from django.urls import path, include
from django.contrib.auth import views as auth_views

from . import qr_views

urlpatterns = [
    path('admin/', admin.site.urls),
    path('login/', auth_views.LoginView.as_view(template_name='registration/login.html'), name='login'),
    path('logout/', auth_views.LogoutView.as_view(), name='logout'),
    # Printable QR badges used by the attendance scanner
    path('students/<int:pk>/qr.png', qr_views.student_qr, name='student_qr'),
    path('', include('academics.urls')),
]
