from django.conf import settings
from django.conf.urls.static import static
from django.contrib import admin
from django.urls import path, include

urlpatterns = [
    path('admin/', admin.site.urls),

    # --- Authentication ---
    path('api/', include('users.urls')),

    # --- Candidate Exam Flow (before the router so access codes never hit admin routes) ---
    path('api/', include('assessments.urls')),

    # --- Topics, Questions, Exams (administrators) ---
    path('api/', include('exams.urls')),

    # --- Audit log & health ---
    path('api/', include('cores.urls')),
] + static(settings.MEDIA_URL, document_root=settings.MEDIA_ROOT)
