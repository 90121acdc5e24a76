from django.urls import path
from .views import AuditLogListView, HealthView

urlpatterns = [
    path('audit-logs/', AuditLogListView.as_view(), name='audit-logs'),
    path('health/', HealthView.as_view(), name='health'),
]
