from rest_framework import generics, permissions
from rest_framework.response import Response
from rest_framework.views import APIView

from users.permissions import IsExamAdministrator
from .models import AuditLog
from .pagination import PageLimitPagination
from .serializers import AuditLogSerializer


class AuditLogListView(generics.ListAPIView):
    # Select related avoids N+1 queries when fetching users
    queryset = AuditLog.objects.select_related('actor').all().order_by('-timestamp')
    serializer_class = AuditLogSerializer
    permission_classes = [IsExamAdministrator]
    pagination_class = PageLimitPagination

    def get_queryset(self):
        queryset = super().get_queryset()
        action = self.request.query_params.get('action')
        if action:
            queryset = queryset.filter(action=action)
        target_model = self.request.query_params.get('target_model')
        if target_model:
            queryset = queryset.filter(target_model=target_model)
        return queryset


class HealthView(APIView):
    authentication_classes = []
    permission_classes = [permissions.AllowAny]

    def get(self, request):
        return Response({"message": "Server is Healthy..."})
