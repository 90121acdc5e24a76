from rest_framework import permissions

from .models import User


class IsExamAdministrator(permissions.BasePermission):
    """
    Allows access to staff, Admins and Examiners.
    Candidate-facing views opt out with AllowAny.
    """
    def has_permission(self, request, view):
        # 1. User must be logged in
        if not request.user or not request.user.is_authenticated:
            return False

        # 2. Check Role
        return (
            request.user.is_staff or
            getattr(request.user, 'role', '') in [User.Role.ADMIN, User.Role.EXAMINER]
        )
