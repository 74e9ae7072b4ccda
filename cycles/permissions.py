"""
Permission classes for cycle endpoints.
"""
from django.conf import settings
from rest_framework.permissions import BasePermission


class IsClinician(BasePermission):
    """Allow changes only to members of a clinical role group (or superusers)."""
    def has_permission(self, request, view) -> bool:  # type: ignore[override]
        user = getattr(request, "user", None)
        if not (user and user.is_authenticated):
            return False
        if user.is_superuser:
            return True
        return user.groups.filter(name__in=settings.CYCLE_CLINICAL_ROLES).exists()
