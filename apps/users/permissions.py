"""Permission classes shared by the staff-facing endpoints."""

from __future__ import annotations

from rest_framework import permissions  # type: ignore


class IsStaffMember(permissions.BasePermission):
    """Only counter staff and administrators may reprice or settle deposits."""

    message = "Staff access required."

    def has_permission(self, request, view) -> bool:  # type: ignore
        user = request.user
        if not user or not user.is_authenticated:
            return False
        return hasattr(user, "is_staff_member") and user.is_staff_member()
