# sterilization/permissions.py
from __future__ import annotations

from rest_framework.permissions import BasePermission, SAFE_METHODS

from .models import UserRole


# ------------------------------------------------------------------
# Role definitions
# ------------------------------------------------------------------
WRITE_ROLES = {UserRole.ADMIN, UserRole.INSTRUMENTISTE}

ROLE_ALIASES = {
    "ADMIN": UserRole.ADMIN,
    "ADMINISTRATOR": UserRole.ADMIN,
    "SUPERUSER": UserRole.ADMIN,
    "INSTRUMENTISTE": UserRole.INSTRUMENTISTE,
    "TECHNICIAN": UserRole.INSTRUMENTISTE,
    "OPERATOR": UserRole.INSTRUMENTISTE,
    "USER": UserRole.USER,
    "VIEWER": UserRole.USER,
}


# ------------------------------------------------------------------
# Utilities
# ------------------------------------------------------------------
def normalize_role(value) -> str:
    """Canonical role code for `value`; unknown roles fall back to USER."""
    raw = str(value or "").strip().upper().replace(" ", "_")
    return ROLE_ALIASES.get(raw, UserRole.USER)


def effective_roles(user) -> set[str]:
    """Superusers are ADMIN regardless of stored roles."""
    if not user or not user.is_authenticated:
        return set()

    if user.is_superuser:
        return {UserRole.ADMIN}

    return {
        normalize_role(r)
        for r in UserRole.objects.filter(user=user).values_list("role", flat=True)
    }


def user_can_operate(user) -> bool:
    return bool(effective_roles(user) & WRITE_ROLES)


# ------------------------------------------------------------------
# Permission class
# ------------------------------------------------------------------
class CanOperateSterilization(BasePermission):
    """
    Read: any authenticated user
    Write: ADMIN or INSTRUMENTISTE
    """

    message = "Sterilization operations require the ADMIN or INSTRUMENTISTE role."

    def has_permission(self, request, view):
        user = getattr(request, "user", None)
        if not user or not user.is_authenticated:
            return False

        if request.method in SAFE_METHODS:
            return True

        return user_can_operate(user)
