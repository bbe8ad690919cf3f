# sterilization/views_identity.py
from __future__ import annotations

from drf_spectacular.utils import extend_schema
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from .permissions import effective_roles, user_can_operate


class WhoAmIView(APIView):
    """
    Returns the currently authenticated user and their effective roles.

    Lets the scanning UI hide write actions for read-only users.
    """
    permission_classes = [IsAuthenticated]

    @extend_schema(tags=["System"])
    def get(self, request):
        user = request.user

        return Response(
            {
                "id": user.id,
                "username": user.get_username(),
                "is_superuser": bool(getattr(user, "is_superuser", False)),
                "roles": sorted(effective_roles(user)),
                "can_operate": user_can_operate(user),
            }
        )
