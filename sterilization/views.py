# sterilization/views.py
from __future__ import annotations

from django.db import transaction

from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework import mixins, viewsets
from rest_framework.exceptions import ValidationError
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from .exceptions import AssignmentConflict
from .filters import InstrumentBoxFilter
from .models import BoxAssignment, InstrumentBox, Service
from .permissions import CanOperateSterilization
from .serializers import InstrumentBoxSerializer, ServiceSerializer
from .services.expiry import EXPIRY_LEVELS, expiring_boxes
from .services.stock import stock_overview


# ===============================================================
# Health
# ===============================================================
class HealthCheckView(APIView):
    permission_classes = [AllowAny]

    @extend_schema(tags=["System"])
    def get(self, request):
        return Response({"status": "ok", "service": "medarchive-sterilization"})


# ===============================================================
# Instrument boxes
# ===============================================================
@extend_schema(tags=["Boxes"])
class InstrumentBoxViewSet(
    mixins.CreateModelMixin,
    mixins.RetrieveModelMixin,
    mixins.DestroyModelMixin,
    mixins.ListModelMixin,
    viewsets.GenericViewSet,
):
    """
    Register, list and deactivate boxes.

    There is no update endpoint: workflow fields move only through
    /sterilization/workflow/ and the assignment endpoints.
    """
    queryset = (
        InstrumentBox.objects.active()
        .select_related("service", "assigned_service")
        .order_by("name", "id")
    )
    serializer_class = InstrumentBoxSerializer
    permission_classes = [CanOperateSterilization]
    filterset_class = InstrumentBoxFilter

    def perform_create(self, serializer):
        serializer.save(created_by=self.request.user)

    def perform_destroy(self, instance):
        # Soft delete: log entries keep referencing the box
        with transaction.atomic():
            if BoxAssignment.objects.filter(
                box_id=instance.pk,
                status__in=BoxAssignment.OPEN_STATUSES,
            ).exists():
                raise AssignmentConflict(
                    f"Box {instance.box_code} has an open assignment and cannot be deactivated."
                )
            instance.is_active = False
            instance.save(update_fields=["is_active", "updated_at"])


# ===============================================================
# Services (read-only reference data)
# ===============================================================
@extend_schema(tags=["Services"])
class ServiceViewSet(viewsets.ReadOnlyModelViewSet):
    queryset = Service.objects.filter(is_active=True).order_by("name", "id")
    serializer_class = ServiceSerializer
    permission_classes = [IsAuthenticated]


# ===============================================================
# Dashboards
# ===============================================================
class StockOverviewView(APIView):
    permission_classes = [IsAuthenticated]

    @extend_schema(tags=["Dashboard"])
    def get(self, request):
        return Response(stock_overview())


class ExpiringBoxesView(APIView):
    """
    Sterile boxes approaching (or past) the end of their sterility window.
    """
    permission_classes = [IsAuthenticated]

    @extend_schema(
        tags=["Dashboard"],
        parameters=[OpenApiParameter("level", str, enum=list(EXPIRY_LEVELS), required=False)],
    )
    def get(self, request):
        try:
            rows = expiring_boxes(level=request.query_params.get("level"))
        except ValueError as e:
            raise ValidationError({"level": str(e)})

        return Response(
            [
                {
                    "box": InstrumentBoxSerializer(row.box).data,
                    "sterilized_at": row.sterilized_at.isoformat() if row.sterilized_at else None,
                    "expires_at": row.expires_at.isoformat(),
                    "days_remaining": row.days_remaining,
                    "level": row.level,
                }
                for row in rows
            ]
        )
