# sterilization/views_workflow_api.py

from __future__ import annotations

from django.conf import settings

from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework.exceptions import ValidationError
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from sterilization.permissions import CanOperateSterilization
from sterilization.serializers import (
    AdvanceRequestSerializer,
    BoxAssignmentSerializer,
    InstrumentBoxSerializer,
    NotesRequestSerializer,
    ScanRequestSerializer,
    WorkflowLogEntrySerializer,
)
from sterilization.services import registry, workflow, workflow_log
from sterilization.workflows import workflow_definition


# =============================================================
# Helpers
# =============================================================

def _parse_limit(value, default: int, maximum: int = 200) -> int:
    if value in (None, ""):
        return default
    try:
        limit = int(str(value).strip())
    except ValueError:
        raise ValidationError({"limit": "Must be an integer."})
    if limit < 1:
        raise ValidationError({"limit": "Must be a positive integer."})
    return min(limit, maximum)


def _transition_payload(result) -> dict:
    return {
        "box": InstrumentBoxSerializer(result.box).data,
        "log": WorkflowLogEntrySerializer(result.log).data,
    }


# =============================================================
# Definition / scan
# =============================================================

class WorkflowDefinitionView(APIView):
    """
    Static description of the sterilization cycle for UIs.
    """
    permission_classes = [IsAuthenticated]

    @extend_schema(tags=["Workflow"])
    def get(self, request):
        return Response(workflow_definition())


class WorkflowScanView(APIView):
    """
    Resolve a scanned box code and preview its next step. Read-only.
    """
    permission_classes = [IsAuthenticated]

    @extend_schema(tags=["Workflow"], request=ScanRequestSerializer)
    def post(self, request):
        s = ScanRequestSerializer(data=request.data)
        s.is_valid(raise_exception=True)

        preview = workflow.scan(s.validated_data["box_code"])
        position, total = preview.progress

        return Response(
            {
                "box": InstrumentBoxSerializer(preview.box).data,
                "next_step": preview.next_step,
                "next_status": preview.next_status,
                "requires_validation": preview.requires_validation,
                "progress": {"position": position, "total": total},
                "open_assignment": (
                    BoxAssignmentSerializer(preview.open_assignment).data
                    if preview.open_assignment
                    else None
                ),
                "blocked_by_assignment": preview.blocked_by_assignment,
            }
        )


# =============================================================
# Transitions
# =============================================================

class WorkflowAdvanceView(APIView):
    """
    POST a scanned box code to move the box to its next step.

    Body:
      {
        "box_code": "BOX-001",
        "validation_result": "passed" | "failed",   (leaving sterilization only)
        "sterilization_type": "vapeur",              (optional)
        "notes": "...",                              (optional)
        "expected_version": 3                        (optional)
      }
    """
    permission_classes = [CanOperateSterilization]

    @extend_schema(tags=["Workflow"], request=AdvanceRequestSerializer)
    def post(self, request):
        s = AdvanceRequestSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        data = s.validated_data

        result = workflow.advance(
            data["box_code"],
            request.user,
            validation_result=data.get("validation_result"),
            sterilization_type=data.get("sterilization_type"),
            notes=data.get("notes"),
            expected_version=data.get("expected_version"),
        )
        return Response(_transition_payload(result))


class BoxResetView(APIView):
    permission_classes = [CanOperateSterilization]

    @extend_schema(tags=["Workflow"], request=NotesRequestSerializer)
    def post(self, request, pk: int):
        s = NotesRequestSerializer(data=request.data)
        s.is_valid(raise_exception=True)

        box = registry.get_by_id(pk)
        result = workflow.reset_to_reception(box.pk, request.user, notes=s.validated_data.get("notes"))
        return Response(_transition_payload(result))


class BoxResterilizeView(APIView):
    permission_classes = [CanOperateSterilization]

    @extend_schema(tags=["Workflow"], request=NotesRequestSerializer)
    def post(self, request, pk: int):
        s = NotesRequestSerializer(data=request.data)
        s.is_valid(raise_exception=True)

        box = registry.get_by_id(pk)
        result = workflow.mark_for_resterilization(
            box.pk,
            request.user,
            notes=s.validated_data.get("notes"),
        )
        return Response(_transition_payload(result))


# =============================================================
# History / activity
# =============================================================

class BoxHistoryView(APIView):
    permission_classes = [IsAuthenticated]

    @extend_schema(
        tags=["Workflow"],
        parameters=[OpenApiParameter("limit", int, required=False)],
    )
    def get(self, request, pk: int):
        box = registry.get_by_id(pk)
        limit = _parse_limit(request.query_params.get("limit"), settings.WORKFLOW_HISTORY_LIMIT)

        entries = workflow_log.list_for_box(box.pk, limit=limit)
        return Response(
            {
                "box_id": box.pk,
                "box_code": box.box_code,
                "count": len(entries),
                "results": WorkflowLogEntrySerializer(entries, many=True).data,
            }
        )


class RecentActivityView(APIView):
    permission_classes = [IsAuthenticated]

    @extend_schema(
        tags=["Workflow"],
        parameters=[OpenApiParameter("limit", int, required=False)],
    )
    def get(self, request):
        limit = _parse_limit(request.query_params.get("limit"), 15, maximum=100)
        return Response(workflow_log.recent_activity(limit=limit))
