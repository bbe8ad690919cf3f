# sterilization/views_assignments.py

from __future__ import annotations

from drf_spectacular.utils import extend_schema
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import APIView

from sterilization.permissions import CanOperateSterilization
from sterilization.serializers import (
    AssignRequestSerializer,
    BoxAssignmentSerializer,
    InstrumentBoxSerializer,
    NotesRequestSerializer,
    WorkflowLogEntrySerializer,
)
from sterilization.services import assignments


class AssignmentListCreateView(APIView):
    """
    GET: open assignments (requested, assigned, in use).
    POST: assign a sterile box to a service.
    """
    permission_classes = [CanOperateSterilization]

    @extend_schema(tags=["Assignments"], responses=BoxAssignmentSerializer(many=True))
    def get(self, request):
        rows = assignments.open_assignments()
        return Response(BoxAssignmentSerializer(rows, many=True).data)

    @extend_schema(tags=["Assignments"], request=AssignRequestSerializer, responses=BoxAssignmentSerializer)
    def post(self, request):
        s = AssignRequestSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        data = s.validated_data

        assignment = assignments.assign(
            data["box"],
            data["service"],
            request.user,
            bloc=data.get("bloc"),
            notes=data.get("notes"),
        )
        return Response(BoxAssignmentSerializer(assignment).data, status=status.HTTP_201_CREATED)


class AssignmentStartUseView(APIView):
    permission_classes = [CanOperateSterilization]

    @extend_schema(tags=["Assignments"], request=None, responses=BoxAssignmentSerializer)
    def post(self, request, pk: int):
        assignment = assignments.start_use(pk, request.user)
        return Response(BoxAssignmentSerializer(assignment).data)


class AssignmentReturnView(APIView):
    permission_classes = [CanOperateSterilization]

    @extend_schema(tags=["Assignments"], request=NotesRequestSerializer)
    def post(self, request, pk: int):
        s = NotesRequestSerializer(data=request.data)
        s.is_valid(raise_exception=True)

        result = assignments.return_box(pk, request.user, notes=s.validated_data.get("notes"))
        return Response(
            {
                "box": InstrumentBoxSerializer(result.box).data,
                "log": WorkflowLogEntrySerializer(result.log).data,
            }
        )
