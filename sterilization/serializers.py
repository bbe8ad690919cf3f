from __future__ import annotations

from typing import Dict

from django.contrib.auth import get_user_model
from rest_framework import serializers

from .models import (
    BoxAssignment,
    InstrumentBox,
    Service,
    WorkflowLogEntry,
)
from .workflows import (
    STATUS_LABELS,
    STEP_LABELS,
    normalize_box_code,
    step_progress,
)

User = get_user_model()


# ===============================================================
# Helpers
# ===============================================================

class UserSlimSerializer(serializers.ModelSerializer):
    class Meta:
        model = User
        fields = ("id", "username", "email")
        read_only_fields = fields


# ===============================================================
# Reference data
# ===============================================================

class ServiceSerializer(serializers.ModelSerializer):
    class Meta:
        model = Service
        fields = ("id", "code", "name", "description", "is_active")
        read_only_fields = fields


# ===============================================================
# Instrument boxes
# ===============================================================

class InstrumentBoxSerializer(serializers.ModelSerializer):
    """
    Workflow fields are read-only here; they only move through the
    workflow endpoints.
    """
    status = serializers.CharField(read_only=True)
    status_label = serializers.SerializerMethodField()
    step_label = serializers.SerializerMethodField()
    progress = serializers.SerializerMethodField()
    sterility_expires_at = serializers.DateTimeField(read_only=True)
    service = serializers.PrimaryKeyRelatedField(
        queryset=Service.objects.filter(is_active=True),
        required=False,
        allow_null=True,
    )
    service_name = serializers.CharField(source="service.name", read_only=True, default=None)
    assigned_service_name = serializers.CharField(
        source="assigned_service.name", read_only=True, default=None
    )

    class Meta:
        model = InstrumentBox
        fields = (
            "id",
            "box_code",
            "name",
            "description",
            "current_step",
            "step_label",
            "status",
            "status_label",
            "progress",
            "sterilization_type",
            "last_sterilized_at",
            "next_sterilization_due",
            "sterility_expires_at",
            "service",
            "service_name",
            "assigned_service",
            "assigned_service_name",
            "assigned_bloc",
            "version",
            "is_active",
            "created_at",
            "updated_at",
        )
        read_only_fields = (
            "id",
            "current_step",
            "last_sterilized_at",
            "assigned_service",
            "assigned_bloc",
            "version",
            "is_active",
            "created_at",
            "updated_at",
        )

    def get_status_label(self, obj) -> str:
        return STATUS_LABELS[obj.status]

    def get_step_label(self, obj):
        return STEP_LABELS.get(obj.current_step) if obj.current_step else None

    def get_progress(self, obj) -> Dict[str, int]:
        position, total = step_progress(obj.current_step)
        return {"position": position, "total": total}

    def validate_box_code(self, value: str) -> str:
        code = normalize_box_code(value)
        if not code:
            raise serializers.ValidationError("Box code cannot be blank.")

        qs = InstrumentBox.objects.active().filter(box_code=code)
        if self.instance is not None:
            qs = qs.exclude(pk=self.instance.pk)
        if qs.exists():
            raise serializers.ValidationError("An active box with this code already exists.")
        return code


class WorkflowLogEntrySerializer(serializers.ModelSerializer):
    performed_by = UserSlimSerializer(read_only=True)

    class Meta:
        model = WorkflowLogEntry
        fields = (
            "id",
            "box",
            "from_step",
            "to_step",
            "performed_by",
            "sterilization_type",
            "validation_result",
            "notes",
            "created_at",
        )
        read_only_fields = fields


class BoxAssignmentSerializer(serializers.ModelSerializer):
    box_code = serializers.CharField(source="box.box_code", read_only=True)
    box_name = serializers.CharField(source="box.name", read_only=True)
    service_name = serializers.CharField(source="service.name", read_only=True)

    class Meta:
        model = BoxAssignment
        fields = (
            "id",
            "box",
            "box_code",
            "box_name",
            "service",
            "service_name",
            "bloc",
            "status",
            "requested_at",
            "assigned_at",
            "returned_at",
            "assigned_by",
            "returned_by",
            "notes",
        )
        read_only_fields = fields


# ===============================================================
# Workflow requests
# ===============================================================

class ScanRequestSerializer(serializers.Serializer):
    box_code = serializers.CharField(max_length=100)


class AdvanceRequestSerializer(serializers.Serializer):
    box_code = serializers.CharField(max_length=100)
    validation_result = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    sterilization_type = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    notes = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    expected_version = serializers.IntegerField(required=False, allow_null=True, min_value=0)


class NotesRequestSerializer(serializers.Serializer):
    notes = serializers.CharField(required=False, allow_blank=True, allow_null=True)


class AssignRequestSerializer(serializers.Serializer):
    box = serializers.IntegerField(min_value=1)
    service = serializers.IntegerField(min_value=1)
    bloc = serializers.CharField(required=False, allow_blank=True, allow_null=True, max_length=255)
    notes = serializers.CharField(required=False, allow_blank=True, allow_null=True)
