# sterilization/admin.py

from django.contrib import admin
from django.utils.html import format_html

from .models import (
    AuditLog,
    BoxAssignment,
    InstrumentBox,
    Service,
    SterilityAlert,
    UserRole,
    WorkflowLogEntry,
)


class ReadOnlyAdmin(admin.ModelAdmin):
    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


# =============================================================
# Workflow log (READ-ONLY AUDIT TRAIL)
# =============================================================

@admin.register(WorkflowLogEntry)
class WorkflowLogEntryAdmin(ReadOnlyAdmin):
    list_display = (
        "box",
        "from_step",
        "to_step",
        "validation_result",
        "sterilization_type",
        "performed_by",
        "created_at",
    )
    list_filter = ("to_step", "validation_result", "sterilization_type")
    search_fields = ("box__box_code", "box__name", "performed_by__username")
    ordering = ("-created_at",)

    readonly_fields = [f.name for f in WorkflowLogEntry._meta.fields]


# =============================================================
# Sterility alerts (READ-ONLY)
# =============================================================

@admin.register(SterilityAlert)
class SterilityAlertAdmin(ReadOnlyAdmin):
    list_display = ("box", "sterilized_at", "expired_at", "state_badge", "detected_at", "resolved_at")
    list_filter = ("resolved_at",)
    search_fields = ("box__box_code",)
    ordering = ("-detected_at",)

    readonly_fields = [f.name for f in SterilityAlert._meta.fields]

    def state_badge(self, obj):
        if obj.resolved_at:
            return format_html('<span style="color:#2e7d32;font-weight:bold;">RESOLVED</span>')
        return format_html('<span style="color:#c62828;font-weight:bold;">EXPIRED</span>')

    state_badge.short_description = "State"


# =============================================================
# Instrument boxes
# =============================================================

@admin.register(InstrumentBox)
class InstrumentBoxAdmin(admin.ModelAdmin):
    list_display = (
        "box_code",
        "name",
        "current_step",
        "status",
        "sterilization_type",
        "last_sterilized_at",
        "assigned_service",
        "is_active",
    )
    list_filter = ("current_step", "sterilization_type", "is_active", "service")
    search_fields = ("box_code", "name")
    ordering = ("name", "id")
    readonly_fields = (
        "current_step",
        "last_sterilized_at",
        "assigned_service",
        "assigned_bloc",
        "version",
        "created_at",
        "updated_at",
    )


@admin.register(BoxAssignment)
class BoxAssignmentAdmin(ReadOnlyAdmin):
    list_display = ("box", "service", "bloc", "status", "requested_at", "assigned_at", "returned_at")
    list_filter = ("status", "service")
    search_fields = ("box__box_code", "bloc")
    ordering = ("-requested_at",)


# =============================================================
# Reference data / access
# =============================================================

@admin.register(Service)
class ServiceAdmin(admin.ModelAdmin):
    list_display = ("code", "name", "is_active")
    search_fields = ("code", "name")
    list_filter = ("is_active",)


@admin.register(UserRole)
class UserRoleAdmin(admin.ModelAdmin):
    list_display = ("user", "role", "created_at")
    list_filter = ("role",)
    search_fields = ("user__username",)


@admin.register(AuditLog)
class AuditLogAdmin(ReadOnlyAdmin):
    list_display = ("action", "user", "created_at")
    list_filter = ("action",)
    search_fields = ("action", "user__username")
    ordering = ("-created_at",)
