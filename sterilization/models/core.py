# sterilization/models/core.py

from datetime import timedelta

from django.conf import settings
from django.db import models
from django.db.models import Q

from sterilization.workflows import (
    DIRTY,
    STEP_ORDER,
    STEP_LABELS,
    STERILIZATION_TYPES,
    normalize_box_code,
    status_for_step,
    steps_for_status,
)
from sterilization.workflows.guards import WorkflowWriteGuardMixin


STEP_CHOICES = [(step, STEP_LABELS[step]) for step in STEP_ORDER]
STERILIZATION_TYPE_CHOICES = list(STERILIZATION_TYPES.items())


# ============================================================
# Base
# ============================================================
class TimeStampedModel(models.Model):
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True


# ============================================================
# Service (requesting unit / operating block owner)
# ============================================================
class Service(TimeStampedModel):
    code = models.CharField(max_length=30, unique=True)
    name = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    is_active = models.BooleanField(default=True)

    class Meta:
        ordering = ["name"]

    def __str__(self):
        return f"{self.code} - {self.name}"


# ============================================================
# Instrument box
# ============================================================
class InstrumentBoxQuerySet(models.QuerySet):
    def active(self):
        return self.filter(is_active=True)

    def with_status(self, status: str):
        """
        Filter by derived status. Only the step is stored, so the status is
        translated back into the steps that produce it.
        """
        q = Q(current_step__in=steps_for_status(status))
        if status == DIRTY:
            q |= Q(current_step__isnull=True)
        return self.filter(q)


class InstrumentBox(WorkflowWriteGuardMixin, TimeStampedModel):
    """
    A box of surgical instruments moving through the sterilization cycle.

    Only `current_step` is persisted; `status` is derived from it.
    """
    WORKFLOW_FIELDS = ("current_step", "version")

    box_code = models.CharField(max_length=100)
    name = models.CharField(max_length=255)
    description = models.TextField(blank=True)

    current_step = models.CharField(
        max_length=32,
        choices=STEP_CHOICES,
        null=True,
        blank=True,
        default=None,
        editable=False,
    )
    sterilization_type = models.CharField(
        max_length=32,
        choices=STERILIZATION_TYPE_CHOICES,
        null=True,
        blank=True,
    )
    last_sterilized_at = models.DateTimeField(null=True, blank=True, editable=False)
    next_sterilization_due = models.DateTimeField(null=True, blank=True)

    service = models.ForeignKey(
        Service,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="owned_boxes",
    )
    assigned_service = models.ForeignKey(
        Service,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="assigned_boxes",
        editable=False,
    )
    assigned_bloc = models.CharField(max_length=255, null=True, blank=True, editable=False)

    version = models.PositiveIntegerField(default=0, editable=False)
    is_active = models.BooleanField(default=True, db_index=True)

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="instrument_boxes_created",
    )

    objects = InstrumentBoxQuerySet.as_manager()

    class Meta:
        ordering = ["name", "id"]
        constraints = [
            models.UniqueConstraint(
                fields=["box_code"],
                condition=Q(is_active=True),
                name="unique_active_box_code",
            ),
            models.CheckConstraint(
                name="box_code_not_blank",
                condition=~Q(box_code=""),
            ),
        ]
        indexes = [
            models.Index(fields=["is_active", "current_step"], name="box_active_step_idx"),
        ]

    @property
    def status(self) -> str:
        return status_for_step(self.current_step)

    @property
    def is_assigned(self) -> bool:
        return self.assigned_service_id is not None

    @property
    def sterility_expires_at(self):
        """Explicit horizon if set, otherwise derived from the last sterilization."""
        if self.next_sterilization_due:
            return self.next_sterilization_due
        if self.last_sterilized_at:
            return self.last_sterilized_at + timedelta(days=settings.STERILIZATION_VALIDITY_DAYS)
        return None

    def save(self, *args, **kwargs):
        self.box_code = normalize_box_code(self.box_code)
        return super().save(*args, **kwargs)

    def __str__(self):
        return f"{self.box_code} ({self.name})"


# ============================================================
# User Roles
# ============================================================
class UserRole(TimeStampedModel):
    ADMIN = "ADMIN"
    INSTRUMENTISTE = "INSTRUMENTISTE"
    USER = "USER"

    ROLE_CHOICES = [
        (ADMIN, "Administrator"),
        (INSTRUMENTISTE, "Instrumentiste"),
        (USER, "User"),
    ]

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="sterilization_roles",
    )
    role = models.CharField(max_length=32, choices=ROLE_CHOICES)

    class Meta:
        unique_together = ("user", "role")
        ordering = ["user_id", "role"]

    def __str__(self):
        return f"{self.user} - {self.role}"


# ============================================================
# Audit Log
# ============================================================
class AuditLog(TimeStampedModel):
    """Track record changes for compliance and traceability."""
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
    )
    action = models.CharField(max_length=255)
    details = models.JSONField(default=dict, blank=True)

    class Meta:
        ordering = ["-created_at", "-id"]
        indexes = [
            models.Index(fields=["action", "created_at"], name="audit_action_time_idx"),
        ]

    def __str__(self):
        return self.action
