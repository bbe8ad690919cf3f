# sterilization/models/workflow_log.py

from django.conf import settings
from django.db import models

from sterilization.models.core import STEP_CHOICES, STERILIZATION_TYPE_CHOICES
from sterilization.workflows import VALIDATION_RESULTS
from sterilization.workflows.guards import ImmutableRecordMixin


class WorkflowLogEntry(ImmutableRecordMixin):
    """
    Immutable audit trail of sterilization workflow transitions.
    """

    VALIDATION_CHOICES = [(r, r.capitalize()) for r in VALIDATION_RESULTS]

    box = models.ForeignKey(
        "sterilization.InstrumentBox",
        on_delete=models.PROTECT,
        related_name="workflow_log",
    )

    from_step = models.CharField(max_length=32, choices=STEP_CHOICES, null=True, blank=True)
    to_step = models.CharField(max_length=32, choices=STEP_CHOICES)

    performed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="sterilization_transitions",
    )

    sterilization_type = models.CharField(
        max_length=32,
        choices=STERILIZATION_TYPE_CHOICES,
        null=True,
        blank=True,
    )
    validation_result = models.CharField(
        max_length=16,
        choices=VALIDATION_CHOICES,
        null=True,
        blank=True,
    )

    notes = models.TextField(blank=True)

    created_at = models.DateTimeField(auto_now_add=True, db_index=True)

    class Meta:
        ordering = ["-created_at", "-id"]
        indexes = [
            models.Index(fields=["box", "created_at"], name="wflog_box_time_idx"),
        ]
        verbose_name = "workflow log entry"
        verbose_name_plural = "workflow log entries"

    def __str__(self):
        return (
            f"{self.box_id}: "
            f"{self.from_step or '-'} -> {self.to_step} "
            f"by {self.performed_by_id}"
        )
