# sterilization/models/assignment.py

from django.conf import settings
from django.db import models
from django.db.models import Q
from django.utils import timezone


class BoxAssignment(models.Model):
    """A sterile box lent to a requesting service (and its operating block)."""

    class Status(models.TextChoices):
        REQUESTED = "requested", "Requested"
        ASSIGNED = "assigned", "Assigned"
        IN_USE = "in_use", "In use"
        RETURNED = "returned", "Returned"

    OPEN_STATUSES = (Status.REQUESTED, Status.ASSIGNED, Status.IN_USE)

    box = models.ForeignKey(
        "sterilization.InstrumentBox",
        on_delete=models.PROTECT,
        related_name="assignments",
    )
    service = models.ForeignKey(
        "sterilization.Service",
        on_delete=models.PROTECT,
        related_name="assignments",
    )
    bloc = models.CharField(max_length=255, null=True, blank=True)

    status = models.CharField(
        max_length=16,
        choices=Status.choices,
        default=Status.REQUESTED,
        db_index=True,
    )

    requested_at = models.DateTimeField(default=timezone.now)
    assigned_at = models.DateTimeField(null=True, blank=True)
    returned_at = models.DateTimeField(null=True, blank=True)

    assigned_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="box_assignments_made",
    )
    returned_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="box_assignments_returned",
    )

    notes = models.TextField(blank=True)

    class Meta:
        ordering = ["-requested_at", "-id"]
        constraints = [
            models.UniqueConstraint(
                fields=["box"],
                condition=Q(status__in=["requested", "assigned", "in_use"]),
                name="one_open_assignment_per_box",
            ),
        ]

    @property
    def is_open(self) -> bool:
        return self.status in self.OPEN_STATUSES

    def __str__(self):
        return f"{self.box_id} -> {self.service_id} ({self.status})"
