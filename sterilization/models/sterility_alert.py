# sterilization/models/sterility_alert.py

from django.db import models


class SterilityAlert(models.Model):
    box = models.ForeignKey(
        "sterilization.InstrumentBox",
        on_delete=models.CASCADE,
        related_name="sterility_alerts",
    )

    # The sterilization window this alert belongs to
    sterilized_at = models.DateTimeField()
    expired_at = models.DateTimeField()

    detected_at = models.DateTimeField(auto_now_add=True)
    resolved_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        unique_together = ("box", "sterilized_at")
        ordering = ("-detected_at",)

    def __str__(self):
        return f"{self.box_id} sterility expired at {self.expired_at:%Y-%m-%d}"
