# sterilization/services/stock.py
from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from django.conf import settings
from django.db.models import Count
from django.utils import timezone

from sterilization.models import InstrumentBox
from sterilization.workflows import (
    READY_FOR_STERILIZATION,
    STATUS_CLEANING,
    STATUSES,
    STERILE,
    STERILIZING,
    STORAGE,
    status_for_step,
)

IN_PROGRESS_STATUSES = (STATUS_CLEANING, READY_FOR_STERILIZATION, STERILIZING)


def stock_overview(now: Optional[datetime] = None) -> Dict[str, Any]:
    """Counts of active boxes per status, as shown on the stock dashboard."""
    now = now or timezone.now()
    boxes = InstrumentBox.objects.active()

    by_status = {status: 0 for status in STATUSES}
    for row in boxes.order_by().values("current_step").annotate(n=Count("id")):
        by_status[status_for_step(row["current_step"])] += row["n"]

    total = sum(by_status.values())
    notice_cutoff = now - timedelta(days=settings.STERILIZATION_EXPIRY_NOTICE_DAYS)

    expiring_soon = (
        boxes.filter(
            current_step=STORAGE,
            last_sterilized_at__isnull=False,
            last_sterilized_at__lte=notice_cutoff,
        )
        .count()
    )

    return {
        "total": total,
        "by_status": by_status,
        "available": by_status[STERILE],
        "available_percent": round(by_status[STERILE] * 100 / total) if total else 0,
        "in_progress": sum(by_status[s] for s in IN_PROGRESS_STATUSES),
        "expiring_soon": expiring_soon,
    }
