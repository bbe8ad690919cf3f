# sterilization/services/expiry.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import List, Optional

from django.conf import settings
from django.db import transaction
from django.db.models import Q
from django.utils import timezone

from sterilization.models import InstrumentBox, SterilityAlert
from sterilization.workflows import STORAGE

logger = logging.getLogger(__name__)

EXPIRED = "expired"
CRITICAL = "critical"
WARNING = "warning"
OK = "ok"

EXPIRY_LEVELS = (EXPIRED, CRITICAL, WARNING, OK)
EXPIRY_LEVEL_RANK = {level: idx for idx, level in enumerate(EXPIRY_LEVELS)}


@dataclass(frozen=True)
class ExpiringBox:
    box: InstrumentBox
    sterilized_at: Optional[datetime]
    expires_at: datetime
    days_remaining: int
    level: str


def normalize_level(value: Optional[str]) -> Optional[str]:
    raw = str(value or "").strip().lower()
    if not raw:
        return None
    if raw not in EXPIRY_LEVELS:
        raise ValueError(f"Unknown expiry level: {value}. Use one of: {', '.join(EXPIRY_LEVELS)}.")
    return raw


def expiry_level(expires_at: datetime, now: datetime) -> str:
    if expires_at < now:
        return EXPIRED
    remaining = expires_at - now
    if remaining <= timedelta(days=settings.STERILIZATION_EXPIRY_CRITICAL_DAYS):
        return CRITICAL
    if remaining <= timedelta(days=settings.STERILIZATION_EXPIRY_WARNING_DAYS):
        return WARNING
    return OK


def _stored_boxes():
    """
    Boxes at storage. The stored horizon is only written on entering
    storage, so at any other step it belongs to a previous cycle.
    """
    return (
        InstrumentBox.objects.active()
        .filter(current_step=STORAGE)
        .filter(Q(last_sterilized_at__isnull=False) | Q(next_sterilization_due__isnull=False))
        .select_related("service")
    )


def expiring_boxes(now: Optional[datetime] = None, level: Optional[str] = None) -> List[ExpiringBox]:
    """
    Stored boxes ranked by urgency (most urgent first).

    Without `level`, boxes still comfortably within their horizon ("ok") are
    left out.
    """
    now = now or timezone.now()
    wanted = normalize_level(level)

    rows: List[ExpiringBox] = []
    for box in _stored_boxes().iterator():
        expires_at = box.sterility_expires_at
        current = expiry_level(expires_at, now)

        if wanted is None and current == OK:
            continue
        if wanted is not None and current != wanted:
            continue

        rows.append(
            ExpiringBox(
                box=box,
                sterilized_at=box.last_sterilized_at,
                expires_at=expires_at,
                days_remaining=(expires_at - now).days,
                level=current,
            )
        )

    rows.sort(key=lambda r: (EXPIRY_LEVEL_RANK[r.level], r.expires_at, r.box.pk))
    return rows


def scan_sterility_expiry(*, now: Optional[datetime] = None) -> int:
    """
    Raise one SterilityAlert per expired sterilization window and resolve
    alerts for boxes that have left storage.

    Returns:
        int: number of newly created alerts
    """
    now = now or timezone.now()
    created_count = 0

    for item in expiring_boxes(now=now, level=EXPIRED):
        # Prevent duplicate alerts for the same sterilization window
        with transaction.atomic():
            _, created = SterilityAlert.objects.get_or_create(
                box=item.box,
                sterilized_at=item.sterilized_at or item.expires_at,
                defaults={"expired_at": item.expires_at},
            )
        if created:
            created_count += 1

    stored_ids = InstrumentBox.objects.active().filter(current_step=STORAGE).values("pk")
    resolved = (
        SterilityAlert.objects.filter(resolved_at__isnull=True)
        .exclude(box_id__in=stored_ids)
        .update(resolved_at=now)
    )

    if created_count or resolved:
        logger.info("Sterility scan: %s new alert(s), %s resolved", created_count, resolved)

    return created_count
