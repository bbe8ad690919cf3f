# sterilization/tasks.py
from __future__ import annotations

from celery import shared_task

from sterilization.services.expiry import scan_sterility_expiry as _scan


@shared_task(name="sterilization.tasks.scan_sterility_expiry")
def scan_sterility_expiry() -> int:
    return _scan()
