# sterilization/services/registry.py
"""
Box registry: lookup and raw persistence of instrument boxes.

No step/status rules are enforced here; the workflow orchestrator owns them.
Writes go through queryset updates so they do not trip the model write guard.
"""

from __future__ import annotations

from typing import Optional

from django.db.models import F
from django.utils import timezone

from sterilization.exceptions import BoxNotFound, StaleTransition
from sterilization.models import InstrumentBox
from sterilization.workflows import normalize_box_code


def get_by_code(code: str) -> InstrumentBox:
    """Active box whose code matches `code` (trimmed, case-insensitive)."""
    normalized = normalize_box_code(code)
    if not normalized:
        raise BoxNotFound()

    box = (
        InstrumentBox.objects.active()
        .select_related("service", "assigned_service")
        .filter(box_code=normalized)
        .first()
    )
    if box is None:
        raise BoxNotFound(f"No active box with code '{normalized}'.")
    return box


def get_by_id(box_id) -> InstrumentBox:
    box = (
        InstrumentBox.objects.active()
        .select_related("service", "assigned_service")
        .filter(pk=box_id)
        .first()
    )
    if box is None:
        raise BoxNotFound()
    return box


def lock(box_id) -> InstrumentBox:
    """
    Re-read the box with a row lock. Must be called inside transaction.atomic().
    """
    box = (
        InstrumentBox.objects.select_for_update()
        .filter(pk=box_id, is_active=True)
        .first()
    )
    if box is None:
        raise BoxNotFound()
    return box


def update(box_id, *, expected_version: Optional[int] = None, **fields) -> InstrumentBox:
    """
    Persist `fields` on the box and bump its version.

    With `expected_version`, the write only applies if the stored version still
    matches; otherwise StaleTransition is raised and nothing changes.
    """
    qs = InstrumentBox.objects.filter(pk=box_id, is_active=True)
    if expected_version is not None:
        qs = qs.filter(version=expected_version)

    fields.setdefault("updated_at", timezone.now())
    updated = qs.update(version=F("version") + 1, **fields)

    if not updated:
        if expected_version is not None and InstrumentBox.objects.filter(pk=box_id, is_active=True).exists():
            raise StaleTransition()
        raise BoxNotFound()

    return get_by_id(box_id)
