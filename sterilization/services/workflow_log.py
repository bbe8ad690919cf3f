# sterilization/services/workflow_log.py
from __future__ import annotations

from typing import Any, Dict, List, Optional

from django.conf import settings

from sterilization.models import WorkflowLogEntry

UNKNOWN_PERFORMER = "Unknown"


def append(
    *,
    box,
    to_step: str,
    performed_by,
    from_step: Optional[str] = None,
    sterilization_type: Optional[str] = None,
    validation_result: Optional[str] = None,
    notes: Optional[str] = None,
) -> WorkflowLogEntry:
    return WorkflowLogEntry.objects.create(
        box=box,
        from_step=from_step,
        to_step=to_step,
        performed_by=performed_by,
        sterilization_type=sterilization_type,
        validation_result=validation_result,
        notes=notes or "",
    )


def list_for_box(box_id, limit: Optional[int] = None) -> List[WorkflowLogEntry]:
    """Most recent entries for a box, newest first."""
    if limit is None:
        limit = settings.WORKFLOW_HISTORY_LIMIT

    return list(
        WorkflowLogEntry.objects.filter(box_id=box_id)
        .select_related("performed_by")
        .order_by("-created_at", "-id")[: max(int(limit), 0)]
    )


def performer_name(user) -> str:
    if user is None:
        return UNKNOWN_PERFORMER
    full = (user.get_full_name() or "").strip()
    return full or user.get_username() or UNKNOWN_PERFORMER


def recent_activity(limit: int = 15) -> List[Dict[str, Any]]:
    """Global activity feed across all boxes."""
    entries = (
        WorkflowLogEntry.objects.select_related("box", "performed_by")
        .order_by("-created_at", "-id")[: max(int(limit), 0)]
    )

    return [
        {
            "id": e.pk,
            "box_id": e.box_id,
            "box_code": e.box.box_code,
            "box_name": e.box.name,
            "from_step": e.from_step,
            "to_step": e.to_step,
            "validation_result": e.validation_result,
            "notes": e.notes,
            "performed_by": performer_name(e.performed_by),
            "created_at": e.created_at.isoformat(),
        }
        for e in entries
    ]
