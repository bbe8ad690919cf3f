# sterilization/services/workflow.py
"""
Workflow orchestrator.

All step changes of an instrument box MUST go through this module.
Never write `current_step` directly from views, serializers or the admin.

Each operation runs in one transaction: the box row is locked, updated with
a version compare-and-swap, and exactly one workflow log entry is appended.
Either both writes commit or neither does.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional, Tuple

from django.conf import settings
from django.db import DatabaseError, transaction
from django.utils import timezone

from sterilization.exceptions import (
    AssignmentConflict,
    PersistenceFailure,
    StaleTransition,
    ValidationRequired,
)
from sterilization.models import BoxAssignment, InstrumentBox, SterilityAlert, WorkflowLogEntry
from sterilization.services import registry, workflow_log
from sterilization.workflows import (
    DISTRIBUTION,
    RECEPTION,
    STERILE,
    STERILIZATION_TYPES,
    next_step,
    plan_transition,
    requires_validation,
    status_for_step,
    step_progress,
)

logger = logging.getLogger(__name__)

STERILITY_EXPIRED_NOTE = "Sterility expired"


@dataclass(frozen=True)
class TransitionResult:
    box: InstrumentBox
    log: WorkflowLogEntry


@dataclass(frozen=True)
class ScanResult:
    box: InstrumentBox
    next_step: str
    next_status: str
    requires_validation: bool
    progress: Tuple[int, int]
    open_assignment: Optional[BoxAssignment]
    blocked_by_assignment: bool = False


# ===============================================================
# Helpers
# ===============================================================

def _resolve_sterilization_type(requested: Optional[str], box: InstrumentBox) -> str:
    value = str(requested or "").strip().lower()
    if not value:
        return box.sterilization_type or settings.STERILIZATION_DEFAULT_TYPE
    if value not in STERILIZATION_TYPES:
        raise ValidationRequired(
            f"Unknown sterilization type '{requested}'. "
            f"Use one of: {', '.join(STERILIZATION_TYPES)}."
        )
    return value


def _open_assignment(box_id) -> Optional[BoxAssignment]:
    return (
        BoxAssignment.objects.filter(box_id=box_id, status__in=BoxAssignment.OPEN_STATUSES)
        .select_related("service")
        .first()
    )


def _check_version(box: InstrumentBox, expected_version: Optional[int]) -> None:
    if expected_version is not None and box.version != int(expected_version):
        logger.info(
            "Stale transition on box %s: expected version %s, found %s",
            box.box_code,
            expected_version,
            box.version,
        )
        raise StaleTransition()


def join_notes(*parts: Optional[str]) -> str:
    return "\n".join(p.strip() for p in parts if p and p.strip())


def reset_locked(box: InstrumentBox, actor, notes: str) -> TransitionResult:
    """Reset an already locked box to reception. Caller owns the transaction."""
    now = timezone.now()

    BoxAssignment.objects.filter(
        box_id=box.pk,
        status__in=BoxAssignment.OPEN_STATUSES,
    ).update(
        status=BoxAssignment.Status.RETURNED,
        returned_at=now,
        returned_by=actor,
    )

    updated = registry.update(
        box.pk,
        expected_version=box.version,
        current_step=RECEPTION,
        assigned_service=None,
        assigned_bloc=None,
    )
    entry = workflow_log.append(
        box=updated,
        from_step=box.current_step,
        to_step=RECEPTION,
        performed_by=actor,
        sterilization_type=updated.sterilization_type,
        notes=notes,
    )
    return TransitionResult(box=updated, log=entry)


# ===============================================================
# Operations
# ===============================================================

def scan(box_code: str) -> ScanResult:
    """Look up a scanned box and preview its next move. Never writes."""
    box = registry.get_by_code(box_code)
    target = next_step(box.current_step)
    open_assignment = _open_assignment(box.pk)

    return ScanResult(
        box=box,
        next_step=target,
        next_status=status_for_step(target),
        requires_validation=requires_validation(box.current_step),
        progress=step_progress(box.current_step),
        open_assignment=open_assignment,
        # advance() refuses a lent box; it has to be returned first
        blocked_by_assignment=box.current_step == DISTRIBUTION and open_assignment is not None,
    )


def advance(
    box_code: str,
    actor,
    validation_result: Optional[str] = None,
    sterilization_type: Optional[str] = None,
    notes: Optional[str] = None,
    expected_version: Optional[int] = None,
) -> TransitionResult:
    """
    Move the box identified by `box_code` to its next step.

    Leaving sterilization requires `validation_result` ("passed"/"failed");
    a failed control restarts the cycle at reception.
    """
    box = registry.get_by_code(box_code)
    stype = _resolve_sterilization_type(sterilization_type, box)

    try:
        with transaction.atomic():
            locked = registry.lock(box.pk)
            _check_version(locked, expected_version)

            plan = plan_transition(locked.current_step, validation_result)

            if locked.current_step == DISTRIBUTION:
                open_assignment = _open_assignment(locked.pk)
                if open_assignment is not None:
                    raise AssignmentConflict(
                        f"Box {locked.box_code} is assigned to "
                        f"{open_assignment.service.name}; return it first."
                    )

            fields = {
                "current_step": plan.to_step,
                "sterilization_type": stype,
            }
            if plan.sets_sterilized_at:
                now = timezone.now()
                fields["last_sterilized_at"] = now
                fields["next_sterilization_due"] = now + timedelta(
                    days=settings.STERILIZATION_VALIDITY_DAYS
                )
            if plan.clears_assignment:
                fields["assigned_service"] = None
                fields["assigned_bloc"] = None

            updated = registry.update(locked.pk, expected_version=locked.version, **fields)

            entry = workflow_log.append(
                box=updated,
                from_step=plan.from_step,
                to_step=plan.to_step,
                performed_by=actor,
                sterilization_type=stype,
                validation_result=plan.validation_result,
                notes=join_notes(plan.restart_reason, notes),
            )
    except DatabaseError as exc:
        logger.exception("Workflow write failed for box %s", box.box_code)
        raise PersistenceFailure() from exc

    if plan.is_restart:
        logger.warning(
            "Box %s failed control, cycle restarted at reception (by %s)",
            updated.box_code,
            actor,
        )
    else:
        logger.info(
            "Box %s: %s -> %s (by %s)",
            updated.box_code,
            plan.from_step or "-",
            plan.to_step,
            actor,
        )

    return TransitionResult(box=updated, log=entry)


def reset_to_reception(box_id, actor, notes: Optional[str] = None) -> TransitionResult:
    """
    Unconditionally send a box back to reception and drop its assignment.

    The log entry records the step the box actually left.
    """
    try:
        with transaction.atomic():
            locked = registry.lock(box_id)
            result = reset_locked(locked, actor, join_notes(notes))
    except DatabaseError as exc:
        logger.exception("Reset failed for box %s", box_id)
        raise PersistenceFailure() from exc

    logger.info("Box %s reset to reception (by %s)", result.box.box_code, actor)
    return result


def mark_for_resterilization(box_id, actor, notes: Optional[str] = None) -> TransitionResult:
    """
    Send a sterile box whose sterility lapsed back through the cycle.

    Open sterility alerts for the box are resolved.
    """
    try:
        with transaction.atomic():
            locked = registry.lock(box_id)
            if locked.status != STERILE:
                raise AssignmentConflict(
                    f"Box {locked.box_code} is not sterile and cannot be marked for re-sterilization."
                )

            result = reset_locked(locked, actor, join_notes(STERILITY_EXPIRED_NOTE, notes))

            SterilityAlert.objects.filter(
                box_id=locked.pk,
                resolved_at__isnull=True,
            ).update(resolved_at=timezone.now())
    except DatabaseError as exc:
        logger.exception("Re-sterilization failed for box %s", box_id)
        raise PersistenceFailure() from exc

    logger.info("Box %s marked for re-sterilization (by %s)", result.box.box_code, actor)
    return result
