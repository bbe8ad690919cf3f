# sterilization/services/assignments.py
"""
Assignment side-flow: lending sterile boxes to a requesting service.

assign -> (start_use) -> return_box
"""

from __future__ import annotations

import logging
from typing import List, Optional

from django.db import DatabaseError, IntegrityError, transaction
from django.utils import timezone

from sterilization.exceptions import (
    AssignmentConflict,
    AssignmentNotFound,
    PersistenceFailure,
    ServiceNotFound,
)
from sterilization.models import BoxAssignment, Service
from sterilization.services import registry, workflow_log
from sterilization.services.workflow import TransitionResult, join_notes, reset_locked
from sterilization.workflows import DISTRIBUTION, STERILE

logger = logging.getLogger(__name__)


def _active_service(service_id) -> Service:
    service = Service.objects.filter(pk=service_id, is_active=True).first()
    if service is None:
        raise ServiceNotFound()
    return service


def _lock_assignment(assignment_id) -> BoxAssignment:
    assignment = (
        BoxAssignment.objects.select_for_update()
        .filter(pk=assignment_id)
        .first()
    )
    if assignment is None:
        raise AssignmentNotFound()
    return assignment


def assign(
    box_id,
    service_id,
    actor,
    bloc: Optional[str] = None,
    notes: Optional[str] = None,
) -> BoxAssignment:
    """
    Hand a sterile, unassigned box to `service`.

    The box moves to distribution (status in_use) and the move is logged.
    """
    service = _active_service(service_id)
    bloc = (bloc or "").strip() or None

    try:
        with transaction.atomic():
            box = registry.lock(box_id)

            if box.status != STERILE:
                raise AssignmentConflict(
                    f"Box {box.box_code} is not sterile (status: {box.status})."
                )
            if box.is_assigned:
                raise AssignmentConflict(f"Box {box.box_code} is already assigned.")
            if BoxAssignment.objects.filter(box_id=box.pk, status__in=BoxAssignment.OPEN_STATUSES).exists():
                raise AssignmentConflict(f"Box {box.box_code} already has an open assignment.")

            now = timezone.now()
            assignment = BoxAssignment.objects.create(
                box=box,
                service=service,
                bloc=bloc,
                status=BoxAssignment.Status.ASSIGNED,
                requested_at=now,
                assigned_at=now,
                assigned_by=actor,
                notes=notes or "",
            )

            updated = registry.update(
                box.pk,
                expected_version=box.version,
                current_step=DISTRIBUTION,
                assigned_service=service,
                assigned_bloc=bloc,
            )
            workflow_log.append(
                box=updated,
                from_step=box.current_step,
                to_step=DISTRIBUTION,
                performed_by=actor,
                sterilization_type=updated.sterilization_type,
                notes=join_notes(f"Assigned to {service.name}", bloc, notes),
            )
    except IntegrityError as exc:
        # Lost a race against another assignment of the same box
        raise AssignmentConflict() from exc
    except DatabaseError as exc:
        logger.exception("Assignment failed for box %s", box_id)
        raise PersistenceFailure() from exc

    logger.info("Box %s assigned to service %s (by %s)", updated.box_code, service.code, actor)
    return assignment


def start_use(assignment_id, actor) -> BoxAssignment:
    with transaction.atomic():
        assignment = _lock_assignment(assignment_id)
        if assignment.status != BoxAssignment.Status.ASSIGNED:
            raise AssignmentConflict(
                f"Assignment {assignment.pk} is {assignment.status}; only assigned boxes can be put in use."
            )

        assignment.status = BoxAssignment.Status.IN_USE
        assignment.save(update_fields=["status"])

    logger.info("Assignment %s in use (by %s)", assignment.pk, actor)
    return assignment


def return_box(assignment_id, actor, notes: Optional[str] = None) -> TransitionResult:
    """
    Close an open assignment and send its box back to reception.
    """
    try:
        with transaction.atomic():
            assignment = _lock_assignment(assignment_id)
            if not assignment.is_open:
                raise AssignmentConflict(f"Assignment {assignment.pk} is already returned.")

            box = registry.lock(assignment.box_id)

            assignment.status = BoxAssignment.Status.RETURNED
            assignment.returned_at = timezone.now()
            assignment.returned_by = actor
            if notes:
                assignment.notes = join_notes(assignment.notes, notes)
            assignment.save(update_fields=["status", "returned_at", "returned_by", "notes"])

            result = reset_locked(
                box,
                actor,
                join_notes(f"Returned by {assignment.service.name}", notes),
            )
    except DatabaseError as exc:
        logger.exception("Return failed for assignment %s", assignment_id)
        raise PersistenceFailure() from exc

    logger.info("Box %s returned to reception (by %s)", result.box.box_code, actor)
    return result


def open_assignments() -> List[BoxAssignment]:
    return list(
        BoxAssignment.objects.filter(status__in=BoxAssignment.OPEN_STATUSES)
        .select_related("box", "service", "assigned_by")
        .order_by("-requested_at", "-id")
    )
