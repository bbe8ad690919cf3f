# sterilization/tests/test_workflow_orchestrator.py

from datetime import timedelta
from unittest import mock

import pytest
from django.db import DatabaseError
from django.utils import timezone

from sterilization.exceptions import (
    AssignmentConflict,
    BoxNotFound,
    PersistenceFailure,
    StaleTransition,
    ValidationRequired,
)
from sterilization.models import AuditLog, BoxAssignment, InstrumentBox, SterilityAlert, WorkflowLogEntry
from sterilization.services import registry, workflow
from sterilization.workflows import FAILED_CONTROL_NOTE, STEP_ORDER


pytestmark = pytest.mark.django_db


def _reload(box):
    return InstrumentBox.objects.get(pk=box.pk)


# ---------------------------------------------------------------
# Scenarios
# ---------------------------------------------------------------

def test_new_box_advances_to_reception(box_factory, user_instrumentiste):
    box = box_factory(current_step=None)

    result = workflow.advance(box.box_code, user_instrumentiste)

    assert result.box.current_step == "reception"
    assert result.box.status == "dirty"

    entries = list(WorkflowLogEntry.objects.filter(box=box))
    assert len(entries) == 1
    assert entries[0].from_step is None
    assert entries[0].to_step == "reception"
    assert entries[0].performed_by == user_instrumentiste


def test_leaving_sterilization_without_result_changes_nothing(box_factory, user_instrumentiste):
    box = box_factory(current_step="sterilization")

    with pytest.raises(ValidationRequired):
        workflow.advance(box.box_code, user_instrumentiste)

    fresh = _reload(box)
    assert fresh.current_step == "sterilization"
    assert fresh.version == box.version
    assert not WorkflowLogEntry.objects.filter(box=box).exists()


def test_failed_control_restarts_cycle(box_factory, user_instrumentiste, service):
    box = box_factory(current_step="sterilization", assigned_service=service, assigned_bloc="Bloc B")

    result = workflow.advance(box.box_code, user_instrumentiste, validation_result="failed")

    assert result.box.current_step == "reception"
    assert result.box.status == "dirty"
    assert result.box.assigned_service_id is None
    assert result.box.assigned_bloc is None

    entry = result.log
    assert entry.from_step == "sterilization"
    assert entry.to_step == "reception"
    assert entry.validation_result == "failed"
    assert FAILED_CONTROL_NOTE in entry.notes


def test_passed_control_moves_to_control(box_factory, user_instrumentiste):
    box = box_factory(current_step="sterilization")

    result = workflow.advance(box.box_code, user_instrumentiste, validation_result="passed", notes="Cycle 42")

    assert result.box.current_step == "control"
    assert result.box.status == "sterile"
    assert result.log.validation_result == "passed"
    assert result.log.notes == "Cycle 42"


def test_reset_from_distribution_clears_assignment(box_factory, user_instrumentiste, service):
    box = box_factory(current_step="distribution", assigned_service=service, assigned_bloc="Bloc A")

    result = workflow.reset_to_reception(box.pk, user_instrumentiste)

    assert result.box.current_step == "reception"
    assert result.box.status == "dirty"
    assert result.box.assigned_service_id is None
    assert result.box.assigned_bloc is None
    assert result.log.from_step == "distribution"
    assert result.log.to_step == "reception"


def test_control_to_storage_stamps_sterilization_time(box_factory, user_instrumentiste, settings):
    box = box_factory(current_step="control")

    before = timezone.now()
    result = workflow.advance(box.box_code, user_instrumentiste)
    after = timezone.now()

    assert result.box.current_step == "storage"
    assert result.box.status == "sterile"
    assert before <= result.box.last_sterilized_at <= after
    assert result.box.next_sterilization_due == result.box.last_sterilized_at + timedelta(
        days=settings.STERILIZATION_VALIDITY_DAYS
    )


# ---------------------------------------------------------------
# Properties
# ---------------------------------------------------------------

@pytest.mark.parametrize("step", [s for s in STEP_ORDER if s not in ("control", "distribution")])
def test_last_sterilized_at_untouched_outside_storage(box_factory, user_instrumentiste, step):
    stamp = timezone.now() - timedelta(days=2)
    box = box_factory(current_step=step, last_sterilized_at=stamp)

    result = "passed" if step == "sterilization" else None
    workflow.advance(box.box_code, user_instrumentiste, validation_result=result)

    assert _reload(box).last_sterilized_at == stamp


def test_every_advance_logs_before_and_after_step(box_factory, user_instrumentiste):
    box = box_factory(current_step=None)

    for _ in range(len(STEP_ORDER)):
        before = _reload(box).current_step
        result = "passed" if before == "sterilization" else None
        count = WorkflowLogEntry.objects.filter(box=box).count()

        out = workflow.advance(box.box_code, user_instrumentiste, validation_result=result)

        assert WorkflowLogEntry.objects.filter(box=box).count() == count + 1
        assert out.log.from_step == before
        assert out.log.to_step == _reload(box).current_step

    assert _reload(box).current_step == "distribution"


def test_reset_is_unconditional(box_factory, user_admin):
    for step in (None,) + STEP_ORDER:
        box = box_factory(current_step=step)
        result = workflow.reset_to_reception(box.pk, user_admin)

        assert result.box.current_step == "reception"
        assert result.box.status == "dirty"
        assert result.log.from_step == step


def test_advance_bumps_version(box_factory, user_instrumentiste):
    box = box_factory(current_step="reception")
    result = workflow.advance(box.box_code, user_instrumentiste)
    assert result.box.version == box.version + 1


def test_scanned_code_is_case_insensitive(box_factory, user_instrumentiste):
    box = box_factory(box_code="BOX-ORTHO-1", current_step="cleaning")

    result = workflow.advance("  box-ortho-1 ", user_instrumentiste)

    assert result.box.pk == box.pk
    assert result.box.current_step == "conditioning"


def test_unknown_or_inactive_box_is_not_found(box_factory, user_instrumentiste):
    box_factory(box_code="GONE-1", is_active=False)

    with pytest.raises(BoxNotFound):
        workflow.advance("NOPE-404", user_instrumentiste)
    with pytest.raises(BoxNotFound):
        workflow.advance("gone-1", user_instrumentiste)
    with pytest.raises(BoxNotFound):
        workflow.advance("   ", user_instrumentiste)


# ---------------------------------------------------------------
# Sterilization type
# ---------------------------------------------------------------

def test_sterilization_type_defaults_to_box_type(box_factory, user_instrumentiste):
    box = box_factory(current_step="conditioning", sterilization_type="plasma")

    result = workflow.advance(box.box_code, user_instrumentiste)

    assert result.box.sterilization_type == "plasma"
    assert result.log.sterilization_type == "plasma"


def test_sterilization_type_falls_back_to_setting(box_factory, user_instrumentiste, settings):
    settings.STERILIZATION_DEFAULT_TYPE = "vapeur"
    box = box_factory(current_step="conditioning")

    result = workflow.advance(box.box_code, user_instrumentiste)

    assert result.box.sterilization_type == "vapeur"


def test_unknown_sterilization_type_is_rejected(box_factory, user_instrumentiste):
    box = box_factory(current_step="conditioning")

    with pytest.raises(ValidationRequired):
        workflow.advance(box.box_code, user_instrumentiste, sterilization_type="microwave")

    assert _reload(box).current_step == "conditioning"


# ---------------------------------------------------------------
# Concurrency / failures
# ---------------------------------------------------------------

def test_stale_expected_version_is_rejected(box_factory, user_instrumentiste):
    box = box_factory(current_step="reception")
    seen_version = box.version

    workflow.advance(box.box_code, user_instrumentiste, expected_version=seen_version)

    with pytest.raises(StaleTransition):
        workflow.advance(box.box_code, user_instrumentiste, expected_version=seen_version)

    fresh = _reload(box)
    assert fresh.current_step == "pre_disinfection"
    assert WorkflowLogEntry.objects.filter(box=box).count() == 1


def test_registry_update_compare_and_swap(box_factory):
    box = box_factory(current_step="reception")

    updated = registry.update(box.pk, expected_version=0, name="Renamed")
    assert updated.name == "Renamed"
    assert updated.version == 1

    with pytest.raises(StaleTransition):
        registry.update(box.pk, expected_version=0, name="Again")


def test_registry_update_refreshes_updated_at(box_factory, user_instrumentiste):
    box = box_factory(current_step="reception")
    stale = timezone.now() - timedelta(days=2)
    InstrumentBox.objects.filter(pk=box.pk).update(updated_at=stale)

    renamed = registry.update(box.pk, expected_version=box.version, name="Renamed")
    assert renamed.updated_at > stale

    InstrumentBox.objects.filter(pk=box.pk).update(updated_at=stale)
    result = workflow.advance(box.box_code, user_instrumentiste)
    assert _reload(box).updated_at > stale
    assert result.box.updated_at == _reload(box).updated_at


def test_log_failure_rolls_back_box_update(box_factory, user_instrumentiste):
    box = box_factory(current_step="cleaning")

    with mock.patch(
        "sterilization.services.workflow.workflow_log.append",
        side_effect=DatabaseError("disk full"),
    ):
        with pytest.raises(PersistenceFailure):
            workflow.advance(box.box_code, user_instrumentiste)

    fresh = _reload(box)
    assert fresh.current_step == "cleaning"
    assert fresh.version == box.version
    assert not WorkflowLogEntry.objects.filter(box=box).exists()


def test_distribution_with_open_assignment_cannot_advance(box_factory, user_instrumentiste, service):
    box = box_factory(current_step="distribution", assigned_service=service)
    BoxAssignment.objects.create(box=box, service=service, status=BoxAssignment.Status.IN_USE)

    with pytest.raises(AssignmentConflict):
        workflow.advance(box.box_code, user_instrumentiste)

    assert _reload(box).current_step == "distribution"


def test_distribution_without_assignment_wraps_and_clears(box_factory, user_instrumentiste, service):
    box = box_factory(current_step="distribution", assigned_service=service, assigned_bloc="B2")

    result = workflow.advance(box.box_code, user_instrumentiste)

    assert result.box.current_step == "reception"
    assert result.box.assigned_service_id is None
    assert result.box.assigned_bloc is None


def test_reset_closes_open_assignment(box_factory, user_admin, service):
    box = box_factory(current_step="distribution", assigned_service=service)
    assignment = BoxAssignment.objects.create(box=box, service=service, status=BoxAssignment.Status.ASSIGNED)

    workflow.reset_to_reception(box.pk, user_admin, notes="Retour anticipé")

    assignment.refresh_from_db()
    assert assignment.status == BoxAssignment.Status.RETURNED
    assert assignment.returned_by == user_admin


# ---------------------------------------------------------------
# Re-sterilization / scan preview / audit
# ---------------------------------------------------------------

def test_mark_for_resterilization(box_factory, user_admin):
    box = box_factory(current_step="storage", last_sterilized_at=timezone.now() - timedelta(days=40))
    SterilityAlert.objects.create(
        box=box,
        sterilized_at=box.last_sterilized_at,
        expired_at=box.last_sterilized_at + timedelta(days=30),
    )

    result = workflow.mark_for_resterilization(box.pk, user_admin)

    assert result.box.current_step == "reception"
    assert result.log.from_step == "storage"
    assert workflow.STERILITY_EXPIRED_NOTE in result.log.notes
    assert not SterilityAlert.objects.filter(box=box, resolved_at__isnull=True).exists()


def test_mark_for_resterilization_requires_sterile_box(box_factory, user_admin):
    box = box_factory(current_step="cleaning")

    with pytest.raises(AssignmentConflict):
        workflow.mark_for_resterilization(box.pk, user_admin)


def test_scan_previews_without_writing(box_factory):
    box = box_factory(current_step="sterilization")

    preview = workflow.scan(box.box_code.lower())

    assert preview.box.pk == box.pk
    assert preview.next_step == "control"
    assert preview.next_status == "sterile"
    assert preview.requires_validation is True
    assert preview.progress == (5, 8)
    assert preview.open_assignment is None
    assert _reload(box).version == box.version


def test_scan_flags_box_held_by_open_assignment(box_factory, service):
    lent = box_factory(current_step="distribution", assigned_service=service)
    BoxAssignment.objects.create(box=lent, service=service, status=BoxAssignment.Status.IN_USE)
    free = box_factory(current_step="distribution")
    stored = box_factory(current_step="storage")

    preview = workflow.scan(lent.box_code)
    assert preview.next_step == "reception"
    assert preview.open_assignment is not None
    assert preview.blocked_by_assignment is True

    assert workflow.scan(free.box_code).blocked_by_assignment is False
    assert workflow.scan(stored.box_code).blocked_by_assignment is False


def test_transition_is_mirrored_in_audit_log(box_factory, user_instrumentiste):
    box = box_factory(current_step="reception")

    result = workflow.advance(box.box_code, user_instrumentiste)

    audit = AuditLog.objects.filter(action="WORKFLOW_TRANSITION").first()
    assert audit is not None
    assert audit.user == user_instrumentiste
    assert audit.details["box_id"] == box.pk
    assert audit.details["log_entry_id"] == result.log.pk
