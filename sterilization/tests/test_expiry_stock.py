# sterilization/tests/test_expiry_stock.py

from datetime import timedelta
from io import StringIO

import pytest
from django.core.management import call_command
from django.utils import timezone

from sterilization.models import InstrumentBox, SterilityAlert
from sterilization.services import workflow
from sterilization.services.expiry import (
    CRITICAL,
    EXPIRED,
    OK,
    WARNING,
    expiring_boxes,
    expiry_level,
    scan_sterility_expiry,
)
from sterilization.services.stock import stock_overview
from sterilization.tasks import scan_sterility_expiry as scan_task


pytestmark = pytest.mark.django_db


def _sterilized(box_factory, days_ago, step="storage", **extra):
    return box_factory(
        current_step=step,
        last_sterilized_at=timezone.now() - timedelta(days=days_ago),
        **extra,
    )


def test_expiry_levels():
    now = timezone.now()

    assert expiry_level(now - timedelta(minutes=1), now) == EXPIRED
    assert expiry_level(now + timedelta(days=2), now) == CRITICAL
    assert expiry_level(now + timedelta(days=3), now) == CRITICAL
    assert expiry_level(now + timedelta(days=5), now) == WARNING
    assert expiry_level(now + timedelta(days=8), now) == OK


def test_expiring_boxes_ranked_by_urgency(box_factory):
    warning = _sterilized(box_factory, 25)
    expired = _sterilized(box_factory, 35)
    critical = _sterilized(box_factory, 28)
    _sterilized(box_factory, 1)
    _sterilized(box_factory, 40, step="cleaning")

    rows = expiring_boxes()

    assert [r.box.pk for r in rows] == [expired.pk, critical.pk, warning.pk]
    assert [r.level for r in rows] == [EXPIRED, CRITICAL, WARNING]


def test_expiring_boxes_level_filter(box_factory):
    fresh = _sterilized(box_factory, 1)
    _sterilized(box_factory, 35)

    assert [r.box.pk for r in expiring_boxes(level="ok")] == [fresh.pk]

    with pytest.raises(ValueError):
        expiring_boxes(level="soon")


def test_explicit_due_date_wins(box_factory):
    box = _sterilized(box_factory, 1, next_sterilization_due=timezone.now() - timedelta(hours=1))

    rows = expiring_boxes(level=EXPIRED)

    assert [r.box.pk for r in rows] == [box.pk]


def test_scan_creates_one_alert_per_window(box_factory):
    box = _sterilized(box_factory, 35)

    assert scan_sterility_expiry() == 1
    assert scan_sterility_expiry() == 0

    alert = SterilityAlert.objects.get(box=box)
    assert alert.sterilized_at == box.last_sterilized_at
    assert alert.resolved_at is None


def test_scan_resolves_alerts_for_reprocessed_boxes(box_factory, user_admin):
    box = _sterilized(box_factory, 35)
    scan_sterility_expiry()

    workflow.reset_to_reception(box.pk, user_admin)
    scan_sterility_expiry()

    assert SterilityAlert.objects.get(box=box).resolved_at is not None


def test_previous_cycle_date_ignored_outside_storage(box_factory, user_instrumentiste):
    box = _sterilized(box_factory, 40, step="sterilization")

    workflow.advance(box.box_code, user_instrumentiste, validation_result="passed")

    assert expiring_boxes() == []
    assert expiring_boxes(level=EXPIRED) == []
    assert scan_sterility_expiry() == 0
    assert not SterilityAlert.objects.filter(box=box).exists()


def test_alert_resolved_when_box_leaves_storage(box_factory):
    box = _sterilized(box_factory, 35)
    scan_sterility_expiry()

    InstrumentBox.objects.filter(pk=box.pk).update(current_step="distribution")
    scan_sterility_expiry()

    assert SterilityAlert.objects.get(box=box).resolved_at is not None


def test_celery_task_runs_scan(box_factory):
    _sterilized(box_factory, 31)

    assert scan_task.apply().get() == 1


def test_management_command(box_factory):
    box = _sterilized(box_factory, 33)
    out = StringIO()

    call_command("check_sterility_expiry", "--report", stdout=out)

    text = out.getvalue()
    assert "1 new sterility alert(s)" in text
    assert box.box_code in text


def test_stock_overview(box_factory):
    box_factory(current_step=None)
    box_factory(current_step="reception")
    box_factory(current_step="cleaning")
    box_factory(current_step="conditioning")
    box_factory(current_step="sterilization")
    _sterilized(box_factory, 2)
    _sterilized(box_factory, 24)
    box_factory(current_step="distribution")
    box_factory(current_step="storage", is_active=False)

    data = stock_overview()

    assert data["total"] == 8
    assert data["by_status"] == {
        "dirty": 2,
        "cleaning": 1,
        "ready_for_sterilization": 1,
        "sterilizing": 1,
        "sterile": 2,
        "in_use": 1,
    }
    assert data["available"] == 2
    assert data["available_percent"] == 25
    assert data["in_progress"] == 3
    assert data["expiring_soon"] == 1


def test_stock_expiring_soon_counts_stored_boxes_only(box_factory):
    _sterilized(box_factory, 26)
    _sterilized(box_factory, 40, step="control")
    _sterilized(box_factory, 40, step="reception")

    assert stock_overview()["expiring_soon"] == 1


def test_stock_overview_empty():
    data = stock_overview()
    assert data["total"] == 0
    assert data["available_percent"] == 0
