# sterilization/signals.py
from __future__ import annotations

import logging
from threading import local

from django.db.models.signals import post_save, post_delete
from django.dispatch import receiver

from sterilization.models import (
    AuditLog,
    BoxAssignment,
    InstrumentBox,
    Service,
    SterilityAlert,
    UserRole,
    WorkflowLogEntry,
)

logger = logging.getLogger(__name__)

# ===============================================================
# Thread-local user storage
# ===============================================================
_state = local()


def set_current_user(user):
    _state.user = user


def get_current_user():
    return getattr(_state, "user", None)


# ===============================================================
# Utilities
# ===============================================================
AUDITED_MODELS = {InstrumentBox, Service, UserRole, BoxAssignment}


def _log(action: str, instance, details: dict | None = None, user=None):
    user = user or get_current_user()

    AuditLog.objects.create(
        user=user if user is not None and user.is_authenticated else None,
        action=action,
        details=details or {
            "model": instance.__class__.__name__,
            "object_id": instance.pk,
        },
    )


# ===============================================================
# CREATE / UPDATE / DELETE audit (reference data)
# ===============================================================
@receiver(post_save)
def audit_create_update(sender, instance, created, **kwargs):
    if sender not in AUDITED_MODELS:
        return

    action = "CREATE" if created else "UPDATE"
    _log(action, instance)


@receiver(post_delete)
def audit_delete(sender, instance, **kwargs):
    if sender not in AUDITED_MODELS:
        return

    _log("DELETE", instance)


# ===============================================================
# WORKFLOW TRANSITIONS
# ===============================================================
@receiver(post_save, sender=WorkflowLogEntry)
def audit_workflow_transition(sender, instance: WorkflowLogEntry, created: bool, **kwargs):
    """
    Mirrors each workflow log entry into the generic audit trail.

    Runs inside the transition's transaction, so it commits or rolls back
    with the box update.
    """
    if not created:
        return

    _log(
        "WORKFLOW_TRANSITION",
        instance,
        details={
            "box_id": instance.box_id,
            "from_step": instance.from_step,
            "to_step": instance.to_step,
            "validation_result": instance.validation_result,
            "log_entry_id": instance.pk,
        },
        user=instance.performed_by,
    )


@receiver(post_save, sender=SterilityAlert)
def warn_sterility_expired(sender, instance: SterilityAlert, created: bool, **kwargs):
    if not created:
        return

    logger.warning(
        "Sterility expired for box %s (sterilized %s, expired %s)",
        instance.box_id,
        instance.sterilized_at.isoformat(),
        instance.expired_at.isoformat(),
    )
