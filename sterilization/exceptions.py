# sterilization/exceptions.py
"""
Domain errors raised by the sterilization services.

They subclass DRF's APIException so views can let them propagate and DRF
renders the right status code and payload.
"""

from __future__ import annotations

from rest_framework import status
from rest_framework.exceptions import APIException, NotFound


class BoxNotFound(NotFound):
    default_detail = "Box not found."
    default_code = "box_not_found"


class AssignmentNotFound(NotFound):
    default_detail = "Assignment not found."
    default_code = "assignment_not_found"


class ServiceNotFound(NotFound):
    default_detail = "Service not found."
    default_code = "service_not_found"


class ValidationRequired(APIException):
    """
    A transition needs input the caller did not provide (or provided in an
    unusable form). Not retryable: the caller must fix the request.
    """

    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "A control result (passed or failed) is required to leave sterilization."
    default_code = "validation_required"


class AssignmentConflict(APIException):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "The box is not available for this operation."
    default_code = "assignment_conflict"


class StaleTransition(APIException):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "The box was modified by another operator. Scan it again."
    default_code = "stale_transition"


class PersistenceFailure(APIException):
    """
    The database rejected a workflow write. Nothing was committed; re-read
    the box before retrying.
    """

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_detail = "The operation could not be saved. Please retry."
    default_code = "persistence_failure"
