# sterilization/tests/conftest.py

from __future__ import annotations

import uuid
from typing import Any, Callable, Optional

import pytest
from django.contrib.auth import authenticate, get_user_model
from rest_framework.test import APIClient

from sterilization.models import InstrumentBox, Service, UserRole


def _rand(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:8]}".upper()


class AuthAPIClient(APIClient):
    """
    Test client that uses force_authenticate for predictable DRF auth.
    """

    _user = None

    def login(self, username: str, password: str, **kwargs) -> bool:  # type: ignore[override]
        user = authenticate(username=username, password=password)
        if not user:
            return False
        self.force_authenticate(user=user)
        self._user = user
        return True

    def logout(self) -> None:  # type: ignore[override]
        # DO NOT call force_authenticate(user=None) here.
        # DRF's force_authenticate(user=None) calls self.logout() internally.
        super().logout()
        self.handler._force_user = None
        self.handler._force_token = None
        self._user = None


@pytest.fixture
def api_client() -> AuthAPIClient:
    return AuthAPIClient()


def _user(username: str, **extra):
    User = get_user_model()
    user, _ = User.objects.get_or_create(username=username, defaults=extra)
    user.set_password("pass123")
    user.save(update_fields=["password"])
    return user


@pytest.fixture
def user_admin(db):
    user = _user("admin", first_name="Ada", last_name="Admin")
    UserRole.objects.get_or_create(user=user, role=UserRole.ADMIN)
    return user


@pytest.fixture
def user_instrumentiste(db):
    user = _user("instru", first_name="Inès", last_name="Trument")
    UserRole.objects.get_or_create(user=user, role=UserRole.INSTRUMENTISTE)
    return user


@pytest.fixture
def user_viewer(db):
    user = _user("viewer")
    UserRole.objects.get_or_create(user=user, role=UserRole.USER)
    return user


@pytest.fixture
def operator_client(api_client, user_instrumentiste) -> AuthAPIClient:
    api_client.force_authenticate(user=user_instrumentiste)
    return api_client


@pytest.fixture
def viewer_client(api_client, user_viewer) -> AuthAPIClient:
    api_client.force_authenticate(user=user_viewer)
    return api_client


@pytest.fixture
def service(db) -> Service:
    return Service.objects.create(code=_rand("SRV"), name="Bloc opératoire central")


@pytest.fixture
def other_service(db) -> Service:
    return Service.objects.create(code=_rand("SRV"), name="Chirurgie ambulatoire")


@pytest.fixture
def box_factory(db) -> Callable[..., InstrumentBox]:
    """
    Factory for boxes at an arbitrary step.

    Workflow fields are only writable on creation; later moves must go
    through the workflow services.
    """

    def _factory(
        *,
        current_step: Optional[str] = None,
        box_code: Optional[str] = None,
        name: Optional[str] = None,
        **extra: Any,
    ) -> InstrumentBox:
        return InstrumentBox.objects.create(
            box_code=box_code or _rand("BOX"),
            name=name or "Boîte laparotomie",
            current_step=current_step,
            **extra,
        )

    return _factory
