"""
Root conftest.py — shared fixtures for the entire test suite.

Provides:
  - ``api_client`` fixture returning a DRF ``APIClient``.
  - ``roles`` fixture seeding the five canonical roles.
  - ``create_user`` factory fixture for creating test users.
  - ``auth_header`` fixture for authenticated requests (JWT).
  - ``in_process_notifications`` (autouse) delivering notifications on the
    test thread, so they land inside the test transaction.
"""

from __future__ import annotations

import pytest
from rest_framework.test import APIClient


@pytest.fixture(autouse=True)
def in_process_notifications(settings):
    """Deliver notifications synchronously; tests opt back into ``ASYNC``."""
    settings.NOTIFICATIONS = {**settings.NOTIFICATIONS, "ASYNC": False}


@pytest.fixture()
def api_client() -> APIClient:
    """Unauthenticated DRF test client."""
    return APIClient()


@pytest.fixture()
def roles(db) -> dict:
    """``{role_name: Role}`` for every name in ``RoleName.ALL``."""
    from accounts.models import Role
    from core.constants import RoleName

    return {
        name: Role.objects.get_or_create(name=name)[0]
        for name in RoleName.ALL
    }


@pytest.fixture()
def create_user(roles):
    """
    Factory fixture that creates a user with sensible defaults.

    Usage::

        def test_something(create_user):
            citizen = create_user(role="citizen")
            # several held roles, the first one active:
            user = create_user(roles=["technical_staff", "external_maintainer"])
    """
    from accounts.models import User

    role_map = roles
    _counter = 0

    def _factory(
        *,
        username: str | None = None,
        password: str = "TestPass123!",
        role: str | None = None,
        roles: list[str] | None = None,
        is_active: bool = True,
        **kwargs,
    ) -> User:
        nonlocal _counter
        _counter += 1
        if username is None:
            username = f"testuser{_counter}"
        kwargs.setdefault("email", f"{username}@test.local")

        user = User.objects.create_user(
            username=username,
            password=password,
            is_active=is_active,
            **kwargs,
        )
        held = list(roles or ([role] if role else []))
        if held:
            user.roles.set([role_map[name] for name in held])
            user.role = role_map[role or held[0]]
            user.save(update_fields=["role"])
        return user

    return _factory


@pytest.fixture()
def auth_header(create_user):
    """
    Returns a helper function that creates a user and returns an
    ``Authorization`` header dict with a valid JWT access token.

    Usage::

        def test_protected(auth_header, api_client):
            header = auth_header(role="citizen")
            api_client.credentials(HTTP_AUTHORIZATION=header["Authorization"])
            resp = api_client.get("/api/reports/")
            assert resp.status_code != 401

    The returned dict looks like::

        {"Authorization": "Bearer eyJ..."}
    """
    from rest_framework_simplejwt.tokens import AccessToken

    def _make(
        *,
        username: str | None = None,
        role: str | None = None,
        **user_kwargs,
    ) -> dict[str, str]:
        user = create_user(username=username, role=role, **user_kwargs)
        token = AccessToken.for_user(user)
        return {"Authorization": f"Bearer {token}"}

    return _make
