"""
Integration tests — login, current profile and active-role switching.

Endpoints under test:
    POST /api/accounts/token/             (accounts:token)
    GET  /api/accounts/me/                (accounts:me)
    POST /api/accounts/me/active-role/    (accounts:active-role)

A user may hold several roles but acts as exactly one at a time; the
active role alone decides what they can do with a report.
"""

from __future__ import annotations

from io import StringIO

from django.core.management import call_command
from django.test import TestCase
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import AccessToken

from accounts.models import Role, User
from accounts.services import UserDirectoryService
from core.constants import RoleName
from core.domain.exceptions import NotFound, PermissionDenied
from tests.factories import PASSWORD, login, make_role, make_user


class TestLogin(TestCase):

    @classmethod
    def setUpTestData(cls):
        cls.user = make_user(
            "login_hybrid", RoleName.TECHNICAL_STAFF, RoleName.EXTERNAL_MAINTAINER,
            first_name="Nima", last_name="Azadi",
        )

    def setUp(self):
        self.client = APIClient()

    def test_token_carries_role_claims(self):
        resp = self.client.post(
            reverse("accounts:token"),
            {"username": self.user.username, "password": PASSWORD},
            format="json",
        )
        self.assertEqual(resp.status_code, status.HTTP_200_OK, msg=resp.data)
        self.assertIn("refresh", resp.data)
        self.assertEqual(resp.data["user"]["display_name"], "Nima Azadi")

        claims = AccessToken(resp.data["access"])
        self.assertEqual(claims["role"], RoleName.TECHNICAL_STAFF)
        self.assertEqual(
            sorted(claims["roles"]),
            [RoleName.EXTERNAL_MAINTAINER, RoleName.TECHNICAL_STAFF],
        )

    def test_wrong_password(self):
        resp = self.client.post(
            reverse("accounts:token"),
            {"username": self.user.username, "password": "nope"},
            format="json",
        )
        self.assertEqual(resp.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_me_requires_authentication(self):
        resp = self.client.get(reverse("accounts:me"))
        self.assertEqual(resp.status_code, status.HTTP_401_UNAUTHORIZED)


class TestActiveRoleSwitch(TestCase):

    @classmethod
    def setUpTestData(cls):
        cls.user = make_user(
            "switch_hybrid", RoleName.TECHNICAL_STAFF, RoleName.EXTERNAL_MAINTAINER,
        )
        cls.citizen = make_user("switch_citizen", RoleName.CITIZEN)
        make_role(RoleName.MUNICIPAL_OFFICER)

    def setUp(self):
        self.client = APIClient()

    def test_me_lists_held_roles(self):
        login(self.client, self.user)
        resp = self.client.get(reverse("accounts:me"))
        self.assertEqual(resp.status_code, status.HTTP_200_OK, msg=resp.data)
        self.assertEqual(resp.data["role"], RoleName.TECHNICAL_STAFF)
        self.assertEqual(
            resp.data["roles"],
            [RoleName.EXTERNAL_MAINTAINER, RoleName.TECHNICAL_STAFF],
        )

    def test_switch_to_held_role(self):
        login(self.client, self.user)
        resp = self.client.post(
            reverse("accounts:active-role"),
            {"role": RoleName.EXTERNAL_MAINTAINER},
            format="json",
        )
        self.assertEqual(resp.status_code, status.HTTP_200_OK, msg=resp.data)
        self.assertEqual(resp.data["role"], RoleName.EXTERNAL_MAINTAINER)

        self.user.refresh_from_db()
        self.assertTrue(self.user.has_role(RoleName.EXTERNAL_MAINTAINER))
        self.assertTrue(self.user.holds_role(RoleName.TECHNICAL_STAFF))

    def test_cannot_switch_to_role_not_held(self):
        login(self.client, self.citizen)
        resp = self.client.post(
            reverse("accounts:active-role"),
            {"role": RoleName.MUNICIPAL_OFFICER},
            format="json",
        )
        self.assertEqual(resp.status_code, status.HTTP_403_FORBIDDEN, msg=resp.data)
        self.assertEqual(resp.data["code"], "forbidden")

    def test_unknown_role_name_is_a_validation_error(self):
        login(self.client, self.user)
        resp = self.client.post(
            reverse("accounts:active-role"), {"role": "mayor"}, format="json",
        )
        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)

    def test_service_rejects_missing_role_row(self):
        with self.assertRaises(NotFound):
            UserDirectoryService.switch_active_role(self.user, "mayor")

    def test_service_rejects_role_not_held(self):
        with self.assertRaises(PermissionDenied):
            UserDirectoryService.switch_active_role(self.citizen, RoleName.MUNICIPAL_OFFICER)


class TestSetupRolesCommand(TestCase):

    def test_creates_every_role_once(self):
        call_command("setup_roles", stdout=StringIO())
        call_command("setup_roles", stdout=StringIO())
        self.assertEqual(
            sorted(Role.objects.values_list("name", flat=True)),
            sorted(RoleName.ALL),
        )


class TestUserDirectory(TestCase):

    @classmethod
    def setUpTestData(cls):
        cls.tech = make_user("dir_tech", RoleName.TECHNICAL_STAFF, RoleName.EXTERNAL_MAINTAINER)
        cls.idle = make_user("dir_idle", RoleName.TECHNICAL_STAFF, is_active=False)
        cls.citizen = make_user("dir_citizen", RoleName.CITIZEN)

    def test_resolve_user(self):
        user = UserDirectoryService.resolve_user(self.tech.pk)
        self.assertEqual(user, self.tech)
        self.assertEqual(UserDirectoryService.resolve_active_role(user), RoleName.TECHNICAL_STAFF)

    def test_resolve_unknown_user(self):
        with self.assertRaises(NotFound):
            UserDirectoryService.resolve_user(999_999)

    def test_role_holders_keeps_active_holders_only(self):
        roster = User.objects.filter(pk__in=[self.tech.pk, self.idle.pk, self.citizen.pk])
        holders = UserDirectoryService.role_holders(roster, RoleName.TECHNICAL_STAFF)
        self.assertEqual(list(holders), [self.tech])

    def test_role_holders_ignores_active_role(self):
        roster = User.objects.filter(pk=self.tech.pk)
        holders = UserDirectoryService.role_holders(roster, RoleName.EXTERNAL_MAINTAINER)
        self.assertEqual(list(holders), [self.tech])
