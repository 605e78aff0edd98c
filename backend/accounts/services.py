"""
Accounts app service layer.

Contains the user / role directory used by every other app, plus the
"current user" operations behind the ``me/`` endpoints.  Views stay thin
and delegate here.
"""

from __future__ import annotations

import logging

from django.db import transaction
from django.db.models import QuerySet

from core.domain.access import get_user_role_name
from core.domain.exceptions import NotFound, PermissionDenied

from .models import Role, User

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════
#  User / Role Directory
# ═══════════════════════════════════════════════════════════════════


class UserDirectoryService:
    """
    Answers "who is this user and which role are they acting as?".

    The report, delegation and messaging services resolve identities
    through here and never read ``User.roles`` themselves.
    """

    @staticmethod
    def resolve_user(user_id: int) -> User:
        """
        Fetch a user with the active and held roles pre-loaded.

        Raises
        ------
        NotFound
            If no user with ``user_id`` exists.
        """
        try:
            return (
                User.objects
                .select_related("role")
                .prefetch_related("roles")
                .get(pk=user_id)
            )
        except User.DoesNotExist:
            raise NotFound(f"User with id {user_id} not found.")

    @staticmethod
    def role_holders(users: QuerySet[User], role_name: str) -> QuerySet[User]:
        """Narrow ``users`` (an office or company roster) to active holders of ``role_name``."""
        return users.filter(roles__name=role_name, is_active=True)

    @staticmethod
    def resolve_active_role(user: User) -> str | None:
        """Return the name of the role ``user`` is acting as, or ``None``."""
        return get_user_role_name(user)

    @staticmethod
    @transaction.atomic
    def switch_active_role(user: User, role_name: str) -> User:
        """
        Make ``role_name`` the user's active role.

        Parameters
        ----------
        user : User
            The user switching roles (always the requester).
        role_name : str
            One of ``core.constants.RoleName``.

        Returns
        -------
        User
            The updated user.

        Raises
        ------
        NotFound
            If no role with that name exists.
        PermissionDenied
            If the user does not hold the role.
        """
        try:
            role = Role.objects.get(name=role_name)
        except Role.DoesNotExist:
            raise NotFound(f"Role '{role_name}' not found.")

        if not user.roles.filter(pk=role.pk).exists():
            raise PermissionDenied(f"You do not hold the '{role_name}' role.")

        if user.role_id != role.pk:
            previous = get_user_role_name(user)
            user.role = role
            user.save(update_fields=["role"])
            logger.info(
                "User %s switched active role %s -> %s",
                user.pk, previous, role_name,
            )
        return user


# ═══════════════════════════════════════════════════════════════════
#  Current User ("Me")
# ═══════════════════════════════════════════════════════════════════


class CurrentUserService:
    """Operations the authenticated user performs on their own account."""

    @staticmethod
    def get_profile(user: User) -> User:
        return UserDirectoryService.resolve_user(user.pk)
