"""
Accounts app models.

Defines the fixed Role catalogue and a custom User model that extends
Django's ``AbstractUser``.  A user may hold several roles (``roles``) but
acts through exactly one of them at a time, the *active role* (``role``).
Capability decisions on reports only ever look at the active role.
"""

from django.contrib.auth.models import AbstractUser
from django.db import models


class Role(models.Model):
    """
    A named role a user can hold.

    The five canonical names live in ``core.constants.RoleName`` and are
    seeded by the ``setup_roles`` management command:
        citizen, municipal_public_relations_officer, technical_staff,
        external_maintainer, admin.
    """

    name = models.CharField(
        max_length=100,
        unique=True,
        verbose_name="Role Name",
    )
    description = models.TextField(
        blank=True,
        default="",
        verbose_name="Description",
    )

    class Meta:
        verbose_name = "Role"
        verbose_name_plural = "Roles"
        ordering = ["name"]

    def __str__(self):
        return self.name


class User(AbstractUser):
    """
    Custom user model for the municipal reporting system.

    ``roles`` lists every role the user holds; ``role`` is the one the user
    is currently operating as and must be one of ``roles``.  A technician
    who also works as an external maintainer for a company switches the
    active role explicitly (see ``UserDirectoryService.switch_active_role``)
    instead of being granted the union of both.
    """

    email = models.EmailField(
        blank=True,
        verbose_name="Email Address",
    )

    roles = models.ManyToManyField(
        Role,
        blank=True,
        related_name="holders",
        verbose_name="Held Roles",
    )

    # ── Active role ──────────────────────────────────────────────────
    role = models.ForeignKey(
        Role,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="active_users",
        verbose_name="Active Role",
    )

    class Meta:
        verbose_name = "User"
        verbose_name_plural = "Users"

    def __str__(self):
        role_name = self.role.name if self.role else "No Role"
        return f"{self.username} ({self.display_name}) - {role_name}"

    @property
    def display_name(self) -> str:
        """Full name, falling back to the username."""
        return self.get_full_name() or self.username

    def has_role(self, role_name: str) -> bool:
        """Check if the user's *active* role matches the given name."""
        return self.role is not None and self.role.name == role_name

    def holds_role(self, role_name: str) -> bool:
        """Check if ``role_name`` is among the roles the user holds."""
        return self.roles.filter(name=role_name).exists()
