"""
Accounts app serializers.

Contains the Request and Response serializers for the accounts API.
Serializers handle field definitions, read/write constraints, and
basic validation.  **No business logic** lives here — all domain
rules are delegated to ``services.py``.
"""

from __future__ import annotations

from typing import Any

from django.contrib.auth import get_user_model
from rest_framework import serializers
from rest_framework_simplejwt.serializers import TokenObtainPairSerializer

from core.constants import RoleName

from .models import Role

User = get_user_model()


# ═══════════════════════════════════════════════════════════════════
#  Authentication Serializers
# ═══════════════════════════════════════════════════════════════════


class RoleClaimsTokenObtainPairSerializer(TokenObtainPairSerializer):
    """
    Standard SimpleJWT username/password serializer that additionally
    injects the active role and the held roles into the access token, so
    the frontend can render role-specific UI without an extra request.
    """

    @classmethod
    def get_token(cls, user) -> Any:
        token = super().get_token(user)
        token["role"] = user.role.name if user.role else None
        token["roles"] = list(user.roles.values_list("name", flat=True))
        return token

    def validate(self, attrs: dict[str, Any]) -> dict[str, Any]:
        data = super().validate(attrs)
        data["user"] = UserSummarySerializer(self.user).data
        return data


# ═══════════════════════════════════════════════════════════════════
#  Role Serializers
# ═══════════════════════════════════════════════════════════════════


class RoleSerializer(serializers.ModelSerializer):
    class Meta:
        model = Role
        fields = ["id", "name", "description"]
        read_only_fields = fields


class ActiveRoleSwitchSerializer(serializers.Serializer):
    """
    Request body for ``POST /api/accounts/me/active-role/``.

    The role must be one of the canonical names; whether the user
    actually holds it is checked by the service layer.
    """

    role = serializers.ChoiceField(
        choices=[(name, name) for name in RoleName.ALL],
        help_text="Name of the held role to act as from now on.",
    )


# ═══════════════════════════════════════════════════════════════════
#  User Serializers
# ═══════════════════════════════════════════════════════════════════


class UserSummarySerializer(serializers.ModelSerializer):
    """
    Minimal user representation embedded in reports, messages and
    audit rows: id, display name and the active role.
    """

    display_name = serializers.CharField(read_only=True)
    role = serializers.CharField(source="role.name", read_only=True, default=None)

    class Meta:
        model = User
        fields = ["id", "username", "display_name", "role"]
        read_only_fields = fields


class MeSerializer(serializers.ModelSerializer):
    """
    Full profile of the authenticated user.

    ``role`` is the active role; ``roles`` every role the user may switch
    to.
    """

    display_name = serializers.CharField(read_only=True)
    role = serializers.CharField(source="role.name", read_only=True, default=None)
    roles = serializers.SlugRelatedField(slug_field="name", many=True, read_only=True)

    class Meta:
        model = User
        fields = [
            "id",
            "username",
            "email",
            "first_name",
            "last_name",
            "display_name",
            "role",
            "roles",
            "date_joined",
        ]
        read_only_fields = fields
