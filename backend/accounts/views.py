"""
Accounts app views.

Thin views: validate input with a serializer, call the service layer,
serialize the result.  No business logic lives here.
"""

from __future__ import annotations

from drf_spectacular.utils import OpenApiResponse, extend_schema
from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.views import APIView
from rest_framework_simplejwt.views import TokenObtainPairView

from .serializers import (
    ActiveRoleSwitchSerializer,
    MeSerializer,
    RoleClaimsTokenObtainPairSerializer,
)
from .services import CurrentUserService, UserDirectoryService


# ═══════════════════════════════════════════════════════════════════
#  Authentication
# ═══════════════════════════════════════════════════════════════════


class LoginView(TokenObtainPairView):
    """
    POST /api/accounts/token/

    Public endpoint.  Exchanges ``username`` + ``password`` for a JWT
    access/refresh pair carrying the ``role`` and ``roles`` claims.
    """

    serializer_class = RoleClaimsTokenObtainPairSerializer


# ═══════════════════════════════════════════════════════════════════
#  Current User ("Me") Views
# ═══════════════════════════════════════════════════════════════════


class MeView(APIView):
    """
    GET /api/accounts/me/  → Retrieve the current user's profile,
    including the active role and every held role.
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        summary="Current user profile",
        responses={200: OpenApiResponse(response=MeSerializer, description="Profile.")},
        tags=["Accounts"],
    )
    def get(self, request: Request) -> Response:
        user = CurrentUserService.get_profile(request.user)
        return Response(MeSerializer(user).data, status=status.HTTP_200_OK)


class ActiveRoleView(APIView):
    """
    POST /api/accounts/me/active-role/

    Switch the role the user is acting as.  Capabilities on reports are
    resolved from the active role only, so a user holding several roles
    must pick one explicitly.
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        summary="Switch active role",
        request=ActiveRoleSwitchSerializer,
        responses={
            200: OpenApiResponse(response=MeSerializer, description="Role switched."),
            403: OpenApiResponse(description="The user does not hold that role."),
            404: OpenApiResponse(description="Unknown role."),
        },
        tags=["Accounts"],
    )
    def post(self, request: Request) -> Response:
        serializer = ActiveRoleSwitchSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        UserDirectoryService.switch_active_role(
            request.user, serializer.validated_data["role"],
        )
        user = CurrentUserService.get_profile(request.user)
        return Response(MeSerializer(user).data, status=status.HTTP_200_OK)
