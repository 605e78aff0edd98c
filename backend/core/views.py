"""
Core app views — **Thin Views**.

Each view delegates all business logic to the corresponding service in
``core.services``.  Views are responsible only for:

1. Extracting and validating query parameters from the request.
2. Calling the service with the authenticated user and parameters.
3. Serialising the result and returning an HTTP ``Response``.
"""

from __future__ import annotations

from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.views import APIView

from drf_spectacular.utils import (
    OpenApiParameter,
    OpenApiResponse,
    extend_schema,
)

from .serializers import (
    NotificationSerializer,
    SystemConstantsSerializer,
    UnreadCountSerializer,
)
from .services import NotificationService, SystemConstantsService


class SystemConstantsView(APIView):
    """
    **GET /api/core/constants/**

    Return the system-wide choice enumerations so the frontend can build
    dropdowns, filters, and labels without hardcoding values.

    **Authentication**: Not required (``AllowAny``).
    These constants are public configuration data.
    """

    permission_classes = [AllowAny]

    @extend_schema(
        summary="System constants",
        description=(
            "Return report statuses, message channels, notification types "
            "and role names for dropdowns, filters, and labels."
        ),
        responses={200: OpenApiResponse(response=SystemConstantsSerializer, description="System constants.")},
        tags=["System"],
    )
    def get(self, request: Request) -> Response:
        data = SystemConstantsService.get_constants()
        serializer = SystemConstantsSerializer(data)
        return Response(serializer.data, status=status.HTTP_200_OK)


class NotificationViewSet(viewsets.ViewSet):
    """
    **Notification API** — the authenticated user's inbox.

    Endpoints
    ---------
    GET    /api/core/notifications/               → list notifications
    GET    /api/core/notifications/unread-count/  → number of unread notifications
    POST   /api/core/notifications/{id}/read/     → mark one as read
    POST   /api/core/notifications/read-all/      → mark all as read
    DELETE /api/core/notifications/{id}/          → delete one

    **Authentication**: Required (``IsAuthenticated``).
    """

    permission_classes = [IsAuthenticated]
    lookup_value_regex = r"\d+"

    @extend_schema(
        summary="List notifications",
        description="Return the authenticated user's notifications, most recent first.",
        parameters=[
            OpenApiParameter(name="unread", type=bool, required=False, description="Only unread notifications."),
        ],
        responses={200: OpenApiResponse(response=NotificationSerializer(many=True), description="Notification list.")},
        tags=["Notifications"],
    )
    def list(self, request: Request) -> Response:
        unread_only = request.query_params.get("unread", "").lower() in ("1", "true", "yes")
        service = NotificationService(user=request.user)
        notifications = service.list_notifications(unread_only=unread_only)
        serializer = NotificationSerializer(notifications, many=True)
        return Response(serializer.data, status=status.HTTP_200_OK)

    @extend_schema(
        summary="Delete a notification",
        responses={204: OpenApiResponse(description="Deleted.")},
        tags=["Notifications"],
    )
    def destroy(self, request: Request, pk: int = None) -> Response:
        NotificationService(user=request.user).delete(notification_id=int(pk))
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=True, methods=["post"], url_path="read")
    @extend_schema(
        summary="Mark notification as read",
        description="Mark a single notification as read by ID.",
        request=None,
        responses={200: OpenApiResponse(response=NotificationSerializer, description="Updated notification.")},
        tags=["Notifications"],
    )
    def mark_as_read(self, request: Request, pk: int = None) -> Response:
        service = NotificationService(user=request.user)
        notification = service.mark_as_read(notification_id=int(pk))
        serializer = NotificationSerializer(notification)
        return Response(serializer.data, status=status.HTTP_200_OK)

    @action(detail=False, methods=["post"], url_path="read-all")
    @extend_schema(
        summary="Mark all notifications as read",
        request=None,
        responses={200: OpenApiResponse(response=UnreadCountSerializer, description="Remaining unread count (always 0).")},
        tags=["Notifications"],
    )
    def mark_all_as_read(self, request: Request) -> Response:
        service = NotificationService(user=request.user)
        service.mark_all_as_read()
        return Response({"unread": service.unread_count()}, status=status.HTTP_200_OK)

    @action(detail=False, methods=["get"], url_path="unread-count")
    @extend_schema(
        summary="Unread notification count",
        responses={200: OpenApiResponse(response=UnreadCountSerializer, description="Unread count.")},
        tags=["Notifications"],
    )
    def unread_count(self, request: Request) -> Response:
        service = NotificationService(user=request.user)
        return Response({"unread": service.unread_count()}, status=status.HTTP_200_OK)
