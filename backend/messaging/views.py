"""
Messaging app views.

Report-scoped message endpoints, nested under ``/api/reports/{report_pk}/``.
Views are thin: validate, call ``MessageChannelService`` /
``ReadMarkerService``, serialize.
"""

from __future__ import annotations

from drf_spectacular.utils import OpenApiParameter, OpenApiResponse, extend_schema
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.request import Request
from rest_framework.response import Response

from .serializers import (
    ChannelQuerySerializer,
    MessageCreateSerializer,
    MessageSerializer,
    OptionalChannelQuerySerializer,
    ReadMarkerSerializer,
    UnreadCountSerializer,
)
from .services import MessageChannelService, ReadMarkerService

_CHANNEL_PARAM = OpenApiParameter(
    name="channel",
    type=str,
    location=OpenApiParameter.QUERY,
    enum=["citizen", "internal"],
    description="Message channel.",
)


class ReportMessageViewSet(viewsets.ViewSet):
    """
    GET  /api/reports/{report_pk}/messages/?channel=     → list a channel
    POST /api/reports/{report_pk}/messages/              → post a message
    POST /api/reports/{report_pk}/messages/mark-opened/  → advance read marker
    GET  /api/reports/{report_pk}/messages/unread/       → unread counts
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        summary="List channel messages",
        parameters=[_CHANNEL_PARAM],
        responses={
            200: OpenApiResponse(response=MessageSerializer(many=True), description="Messages, oldest first."),
            403: OpenApiResponse(description="Not a participant of the channel."),
            409: OpenApiResponse(description="Channel not available."),
        },
        tags=["Messages"],
    )
    def list(self, request: Request, report_pk: int = None) -> Response:
        query = ChannelQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        messages = MessageChannelService.list_messages(
            request.user, int(report_pk), query.validated_data["channel"],
        )
        return Response(MessageSerializer(messages, many=True).data, status=status.HTTP_200_OK)

    @extend_schema(
        summary="Post a message",
        request=MessageCreateSerializer,
        responses={
            201: OpenApiResponse(response=MessageSerializer, description="Message stored."),
            400: OpenApiResponse(description="Empty content."),
            403: OpenApiResponse(description="Not allowed to post on the channel."),
            409: OpenApiResponse(description="Channel not available."),
        },
        tags=["Messages"],
    )
    def create(self, request: Request, report_pk: int = None) -> Response:
        serializer = MessageCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        message = MessageChannelService.post_message(
            request.user,
            int(report_pk),
            serializer.validated_data["channel"],
            serializer.validated_data["content"],
        )
        return Response(MessageSerializer(message).data, status=status.HTTP_201_CREATED)

    @action(detail=False, methods=["post"], url_path="mark-opened")
    @extend_schema(
        summary="Mark a channel as read",
        request=ChannelQuerySerializer,
        responses={
            200: OpenApiResponse(response=ReadMarkerSerializer, description="Current read marker."),
            204: OpenApiResponse(description="Empty channel, never opened."),
        },
        tags=["Messages"],
    )
    def mark_opened(self, request: Request, report_pk: int = None) -> Response:
        serializer = ChannelQuerySerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        marker = ReadMarkerService.mark_channel_opened(
            request.user, int(report_pk), serializer.validated_data["channel"],
        )
        if marker is None:
            return Response(status=status.HTTP_204_NO_CONTENT)
        return Response(ReadMarkerSerializer(marker).data, status=status.HTTP_200_OK)

    @action(detail=False, methods=["get"], url_path="unread")
    @extend_schema(
        summary="Unread message counts",
        description=(
            "With ?channel= returns the unread count of that channel; without it, "
            "a map of channel → unread count for every channel the caller can read."
        ),
        parameters=[_CHANNEL_PARAM],
        responses={200: OpenApiResponse(response=UnreadCountSerializer, description="Unread count(s).")},
        tags=["Messages"],
    )
    def unread(self, request: Request, report_pk: int = None) -> Response:
        query = OptionalChannelQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        channel = query.validated_data.get("channel")

        if channel is None:
            summary = ReadMarkerService.unread_summary(request.user, int(report_pk))
            return Response(summary, status=status.HTTP_200_OK)

        count = ReadMarkerService.compute_unread(request.user, int(report_pk), channel)
        data = UnreadCountSerializer({"channel": channel, "unread": count}).data
        return Response(data, status=status.HTTP_200_OK)
