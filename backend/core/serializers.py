"""
Core app serializers.

**Response-only** serializers for the notification inbox and the system
constants endpoint.  They do **not** accept input data.
"""

from __future__ import annotations

from rest_framework import serializers


# ════════════════════════════════════════════════════════════════════
#  System Constants
# ════════════════════════════════════════════════════════════════════

class ChoiceItemSerializer(serializers.Serializer):
    """
    A single ``{"value": ..., "label": ...}`` pair.

    Example::

        {"value": "in_progress", "label": "In Progress"}
    """

    value = serializers.CharField(help_text="Machine-readable value.")
    label = serializers.CharField(help_text="Human-readable label.")


class SystemConstantsSerializer(serializers.Serializer):
    """Choice enumerations used by the frontend."""

    report_statuses = ChoiceItemSerializer(
        many=True,
        help_text="Report lifecycle statuses.",
    )
    message_channels = ChoiceItemSerializer(
        many=True,
        help_text="Message channels (citizen / internal).",
    )
    notification_types = ChoiceItemSerializer(
        many=True,
        help_text="Notification event types.",
    )
    roles = ChoiceItemSerializer(
        many=True,
        help_text="Role names a user may hold.",
    )


# ════════════════════════════════════════════════════════════════════
#  Notifications
# ════════════════════════════════════════════════════════════════════

class NotificationSerializer(serializers.Serializer):
    """
    Read-only serializer for ``Notification`` instances.

    Used by the Notification ViewSet to list and retrieve notifications
    for the authenticated user.
    """

    id = serializers.IntegerField(read_only=True, help_text="Notification PK.")
    event_type = serializers.CharField(
        read_only=True,
        help_text="status_change, assignment or new_message.",
    )
    title = serializers.CharField(
        read_only=True,
        help_text="Short notification title.",
    )
    message = serializers.CharField(
        read_only=True,
        help_text="Full notification message body.",
    )
    payload = serializers.JSONField(
        read_only=True,
        help_text="Event context (statuses, ids, names).",
    )
    report_id = serializers.IntegerField(
        read_only=True,
        allow_null=True,
        help_text="PK of the report the notification concerns (if any).",
    )
    is_read = serializers.BooleanField(
        read_only=True,
        help_text="Whether the recipient has marked this notification as read.",
    )
    created_at = serializers.DateTimeField(
        read_only=True,
        help_text="When the notification was created.",
    )


class UnreadCountSerializer(serializers.Serializer):
    unread = serializers.IntegerField(read_only=True)
