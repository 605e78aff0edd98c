"""
Messaging app serializers.

Request serializers validate shape only; channel availability, capability
and blank-content checks are left to ``services.py`` so that each failure
carries its own error code.
"""

from __future__ import annotations

from typing import Any

from rest_framework import serializers

from core.constants import MAX_MESSAGE_LENGTH

from .models import Message, MessageChannel, ReadMarker


class ChannelQuerySerializer(serializers.Serializer):
    """``?channel=citizen|internal``"""

    channel = serializers.ChoiceField(choices=MessageChannel.choices)


class OptionalChannelQuerySerializer(serializers.Serializer):
    channel = serializers.ChoiceField(choices=MessageChannel.choices, required=False)


class MessageCreateSerializer(serializers.Serializer):
    channel = serializers.ChoiceField(choices=MessageChannel.choices)
    content = serializers.CharField(
        allow_blank=True,
        max_length=MAX_MESSAGE_LENGTH,
        help_text="Message text; must contain something other than whitespace.",
    )


class MessageSerializer(serializers.ModelSerializer):
    """
    A message hydrated with its author summary (id, display name and the
    role the author was acting as when posting) for immediate UI echo.
    """

    author = serializers.SerializerMethodField()

    class Meta:
        model = Message
        fields = ["id", "report", "channel", "content", "author", "created_at"]
        read_only_fields = fields

    def get_author(self, obj: Message) -> dict[str, Any]:
        return {
            "id": obj.author_id,
            "display_name": obj.author.display_name,
            "role": obj.author_role or None,
        }


class ReadMarkerSerializer(serializers.ModelSerializer):
    class Meta:
        model = ReadMarker
        fields = ["report", "channel", "last_read_message", "updated_at"]
        read_only_fields = fields


class UnreadCountSerializer(serializers.Serializer):
    channel = serializers.CharField(read_only=True)
    unread = serializers.IntegerField(read_only=True)
