"""
Messaging app models.

A report's conversation is split into two channels:

* ``citizen``  — reporter ↔ assigned technician.
* ``internal`` — assigned technician ↔ delegated external maintainer.

Channels are not stored entities; whether a channel is open is derived
from the report (see ``messaging.services.channel_available``).  Messages
are append-only.  ``ReadMarker`` remembers, per user and channel, the
newest message the user has seen.
"""

from django.conf import settings
from django.db import models


class MessageChannel(models.TextChoices):
    CITIZEN = "citizen", "Citizen Channel"
    INTERNAL = "internal", "Internal Channel"


class Message(models.Model):
    """
    One immutable message on a report channel.

    The auto-increment ``id`` is the ordering key and the value read
    markers point at.
    """

    report = models.ForeignKey(
        "reports.Report",
        on_delete=models.CASCADE,
        related_name="messages",
        verbose_name="Report",
    )
    author = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="report_messages",
        verbose_name="Author",
    )
    author_role = models.CharField(
        max_length=100,
        blank=True,
        default="",
        verbose_name="Author Role",
        help_text="The author's active role when the message was posted.",
    )
    channel = models.CharField(
        max_length=10,
        choices=MessageChannel.choices,
        verbose_name="Channel",
    )
    content = models.TextField(verbose_name="Content")
    created_at = models.DateTimeField(auto_now_add=True, verbose_name="Created At")

    class Meta:
        verbose_name = "Message"
        verbose_name_plural = "Messages"
        ordering = ["created_at", "id"]
        indexes = [
            models.Index(fields=["report", "channel", "id"]),
        ]

    def __str__(self):
        return f"Report #{self.report_id} [{self.channel}] message #{self.pk}"


class ReadMarker(models.Model):
    """
    Highest message id ``user`` has seen on ``channel`` of ``report``.

    Created on first open; only ever moves forward.  A missing marker (or
    a null ``last_read_message``) means the channel was never opened.
    """

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="read_markers",
        verbose_name="User",
    )
    report = models.ForeignKey(
        "reports.Report",
        on_delete=models.CASCADE,
        related_name="read_markers",
        verbose_name="Report",
    )
    channel = models.CharField(
        max_length=10,
        choices=MessageChannel.choices,
        verbose_name="Channel",
    )
    last_read_message = models.ForeignKey(
        Message,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
        verbose_name="Last Read Message",
    )
    updated_at = models.DateTimeField(auto_now=True, verbose_name="Updated At")

    class Meta:
        verbose_name = "Read Marker"
        verbose_name_plural = "Read Markers"
        constraints = [
            models.UniqueConstraint(
                fields=["user", "report", "channel"],
                name="unique_read_marker_per_user_report_channel",
            ),
        ]

    def __str__(self):
        return (
            f"{self.user_id} @ report #{self.report_id} [{self.channel}] "
            f"→ {self.last_read_message_id}"
        )
