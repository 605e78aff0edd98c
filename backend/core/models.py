"""
Core app models.

Provides abstract base models and the notification inbox shared across
the project.
"""

from django.conf import settings
from django.db import models


class TimeStampedModel(models.Model):
    """
    Abstract base model that provides self-updating ``created_at`` and
    ``updated_at`` timestamp fields for every concrete child model.
    """

    created_at = models.DateTimeField(
        auto_now_add=True,
        verbose_name="Created At",
    )
    updated_at = models.DateTimeField(
        auto_now=True,
        verbose_name="Updated At",
    )

    class Meta:
        abstract = True


class NotificationType(models.TextChoices):
    """Kind of event a notification reports."""

    STATUS_CHANGE = "status_change", "Status Change"
    ASSIGNMENT = "assignment", "Assignment"
    NEW_MESSAGE = "new_message", "New Message"


class Notification(TimeStampedModel):
    """
    In-app notification about a report, created by the notification
    dispatcher after a workflow mutation commits.

    Notifications are outside the report's consistency boundary: the
    recipient reads and deletes them independently, and a failed dispatch
    never undoes the business change that triggered it.
    """

    recipient = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="notifications",
        verbose_name="Recipient",
    )
    report = models.ForeignKey(
        "reports.Report",
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name="notifications",
        verbose_name="Report",
    )
    event_type = models.CharField(
        max_length=20,
        choices=NotificationType.choices,
        verbose_name="Type",
        db_index=True,
    )
    title = models.CharField(max_length=255, verbose_name="Title")
    message = models.TextField(verbose_name="Message")
    payload = models.JSONField(
        default=dict,
        blank=True,
        verbose_name="Payload",
        help_text="Event context for the citizen-facing UI (statuses, ids, names).",
    )
    is_read = models.BooleanField(default=False, verbose_name="Read")

    class Meta:
        verbose_name = "Notification"
        verbose_name_plural = "Notifications"
        ordering = ["-created_at", "-id"]
        indexes = [
            models.Index(fields=["recipient", "is_read"]),
        ]

    def __str__(self):
        return f"[{self.recipient}] {self.title}"
