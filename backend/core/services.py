"""
Core app services — **Service Layer**.

Contains the notification inbox and the system-constants lookup.  Views
delegate all business logic to the service classes defined here, keeping
views thin and ensuring testability.

Cross-app import rule: never import models from other apps at the module
level here; resolve them lazily with ``django.apps.apps.get_model`` inside
the method that needs them.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from django.apps import apps
from django.db.models import QuerySet

from core.constants import RoleName
from core.domain.exceptions import NotFound
from core.models import Notification, NotificationType

if TYPE_CHECKING:
    from accounts.models import User

logger = logging.getLogger(__name__)


# ════════════════════════════════════════════════════════════════════
#  System Constants Service
# ════════════════════════════════════════════════════════════════════

class SystemConstantsService:
    """
    Returns the choice enumerations the frontend needs for dropdowns and
    badges (report statuses, message channels, notification types, roles).
    """

    @staticmethod
    def get_constants() -> dict[str, Any]:
        report_statuses = apps.get_model("reports", "Report")._meta.get_field("status").choices
        channels = apps.get_model("messaging", "Message")._meta.get_field("channel").choices

        return {
            "report_statuses": SystemConstantsService._choices_to_list(report_statuses),
            "message_channels": SystemConstantsService._choices_to_list(channels),
            "notification_types": SystemConstantsService._choices_to_list(NotificationType.choices),
            "roles": [
                {"value": name, "label": name.replace("_", " ").title()}
                for name in RoleName.ALL
            ],
        }

    @staticmethod
    def _choices_to_list(choices) -> list[dict[str, Any]]:
        """Convert Django ``choices`` pairs to ``[{"value", "label"}, ...]``."""
        return [{"value": value, "label": str(label)} for value, label in choices]


# ════════════════════════════════════════════════════════════════════
#  Notification Service
# ════════════════════════════════════════════════════════════════════

class NotificationService:
    """
    Handles the recipient's side of notifications: listing, marking as
    read, and deleting.  Creation goes through
    ``core.domain.notifications.NotificationDispatcher``.
    """

    def __init__(self, user: User) -> None:
        self.user = user

    def list_notifications(self, *, unread_only: bool = False) -> QuerySet[Notification]:
        """Return ``self.user``'s notifications, most recent first."""
        qs = (
            Notification.objects
            .filter(recipient=self.user)
            .select_related("report")
            .order_by("-created_at", "-id")
        )
        if unread_only:
            qs = qs.filter(is_read=False)
        return qs

    def unread_count(self) -> int:
        return Notification.objects.filter(recipient=self.user, is_read=False).count()

    def _get_own(self, notification_id: int) -> Notification:
        try:
            return Notification.objects.get(pk=notification_id, recipient=self.user)
        except Notification.DoesNotExist:
            raise NotFound(f"Notification with id {notification_id} not found.")

    def mark_as_read(self, notification_id: int) -> Notification:
        """Mark a single notification as read."""
        notification = self._get_own(notification_id)
        if not notification.is_read:
            notification.is_read = True
            notification.save(update_fields=["is_read", "updated_at"])
        return notification

    def mark_all_as_read(self) -> int:
        """Mark every unread notification as read; returns how many changed."""
        updated = Notification.objects.filter(
            recipient=self.user, is_read=False,
        ).update(is_read=True)
        logger.info("Marked %d notification(s) read for user=%s", updated, self.user.pk)
        return updated

    def delete(self, notification_id: int) -> None:
        notification = self._get_own(notification_id)
        notification.delete()
