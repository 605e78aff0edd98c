"""
Messaging app Service Layer.

Architecture
------------
- ``MessageChannelService`` — post to / read a report channel.
- ``ReadMarkerService``     — per-user read position and unread counts.

Channel rules
-------------
A channel exists only as a function of the report:

* ``citizen``  — the report is not anonymous and has been accepted
  (status is neither ``pending_approval`` nor ``rejected``).
* ``internal`` — the report is delegated (``external_maintainer`` set).

On top of availability the caller needs the matching ``post_*_message``
capability of their active role, for reading as well as for posting.  The
one exception is the internal history of a report whose delegation was
revoked: the assigned technician can still read it, nobody can post.

Checks run in this order: report exists → channel available → capability
→ content.
"""

from __future__ import annotations

import logging

from django.db import transaction
from django.db.models import Q, QuerySet
from django.utils import timezone

from accounts.models import User
from accounts.services import UserDirectoryService
from core.constants import MAX_MESSAGE_LENGTH, RoleName
from core.domain.exceptions import (
    ChannelNotAvailable,
    DomainError,
    EmptyContent,
    PermissionDenied,
)
from core.domain.notifications import NotificationDispatcher
from reports.capabilities import Capability, has_capability
from reports.models import Report, ReportStatus
from reports.services import ReportQueryService

from .models import Message, MessageChannel, ReadMarker

logger = logging.getLogger(__name__)

_CITIZEN_CHANNEL_CLOSED_STATUSES = frozenset({
    ReportStatus.PENDING_APPROVAL,
    ReportStatus.REJECTED,
})

_CHANNEL_CAPABILITY = {
    MessageChannel.CITIZEN: Capability.POST_CITIZEN_MESSAGE,
    MessageChannel.INTERNAL: Capability.POST_INTERNAL_MESSAGE,
}


def channel_available(report: Report, channel: str) -> bool:
    """Whether ``channel`` is currently open on ``report``."""
    if channel == MessageChannel.CITIZEN:
        return not report.anonymous and report.status not in _CITIZEN_CHANNEL_CLOSED_STATUSES
    if channel == MessageChannel.INTERNAL:
        return report.external_maintainer_id is not None
    return False


def _validate_channel(channel: str) -> None:
    if channel not in MessageChannel.values:
        raise DomainError(
            f"Unknown channel '{channel}'. Expected one of: {', '.join(MessageChannel.values)}."
        )


def _channel_unavailable(report: Report, channel: str) -> ChannelNotAvailable:
    if channel == MessageChannel.INTERNAL:
        return ChannelNotAvailable(
            f"Report #{report.pk} is not delegated; the internal channel is closed."
        )
    return ChannelNotAvailable(
        f"The citizen channel is not available on report #{report.pk} "
        f"(anonymous or not accepted yet)."
    )


def _read_denial(user: User, report: Report, channel: str) -> DomainError | None:
    """
    Return the error that reading ``channel`` would raise for ``user``,
    or ``None`` if the read is allowed.
    """
    if not channel_available(report, channel):
        keeps_history = (
            channel == MessageChannel.INTERNAL
            and UserDirectoryService.resolve_active_role(user) == RoleName.TECHNICAL_STAFF
            and report.assignee_id == user.pk
        )
        if keeps_history:
            return None
        return _channel_unavailable(report, channel)

    if not has_capability(user, report, _CHANNEL_CAPABILITY[channel]):
        return PermissionDenied(
            f"You are not a participant of the {channel} channel of report #{report.pk}."
        )
    return None


def require_read_access(user: User, report: Report, channel: str) -> None:
    _validate_channel(channel)
    denial = _read_denial(user, report, channel)
    if denial is not None:
        raise denial


def can_read(user: User, report: Report, channel: str) -> bool:
    return _read_denial(user, report, channel) is None


# ═══════════════════════════════════════════════════════════════════
#  Message Channel Service
# ═══════════════════════════════════════════════════════════════════


class MessageChannelService:

    @staticmethod
    def channel_participants(report: Report, channel: str) -> list[User | None]:
        if channel == MessageChannel.CITIZEN:
            return [report.reporter, report.assignee]
        return [report.assignee, report.external_maintainer]

    @staticmethod
    @transaction.atomic
    def post_message(actor: User, report_id: int, channel: str, content: str) -> Message:
        """
        Append a message to a report channel.

        Parameters
        ----------
        actor : User
            The author; their active role decides the capability.
        report_id : int
            The report the conversation belongs to.
        channel : str
            ``"citizen"`` or ``"internal"``.
        content : str
            Message text; surrounding whitespace is stripped.

        Returns
        -------
        Message
            The stored message, with ``author`` populated for the
            response's author summary.

        Raises
        ------
        NotFound
            Report does not exist.
        ChannelNotAvailable
            Channel closed on this report.
        PermissionDenied
            Active role lacks the ``post_*_message`` capability.
        EmptyContent
            Blank content.
        """
        report = ReportQueryService.get_report(report_id)
        _validate_channel(channel)

        if not channel_available(report, channel):
            raise _channel_unavailable(report, channel)
        if not has_capability(actor, report, _CHANNEL_CAPABILITY[channel]):
            raise PermissionDenied(
                f"You cannot post on the {channel} channel of report #{report.pk}."
            )

        content = (content or "").strip()
        if not content:
            raise EmptyContent()
        if len(content) > MAX_MESSAGE_LENGTH:
            raise DomainError(f"Message content cannot exceed {MAX_MESSAGE_LENGTH} characters.")

        message = Message.objects.create(
            report=report,
            author=actor,
            author_role=UserDirectoryService.resolve_active_role(actor) or "",
            channel=channel,
            content=content,
        )

        NotificationDispatcher.dispatch(
            actor=actor,
            recipients=MessageChannelService.channel_participants(report, channel),
            event_type="new_message",
            report=report,
            payload={
                "channel": channel,
                "message_id": message.pk,
                "author": actor.display_name,
            },
        )

        logger.info(
            "Message #%d posted on report #%d [%s] by %s",
            message.pk, report.pk, channel, actor.pk,
        )
        return message

    @staticmethod
    def list_messages(actor: User, report_id: int, channel: str) -> QuerySet[Message]:
        """Messages of one channel in posting order (``created_at``, ``id``)."""
        report = ReportQueryService.get_report(report_id)
        require_read_access(actor, report, channel)
        return (
            Message.objects
            .filter(report=report, channel=channel)
            .select_related("author")
            .order_by("created_at", "id")
        )


# ═══════════════════════════════════════════════════════════════════
#  Read-Marker Service
# ═══════════════════════════════════════════════════════════════════


class ReadMarkerService:
    """
    Server-side read positions, so unread badges agree across every
    device and tab the user has open.
    """

    @staticmethod
    def _marker_position(user: User, report: Report, channel: str) -> int:
        last_read_id = (
            ReadMarker.objects
            .filter(user=user, report=report, channel=channel)
            .values_list("last_read_message_id", flat=True)
            .first()
        )
        return last_read_id or 0

    @staticmethod
    def mark_channel_opened(user: User, report_id: int, channel: str) -> ReadMarker | None:
        """
        Move the user's marker to the newest message of the channel.

        No-op on an empty channel or when the marker is already current.
        The update is conditional on the stored position being lower, so
        the marker never moves backwards even when two sessions race.

        Returns
        -------
        ReadMarker or None
            The current marker; ``None`` if the channel was empty and never
            opened before.
        """
        report = ReportQueryService.get_report(report_id)
        require_read_access(user, report, channel)

        newest_id = (
            Message.objects
            .filter(report=report, channel=channel)
            .order_by("-id")
            .values_list("id", flat=True)
            .first()
        )
        if newest_id is None:
            return ReadMarker.objects.filter(user=user, report=report, channel=channel).first()

        with transaction.atomic():
            marker, created = ReadMarker.objects.get_or_create(
                user=user,
                report=report,
                channel=channel,
                defaults={"last_read_message_id": newest_id},
            )
            if not created:
                advanced = (
                    ReadMarker.objects
                    .filter(pk=marker.pk)
                    .filter(
                        Q(last_read_message__isnull=True)
                        | Q(last_read_message_id__lt=newest_id)
                    )
                    .update(last_read_message_id=newest_id, updated_at=timezone.now())
                )
                if advanced:
                    marker.refresh_from_db()

        logger.debug(
            "Read marker user=%s report=%s [%s] at message %s",
            user.pk, report.pk, channel, marker.last_read_message_id,
        )
        return marker

    @staticmethod
    def compute_unread(user: User, report_id: int, channel: str) -> int:
        """
        Messages newer than the user's marker, excluding their own.

        A missing marker counts every message from others as unread.
        """
        report = ReportQueryService.get_report(report_id)
        require_read_access(user, report, channel)
        return ReadMarkerService._count_unread(user, report, channel)

    @staticmethod
    def _count_unread(user: User, report: Report, channel: str) -> int:
        position = ReadMarkerService._marker_position(user, report, channel)
        return (
            Message.objects
            .filter(report=report, channel=channel, id__gt=position)
            .exclude(author=user)
            .count()
        )

    @staticmethod
    def unread_summary(user: User, report_id: int) -> dict[str, int]:
        """Unread count for every channel of the report the user can read."""
        report = ReportQueryService.get_report(report_id)
        return {
            channel: ReadMarkerService._count_unread(user, report, channel)
            for channel in MessageChannel.values
            if can_read(user, report, channel)
        }
