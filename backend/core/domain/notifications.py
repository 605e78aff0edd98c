"""
core.domain.notifications — Best-effort notification dispatcher.

Centralises notification creation so every workflow service uses one
consistent entry-point rather than directly constructing ``Notification``
objects.

Design decisions
----------------
* **After commit** — ``NotificationDispatcher.dispatch`` only *registers*
  delivery via ``transaction.on_commit``.  Nothing is written if the
  triggering transaction rolls back, and nothing the sink does can roll
  the business change back.
* **Fire-and-forget** — a failing sink is logged with the traceback and
  swallowed; there is no synchronous retry.
* **Bounded** — by default (``NOTIFICATIONS["ASYNC"]``) the sink runs on a
  small thread pool and the request waits at most
  ``NOTIFICATIONS["TIMEOUT"]`` seconds.  The sink runs inside its own
  transaction on the worker; a batch the request gave up on is rolled back
  there, so a timed-out batch is dropped and logged, never delivered late.
  Side effects outside the database cannot be recalled.
* **In-process mode** — ``ASYNC = False`` calls the sink on the request
  thread with no time bound.  Meant for tests and local development only.
* **Pluggable sink** — ``NOTIFICATIONS["SINK"]`` is a dotted path to a
  callable that accepts a list of unsaved ``Notification`` instances.  The
  default sink persists them; email/push delivery lives downstream of it.

Usage::

    from core.domain.notifications import NotificationDispatcher

    NotificationDispatcher.dispatch(
        actor=request.user,
        recipients=report.reporter,
        event_type="report_status_changed",
        report=report,
        payload={"from_status": "assigned", "to_status": "in_progress"},
    )
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from typing import TYPE_CHECKING, Any, Callable, Iterable

from django.conf import settings
from django.db import close_old_connections, models, transaction
from django.utils.module_loading import import_string

from core.models import Notification, NotificationType

if TYPE_CHECKING:
    from accounts.models import User
    from reports.models import Report

logger = logging.getLogger(__name__)

NotificationSink = Callable[[list[Notification]], Any]

_DEFAULTS: dict[str, Any] = {
    "SINK": "core.domain.notifications.persist_notifications",
    "ASYNC": True,
    "TIMEOUT": 2.0,
    "MAX_WORKERS": 2,
}

# ── Event-type → (type, title, message template) ────────────────────
# Message templates are interpolated with the dispatch payload; missing
# keys render as empty strings.
_EVENT_TEMPLATES: dict[str, tuple[str, str, str]] = {
    "report_approved": (
        NotificationType.STATUS_CHANGE,
        "Report Approved",
        'Your report "{report_title}" was approved and assigned to {technical_office}.',
    ),
    "report_rejected": (
        NotificationType.STATUS_CHANGE,
        "Report Rejected",
        'Your report "{report_title}" was rejected: {reason}',
    ),
    "report_status_changed": (
        NotificationType.STATUS_CHANGE,
        "Report Status Updated",
        'Your report "{report_title}" is now {to_status_display}.',
    ),
    "report_assigned": (
        NotificationType.ASSIGNMENT,
        "New Report Assigned",
        'Report "{report_title}" has been assigned to you.',
    ),
    "report_delegated": (
        NotificationType.ASSIGNMENT,
        "Report Delegated",
        'Report "{report_title}" has been delegated to you on behalf of {company}.',
    ),
    "delegation_revoked": (
        NotificationType.ASSIGNMENT,
        "Delegation Revoked",
        'Report "{report_title}" is no longer delegated to {company}.',
    ),
    "new_message": (
        NotificationType.NEW_MESSAGE,
        "New Message",
        'New message from {author} on report "{report_title}".',
    ),
}

_executor: ThreadPoolExecutor | None = None
_executor_lock = threading.Lock()


class _BlankMissing(dict):
    def __missing__(self, key: str) -> str:
        return ""


def _conf() -> dict[str, Any]:
    return {**_DEFAULTS, **getattr(settings, "NOTIFICATIONS", {})}


def _get_executor(max_workers: int) -> ThreadPoolExecutor:
    global _executor
    with _executor_lock:
        if _executor is None:
            _executor = ThreadPoolExecutor(
                max_workers=max_workers,
                thread_name_prefix="notification-dispatch",
            )
        return _executor


def persist_notifications(notifications: list[Notification]) -> list[Notification]:
    """Default sink: store the batch in the in-app notification inbox."""
    return Notification.objects.bulk_create(notifications)


def get_notification_sink() -> NotificationSink:
    return import_string(_conf()["SINK"])


class NotificationDispatcher:
    """
    Stateless helper that turns a committed workflow event into one
    ``Notification`` per affected recipient.

    All methods are classmethods — no instance state is needed.
    """

    @classmethod
    def dispatch(
        cls,
        *,
        actor: User | None,
        recipients: User | Iterable[User | None] | None,
        event_type: str,
        report: Report | None = None,
        payload: dict[str, Any] | None = None,
    ) -> list[Notification]:
        """
        Build the notifications for ``event_type`` and schedule delivery
        once the surrounding transaction commits.

        Args:
            actor:       The user who performed the action.  Never notified
                         about their own action.
            recipients:  A single ``User`` or iterable of users; ``None``
                         entries are ignored, duplicates collapsed.
            event_type:  Key into ``_EVENT_TEMPLATES``.  Unknown keys fall
                         back to a title derived from the key.
            report:      The report the event concerns.
            payload:     Event context, stored on the notification and used
                         for message interpolation.

        Returns:
            The (not yet persisted) notifications scheduled for delivery.
        """
        if recipients is None or isinstance(recipients, models.Model):
            recipients = [recipients]

        unique: dict[int, User] = {}
        for recipient in recipients:
            if recipient is None:
                continue
            if actor is not None and recipient.pk == actor.pk:
                continue
            unique.setdefault(recipient.pk, recipient)

        if not unique:
            logger.debug(
                "No recipients for event_type=%s by actor=%s",
                event_type,
                actor,
            )
            return []

        kind, title, template = _EVENT_TEMPLATES.get(
            event_type,
            (
                NotificationType.STATUS_CHANGE,
                event_type.replace("_", " ").title(),
                f"Event: {event_type}",
            ),
        )

        context = dict(payload or {})
        if report is not None:
            context.setdefault("report_id", report.pk)
            context.setdefault("report_title", report.title)
        context["event"] = event_type
        message = template.format_map(_BlankMissing(context))

        notifications = [
            Notification(
                recipient=recipient,
                report=report,
                event_type=kind,
                title=title,
                message=message,
                payload=context,
            )
            for recipient in unique.values()
        ]

        transaction.on_commit(lambda: cls._deliver(notifications, event_type))
        return notifications

    @classmethod
    def _deliver(cls, notifications: list[Notification], event_type: str) -> _Delivery | None:
        """
        Hand ``notifications`` to the configured sink.

        Returns the ``_Delivery`` tracking the worker in async mode, ``None``
        otherwise.
        """
        conf = _conf()
        try:
            sink = get_notification_sink()
        except ImportError:
            logger.exception("Notification sink %r could not be loaded", conf["SINK"])
            return None

        if not conf["ASYNC"]:
            try:
                sink(notifications)
            except Exception:
                logger.exception(
                    "Dropping %d notification(s) [%s]: sink failed",
                    len(notifications),
                    event_type,
                )
                return None
            logger.info("Delivered %d notification(s) [%s]", len(notifications), event_type)
            return None

        delivery = _Delivery(sink, notifications)
        future = _get_executor(conf["MAX_WORKERS"]).submit(delivery.run)
        try:
            future.result(timeout=conf["TIMEOUT"])
        except FutureTimeout:
            if delivery.abandon():
                logger.error(
                    "Dropping %d notification(s) [%s]: sink exceeded %.1fs",
                    len(notifications),
                    event_type,
                    conf["TIMEOUT"],
                )
                return delivery
        except Exception:
            logger.exception(
                "Dropping %d notification(s) [%s]: sink failed",
                len(notifications),
                event_type,
            )
            return delivery
        logger.info("Delivered %d notification(s) [%s]", len(notifications), event_type)
        return delivery


class _Abandoned(Exception):
    """Rolls back a delivery the request thread has given up on."""


class _Delivery:
    """
    Hand-off between the request thread and the worker running the sink.

    The worker commits the sink's transaction only while holding ``guard``
    and only if the request has not abandoned the batch; the request
    abandons only while holding ``guard``.  A batch is therefore either
    delivered or dropped, never both.
    """

    def __init__(self, sink: NotificationSink, notifications: list[Notification]):
        self.sink = sink
        self.notifications = notifications
        self.guard = threading.Lock()
        self.abandoned = False
        self.delivered = False
        self.finished = threading.Event()

    def run(self) -> None:
        close_old_connections()
        locked = False
        try:
            if self.abandoned:
                return
            with transaction.atomic():
                self.sink(self.notifications)
                self.guard.acquire()
                locked = True
                if self.abandoned:
                    raise _Abandoned()
            self.delivered = True
        except _Abandoned:
            logger.debug("Rolled back %d abandoned notification(s)", len(self.notifications))
        finally:
            if locked:
                self.guard.release()
            close_old_connections()
            self.finished.set()

    def abandon(self) -> bool:
        """Give up on the batch.  ``False`` if it was delivered in the meantime."""
        with self.guard:
            if self.delivered:
                return False
            self.abandoned = True
            return True
