"""
Tests for bounded notification delivery in ``core.domain.notifications``.

The worker thread needs its own database connection to see committed
rows, so these run as ``TransactionTestCase``.
"""

from __future__ import annotations

import threading

from django.test import SimpleTestCase, TransactionTestCase, override_settings

from core.constants import RoleName
from core.domain import notifications
from core.domain.notifications import (
    NotificationDispatcher,
    _conf,
    _get_executor,
    persist_notifications,
)
from core.models import Notification, NotificationType
from tests.factories import make_user

GATE = threading.Event()


def gated_sink(notifications):
    GATE.wait(timeout=5)
    return persist_notifications(notifications)


def failing_sink(notifications):
    raise RuntimeError("push gateway down")


def _settings(sink, timeout):
    return {
        "SINK": f"core.tests.test_notification_delivery.{sink}",
        "ASYNC": True,
        "TIMEOUT": timeout,
    }


class TestAsyncDelivery(TransactionTestCase):

    def setUp(self):
        GATE.clear()
        self.citizen = make_user("async_citizen", RoleName.CITIZEN)

    def tearDown(self):
        GATE.set()

    def _batch(self):
        return [
            Notification(
                recipient=self.citizen,
                event_type=NotificationType.STATUS_CHANGE,
                title="Report Approved",
                message="Approved.",
            )
        ]

    @override_settings(NOTIFICATIONS=_settings("gated_sink", 5.0))
    def test_delivered_within_timeout(self):
        GATE.set()
        with self.assertLogs("core.domain.notifications", level="INFO") as logs:
            NotificationDispatcher.dispatch(
                actor=None,
                recipients=self.citizen,
                event_type="report_status_changed",
                payload={"to_status_display": "In Progress"},
            )
        self.assertIn("Delivered 1 notification(s)", logs.output[-1])
        self.assertEqual(Notification.objects.filter(recipient=self.citizen).count(), 1)

    @override_settings(NOTIFICATIONS=_settings("gated_sink", 0.05))
    def test_timed_out_batch_is_never_delivered_late(self):
        with self.assertLogs("core.domain.notifications", level="ERROR") as logs:
            delivery = NotificationDispatcher._deliver(self._batch(), "report_approved")
        self.assertIn("sink exceeded", logs.output[0])

        # Let the sink finish its write after the request gave up.
        GATE.set()
        self.assertTrue(delivery.finished.wait(timeout=5))
        self.assertFalse(delivery.delivered)
        self.assertEqual(Notification.objects.count(), 0)

    @override_settings(NOTIFICATIONS=_settings("failing_sink", 5.0))
    def test_sink_failure_is_logged(self):
        with self.assertLogs("core.domain.notifications", level="ERROR") as logs:
            delivery = NotificationDispatcher._deliver(self._batch(), "report_approved")
        self.assertIn("sink failed", logs.output[0])
        self.assertFalse(delivery.delivered)
        self.assertEqual(Notification.objects.count(), 0)

    def test_abandon_after_delivery_is_refused(self):
        GATE.set()
        with override_settings(NOTIFICATIONS=_settings("gated_sink", 5.0)):
            delivery = NotificationDispatcher._deliver(self._batch(), "report_approved")
        self.assertTrue(delivery.delivered)
        self.assertFalse(delivery.abandon())


class TestDeliveryDefaults(TransactionTestCase):

    @override_settings(NOTIFICATIONS={})
    def test_default_mode_is_bounded(self):
        conf = _conf()
        self.assertTrue(conf["ASYNC"])
        self.assertGreater(conf["TIMEOUT"], 0)

    def test_in_process_mode_returns_no_handle(self):
        citizen = make_user("sync_citizen", RoleName.CITIZEN)
        batch = [
            Notification(
                recipient=citizen,
                event_type=NotificationType.STATUS_CHANGE,
                title="Report Approved",
                message="Approved.",
            )
        ]
        with override_settings(NOTIFICATIONS={"ASYNC": False}):
            self.assertIsNone(NotificationDispatcher._deliver(batch, "report_approved"))
        self.assertEqual(Notification.objects.count(), 1)


class TestExecutor(SimpleTestCase):

    def setUp(self):
        self._saved = notifications._executor
        notifications._executor = None

    def tearDown(self):
        created = notifications._executor
        notifications._executor = self._saved
        if created is not None and created is not self._saved:
            created.shutdown(wait=False)

    def test_concurrent_first_use_creates_one_pool(self):
        barrier = threading.Barrier(8)
        seen = []

        def grab():
            barrier.wait()
            seen.append(_get_executor(2))

        threads = [threading.Thread(target=grab) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=5)

        self.assertEqual(len(seen), 8)
        self.assertEqual(len({id(pool) for pool in seen}), 1)
