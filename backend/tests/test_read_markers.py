"""
Integration tests — read markers and unread counts.

Endpoints under test:
    POST /api/reports/{report_pk}/messages/mark-opened/  (messaging:report-message-mark-opened)
    GET  /api/reports/{report_pk}/messages/unread/       (messaging:report-message-unread)
"""

from __future__ import annotations

from django.test import TestCase
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APIClient

from messaging.models import Message, MessageChannel, ReadMarker
from messaging.services import ReadMarkerService
from reports.models import ReportStatus

from .factories import build_world, login, make_report


class TestReadMarkers(TestCase):

    @classmethod
    def setUpTestData(cls):
        cls.w = build_world("unread")

    def setUp(self):
        self.client = APIClient()
        self.report = make_report(
            self.w.citizen, self.w.category,
            status=ReportStatus.IN_PROGRESS,
            assignee=self.w.tech_a,
            technical_office=self.w.office,
        )
        self.kwargs = {"report_pk": self.report.pk}

    def _say(self, author, content, channel=MessageChannel.CITIZEN):
        return Message.objects.create(
            report=self.report,
            author=author,
            author_role=author.role.name,
            channel=channel,
            content=content,
        )

    def _unread(self, channel=None):
        params = {"channel": channel} if channel else {}
        return self.client.get(
            reverse("messaging:report-message-unread", kwargs=self.kwargs), params,
        )

    def _open(self, channel=MessageChannel.CITIZEN):
        return self.client.post(
            reverse("messaging:report-message-mark-opened", kwargs=self.kwargs),
            {"channel": channel},
            format="json",
        )

    def test_unread_counts_messages_from_others(self):
        self._say(self.w.tech_a, "We are on it.")
        self._say(self.w.tech_a, "Crew dispatched.")
        self._say(self.w.citizen, "Thanks!")

        login(self.client, self.w.citizen)
        resp = self._unread(MessageChannel.CITIZEN)
        self.assertEqual(resp.status_code, status.HTTP_200_OK, msg=resp.data)
        self.assertEqual(resp.data, {"channel": "citizen", "unread": 2})

    def test_opening_channel_clears_unread(self):
        self._say(self.w.tech_a, "We are on it.")
        last = self._say(self.w.tech_a, "Crew dispatched.")

        login(self.client, self.w.citizen)
        resp = self._open()
        self.assertEqual(resp.status_code, status.HTTP_200_OK, msg=resp.data)
        self.assertEqual(resp.data["last_read_message"], last.pk)
        self.assertEqual(self._unread(MessageChannel.CITIZEN).data["unread"], 0)

        self._say(self.w.tech_a, "Done.")
        self.assertEqual(self._unread(MessageChannel.CITIZEN).data["unread"], 1)

    def test_opening_empty_channel_returns_no_content(self):
        login(self.client, self.w.citizen)
        resp = self._open()
        self.assertEqual(resp.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(ReadMarker.objects.filter(user=self.w.citizen).exists())

    def test_marker_never_moves_backwards(self):
        self._say(self.w.tech_a, "One.")
        newest = self._say(self.w.tech_a, "Two.")
        # Another session already stored a position past the newest message
        # this request sees.
        ahead = Message.objects.create(
            report=self.report,
            author=self.w.tech_a,
            author_role="technical_staff",
            channel=MessageChannel.INTERNAL,
            content="unrelated",
        )
        ReadMarker.objects.create(
            user=self.w.citizen,
            report=self.report,
            channel=MessageChannel.CITIZEN,
            last_read_message=ahead,
        )

        marker = ReadMarkerService.mark_channel_opened(
            self.w.citizen, self.report.pk, MessageChannel.CITIZEN,
        )
        self.assertGreater(ahead.pk, newest.pk)
        self.assertEqual(marker.last_read_message_id, ahead.pk)

    def test_reopening_is_idempotent(self):
        last = self._say(self.w.tech_a, "Hello.")
        login(self.client, self.w.citizen)
        self._open()
        resp = self._open()
        self.assertEqual(resp.data["last_read_message"], last.pk)
        self.assertEqual(ReadMarker.objects.filter(user=self.w.citizen).count(), 1)

    def test_markers_are_per_user(self):
        self._say(self.w.tech_a, "Hello.")
        self._say(self.w.citizen, "Hi.")

        login(self.client, self.w.citizen)
        self._open()

        login(self.client, self.w.tech_a)
        self.assertEqual(self._unread(MessageChannel.CITIZEN).data["unread"], 1)

    def test_summary_lists_readable_channels_only(self):
        self._say(self.w.tech_a, "Hello.")
        login(self.client, self.w.citizen)
        resp = self._unread()
        self.assertEqual(resp.status_code, status.HTTP_200_OK, msg=resp.data)
        self.assertEqual(resp.data, {"citizen": 1})

    def test_summary_for_delegated_report(self):
        self.report.company = self.w.company
        self.report.external_maintainer = self.w.maint_a
        self.report.save(update_fields=["company", "external_maintainer"])
        self._say(self.w.citizen, "Hello.")
        self._say(self.w.maint_a, "Parts ordered.", channel=MessageChannel.INTERNAL)

        login(self.client, self.w.tech_a)
        self.assertEqual(self._unread().data, {"citizen": 1, "internal": 1})

    def test_outsider_cannot_mark_channel(self):
        self._say(self.w.tech_a, "Hello.")
        login(self.client, self.w.other_citizen)
        resp = self._open()
        self.assertEqual(resp.status_code, status.HTTP_403_FORBIDDEN, msg=resp.data)
