"""
Integration tests — report lifecycle through the HTTP API.

Endpoints under test:
    POST /api/reports/                    (reports:report-list)
    GET  /api/reports/{id}/               (reports:report-detail)
    POST /api/reports/{id}/approve/       (reports:report-approve)
    POST /api/reports/{id}/reject/        (reports:report-reject)
    POST /api/reports/{id}/status/        (reports:report-change-status)
    POST /api/reports/{id}/category/      (reports:report-change-category)
    GET  /api/reports/{id}/audit-log/     (reports:report-audit-log)
    GET  /api/reports/{id}/capabilities/  (reports:report-capabilities)

Engineering constraints:
  * django.test.TestCase + rest_framework.test.APIClient.
  * Tests hit real endpoints via views/urls; each test logs in with its
    own JWT.
"""

from __future__ import annotations

from django.test import TestCase
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APIClient

from core.domain.exceptions import InvalidTransition, TerminalStateViolation
from reports.capabilities import Capability
from reports.models import TERMINAL_STATUSES, AuditAction, Report, ReportAuditLog, ReportStatus
from reports.services import ALLOWED_TRANSITIONS, ReportWorkflowService

from .factories import PHOTOS, build_world, login, make_report


class TestReportCreation(TestCase):

    @classmethod
    def setUpTestData(cls):
        cls.w = build_world("create")

    def setUp(self):
        self.client = APIClient()
        self.url = reverse("reports:report-list")
        self.payload = {
            "category": self.w.category.pk,
            "title": "Broken street light",
            "description": "The light at the corner has been off for a week.",
            "latitude": "35.712345",
            "longitude": "51.398765",
            "photos": PHOTOS,
        }

    def test_citizen_creates_report_in_pending_approval(self):
        login(self.client, self.w.citizen)
        resp = self.client.post(self.url, self.payload, format="json")

        self.assertEqual(resp.status_code, status.HTTP_201_CREATED, msg=resp.data)
        self.assertEqual(resp.data["status"], ReportStatus.PENDING_APPROVAL)
        self.assertIsNone(resp.data["assignee"])
        self.assertEqual(resp.data["version"], 1)

        report = Report.objects.get(pk=resp.data["id"])
        self.assertEqual(report.reporter, self.w.citizen)
        self.assertTrue(
            ReportAuditLog.objects.filter(report=report, action=AuditAction.CREATED).exists()
        )

    def test_non_citizen_cannot_create(self):
        login(self.client, self.w.officer)
        resp = self.client.post(self.url, self.payload, format="json")
        self.assertEqual(resp.status_code, status.HTTP_403_FORBIDDEN, msg=resp.data)
        self.assertEqual(resp.data["code"], "forbidden")

    def test_unknown_category_is_404(self):
        login(self.client, self.w.citizen)
        resp = self.client.post(self.url, {**self.payload, "category": 999_999}, format="json")
        self.assertEqual(resp.status_code, status.HTTP_404_NOT_FOUND, msg=resp.data)

    def test_photo_count_is_validated(self):
        login(self.client, self.w.citizen)
        no_photos = self.client.post(self.url, {**self.payload, "photos": []}, format="json")
        too_many = self.client.post(
            self.url,
            {**self.payload, "photos": [f"https://cdn.example.test/{i}.jpg" for i in range(4)]},
            format="json",
        )
        self.assertEqual(no_photos.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(too_many.status_code, status.HTTP_400_BAD_REQUEST)

    def test_unauthenticated_request_is_rejected(self):
        resp = self.client.post(self.url, self.payload, format="json")
        self.assertEqual(resp.status_code, status.HTTP_401_UNAUTHORIZED)


class TestApproveAndReject(TestCase):

    @classmethod
    def setUpTestData(cls):
        cls.w = build_world("approve")

    def setUp(self):
        self.client = APIClient()
        self.report = make_report(self.w.citizen, self.w.category)

    def _approve(self, report_id, **body):
        return self.client.post(
            reverse("reports:report-approve", args=[report_id]), body, format="json",
        )

    def test_officer_approves_and_report_is_assigned(self):
        login(self.client, self.w.officer)
        resp = self._approve(self.report.pk)

        self.assertEqual(resp.status_code, status.HTTP_200_OK, msg=resp.data)
        self.assertEqual(resp.data["status"], ReportStatus.ASSIGNED)
        self.assertEqual(resp.data["technical_office"]["id"], self.w.office.pk)
        self.assertEqual(resp.data["assignee"]["id"], self.w.tech_a.pk)
        self.assertEqual(resp.data["version"], 2)

    def test_second_approve_is_invalid_transition(self):
        login(self.client, self.w.officer)
        self._approve(self.report.pk)
        resp = self._approve(self.report.pk)

        self.assertEqual(resp.status_code, status.HTTP_409_CONFLICT, msg=resp.data)
        self.assertEqual(resp.data["code"], "invalid_transition")

    def test_approve_picks_least_loaded_technician(self):
        # tech_a already carries one active report, tech_b none
        make_report(
            self.w.other_citizen, self.w.category,
            status=ReportStatus.IN_PROGRESS,
            assignee=self.w.tech_a,
            technical_office=self.w.office,
        )
        login(self.client, self.w.officer)
        resp = self._approve(self.report.pk)
        self.assertEqual(resp.data["assignee"]["id"], self.w.tech_b.pk, msg=resp.data)

    def test_resolved_reports_do_not_count_towards_workload(self):
        make_report(
            self.w.other_citizen, self.w.category,
            status=ReportStatus.RESOLVED,
            assignee=self.w.tech_a,
            technical_office=self.w.office,
        )
        login(self.client, self.w.officer)
        resp = self._approve(self.report.pk)
        self.assertEqual(resp.data["assignee"]["id"], self.w.tech_a.pk, msg=resp.data)

    def test_category_without_office_cannot_be_approved(self):
        report = make_report(self.w.citizen, self.w.orphan_category)
        login(self.client, self.w.officer)
        resp = self._approve(report.pk)

        self.assertEqual(resp.status_code, status.HTTP_409_CONFLICT, msg=resp.data)
        report.refresh_from_db()
        self.assertEqual(report.status, ReportStatus.PENDING_APPROVAL)

    def test_technician_cannot_approve(self):
        login(self.client, self.w.tech_a)
        resp = self._approve(self.report.pk)
        self.assertEqual(resp.status_code, status.HTTP_403_FORBIDDEN, msg=resp.data)

    def test_reject_requires_reason(self):
        login(self.client, self.w.officer)
        resp = self.client.post(
            reverse("reports:report-reject", args=[self.report.pk]),
            {"reason": "   "},
            format="json",
        )
        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST, msg=resp.data)
        self.assertEqual(resp.data["code"], "missing_rejection_reason")

    def test_reject_is_terminal(self):
        login(self.client, self.w.officer)
        resp = self.client.post(
            reverse("reports:report-reject", args=[self.report.pk]),
            {"reason": "Duplicate of an existing report."},
            format="json",
        )
        self.assertEqual(resp.status_code, status.HTTP_200_OK, msg=resp.data)
        self.assertEqual(resp.data["status"], ReportStatus.REJECTED)
        self.assertEqual(resp.data["rejection_reason"], "Duplicate of an existing report.")

        again = self._approve(self.report.pk)
        self.assertEqual(again.status_code, status.HTTP_409_CONFLICT, msg=again.data)
        self.assertEqual(again.data["code"], "terminal_state_violation")

    def test_officer_changes_category_before_approval(self):
        login(self.client, self.w.officer)
        resp = self.client.post(
            reverse("reports:report-change-category", args=[self.report.pk]),
            {"category": self.w.orphan_category.pk},
            format="json",
        )
        self.assertEqual(resp.status_code, status.HTTP_200_OK, msg=resp.data)
        self.assertEqual(resp.data["category"], self.w.orphan_category.pk)
        self.assertTrue(
            ReportAuditLog.objects.filter(
                report=self.report, action=AuditAction.RECATEGORIZED,
            ).exists()
        )


class TestStatusChanges(TestCase):

    @classmethod
    def setUpTestData(cls):
        cls.w = build_world("status")

    def setUp(self):
        self.client = APIClient()
        self.report = make_report(
            self.w.citizen, self.w.category,
            status=ReportStatus.ASSIGNED,
            assignee=self.w.tech_a,
            technical_office=self.w.office,
        )
        self.url = reverse("reports:report-change-status", args=[self.report.pk])

    def test_assigned_to_resolved_is_not_a_shortcut(self):
        login(self.client, self.w.tech_a)
        resp = self.client.post(self.url, {"status": ReportStatus.RESOLVED}, format="json")
        self.assertEqual(resp.status_code, status.HTTP_409_CONFLICT, msg=resp.data)
        self.assertEqual(resp.data["code"], "invalid_transition")

    def test_full_happy_path(self):
        login(self.client, self.w.tech_a)
        for target in (
            ReportStatus.IN_PROGRESS,
            ReportStatus.SUSPENDED,
            ReportStatus.IN_PROGRESS,
            ReportStatus.RESOLVED,
        ):
            resp = self.client.post(self.url, {"status": target}, format="json")
            self.assertEqual(resp.status_code, status.HTTP_200_OK, msg=resp.data)
            self.assertEqual(resp.data["status"], target)

        resp = self.client.post(self.url, {"status": ReportStatus.IN_PROGRESS}, format="json")
        self.assertEqual(resp.data["code"], "terminal_state_violation", msg=resp.data)

        audit = self.client.get(reverse("reports:report-audit-log", args=[self.report.pk]))
        self.assertEqual(audit.status_code, status.HTTP_200_OK, msg=audit.data)
        self.assertEqual(
            [row["to_status"] for row in audit.data],
            ["in_progress", "suspended", "in_progress", "resolved"],
        )

    def test_other_technician_is_forbidden(self):
        login(self.client, self.w.tech_b)
        resp = self.client.post(self.url, {"status": ReportStatus.IN_PROGRESS}, format="json")
        self.assertEqual(resp.status_code, status.HTTP_403_FORBIDDEN, msg=resp.data)

    def test_citizen_is_forbidden(self):
        login(self.client, self.w.citizen)
        resp = self.client.post(self.url, {"status": ReportStatus.IN_PROGRESS}, format="json")
        self.assertEqual(resp.status_code, status.HTTP_403_FORBIDDEN, msg=resp.data)

    def test_change_status_cannot_approve(self):
        pending = make_report(self.w.citizen, self.w.category)
        login(self.client, self.w.tech_a)
        resp = self.client.post(
            reverse("reports:report-change-status", args=[pending.pk]),
            {"status": ReportStatus.ASSIGNED},
            format="json",
        )
        self.assertEqual(resp.status_code, status.HTTP_409_CONFLICT, msg=resp.data)

    def test_capabilities_endpoint(self):
        login(self.client, self.w.tech_a)
        resp = self.client.get(reverse("reports:report-capabilities", args=[self.report.pk]))

        self.assertEqual(resp.status_code, status.HTTP_200_OK, msg=resp.data)
        self.assertEqual(
            resp.data["capabilities"],
            ["change_status", "delegate", "post_citizen_message"],
        )
        self.assertEqual(resp.data["status_targets"], ["in_progress", "suspended"])


class TestReportVisibility(TestCase):

    @classmethod
    def setUpTestData(cls):
        cls.w = build_world("scope")
        cls.own = make_report(cls.w.citizen, cls.w.category)
        cls.foreign = make_report(cls.w.other_citizen, cls.w.category)
        cls.assigned = make_report(
            cls.w.other_citizen, cls.w.category,
            status=ReportStatus.ASSIGNED,
            assignee=cls.w.tech_b,
            technical_office=cls.w.office,
        )

    def setUp(self):
        self.client = APIClient()
        self.url = reverse("reports:report-list")

    def _ids(self):
        resp = self.client.get(self.url)
        self.assertEqual(resp.status_code, status.HTTP_200_OK, msg=resp.data)
        return {row["id"] for row in resp.data}

    def test_citizen_sees_own_reports_only(self):
        login(self.client, self.w.citizen)
        self.assertEqual(self._ids(), {self.own.pk})

    def test_officer_sees_everything(self):
        login(self.client, self.w.officer)
        self.assertEqual(self._ids(), {self.own.pk, self.foreign.pk, self.assigned.pk})

    def test_technician_sees_assignments(self):
        login(self.client, self.w.tech_b)
        self.assertEqual(self._ids(), {self.assigned.pk})

    def test_status_filter(self):
        login(self.client, self.w.officer)
        resp = self.client.get(self.url, {"status": ReportStatus.ASSIGNED})
        self.assertEqual([row["id"] for row in resp.data], [self.assigned.pk])

    def test_foreign_report_detail_is_404(self):
        login(self.client, self.w.citizen)
        resp = self.client.get(reverse("reports:report-detail", args=[self.foreign.pk]))
        self.assertEqual(resp.status_code, status.HTTP_404_NOT_FOUND, msg=resp.data)

    def test_anonymous_reporter_hidden_from_staff(self):
        anonymous = make_report(self.w.citizen, self.w.category, anonymous=True)
        login(self.client, self.w.officer)
        resp = self.client.get(reverse("reports:report-detail", args=[anonymous.pk]))
        self.assertIsNone(resp.data["reporter"])


class TestTransitionLegality(TestCase):
    """Every (status, target) pair outside the transition table is refused."""

    @classmethod
    def setUpTestData(cls):
        cls.w = build_world("legal")

    def _report_in(self, current):
        extra = {}
        if current != ReportStatus.PENDING_APPROVAL:
            extra = {"assignee": self.w.tech_a, "technical_office": self.w.office}
        if current == ReportStatus.REJECTED:
            extra["rejection_reason"] = "Duplicate."
        return make_report(self.w.citizen, self.w.category, status=current, **extra)

    def _expected_error(self, current):
        return TerminalStateViolation if current in TERMINAL_STATUSES else InvalidTransition

    def test_change_status_sweep(self):
        for current in ReportStatus.values:
            for target in ReportStatus.values:
                with self.subTest(current=current, target=target):
                    report = self._report_in(current)
                    legal = ALLOWED_TRANSITIONS.get((current, target)) is Capability.CHANGE_STATUS
                    if legal:
                        updated = ReportWorkflowService.change_status(self.w.tech_a, report.pk, target)
                        self.assertEqual(updated.status, target)
                    else:
                        with self.assertRaises(self._expected_error(current)):
                            ReportWorkflowService.change_status(self.w.tech_a, report.pk, target)
                        report.refresh_from_db()
                        self.assertEqual(report.status, current)

    def test_approve_and_reject_sweep(self):
        operations = {
            ReportStatus.ASSIGNED: lambda pk: ReportWorkflowService.approve(self.w.officer, pk),
            ReportStatus.REJECTED: lambda pk: ReportWorkflowService.reject(
                self.w.officer, pk, "Not a municipal matter.",
            ),
        }
        for target, operation in operations.items():
            for current in ReportStatus.values:
                with self.subTest(current=current, target=target):
                    report = self._report_in(current)
                    if (current, target) in ALLOWED_TRANSITIONS:
                        self.assertEqual(operation(report.pk).status, target)
                    else:
                        with self.assertRaises(self._expected_error(current)):
                            operation(report.pk)
                        report.refresh_from_db()
                        self.assertEqual(report.status, current)
