"""
Reports app models.

A ``Report`` is a citizen's account of a municipal problem.  It is created
in ``pending_approval`` and from then on only changes through the service
layer's transition operations (approve, reject, change status, delegate,
revoke).  Reports are never physically deleted; ``ReportAuditLog`` keeps
one row per committed mutation.
"""

from django.conf import settings
from django.db import models
from django.db.models import Q

from core.models import TimeStampedModel


# ────────────────────────────────────────────────────────────────────
# Choice enumerations
# ────────────────────────────────────────────────────────────────────

class ReportStatus(models.TextChoices):
    """
    Lifecycle of a report.

    ``resolved`` and ``rejected`` are terminal.
    """

    PENDING_APPROVAL = "pending_approval", "Pending Approval"
    ASSIGNED = "assigned", "Assigned"
    IN_PROGRESS = "in_progress", "In Progress"
    SUSPENDED = "suspended", "Suspended"
    RESOLVED = "resolved", "Resolved"
    REJECTED = "rejected", "Rejected"


TERMINAL_STATUSES: frozenset[str] = frozenset({
    ReportStatus.RESOLVED,
    ReportStatus.REJECTED,
})

#: Statuses during which the owning technician may delegate or revoke.
DELEGABLE_STATUSES: frozenset[str] = frozenset({
    ReportStatus.ASSIGNED,
    ReportStatus.IN_PROGRESS,
})


class AuditAction(models.TextChoices):
    """What kind of mutation an audit row records."""

    CREATED = "created", "Created"
    APPROVED = "approved", "Approved"
    REJECTED = "rejected", "Rejected"
    STATUS_CHANGED = "status_changed", "Status Changed"
    DELEGATED = "delegated", "Delegated"
    DELEGATION_REVOKED = "delegation_revoked", "Delegation Revoked"
    RECATEGORIZED = "recategorized", "Recategorized"


# ────────────────────────────────────────────────────────────────────
# Models
# ────────────────────────────────────────────────────────────────────

class Report(TimeStampedModel):
    """
    Central entity of the system — a citizen report.

    * ``reporter`` is fixed at creation.
    * ``assignee`` and ``technical_office`` are set when an officer
      approves the report; ``technical_office`` never changes afterwards.
    * ``company`` and ``external_maintainer`` are either both set (the
      report is delegated) or both null.
    * ``version`` increases by one on every committed mutation and backs
      the optimistic-concurrency check.
    """

    category = models.ForeignKey(
        "municipality.ProblemCategory",
        on_delete=models.PROTECT,
        related_name="reports",
        verbose_name="Category",
    )
    title = models.CharField(
        max_length=255,
        verbose_name="Title",
    )
    description = models.TextField(
        verbose_name="Description",
    )
    latitude = models.DecimalField(
        max_digits=9,
        decimal_places=6,
        verbose_name="Latitude",
    )
    longitude = models.DecimalField(
        max_digits=9,
        decimal_places=6,
        verbose_name="Longitude",
    )
    address = models.CharField(
        max_length=500,
        blank=True,
        default="",
        verbose_name="Address",
    )
    anonymous = models.BooleanField(
        default=False,
        verbose_name="Anonymous",
        help_text="Anonymous reports hide the reporter and have no citizen channel.",
    )
    photos = models.JSONField(
        default=list,
        verbose_name="Photos",
        help_text="Ordered list of one to three photo URLs.",
    )
    status = models.CharField(
        max_length=20,
        choices=ReportStatus.choices,
        default=ReportStatus.PENDING_APPROVAL,
        verbose_name="Status",
        db_index=True,
    )
    rejection_reason = models.TextField(
        blank=True,
        default="",
        verbose_name="Rejection Reason",
    )

    # ── Parties ─────────────────────────────────────────────────────
    reporter = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="reports",
        verbose_name="Reporter",
    )
    assignee = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="assigned_reports",
        verbose_name="Assigned Technician",
    )
    technical_office = models.ForeignKey(
        "municipality.TechnicalOffice",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="reports",
        verbose_name="Technical Office",
    )

    # ── Delegation ──────────────────────────────────────────────────
    company = models.ForeignKey(
        "municipality.Company",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="reports",
        verbose_name="Delegated Company",
    )
    external_maintainer = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="delegated_reports",
        verbose_name="External Maintainer",
    )

    version = models.PositiveIntegerField(
        default=1,
        verbose_name="Version",
    )

    class Meta:
        verbose_name = "Report"
        verbose_name_plural = "Reports"
        ordering = ["-created_at", "-id"]
        indexes = [
            models.Index(fields=["assignee", "status"]),
            models.Index(fields=["external_maintainer", "status"]),
        ]
        constraints = [
            models.CheckConstraint(
                condition=(
                    Q(company__isnull=True, external_maintainer__isnull=True)
                    | Q(company__isnull=False, external_maintainer__isnull=False)
                ),
                name="report_delegation_pairing",
            ),
            models.CheckConstraint(
                condition=(
                    (Q(status=ReportStatus.REJECTED) & ~Q(rejection_reason=""))
                    | (~Q(status=ReportStatus.REJECTED) & Q(rejection_reason=""))
                ),
                name="report_rejection_reason_iff_rejected",
            ),
        ]

    def __str__(self):
        return f"Report #{self.pk}: {self.title} [{self.status}]"

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def is_delegated(self) -> bool:
        return self.external_maintainer_id is not None


class ReportAuditLog(models.Model):
    """
    Immutable audit trail of every committed mutation of a report.

    Written in the same transaction as the mutation it records.
    """

    report = models.ForeignKey(
        Report,
        on_delete=models.CASCADE,
        related_name="audit_logs",
        verbose_name="Report",
    )
    action = models.CharField(
        max_length=30,
        choices=AuditAction.choices,
        verbose_name="Action",
    )
    from_status = models.CharField(
        max_length=20,
        choices=ReportStatus.choices,
        blank=True,
        default="",
        verbose_name="Previous Status",
    )
    to_status = models.CharField(
        max_length=20,
        choices=ReportStatus.choices,
        verbose_name="New Status",
    )
    actor = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        related_name="report_audit_entries",
        verbose_name="Actor",
    )
    message = models.TextField(
        blank=True,
        default="",
        verbose_name="Message",
    )
    created_at = models.DateTimeField(auto_now_add=True, verbose_name="Created At")

    class Meta:
        verbose_name = "Report Audit Log"
        verbose_name_plural = "Report Audit Logs"
        ordering = ["created_at", "id"]

    def __str__(self):
        return (
            f"Report #{self.report_id}: {self.action} "
            f"{self.from_status or '∅'} → {self.to_status}"
        )
