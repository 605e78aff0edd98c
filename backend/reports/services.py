"""
Reports app Service Layer.

This module is the **single source of truth** for the report lifecycle.
Views must remain thin: validate input via serializers, call a service
method, and return the result wrapped in a DRF ``Response``.

Architecture
------------
- ``ReportQueryService``     — Role-scoped querysets, detail, audit trail.
- ``ReportCreationService``  — Citizen report submission.
- ``ReportWorkflowService``  — Approve / reject / change status / recategorize.
- ``DelegationService``      — Hand work to an external company and take it back.

Workflow State-Machine Overview
--------------------------------
  PENDING_APPROVAL → ASSIGNED      (officer approves; office + technician resolved)
  PENDING_APPROVAL → REJECTED      (officer rejects with a reason; terminal)
  ASSIGNED         → IN_PROGRESS
  ASSIGNED         → SUSPENDED
  IN_PROGRESS      → SUSPENDED
  IN_PROGRESS      → RESOLVED      (terminal)
  SUSPENDED        → IN_PROGRESS
  SUSPENDED        → RESOLVED      (terminal)

Every mutation runs in one transaction: the report row is locked, checked
against the caller's last-seen ``version``, updated with a compare-and-swap
on ``version``, and an audit row is inserted.  Notifications are scheduled
to go out only after that transaction commits.
"""

from __future__ import annotations

import logging
from typing import Any

from django.db import transaction
from django.db.models import Count, Q, QuerySet

from accounts.models import User
from accounts.services import UserDirectoryService
from core.constants import RoleName
from core.domain.access import apply_role_scope, require_role
from core.domain.exceptions import (
    Conflict,
    DelegationPreconditionFailed,
    InvalidTransition,
    MissingRejectionReason,
    NotFound,
    PermissionDenied,
    TerminalStateViolation,
)
from core.domain.notifications import NotificationDispatcher
from core.domain.transactions import lock_for_update, versioned_update
from municipality.models import Company, TechnicalOffice
from municipality.services import CategoryService, CompanyService

from .capabilities import (
    Capability,
    can_target_status,
    require_capability,
    resolve_capabilities,
)
from .models import (
    DELEGABLE_STATUSES,
    TERMINAL_STATUSES,
    AuditAction,
    Report,
    ReportAuditLog,
    ReportStatus,
)

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════
#  Valid transition map
# ═══════════════════════════════════════════════════════════════════

#: Maps (from_status, to_status) → the capability that allows the
#: transition.  Transitions not present here are illegal.
ALLOWED_TRANSITIONS: dict[tuple[str, str], Capability] = {
    (ReportStatus.PENDING_APPROVAL, ReportStatus.ASSIGNED): Capability.APPROVE,
    (ReportStatus.PENDING_APPROVAL, ReportStatus.REJECTED): Capability.REJECT,
    (ReportStatus.ASSIGNED, ReportStatus.IN_PROGRESS): Capability.CHANGE_STATUS,
    (ReportStatus.ASSIGNED, ReportStatus.SUSPENDED): Capability.CHANGE_STATUS,
    (ReportStatus.IN_PROGRESS, ReportStatus.SUSPENDED): Capability.CHANGE_STATUS,
    (ReportStatus.IN_PROGRESS, ReportStatus.RESOLVED): Capability.CHANGE_STATUS,
    (ReportStatus.SUSPENDED, ReportStatus.IN_PROGRESS): Capability.CHANGE_STATUS,
    (ReportStatus.SUSPENDED, ReportStatus.RESOLVED): Capability.CHANGE_STATUS,
}

#: Non-terminal statuses; a report in one of these counts towards the
#: workload of its technician / external maintainer.
ACTIVE_STATUSES: tuple[str, ...] = tuple(
    value for value in ReportStatus.values if value not in TERMINAL_STATUSES
)

# ── Role-scoped visibility ──────────────────────────────────────────
REPORT_SCOPE_RULES = {
    RoleName.CITIZEN: lambda qs, u: qs.filter(reporter=u),
    RoleName.MUNICIPAL_OFFICER: lambda qs, u: qs,
    RoleName.ADMIN: lambda qs, u: qs,
    RoleName.TECHNICAL_STAFF: lambda qs, u: qs.filter(assignee=u),
    RoleName.EXTERNAL_MAINTAINER: lambda qs, u: qs.filter(external_maintainer=u),
}


def _check_transition(report: Report, target: str) -> Capability:
    """
    Return the capability guarding ``report.status → target``.

    Raises
    ------
    TerminalStateViolation
        If the report is already resolved or rejected.
    InvalidTransition
        If the transition is not in ``ALLOWED_TRANSITIONS``.
    """
    if report.status in TERMINAL_STATUSES:
        raise TerminalStateViolation(current=report.status)

    required = ALLOWED_TRANSITIONS.get((report.status, target))
    if required is None:
        raise InvalidTransition(current=report.status, target=target)
    return required


def _record(
    report: Report,
    actor: User,
    action: str,
    from_status: str,
    message: str = "",
) -> ReportAuditLog:
    return ReportAuditLog.objects.create(
        report=report,
        action=action,
        from_status=from_status,
        to_status=report.status,
        actor=actor,
        message=message,
    )


def _least_loaded(candidates: QuerySet[User], workload_relation: str) -> User | None:
    """
    Pick the candidate with the fewest active reports through
    ``workload_relation`` (``assigned_reports`` / ``delegated_reports``).
    Ties go to the lowest user id.
    """
    return (
        candidates
        .annotate(
            workload=Count(
                workload_relation,
                filter=Q(**{f"{workload_relation}__status__in": ACTIVE_STATUSES}),
                distinct=True,
            )
        )
        .order_by("workload", "pk")
        .first()
    )


def pick_technician(office: TechnicalOffice) -> User | None:
    """Technician of ``office`` with the fewest non-terminal assigned reports."""
    staff = UserDirectoryService.role_holders(office.staff.all(), RoleName.TECHNICAL_STAFF)
    return _least_loaded(staff, "assigned_reports")


def pick_maintainer(company: Company) -> User | None:
    """Maintainer of ``company`` with the fewest non-terminal delegated reports."""
    roster = UserDirectoryService.role_holders(
        company.maintainers.all(), RoleName.EXTERNAL_MAINTAINER,
    )
    return _least_loaded(roster, "delegated_reports")


# ═══════════════════════════════════════════════════════════════════
#  Report Query Service
# ═══════════════════════════════════════════════════════════════════


class ReportQueryService:
    """
    Constructs role-scoped querysets for listing and retrieving reports.
    """

    @staticmethod
    def _base_queryset() -> QuerySet[Report]:
        return Report.objects.select_related(
            "category",
            "reporter__role",
            "assignee__role",
            "technical_office",
            "company",
            "external_maintainer__role",
        )

    @staticmethod
    def get_filtered_queryset(
        requesting_user: User,
        filters: dict[str, Any] | None = None,
    ) -> QuerySet[Report]:
        """
        Build a role-scoped, filtered queryset of reports.

        Role Scoping Rules
        ------------------
        - **Citizen**: own reports.
        - **Officer / Admin**: every report.
        - **Technical staff**: reports assigned to them.
        - **External maintainer**: reports delegated to them.

        Supported filter keys: ``status``, ``category``.
        """
        qs = apply_role_scope(
            ReportQueryService._base_queryset(),
            requesting_user,
            scope_rules=REPORT_SCOPE_RULES,
        )
        filters = filters or {}
        if filters.get("status"):
            qs = qs.filter(status=filters["status"])
        if filters.get("category"):
            qs = qs.filter(category_id=filters["category"])
        return qs.order_by("-created_at", "-id")

    @staticmethod
    def get_report(report_id: int) -> Report:
        """
        Fetch one report without scoping.

        Raises
        ------
        NotFound
            If the report does not exist.
        """
        try:
            return ReportQueryService._base_queryset().get(pk=report_id)
        except Report.DoesNotExist:
            raise NotFound(f"Report with id {report_id} not found.")

    @staticmethod
    def get_report_for_user(requesting_user: User, report_id: int) -> Report:
        """
        Fetch a report visible to ``requesting_user``.

        Reports outside the caller's scope are reported as missing rather
        than forbidden, so their existence is not leaked.
        """
        try:
            return ReportQueryService.get_filtered_queryset(requesting_user).get(pk=report_id)
        except Report.DoesNotExist:
            raise NotFound(f"Report with id {report_id} not found.")

    @staticmethod
    def get_audit_log(requesting_user: User, report_id: int) -> QuerySet[ReportAuditLog]:
        report = ReportQueryService.get_report_for_user(requesting_user, report_id)
        return report.audit_logs.select_related("actor__role").order_by("created_at", "id")

    @staticmethod
    def get_capabilities(requesting_user: User, report_id: int) -> dict[str, Any]:
        """
        What the caller may currently do with the report: the capability
        set of their active role plus the statuses ``change_status`` would
        accept right now.
        """
        report = ReportQueryService.get_report_for_user(requesting_user, report_id)
        capabilities = resolve_capabilities(requesting_user, report)
        status_targets = sorted(
            target
            for (source, target), required in ALLOWED_TRANSITIONS.items()
            if source == report.status
            and required is Capability.CHANGE_STATUS
            and can_target_status(requesting_user, report, target)
        )
        return {
            "report_id": report.pk,
            "version": report.version,
            "capabilities": sorted(cap.value for cap in capabilities),
            "status_targets": status_targets,
        }


# ═══════════════════════════════════════════════════════════════════
#  Report Creation Service
# ═══════════════════════════════════════════════════════════════════


class ReportCreationService:

    @staticmethod
    @transaction.atomic
    def create_report(reporter: User, validated_data: dict[str, Any]) -> Report:
        """
        Submit a new report on behalf of a citizen.

        Parameters
        ----------
        reporter : User
            The citizen filing the report (active role must be
            ``citizen``).  Becomes the immutable ``reporter``.
        validated_data : dict
            Cleaned data from ``ReportCreateSerializer``: ``category``
            (id), ``title``, ``description``, ``latitude``, ``longitude``,
            ``photos`` and optionally ``address`` and ``anonymous``.

        Returns
        -------
        Report
            The new report in ``pending_approval``.

        Raises
        ------
        PermissionDenied
            If the active role is not ``citizen``.
        NotFound
            If the category does not exist.
        """
        require_role(
            reporter,
            RoleName.CITIZEN,
            message="Only citizens can submit reports.",
        )

        data = dict(validated_data)
        category = CategoryService.get_category(data.pop("category"))

        report = Report.objects.create(
            reporter=reporter,
            category=category,
            status=ReportStatus.PENDING_APPROVAL,
            **data,
        )
        _record(report, reporter, AuditAction.CREATED, from_status="")

        logger.info(
            "Report #%d created by user %s (category=%s, anonymous=%s)",
            report.pk, reporter.pk, category.pk, report.anonymous,
        )
        return report


# ═══════════════════════════════════════════════════════════════════
#  Report Workflow Service
# ═══════════════════════════════════════════════════════════════════


class ReportWorkflowService:
    """
    Manages every status transition in the report lifecycle.

    Each public method follows the same order of checks so that callers
    get a predictable error for a given situation:

    1. Active-role gate                 → ``PermissionDenied``
    2. Lock the report row              → ``NotFound`` / ``ConcurrentModification``
    3. Caller's version still current   → ``ConcurrentModification``
    4. Report not terminal              → ``TerminalStateViolation``
    5. Transition in the table          → ``InvalidTransition``
    6. Caller holds the capability      → ``PermissionDenied``
    7. Mutate (compare-and-swap on ``version``) and audit
    8. Schedule notifications for after commit
    """

    @staticmethod
    @transaction.atomic
    def approve(
        actor: User,
        report_id: int,
        *,
        expected_version: int | None = None,
    ) -> Report:
        """
        Approve a pending report and assign it.

        Resolves the technical office from the report's category and
        assigns the office's least-loaded technician (ties → lowest id).

        Raises
        ------
        Conflict
            If the category has no office or the office has no technician.
        """
        require_role(
            actor,
            RoleName.MUNICIPAL_OFFICER,
            message="Only a municipal public relations officer can approve reports.",
        )
        report = lock_for_update(Report, report_id, expected_version=expected_version)
        required = _check_transition(report, ReportStatus.ASSIGNED)
        require_capability(actor, report, required)

        office = CategoryService.resolve_technical_office(report.category)
        if office is None:
            raise Conflict(
                f"Assignment unavailable: category '{report.category}' has no technical office."
            )
        technician = pick_technician(office)
        if technician is None:
            raise Conflict(
                f"Assignment unavailable: technical office '{office}' has no technical staff."
            )

        old_status = report.status
        report.status = ReportStatus.ASSIGNED
        report.technical_office = office
        report.assignee = technician
        report.rejection_reason = ""
        versioned_update(
            report,
            ["status", "technical_office", "assignee", "rejection_reason"],
        )
        _record(
            report, actor, AuditAction.APPROVED, old_status,
            message=f"Assigned to {technician.display_name} ({office.name}).",
        )

        NotificationDispatcher.dispatch(
            actor=actor,
            recipients=report.reporter,
            event_type="report_approved",
            report=report,
            payload={
                "from_status": old_status,
                "to_status": report.status,
                "technical_office": office.name,
            },
        )
        NotificationDispatcher.dispatch(
            actor=actor,
            recipients=technician,
            event_type="report_assigned",
            report=report,
            payload={"technical_office": office.name},
        )

        logger.info(
            "Report #%d approved by %s; assigned to technician %s (office=%s)",
            report.pk, actor.pk, technician.pk, office.pk,
        )
        return report

    @staticmethod
    @transaction.atomic
    def reject(
        actor: User,
        report_id: int,
        reason: str,
        *,
        expected_version: int | None = None,
    ) -> Report:
        """
        Reject a pending report.  ``rejected`` is terminal.

        Raises
        ------
        MissingRejectionReason
            If ``reason`` is blank.
        """
        require_role(
            actor,
            RoleName.MUNICIPAL_OFFICER,
            message="Only a municipal public relations officer can reject reports.",
        )
        report = lock_for_update(Report, report_id, expected_version=expected_version)
        required = _check_transition(report, ReportStatus.REJECTED)
        require_capability(actor, report, required)

        reason = (reason or "").strip()
        if not reason:
            raise MissingRejectionReason()

        old_status = report.status
        report.status = ReportStatus.REJECTED
        report.rejection_reason = reason
        versioned_update(report, ["status", "rejection_reason"])
        _record(report, actor, AuditAction.REJECTED, old_status, message=reason)

        NotificationDispatcher.dispatch(
            actor=actor,
            recipients=report.reporter,
            event_type="report_rejected",
            report=report,
            payload={
                "from_status": old_status,
                "to_status": report.status,
                "reason": reason,
            },
        )

        logger.info("Report #%d rejected by %s", report.pk, actor.pk)
        return report

    @staticmethod
    @transaction.atomic
    def change_status(
        actor: User,
        report_id: int,
        new_status: str,
        *,
        expected_version: int | None = None,
    ) -> Report:
        """
        Move an approved report along the work pipeline.

        Available to the assigned technician and, for the targets
        ``in_progress`` / ``suspended`` / ``resolved``, to the external
        maintainer the report is delegated to.  Approval and rejection have
        dedicated operations and are refused here.
        """
        require_role(
            actor,
            RoleName.TECHNICAL_STAFF,
            RoleName.EXTERNAL_MAINTAINER,
            message="Only the assigned technician or delegated maintainer can change the status.",
        )
        report = lock_for_update(Report, report_id, expected_version=expected_version)
        required = _check_transition(report, new_status)
        if required is not Capability.CHANGE_STATUS:
            raise InvalidTransition(
                current=report.status,
                target=new_status,
                reason=f"use the {required.value} operation instead",
            )
        require_capability(actor, report, Capability.CHANGE_STATUS)
        if not can_target_status(actor, report, new_status):
            raise PermissionDenied(
                f"You are not allowed to move report #{report.pk} to '{new_status}'."
            )

        old_status = report.status
        report.status = new_status
        versioned_update(report, ["status"])
        _record(report, actor, AuditAction.STATUS_CHANGED, old_status)

        NotificationDispatcher.dispatch(
            actor=actor,
            recipients=report.reporter,
            event_type="report_status_changed",
            report=report,
            payload={
                "from_status": old_status,
                "to_status": report.status,
                "to_status_display": report.get_status_display(),
            },
        )

        logger.info(
            "Report #%d status %s -> %s by %s",
            report.pk, old_status, new_status, actor.pk,
        )
        return report

    @staticmethod
    @transaction.atomic
    def update_category(
        actor: User,
        report_id: int,
        category_id: int,
        *,
        expected_version: int | None = None,
    ) -> Report:
        """
        Correct the category of a report before it is approved.

        Only the officer may do this, and only while the report is
        ``pending_approval``; approval then routes the report to the new
        category's office.
        """
        require_role(
            actor,
            RoleName.MUNICIPAL_OFFICER,
            message="Only a municipal public relations officer can change a report's category.",
        )
        report = lock_for_update(Report, report_id, expected_version=expected_version)
        if report.status in TERMINAL_STATUSES:
            raise TerminalStateViolation(current=report.status)
        if report.status != ReportStatus.PENDING_APPROVAL:
            raise InvalidTransition(
                "The category can only be changed while the report is pending approval.",
                current=report.status,
            )
        require_capability(actor, report, Capability.ASSIGN)

        category = CategoryService.get_category(category_id)
        if category.pk == report.category_id:
            return report

        old_category = report.category
        report.category = category
        versioned_update(report, ["category"])
        _record(
            report, actor, AuditAction.RECATEGORIZED, report.status,
            message=f"Category changed from '{old_category}' to '{category}'.",
        )

        logger.info(
            "Report #%d recategorized %s -> %s by %s",
            report.pk, old_category.pk, category.pk, actor.pk,
        )
        return report


# ═══════════════════════════════════════════════════════════════════
#  Delegation Service
# ═══════════════════════════════════════════════════════════════════


class DelegationService:
    """
    Hands a report's remediation to an external company without moving
    ownership: the technician stays the assignee and stays accountable.

    Whether a report is delegated is defined solely by
    ``external_maintainer`` being set, which also opens the internal
    message channel.
    """

    @staticmethod
    def _check_owner(actor: User, report: Report) -> None:
        if report.assignee_id != actor.pk:
            raise DelegationPreconditionFailed(
                "Only the technician the report is assigned to can delegate or revoke it."
            )
        if report.status in TERMINAL_STATUSES:
            raise TerminalStateViolation(current=report.status)
        if report.status not in DELEGABLE_STATUSES:
            raise DelegationPreconditionFailed(
                f"Reports in '{report.status}' cannot be delegated or revoked; "
                f"the report must be assigned or in progress."
            )

    @staticmethod
    @transaction.atomic
    def delegate(
        actor: User,
        report_id: int,
        company_id: int,
        *,
        expected_version: int | None = None,
    ) -> Report:
        """
        Delegate the report to ``company_id``.

        Parameters
        ----------
        actor : User
            Must be acting as ``technical_staff`` and be the assignee.
        report_id : int
            The report to delegate.
        company_id : int
            A company that serves the report's category.

        Returns
        -------
        Report
            The report with ``company`` and ``external_maintainer`` set.

        Raises
        ------
        PermissionDenied
            If the active role is not ``technical_staff``.
        DelegationPreconditionFailed
            Not the assignee, wrong status, already delegated, company does
            not serve the category, or the company roster is empty.
        TerminalStateViolation
            If the report is resolved or rejected.
        NotFound
            If the report or company does not exist.
        """
        require_role(
            actor,
            RoleName.TECHNICAL_STAFF,
            message="Only technical staff can delegate reports.",
        )
        report = lock_for_update(Report, report_id, expected_version=expected_version)
        DelegationService._check_owner(actor, report)
        require_capability(actor, report, Capability.DELEGATE)

        if report.is_delegated:
            raise DelegationPreconditionFailed(
                f"Report #{report.pk} is already delegated to '{report.company}'. "
                f"Revoke the delegation first."
            )

        company = CompanyService.get_company(company_id)
        if not CompanyService.serves_category(company, report.category_id):
            raise DelegationPreconditionFailed(
                f"Company '{company}' does not serve category '{report.category}'."
            )
        maintainer = pick_maintainer(company)
        if maintainer is None:
            raise DelegationPreconditionFailed(
                f"Company '{company}' has no external maintainer available."
            )

        report.company = company
        report.external_maintainer = maintainer
        versioned_update(report, ["company", "external_maintainer"])
        _record(
            report, actor, AuditAction.DELEGATED, report.status,
            message=f"Delegated to {company.name} ({maintainer.display_name}).",
        )

        NotificationDispatcher.dispatch(
            actor=actor,
            recipients=maintainer,
            event_type="report_delegated",
            report=report,
            payload={"company": company.name, "company_id": company.pk},
        )

        logger.info(
            "Report #%d delegated by %s to company %s (maintainer=%s)",
            report.pk, actor.pk, company.pk, maintainer.pk,
        )
        return report

    @staticmethod
    @transaction.atomic
    def revoke(
        actor: User,
        report_id: int,
        *,
        expected_version: int | None = None,
    ) -> Report:
        """
        Take a delegated report back from its external company.

        The internal channel closes for new posts; its history stays
        readable by the technician.
        """
        require_role(
            actor,
            RoleName.TECHNICAL_STAFF,
            message="Only technical staff can revoke a delegation.",
        )
        report = lock_for_update(Report, report_id, expected_version=expected_version)
        DelegationService._check_owner(actor, report)
        require_capability(actor, report, Capability.DELEGATE)

        if not report.is_delegated:
            raise DelegationPreconditionFailed(f"Report #{report.pk} is not delegated.")

        company = report.company
        maintainer = report.external_maintainer
        report.company = None
        report.external_maintainer = None
        versioned_update(report, ["company", "external_maintainer"])
        _record(
            report, actor, AuditAction.DELEGATION_REVOKED, report.status,
            message=f"Delegation to {company.name} revoked.",
        )

        NotificationDispatcher.dispatch(
            actor=actor,
            recipients=maintainer,
            event_type="delegation_revoked",
            report=report,
            payload={"company": company.name, "company_id": company.pk},
        )

        logger.info(
            "Report #%d delegation to company %s revoked by %s",
            report.pk, company.pk, actor.pk,
        )
        return report

    @staticmethod
    def list_eligible_companies(actor: User, report_id: int) -> QuerySet[Company]:
        """
        Companies the assigned technician may delegate the report to, i.e.
        those serving the report's category.
        """
        require_role(
            actor,
            RoleName.TECHNICAL_STAFF,
            message="Only technical staff can delegate reports.",
        )
        report = ReportQueryService.get_report(report_id)
        if report.assignee_id != actor.pk:
            raise DelegationPreconditionFailed(
                "Only the technician the report is assigned to can delegate it."
            )
        return CompanyService.companies_for_category(report.category_id)
