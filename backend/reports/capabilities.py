"""
reports.capabilities — What the acting user may do with one report.

Capabilities are derived from two things only: the caller's *active role*
and the report's current state (status, parties, delegation).  The
resolver never merges the capabilities of several held roles; a user who
is a technician on one report and an external maintainer on another acts
as whichever role is currently active.

Usage::

    from reports.capabilities import Capability, require_capability

    require_capability(user, report, Capability.DELEGATE)
"""

from __future__ import annotations

import enum
from typing import TYPE_CHECKING

from accounts.services import UserDirectoryService
from core.constants import RoleName
from core.domain.exceptions import PermissionDenied

from .models import ReportStatus

if TYPE_CHECKING:
    from accounts.models import User

    from .models import Report


class Capability(str, enum.Enum):
    APPROVE = "approve"
    REJECT = "reject"
    ASSIGN = "assign"
    CHANGE_STATUS = "change_status"
    DELEGATE = "delegate"
    POST_CITIZEN_MESSAGE = "post_citizen_message"
    POST_INTERNAL_MESSAGE = "post_internal_message"


#: Statuses in which the reporter can talk to the technician.
CITIZEN_MESSAGING_STATUSES: frozenset[str] = frozenset({
    ReportStatus.ASSIGNED,
    ReportStatus.IN_PROGRESS,
    ReportStatus.RESOLVED,
})

#: Targets an external maintainer may move a delegated report to.
EXTERNAL_MAINTAINER_STATUS_TARGETS: frozenset[str] = frozenset({
    ReportStatus.IN_PROGRESS,
    ReportStatus.SUSPENDED,
    ReportStatus.RESOLVED,
})

_NONE: frozenset[Capability] = frozenset()


def _citizen(user: User, report: Report) -> frozenset[Capability]:
    if report.anonymous or report.reporter_id != user.pk:
        return _NONE
    if report.status in CITIZEN_MESSAGING_STATUSES:
        return frozenset({Capability.POST_CITIZEN_MESSAGE})
    return _NONE


def _officer(user: User, report: Report) -> frozenset[Capability]:
    if report.status == ReportStatus.PENDING_APPROVAL:
        return frozenset({Capability.APPROVE, Capability.REJECT, Capability.ASSIGN})
    return _NONE


def _technician(user: User, report: Report) -> frozenset[Capability]:
    if report.assignee_id is None or report.assignee_id != user.pk:
        return _NONE
    caps = {Capability.CHANGE_STATUS, Capability.DELEGATE, Capability.POST_CITIZEN_MESSAGE}
    if report.is_delegated:
        caps.add(Capability.POST_INTERNAL_MESSAGE)
    return frozenset(caps)


def _external_maintainer(user: User, report: Report) -> frozenset[Capability]:
    if report.external_maintainer_id is None or report.external_maintainer_id != user.pk:
        return _NONE
    return frozenset({Capability.CHANGE_STATUS, Capability.POST_INTERNAL_MESSAGE})


_RESOLVERS = {
    RoleName.CITIZEN: _citizen,
    RoleName.MUNICIPAL_OFFICER: _officer,
    RoleName.TECHNICAL_STAFF: _technician,
    RoleName.EXTERNAL_MAINTAINER: _external_maintainer,
}


def resolve_capabilities(user: User, report: Report) -> frozenset[Capability]:
    """
    Return the capability set of ``user`` on ``report``.

    Unknown or missing active roles (including ``admin``) resolve to the
    empty set.
    """
    resolver = _RESOLVERS.get(UserDirectoryService.resolve_active_role(user))
    if resolver is None:
        return _NONE
    return resolver(user, report)


def has_capability(user: User, report: Report, capability: Capability) -> bool:
    return capability in resolve_capabilities(user, report)


def require_capability(
    user: User,
    report: Report,
    capability: Capability,
    *,
    message: str = "",
) -> None:
    """Raise ``PermissionDenied`` unless ``user`` holds ``capability`` on ``report``."""
    if not has_capability(user, report, capability):
        raise PermissionDenied(
            message
            or f"You are not allowed to {capability.value.replace('_', ' ')} on report #{report.pk}."
        )


def can_target_status(user: User, report: Report, target: str) -> bool:
    """
    Whether the ``change_status`` capability of ``user`` covers ``target``.

    External maintainers hold a restricted subset; technicians may move to
    any status the transition table allows.
    """
    if not has_capability(user, report, Capability.CHANGE_STATUS):
        return False
    if UserDirectoryService.resolve_active_role(user) == RoleName.EXTERNAL_MAINTAINER:
        return target in EXTERNAL_MAINTAINER_STATUS_TARGETS
    return True
