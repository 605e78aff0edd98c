"""
core.domain.exceptions — Domain-specific exception hierarchy.

These exceptions represent business-rule violations inside service layers.
They are deliberately **not** DRF exceptions so that the domain layer stays
framework-agnostic.  The global DRF exception handler
(``core.domain.exception_handler``) maps them to HTTP responses.

Every exception carries a stable ``code`` that callers (HTTP controllers,
the UI) use to render a specific message instead of a generic failure.

Mapping cheatsheet
------------------
┌──────────────────────────────┬─────────────────────────────────┬──────┐
│ Domain Exception             │ code                            │ HTTP │
├──────────────────────────────┼─────────────────────────────────┼──────┤
│ DomainError                  │ domain_error                    │ 400  │
│ MissingRejectionReason       │ missing_rejection_reason        │ 400  │
│ EmptyContent                 │ empty_content                   │ 400  │
│ PermissionDenied             │ forbidden                       │ 403  │
│ NotFound                     │ not_found                       │ 404  │
│ Conflict                     │ conflict                        │ 409  │
│ InvalidTransition            │ invalid_transition              │ 409  │
│ TerminalStateViolation       │ terminal_state_violation        │ 409  │
│ DelegationPreconditionFailed │ delegation_precondition_failed  │ 409  │
│ ChannelNotAvailable          │ channel_not_available           │ 409  │
│ ConcurrentModification       │ concurrent_modification         │ 409  │
│ Unavailable                  │ unavailable                     │ 503  │
└──────────────────────────────┴─────────────────────────────────┴──────┘

Only ``ConcurrentModification`` (with fresh report state) and
``Unavailable`` are safe for a caller to retry.

Recommended usage inside a service::

    from core.domain.exceptions import InvalidTransition

    if new_status not in ALLOWED_TRANSITIONS[current_status]:
        raise InvalidTransition(current=current_status, target=new_status)
"""

from __future__ import annotations


class DomainError(Exception):
    """
    Base class for all domain / business-rule errors.

    Catch this at the view boundary and convert to a 400 Bad Request.
    """

    code = "domain_error"

    def __init__(self, message: str = "A business rule was violated.") -> None:
        self.message = message
        super().__init__(self.message)


class PermissionDenied(DomainError):
    """
    The acting user's active role does not grant the capability required
    for this operation.

    Maps to HTTP 403.
    """

    code = "forbidden"

    def __init__(self, message: str = "You do not have permission to perform this action.") -> None:
        super().__init__(message)


class NotFound(DomainError):
    """
    The referenced report, company, category or user does not exist.

    Maps to HTTP 404.
    """

    code = "not_found"

    def __init__(self, message: str = "The requested resource was not found.") -> None:
        super().__init__(message)


class Conflict(DomainError):
    """
    The operation conflicts with the current state of the resource.

    Maps to HTTP 409.
    """

    code = "conflict"

    def __init__(self, message: str = "The operation conflicts with the current state.") -> None:
        super().__init__(message)


class InvalidTransition(Conflict):
    """
    A state-machine transition that is not allowed from the current status.

    Example::

        raise InvalidTransition(
            current="assigned",
            target="resolved",
            reason="Work must be started before the report is resolved.",
        )
    """

    code = "invalid_transition"

    def __init__(
        self,
        message: str | None = None,
        *,
        current: str | None = None,
        target: str | None = None,
        reason: str | None = None,
    ) -> None:
        if message is None:
            parts = ["Invalid state transition"]
            if current and target:
                parts.append(f"from '{current}' to '{target}'")
            if reason:
                parts.append(f"({reason})")
            message = " ".join(parts) + "."
        super().__init__(message)
        self.current = current
        self.target = target
        self.reason = reason


class TerminalStateViolation(InvalidTransition):
    """
    The report is ``resolved`` or ``rejected``; nothing about its status,
    assignee or delegation may change any more.
    """

    code = "terminal_state_violation"

    def __init__(self, message: str | None = None, *, current: str | None = None) -> None:
        if message is None:
            message = f"This report is already {current or 'closed'} and can no longer be modified."
        super().__init__(message, current=current)


class MissingRejectionReason(DomainError):
    """A report was rejected without a non-blank reason."""

    code = "missing_rejection_reason"

    def __init__(self, message: str = "A rejection reason is required.") -> None:
        super().__init__(message)


class DelegationPreconditionFailed(Conflict):
    """
    Delegation or revocation attempted outside ``assigned``/``in_progress``,
    by a technician who does not own the assignment, or against a company
    that cannot take the work.
    """

    code = "delegation_precondition_failed"


class EmptyContent(DomainError):
    """A message was posted with no meaningful text."""

    code = "empty_content"

    def __init__(self, message: str = "Message content is required and cannot be empty.") -> None:
        super().__init__(message)


class ChannelNotAvailable(Conflict):
    """
    The requested message channel does not currently exist for the report:
    the internal channel without an active delegation, or the citizen
    channel on an anonymous or not-yet-assigned report.
    """

    code = "channel_not_available"


class ConcurrentModification(Conflict):
    """
    Another request mutated (or is mutating) the same report.

    The caller may retry against the now-current report state.
    """

    code = "concurrent_modification"

    def __init__(
        self,
        message: str = "The report was modified by another request. Reload it and try again.",
    ) -> None:
        super().__init__(message)


class Unavailable(DomainError):
    """
    Infrastructure failure (persistence layer unreachable).

    The only error class eligible for transparent retry.  Maps to HTTP 503.
    """

    code = "unavailable"

    def __init__(self, message: str = "The service is temporarily unavailable.") -> None:
        super().__init__(message)
