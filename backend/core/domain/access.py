"""
core.domain.access — Active-role helpers and role-scoped queryset selectors.

Every capability decision keys off the caller's **active role** — the single
role a multi-role user is currently operating as (``User.role``).  The
helpers here never look at the other roles a user holds, so a technician who
is also an external maintainer elsewhere is resolved as exactly one of the
two at a time.

Per-app scoping logic does NOT live here; each app's ``services.py`` owns
its own scope-rules list and passes it to ``apply_role_scope``.

Usage in an app's service layer::

    from core.domain.access import apply_role_scope

    REPORT_SCOPE_RULES = {
        RoleName.MUNICIPAL_OFFICER: lambda qs, u: qs,
        RoleName.TECHNICAL_STAFF:   lambda qs, u: qs.filter(assignee=u),
        RoleName.CITIZEN:           lambda qs, u: qs.filter(reporter=u),
    }

    qs = apply_role_scope(Report.objects.all(), user, scope_rules=REPORT_SCOPE_RULES)
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Callable

from django.db.models import QuerySet

if TYPE_CHECKING:
    from accounts.models import User

# Takes (queryset, user) and returns a filtered queryset.
ScopeFilter = Callable[[QuerySet, "User"], QuerySet]


def get_user_role_name(user: User) -> str | None:
    """
    Return the name of the user's active role, or ``None`` if unassigned.

    Args:
        user: Authenticated User instance.
    """
    role = getattr(user, "role", None)
    if role is None:
        return None
    return role.name


def apply_role_scope(
    queryset: QuerySet,
    user: User,
    *,
    scope_rules: dict[str, ScopeFilter],
) -> QuerySet:
    """
    Filter ``queryset`` with the rule registered for the user's active role.

    Users whose active role has no rule (or who have no active role) see
    nothing.
    """
    scope = scope_rules.get(get_user_role_name(user))
    if scope is None:
        return queryset.none()
    return scope(queryset, user)


def require_role(user: User, *allowed_roles: str, message: str = "") -> None:
    """
    Guard that raises ``PermissionDenied`` if the user's active role is not
    among ``allowed_roles``.

    Example::

        require_role(user, RoleName.MUNICIPAL_OFFICER)
    """
    from core.domain.exceptions import PermissionDenied as DomainPermissionDenied

    role_name = get_user_role_name(user)
    if role_name not in allowed_roles:
        raise DomainPermissionDenied(
            message
            or (
                f"Active role '{role_name}' is not permitted for this operation. "
                f"Required: {', '.join(allowed_roles)}."
            )
        )
