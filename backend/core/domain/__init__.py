"""
core.domain — Shared domain utilities for cross-app service layers.

Modules
-------
exceptions         Domain-specific exceptions that map cleanly to HTTP responses.
exception_handler  DRF ``EXCEPTION_HANDLER`` translating them into responses.
notifications      Best-effort, after-commit notification dispatcher.
transactions       Row locking + optimistic-version helpers for report mutations.
access             Active-role guards and role-scoped queryset selectors.

Usage from any app::

    from core.domain.exceptions import DomainError, InvalidTransition
    from core.domain.notifications import NotificationDispatcher
    from core.domain.transactions import lock_for_update, versioned_update
    from core.domain.access import require_role, apply_role_scope
"""
