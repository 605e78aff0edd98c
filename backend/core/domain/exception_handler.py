"""
core.domain.exception_handler — DRF-compatible global exception handler.

Maps domain exceptions from ``core.domain.exceptions`` to proper
DRF ``Response`` objects so that views don't need per-endpoint
try/except boilerplate.

Register in ``settings.py``::

    REST_FRAMEWORK = {
        ...
        'EXCEPTION_HANDLER': 'core.domain.exception_handler.domain_exception_handler',
    }
"""

from __future__ import annotations

import logging

from django.db import InterfaceError, OperationalError
from rest_framework.response import Response
from rest_framework.views import exception_handler as drf_default_handler

from core.domain.exceptions import (
    Conflict,
    DomainError,
    NotFound,
    PermissionDenied,
    Unavailable,
)

logger = logging.getLogger(__name__)

# Domain exception → HTTP status code
_STATUS_MAP: dict[type, int] = {
    PermissionDenied:  403,
    NotFound:          404,
    Conflict:          409,  # InvalidTransition, ChannelNotAvailable, ...
    Unavailable:       503,
    DomainError:       400,  # catch-all base class last
}


def _domain_response(exc: DomainError, status_code: int) -> Response:
    return Response(
        {"detail": str(exc), "code": exc.code},
        status=status_code,
    )


def domain_exception_handler(exc: Exception, context: dict) -> Response | None:
    """
    DRF exception handler that also handles ``core.domain.exceptions``.

    The default DRF handler is called first.  If it returns ``None``
    (meaning DRF doesn't recognise the exception), we check whether
    it's one of our domain exceptions and return an appropriate response.
    Database connectivity failures surface as ``Unavailable`` (503).
    """
    # Let DRF handle its own exceptions (ValidationError, AuthN, etc.)
    response = drf_default_handler(exc, context)
    if response is not None:
        return response

    # Check domain exceptions (order matters — most specific first)
    for exc_class, status_code in _STATUS_MAP.items():
        if isinstance(exc, exc_class):
            logger.warning(
                "Domain exception [%s] in %s: %s",
                type(exc).__name__,
                context.get("view", "unknown"),
                exc,
            )
            return _domain_response(exc, status_code)

    if isinstance(exc, (OperationalError, InterfaceError)):
        logger.error(
            "Persistence layer unavailable in %s: %s",
            context.get("view", "unknown"),
            exc,
        )
        return _domain_response(Unavailable(), 503)

    # Not our exception — let it propagate
    return None
