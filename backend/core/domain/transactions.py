"""
core.domain.transactions — Helpers for safe report mutations.

Every write to a mutable aggregate (a ``Report``'s status, assignee or
delegation fields) happens inside ``transaction.atomic()`` and is guarded
twice:

* **Row lock** — ``lock_for_update`` re-fetches the row with
  ``select_for_update(nowait=True)``.  A second request that tries to lock
  the same row while the first still holds it fails immediately with
  ``ConcurrentModification`` instead of queueing up and silently
  overwriting.
* **Optimistic version** — ``versioned_update`` writes the new field values
  with a compare-and-swap on the integer ``version`` column, so the save
  only succeeds if nobody committed in between (this is also what protects
  back-ends that ignore ``SELECT ... FOR UPDATE``, e.g. SQLite).

Usage::

    from core.domain.transactions import lock_for_update, versioned_update

    with transaction.atomic():
        report = lock_for_update(Report, report_id, expected_version=version)
        report.status = ReportStatus.IN_PROGRESS
        versioned_update(report, ["status"])
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, TypeVar

from django.db import OperationalError, connection, models
from django.db.models import F
from django.utils import timezone

from core.domain.exceptions import ConcurrentModification, NotFound

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=models.Model)

# SQLSTATE lock_not_available (PostgreSQL) and ER_LOCK_NOWAIT (MySQL).
_PG_LOCK_NOT_AVAILABLE = "55P03"
_MYSQL_LOCK_NOWAIT = 3572


def _is_lock_not_available(exc: OperationalError) -> bool:
    """Whether ``exc`` is a ``NOWAIT`` lock refusal rather than an outage."""
    cause = exc.__cause__
    sqlstate = getattr(cause, "sqlstate", None) or getattr(cause, "pgcode", None)
    if sqlstate == _PG_LOCK_NOT_AVAILABLE:
        return True
    args = getattr(cause, "args", ())
    return bool(args) and args[0] == _MYSQL_LOCK_NOWAIT


def lock_for_update(
    model_class: type[M],
    pk: Any,
    *,
    expected_version: int | None = None,
) -> M:
    """
    Acquire a row-level lock on the given model instance.

    Must be called inside an ``atomic()`` block.

    Args:
        model_class:      The Django model class (must have a ``version``
                          field when ``expected_version`` is given).
        pk:               Primary key value.
        expected_version: The version the caller last observed.  ``None``
                          skips the staleness check.

    Returns:
        The locked model instance.

    Raises:
        NotFound:               If no row with that PK exists.
        ConcurrentModification: If another transaction holds the lock, or
                                the row's version differs from
                                ``expected_version``.
        OperationalError:       Any other database failure, left for the
                                exception handler to report as unavailable.
    """
    qs = model_class.objects.select_for_update(
        nowait=connection.features.has_select_for_update_nowait,
    )

    try:
        instance = qs.get(pk=pk)
    except model_class.DoesNotExist:
        raise NotFound(f"{model_class.__name__} with id {pk} does not exist.")
    except OperationalError as exc:
        if not _is_lock_not_available(exc):
            raise
        logger.info("Lock contention on %s pk=%s: %s", model_class.__name__, pk, exc)
        raise ConcurrentModification()

    if expected_version is not None and instance.version != expected_version:
        raise ConcurrentModification(
            f"{model_class.__name__} #{pk} is at version {instance.version}, "
            f"not {expected_version}. Reload it and try again."
        )
    return instance


def versioned_update(instance: M, fields: Iterable[str]) -> M:
    """
    Persist ``fields`` of ``instance`` with a compare-and-swap on ``version``.

    The in-memory ``version`` is the one read under the lock; the UPDATE
    only matches if the stored row still carries it.  On success the
    instance's ``version`` and ``updated_at`` are advanced in place.

    Raises:
        ConcurrentModification: If the stored version moved on.
    """
    model_class = type(instance)
    values = {name: getattr(instance, name) for name in fields}
    now = timezone.now()

    updated = (
        model_class.objects
        .filter(pk=instance.pk, version=instance.version)
        .update(**values, version=F("version") + 1, updated_at=now)
    )
    if updated != 1:
        raise ConcurrentModification()

    instance.version += 1
    instance.updated_at = now
    return instance
