"""
Per-staff write locks for booking transactions.

The overlap check and the insert/update that follows must be atomic
against other writers targeting the same ``(organization_id, staff_id)``
partition. The lock is taken inside the caller's transaction and released
when it commits or rolls back:

- PostgreSQL: ``pg_advisory_xact_lock`` keyed by a 64-bit hash of the pair.
- SQLite: the engine opens every transaction with ``BEGIN IMMEDIATE``
  (see ``database.configure_engine``), so writers are already serialized.
- Anything else: ``SELECT ... FOR UPDATE`` on the staff rows.
"""

from __future__ import annotations

import hashlib
import logging
from typing import Iterable, List, Optional

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..database import get_dialect_name
from ..models.catalog import Staff
from ..monitoring.prometheus_metrics import prometheus_metrics

logger = logging.getLogger(__name__)


def staff_lock_key(organization_id: str, staff_id: str) -> int:
    """Stable signed 64-bit key for ``(organization_id, staff_id)``."""
    digest = hashlib.blake2b(f"{organization_id}:{staff_id}".encode("utf-8"), digest_size=8).digest()
    return int.from_bytes(digest, "big", signed=True)


def lock_keys(organization_id: str, staff_ids: Iterable[Optional[str]]) -> List[int]:
    """Distinct keys in ascending order so concurrent lockers never deadlock."""
    return sorted({staff_lock_key(organization_id, s) for s in staff_ids if s})


def acquire_staff_locks(
    db: Session,
    organization_id: str,
    staff_ids: Iterable[Optional[str]],
) -> List[int]:
    """
    Lock the given staff partitions for the rest of the current transaction.

    Returns the advisory keys that were requested (empty when there is no
    staff to lock).
    """
    staff_list = sorted({s for s in staff_ids if s})
    keys = lock_keys(organization_id, staff_list)
    if not keys:
        return keys

    dialect = get_dialect_name(db)
    try:
        if dialect == "postgresql":
            for key in keys:
                db.execute(text("SELECT pg_advisory_xact_lock(:key)"), {"key": key})
            strategy = "advisory"
        elif dialect == "sqlite":
            strategy = "immediate_transaction"
        else:
            (
                db.query(Staff.id)
                .filter(Staff.organization_id == organization_id, Staff.id.in_(staff_list))
                .order_by(Staff.id)
                .with_for_update()
                .all()
            )
            strategy = "row_lock"
    except SQLAlchemyError as exc:
        prometheus_metrics.record_booking_lock(dialect, "error")
        logger.warning(
            "booking_staff_lock_failed",
            extra={
                "organization_id": organization_id,
                "staff_ids": staff_list,
                "error": str(exc),
                "error_type": type(exc).__name__,
            },
        )
        raise

    prometheus_metrics.record_booking_lock(strategy, "acquired")
    logger.debug(
        "booking_staff_lock_acquired",
        extra={"organization_id": organization_id, "staff_ids": staff_list, "strategy": strategy},
    )
    return keys
