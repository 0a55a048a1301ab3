"""
Reliability Utilities.

Transaction runner that commits a unit of work and retries it once when the
storage layer reports a transient condition (lock contention, serialization
failure, dropped connection).
"""

import logging
from typing import Awaitable, Callable, TypeVar

from sqlalchemy.exc import DBAPIError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.config import settings

logger = logging.getLogger(__name__)

T = TypeVar("T")

# serialization_failure, deadlock_detected, lock_not_available
TRANSIENT_SQLSTATES = {"40001", "40P01", "55P03"}


def is_transient_error(exc: BaseException) -> bool:
    """Tell whether a storage error is worth one more attempt."""
    if not isinstance(exc, DBAPIError):
        return False
    if exc.connection_invalidated:
        return True
    orig = exc.orig
    sqlstate = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if sqlstate in TRANSIENT_SQLSTATES:
        return True
    # SQLite lock contention ("database is locked") surfaces as OperationalError
    return isinstance(exc, OperationalError) and "locked" in str(orig).lower()


async def run_in_transaction(
    db: AsyncSession,
    operation: Callable[..., Awaitable[T]],
    *args,
    **kwargs,
) -> T:
    """
    Run `operation(db, *args, **kwargs)` and commit it as one transaction.

    On a transient storage failure the transaction is rolled back and the
    operation is attempted again (at most `settings.transient_retry_attempts`
    more times). Domain errors and non-transient failures roll back and
    propagate unchanged.
    """
    attempts = settings.transient_retry_attempts + 1
    for attempt in range(1, attempts + 1):
        try:
            result = await operation(db, *args, **kwargs)
            await db.commit()
            return result
        except Exception as exc:
            await db.rollback()
            if attempt < attempts and is_transient_error(exc):
                logger.warning(
                    "Transient storage failure in %s (attempt %d/%d), retrying: %s",
                    getattr(operation, "__qualname__", operation), attempt, attempts, exc
                )
                continue
            raise
