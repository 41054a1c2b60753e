"""
Module: retail_kernel.db.atomic
Responsibility: The atomic-unit executor.  Runs a unit of work inside one
    database transaction, commits it, and retries the WHOLE unit a bounded
    number of times when the store reports a transient write conflict.
Architecture position: Kernel > DB.  Used by every protocol service
    (checkout, line edit, fulfillment, inventory administration) to own its
    transaction boundary.  Flush-only services never call this themselves.

Invariants enforced:
    - All-or-nothing: a unit either commits every write it made or none.
      There is no manual compensation; rollback is the only undo.
    - Retries re-run the unit from scratch in a fresh session, so values
      are always re-derived from committed state, never carried over from a
      failed attempt.
    - Domain aborts (RetailKernelError raised by the unit) roll back and
      propagate immediately.  They are never retried.

Failure modes:
    - TransientFailureError once max_attempts retryable failures occurred.
    - Any non-retryable, non-domain exception propagates after rollback.

Retryable conditions:
    - sqlalchemy.orm.exc.StaleDataError (optimistic version check failed)
    - OperationalError for deadlock, serialization failure, lock timeout,
      or SQLite "database is locked"
    - IntegrityError on the invoice number / invoice counter unique indexes
      (two first-use counter inserts, or an allocation race on a backend
      without row locks)
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable, TypeVar

from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from retail_kernel.exceptions import RetailKernelError, TransientFailureError
from retail_kernel.logging_config import get_logger

logger = get_logger("db.atomic")

T = TypeVar("T")

_RETRYABLE_PG_CODES = frozenset({"40001", "40P01", "55P03"})

_RETRYABLE_MESSAGES = (
    "deadlock detected",
    "could not serialize",
    "could not obtain lock",
    "database is locked",
    "database table is locked",
)

_RETRYABLE_UNIQUE_TARGETS = (
    "invoice_number",
    "invoice_counters",
)


@dataclass(frozen=True)
class RetryPolicy:
    """How many times a unit is attempted and how long to wait in between."""

    max_attempts: int = 5
    backoff_seconds: float = 0.05

    def delay_for(self, attempt: int) -> float:
        return self.backoff_seconds * attempt


DEFAULT_RETRY_POLICY = RetryPolicy()


def is_retryable(exc: BaseException) -> bool:
    """Return True when ``exc`` is a transient store conflict."""
    if isinstance(exc, StaleDataError):
        return True

    if isinstance(exc, IntegrityError):
        message = str(exc.orig).lower() if exc.orig is not None else str(exc).lower()
        return any(target in message for target in _RETRYABLE_UNIQUE_TARGETS)

    if isinstance(exc, OperationalError):
        pgcode = getattr(exc.orig, "pgcode", None)
        if pgcode in _RETRYABLE_PG_CODES:
            return True
        message = str(exc.orig).lower() if exc.orig is not None else str(exc).lower()
        return any(fragment in message for fragment in _RETRYABLE_MESSAGES)

    if isinstance(exc, DBAPIError):
        return bool(exc.connection_invalidated)

    return False


def run_atomic(
    fn: Callable[[Session], T],
    *,
    session_factory: sessionmaker[Session] | Callable[[], Session] | None = None,
    policy: RetryPolicy | None = None,
    unit_name: str = "atomic_unit",
) -> T:
    """
    Execute ``fn(session)`` as one atomic unit with bounded retry.

    Preconditions:
        - ``fn`` performs all of its reads and writes through the session
          it receives and does not commit or roll back itself.
        - ``fn`` is safe to re-run: it derives everything from the store.

    Postconditions:
        - On return, every write made by the final attempt is committed.
        - On exception, nothing made by any attempt is visible.

    Args:
        fn: The unit of work.
        session_factory: Creates a fresh session per attempt.  Defaults to
            the engine module's factory.
        policy: Retry policy (attempt budget and backoff).
        unit_name: Name used in logs and in TransientFailureError.

    Returns:
        Whatever ``fn`` returned on the committed attempt.

    Raises:
        RetailKernelError: domain abort raised by ``fn`` (not retried).
        TransientFailureError: retryable failures exhausted the budget.
    """
    if session_factory is None:
        from retail_kernel.db.engine import get_session_factory

        session_factory = get_session_factory()
    policy = policy or DEFAULT_RETRY_POLICY

    last_error: BaseException | None = None
    for attempt in range(1, policy.max_attempts + 1):
        session = session_factory()
        try:
            result = fn(session)
            session.commit()
            if attempt > 1:
                logger.info(
                    "atomic_unit_committed_after_retry",
                    extra={"unit": unit_name, "attempt": attempt},
                )
            return result
        except RetailKernelError:
            session.rollback()
            raise
        except Exception as exc:
            session.rollback()
            if not is_retryable(exc):
                raise
            last_error = exc
            logger.warning(
                "atomic_unit_retry",
                extra={
                    "unit": unit_name,
                    "attempt": attempt,
                    "max_attempts": policy.max_attempts,
                    "error_type": type(exc).__name__,
                },
            )
            if attempt < policy.max_attempts:
                time.sleep(policy.delay_for(attempt))
        finally:
            session.close()

    logger.error(
        "atomic_unit_exhausted",
        extra={"unit": unit_name, "attempts": policy.max_attempts},
    )
    raise TransientFailureError(
        unit_name,
        policy.max_attempts,
        str(last_error) if last_error is not None else None,
    )
