"""
Atomic units of work and row locking.

Every posting, cancellation and allocation runs inside ``atomic()``:
a SAVEPOINT that either keeps all of its writes (batch changes,
journal lines, allocation rows) or none of them. The outer
transaction still belongs to the caller, who commits or rolls back
as before.

Row locks are taken with ``SELECT ... FOR UPDATE``. A lock that
cannot be acquired within LOCK_TIMEOUT_MS, a deadlock, or a
serialization failure surfaces as ContentionError, the only error a
caller should retry automatically. Retrying means re-running the
whole unit from the start, never resuming partway.
"""

import logging
from contextlib import contextmanager

from sqlalchemy import text
from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError
from sqlalchemy.orm import Session

from retail_ledger.config import get_settings
from retail_ledger.exceptions import ContentionError, ReferentialIntegrityError

logger = logging.getLogger(__name__)

# PostgreSQL SQLSTATEs meaning "someone else holds what you need"
_CONTENTION_SQLSTATES = {
    "55P03",  # lock_not_available (lock_timeout / NOWAIT)
    "40P01",  # deadlock_detected
    "40001",  # serialization_failure
}


def is_contention(exc: DBAPIError) -> bool:
    """Decide whether a driver error is a lock/serialization conflict."""
    orig = getattr(exc, "orig", None)
    sqlstate = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
    if sqlstate in _CONTENTION_SQLSTATES:
        return True
    message = str(orig or exc).lower()
    return "database is locked" in message or "lock timeout" in message


def _apply_lock_timeout(db: Session) -> None:
    bind = db.get_bind()
    if bind.dialect.name == "postgresql":
        timeout_ms = get_settings().LOCK_TIMEOUT_MS
        db.execute(text(f"SET LOCAL lock_timeout = '{int(timeout_ms)}ms'"))


@contextmanager
def atomic(db: Session):
    """
    Run a block as one all-or-nothing unit.

    Storage-level failures are translated on the way out:
    lock conflicts become ContentionError, constraint violations
    become ReferentialIntegrityError. Engine errors pass through
    unchanged. In every failure case the savepoint is rolled back.
    """
    try:
        with db.begin_nested():
            _apply_lock_timeout(db)
            yield db
            db.flush()
    except IntegrityError as e:
        raise ReferentialIntegrityError(str(e.orig)) from e
    except (OperationalError, DBAPIError) as e:
        if is_contention(e):
            raise ContentionError(
                "Could not acquire locks in time; retry the operation"
            ) from e
        raise


def lock_rows(db: Session, stmt):
    """
    Execute a select with FOR UPDATE and return the scalars.

    SQLite ignores FOR UPDATE; its single-writer lock gives the
    same serialization.
    """
    try:
        return list(db.execute(stmt.with_for_update()).scalars().all())
    except (OperationalError, DBAPIError) as e:
        if is_contention(e):
            raise ContentionError(
                "Timed out waiting for a row lock; retry the operation"
            ) from e
        raise


def lock_one(db: Session, stmt):
    rows = lock_rows(db, stmt)
    return rows[0] if rows else None


def retry_on_contention(db: Session, work, attempts: int | None = None):
    """
    Call ``work()`` and commit, retrying the whole unit on ContentionError.

    Between attempts the session is rolled back so no state from
    the failed attempt survives. Any other error propagates on the
    first occurrence.
    """
    attempts = attempts or get_settings().CONTENTION_RETRY_ATTEMPTS
    for attempt in range(1, attempts + 1):
        try:
            result = work()
            db.commit()
            return result
        except ContentionError:
            db.rollback()
            if attempt == attempts:
                logger.warning("contention retries exhausted attempts=%s", attempts)
                raise
            logger.warning("contention detected, retrying attempt=%s", attempt + 1)
