# Overview: Transaction scope, row locking and retry helpers shared by ledger services.

from __future__ import annotations

import time
from contextlib import contextmanager

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError


class RetryableConflict(Exception):
    """
    A concurrent writer won a race and the session was rolled back.

    The whole unit of work must be re-run, including any row locks it took.
    """


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


@contextmanager
def transaction_scope(session):
    """
    One atomic unit of work on the given session.

    Commits when the block completes; rolls back everything written inside
    the block on any exception and re-raises it.
    """
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise


def run_with_retry(session, func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks), StaleDataError
    (optimistic locking conflicts) and RetryableConflict. func must be safe
    to re-run from scratch.
    """
    last_exc = None
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError, RetryableConflict) as exc:
            session.rollback()
            last_exc = exc
            if attempt >= attempts - 1:
                raise
            time.sleep(backoff_base * (2 ** attempt))
    if last_exc:
        raise last_exc
