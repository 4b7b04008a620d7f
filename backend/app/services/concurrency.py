# Overview: Service-layer helpers for locking, retries and all-or-nothing transactions.

from __future__ import annotations

import time

from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from ..errors import PersistenceError
from ..extensions import db


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks) and StaleDataError
    (optimistic locking conflicts).
    """
    last_exc = None
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            last_exc = exc
            if attempt >= attempts - 1:
                raise
            time.sleep(backoff_base * (2 ** attempt))
    if last_exc:
        raise last_exc


def run_atomic(func, *, attempts: int = 3, backoff_base: float = 0.1, failure_message: str = "Database write failed"):
    """
    Run func and commit as one transaction, all-or-nothing.

    Any exception rolls the session back. Database errors that survive the
    retries surface as PersistenceError carrying failure_message; domain
    errors (BillingError subclasses) propagate unchanged.
    """
    def _op():
        try:
            result = func()
            db.session.commit()
            return result
        except Exception:
            db.session.rollback()
            raise

    try:
        return run_with_retry(_op, attempts=attempts, backoff_base=backoff_base)
    except SQLAlchemyError as exc:
        raise PersistenceError(failure_message) from exc
