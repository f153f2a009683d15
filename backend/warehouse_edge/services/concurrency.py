# Overview: Service-layer helpers for row locking, compare-and-set updates and retries.

from __future__ import annotations

import time

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


def compare_and_set(model, *, pk, expected: dict, values: dict) -> bool:
    """
    Conditionally UPDATE one row: only when every column in `expected`
    still holds the given value. Bumps version_id when the model has one.

    Returns True when exactly one row changed. The caller owns commit/rollback.
    """
    query = db.session.query(model).filter(model.id == pk)
    for column, value in expected.items():
        query = query.filter(getattr(model, column) == value)

    values = dict(values)
    if hasattr(model, "version_id"):
        values["version_id"] = model.version_id + 1

    updated = query.update(values, synchronize_session=False)
    return updated == 1


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
