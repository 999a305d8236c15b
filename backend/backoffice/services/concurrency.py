# Overview: Row locking, retry and unit-of-work helpers shared by the services.

from __future__ import annotations

import time

from sqlalchemy import text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db
from .errors import ConcurrencyConflict


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


def begin_immediate() -> None:
    """
    Take the SQLite write lock up front so a multi-step unit of work is
    serialized against other writers. No-op on other dialects, where
    lock_for_update provides row locks.
    """
    if db.engine.dialect.name != "sqlite":
        return
    raw = db.session.connection().connection.dbapi_connection
    if not raw.in_transaction:
        db.session.execute(text("BEGIN IMMEDIATE"))


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks) and StaleDataError
    (version_id mismatch). A StaleDataError on the final attempt surfaces as
    ConcurrencyConflict.
    """
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            if attempt >= attempts - 1:
                if isinstance(exc, StaleDataError):
                    raise ConcurrencyConflict(
                        "Record was modified concurrently; retry the operation",
                        details={"attempts": attempts},
                    ) from exc
                raise
            time.sleep(backoff_base * (2 ** attempt))


def finish(commit: bool) -> None:
    """Commit when the caller owns the transaction, otherwise just flush."""
    if commit:
        db.session.commit()
    else:
        db.session.flush()
