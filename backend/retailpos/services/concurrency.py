# Overview: Service-layer operations for concurrency; row locks, writer serialization and retry.

from __future__ import annotations

import time

from flask import current_app
from sqlalchemy import text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db
from ..validation import ConcurrencyConflictError


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    populate_existing() refreshes rows already in the identity map, so the
    caller always sees the committed quantity, not a stale cached one.

    NOTE: SQLite ignores SELECT ... FOR UPDATE; begin_write() covers it there.
    """
    return query.with_for_update().populate_existing()


def begin_write() -> None:
    """
    Start the write transaction for a mutating operation.

    SQLite has no row locks, so writers take the database write lock up front
    (BEGIN IMMEDIATE) and serialize. Other databases rely on FOR UPDATE.
    """
    if db.engine.dialect.name != "sqlite":
        return
    dbapi_conn = db.session.connection().connection.dbapi_connection
    if not dbapi_conn.in_transaction:
        db.session.execute(text("BEGIN IMMEDIATE"))


def run_with_retry(func, *, attempts: int | None = None, backoff_base: float | None = None):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Any exception rolls the session back before it propagates, so a failed
    operation never leaves partial effects in the session.

    Retries on OperationalError (lock waits, deadlocks, "database is locked")
    and StaleDataError (optimistic version conflicts). When attempts run out
    the failure surfaces as ConcurrencyConflictError.
    """
    if attempts is None:
        attempts = current_app.config.get("LOCK_RETRY_ATTEMPTS", 3)
    if backoff_base is None:
        backoff_base = current_app.config.get("LOCK_RETRY_BACKOFF", 0.1)

    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            if attempt >= attempts - 1:
                current_app.logger.warning("Concurrency conflict after %d attempts: %s", attempts, exc)
                raise ConcurrencyConflictError(
                    "Operation conflicted with a concurrent update; retry",
                    details={"attempts": attempts},
                ) from exc
            time.sleep(backoff_base * (2 ** attempt))
        except Exception:
            db.session.rollback()
            raise
