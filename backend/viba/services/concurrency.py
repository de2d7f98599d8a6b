# Overview: Locking and retry helpers for the inventory/sale transactions.

from __future__ import annotations

import time

from sqlalchemy import text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE; begin_write() covers it there.
    """
    return query.with_for_update()


def begin_write(session: Session) -> None:
    """
    Start a write transaction before the first read of a check-then-act sequence.

    SQLite only allows one writer; BEGIN IMMEDIATE takes the write lock up
    front so a concurrent sale waits instead of reading the same stock.
    Other engines rely on the FOR UPDATE row locks.
    """
    if session.get_bind().dialect.name != "sqlite":
        return
    # Already inside a transaction (pending writes): the lock is taken on flush
    if session.connection().connection.dbapi_connection.in_transaction:
        return
    session.execute(text("BEGIN IMMEDIATE"))


def run_with_retry(session: Session, func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks) and StaleDataError
    (optimistic locking conflicts). Any other exception is rolled back and
    re-raised untouched.
    """
    last_exc = None
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            session.rollback()
            last_exc = exc
            if attempt >= attempts - 1:
                raise
            time.sleep(backoff_base * (2 ** attempt))
        except Exception:
            session.rollback()
            raise
    if last_exc:
        raise last_exc
