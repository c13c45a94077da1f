# Overview: Row locking and retry helpers shared by the ledgers.

"""
Ledger writes are read-modify-write cycles on a single row (an inventory
item or a transaction). Both models carry a version_id column, so two
writers racing on the same row cannot both commit: the loser gets
StaleDataError, re-reads, and applies its change on top of the winner's.
"""
from __future__ import annotations

import time

from flask import current_app
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError


RETRYABLE_ERRORS = (OperationalError, StaleDataError)


def lock_for_update(query):
    """SELECT ... FOR UPDATE. A no-op on SQLite, honoured by Postgres/MySQL."""
    return query.with_for_update()


def run_with_retry(session, func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Call func() until it succeeds or attempts run out.

    func owns its reads and its commit; between attempts the session is
    rolled back so the next read sees the competing writer's row.
    Ledger errors raised by func are not retried.
    """
    for attempt in range(1, attempts + 1):
        try:
            return func()
        except RETRYABLE_ERRORS as exc:
            session.rollback()
            if attempt == attempts:
                raise
            delay = backoff_base * (2 ** (attempt - 1))
            current_app.logger.warning(
                "Concurrent write conflict (%s), retry %d/%d in %.2fs",
                type(exc).__name__, attempt, attempts - 1, delay,
            )
            time.sleep(delay)
