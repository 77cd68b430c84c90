# Overview: Transaction, locking and retry helpers shared by every write path.

from __future__ import annotations

import time

from flask import current_app
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db
from ..errors import PersistenceFailure


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE; there the guarded UPDATE in
    ledger_service and the version_id columns provide the serialization.
    """
    return query.with_for_update()


def run_with_retry(func, *, attempts: int | None = None, backoff_base: float | None = None):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks) and StaleDataError
    (optimistic locking conflicts). Domain errors are never retried.
    """
    if attempts is None:
        attempts = current_app.config.get("LEDGER_RETRY_ATTEMPTS", 3)
    if backoff_base is None:
        backoff_base = current_app.config.get("LEDGER_RETRY_BACKOFF", 0.1)

    last_exc = None
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            last_exc = exc
            if attempt >= attempts - 1:
                raise
            current_app.logger.warning(
                "Concurrent write conflict (attempt %s/%s): %s", attempt + 1, attempts, exc
            )
            time.sleep(backoff_base * (2 ** attempt))
    if last_exc:
        raise last_exc


def run_atomic(func, *, retry: bool = True, failure: type[PersistenceFailure] = PersistenceFailure):
    """
    Run func inside one transaction: commit on success, roll back on any error.

    - retry=True re-runs the whole unit on lock/optimistic conflicts
    - SQLAlchemy errors that survive are converted to `failure` so callers see
      one retryable error type; domain errors pass through unchanged
    """
    def _op():
        try:
            result = func()
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise
        return result

    try:
        if retry:
            return run_with_retry(_op)
        return _op()
    except SQLAlchemyError as exc:
        current_app.logger.warning("Transaction aborted: %s", exc)
        raise failure(f"Transaction could not be committed: {exc.__class__.__name__}") from exc
