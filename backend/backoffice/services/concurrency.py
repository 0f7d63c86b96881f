# Overview: Unit-of-work and retry primitives shared by every ledger coordinator.

from __future__ import annotations

import time
from contextlib import contextmanager

from flask import current_app
from sqlalchemy import text
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from ..errors import ConflictError, InternalError
from ..extensions import db

"""
Ledger write discipline (authoritative)

- Every multi-row ledger write runs inside exactly one unit_of_work().
- Rows whose invariants are checked (products, customers) are re-read with
  lock_for_update() inside the unit and re-validated there.
- Those rows carry a version_id_col, so each UPDATE is conditional on the
  version that was read; a concurrent writer makes the flush raise
  StaleDataError instead of silently overwriting.
- run_with_retry() re-runs the whole unit after a rollback; once attempts are
  exhausted the conflict surfaces as ConflictError.
"""


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    populate_existing() refreshes rows already in the identity map so
    validation always sees the locked values.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.populate_existing().with_for_update()


def _begin_immediate(session) -> None:
    # SQLite takes the write lock up front so two writers serialize
    if db.engine.dialect.name != "sqlite":
        return
    raw = session.connection().connection.dbapi_connection
    if not raw.in_transaction:
        session.execute(text("BEGIN IMMEDIATE"))


@contextmanager
def unit_of_work():
    """
    Single all-or-nothing transaction around a ledger operation.

    Commits on clean exit. Any exception rolls back every write made inside
    the block; unexpected store failures are re-raised as InternalError.
    Concurrency failures propagate unchanged so run_with_retry can re-run;
    IntegrityError propagates so callers can map constraint violations.
    """
    session = db.session
    try:
        _begin_immediate(session)
        yield session
        session.commit()
    except (OperationalError, StaleDataError, IntegrityError):
        session.rollback()
        raise
    except SQLAlchemyError as exc:
        session.rollback()
        current_app.logger.exception("Ledger unit of work failed")
        raise InternalError("Ledger store failure") from exc
    except Exception:
        session.rollback()
        raise


def run_with_retry(func, *, attempts: int | None = None, backoff_base: float | None = None):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks) and StaleDataError
    (optimistic locking conflicts). Exhausted StaleDataError becomes
    ConflictError; exhausted OperationalError becomes InternalError.
    """
    if attempts is None:
        attempts = current_app.config.get("LEDGER_RETRY_ATTEMPTS", 3)
    if backoff_base is None:
        backoff_base = current_app.config.get("LEDGER_RETRY_BACKOFF", 0.1)

    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            if attempt >= attempts - 1:
                if isinstance(exc, StaleDataError):
                    raise ConflictError(
                        "Record was modified concurrently; reload and retry",
                        details={"attempts": attempts},
                    ) from exc
                current_app.logger.exception("Ledger store unavailable after %s attempts", attempts)
                raise InternalError("Ledger store unavailable") from exc
            current_app.logger.warning(
                "Ledger write conflict (%s), retrying attempt %s/%s",
                type(exc).__name__, attempt + 2, attempts,
            )
            time.sleep(backoff_base * (2 ** attempt))
