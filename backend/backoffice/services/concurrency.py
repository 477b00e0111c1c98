# Overview: Service-layer helpers for atomic writes; retries transient lock errors and closes check-then-act windows.

from __future__ import annotations

import time

from flask import current_app
from sqlalchemy import update
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db
from ..validation import ConflictError


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    The version bump in compare_and_bump is what actually closes the race.
    """
    return query.with_for_update()


def run_atomic(func, *, attempts: int | None = None, backoff_base: float = 0.05):
    """
    Run func() and commit as one DB transaction.

    Retries on OperationalError (deadlocks, "database is locked") with fresh
    state. Business conflicts are never retried here: ConflictError propagates
    to the caller, and StaleDataError is surfaced as a ConflictError.
    Any failure rolls the whole unit back, so there are no partial writes.
    """
    if attempts is None:
        attempts = current_app.config.get("WRITE_RETRY_ATTEMPTS", 3)

    for attempt in range(attempts):
        try:
            result = func()
            db.session.commit()
            return result
        except OperationalError:
            db.session.rollback()
            if attempt >= attempts - 1:
                raise
            current_app.logger.warning("Transient DB error on write, retry %s/%s", attempt + 1, attempts)
            time.sleep(backoff_base * (2 ** attempt))
        except StaleDataError as exc:
            db.session.rollback()
            raise ConflictError(
                "Record was modified concurrently, reload and retry", code="concurrent_write"
            ) from exc
        except Exception:
            db.session.rollback()
            raise


def compare_and_bump(model, row_id: int, version_attr: str, expected_version: int) -> int:
    """
    Conditional UPDATE: bump model.<version_attr> only if it still equals the
    version this unit of work validated against.

    A writer that read the same version and commits second updates zero rows
    and gets ConflictError(concurrent_write); its whole unit is rolled back.
    """
    column = getattr(model, version_attr)
    result = db.session.execute(
        update(model)
        .where(model.id == row_id, column == expected_version)
        .values({version_attr: column + 1})
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise ConflictError(
            f"{model.__name__} {row_id} was modified concurrently, reload and retry",
            code="concurrent_write",
        )
    return expected_version + 1
