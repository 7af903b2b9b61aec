# Overview: Row locking and retry helpers for writes that race on invoices.

from __future__ import annotations

import time

from flask import current_app
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


def lock_for_update(query):
    """
    Apply row-level locking for balance checks on an invoice.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but PostgreSQL honors it.
    """
    return query.with_for_update()


def run_with_retry(
    func,
    *,
    attempts: int = 3,
    backoff_base: float = 0.1,
    retry_on: tuple = (OperationalError, StaleDataError),
):
    """
    Execute a DB operation, rolling back and retrying on the given errors.

    Invoice creation passes IntegrityError so that two requests drawing the
    same invoice number settle on consecutive numbers.
    """
    for attempt in range(attempts):
        try:
            return func()
        except retry_on as exc:
            db.session.rollback()
            if attempt >= attempts - 1:
                raise
            current_app.logger.warning(
                "Retrying %s after %s (attempt %d/%d)",
                getattr(func, "__name__", "operation"),
                type(exc).__name__,
                attempt + 1,
                attempts,
            )
            time.sleep(backoff_base * (2 ** attempt))
