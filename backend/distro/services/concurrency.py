# Overview: Transaction boundary and row-locking helpers for multi-row writes.

from __future__ import annotations

from contextlib import contextmanager

from sqlalchemy import text

from ..extensions import db


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE; unit_of_work() takes the
    database write lock up front there instead.
    """
    return query.with_for_update()


@contextmanager
def unit_of_work():
    """
    One atomic unit: commit when the block exits normally, roll back on any
    exception and re-raise it. Nothing is retried.

    Everything done through db.session inside the block (status guards,
    every per-line stock adjustment, history rows) commits or vanishes
    together.
    """
    if db.engine.dialect.name == "sqlite":
        # Serialize writers so two deferred transactions cannot deadlock
        # upgrading their read locks.
        raw = db.session.connection().connection.driver_connection
        if not raw.in_transaction:
            db.session.execute(text("BEGIN IMMEDIATE"))
    try:
        yield db.session
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
