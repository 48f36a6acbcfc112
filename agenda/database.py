from __future__ import annotations

from contextlib import contextmanager

from flask import current_app
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from . import db
from .errors import AgendaError, InternalFailure


def _begin_write() -> None:
    # pysqlite only opens a transaction at the first DML statement, so reads
    # made before it (conflict checks) would run outside any lock.
    connection = db.session.connection()
    if connection.dialect.name != "sqlite":
        return
    if not connection.connection.dbapi_connection.in_transaction:
        connection.exec_driver_sql("BEGIN IMMEDIATE")


@contextmanager
def transaction():
    """Commit the work done in the block, roll it back on any failure.

    On SQLite the database write lock is taken before the block runs, so
    checks and writes inside it cannot interleave with another writer. Store
    errors are wrapped in ``InternalFailure`` so callers only ever see the
    errors of the booking core.
    """

    try:
        _begin_write()
        yield db.session
        db.session.commit()
    except AgendaError:
        db.session.rollback()
        raise
    except IntegrityError as exc:
        db.session.rollback()
        current_app.logger.warning("Integrity error: %s", exc.orig)
        raise InternalFailure(f"Opération refusée par la base de données : {exc.orig}") from exc
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Store operation failed")
        raise InternalFailure("Erreur de base de données") from exc
