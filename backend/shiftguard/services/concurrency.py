# Overview: Transaction helpers; every mutation is one short, atomically-committed unit.

from __future__ import annotations

from contextlib import contextmanager

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..extensions import db
from .errors import ConflictError, ShiftGuardError, StorageError


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


@contextmanager
def unit_of_work(conflict_message: str = "Conflicting concurrent update", *, commit: bool = True):
    """
    Run a read-validate-write block as one transactional unit.

    Unique-constraint violations become ConflictError, other database
    failures StorageError. Nothing is retried. With commit=False the block
    only flushes and the enclosing unit decides.
    """
    try:
        yield
        if commit:
            db.session.commit()
        else:
            db.session.flush()
    except IntegrityError as exc:
        db.session.rollback()
        raise ConflictError(conflict_message) from exc
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise StorageError("Storage unavailable") from exc
    except ShiftGuardError:
        if commit:
            db.session.rollback()
        raise
