import functools
import logging
from contextlib import contextmanager

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.errors import LedgerUnavailable
from app.locks import session_locks

logger = logging.getLogger(__name__)


@contextmanager
def atomic(db: Session, session_id, locks=None):
    """
    Critical section for one gym session.

    Holds the per-session mutex for the whole read -> decide -> write unit and
    commits at the end. Any exception rolls everything back, so a rejected or
    failed admission leaves no row behind.
    """
    locks = locks or session_locks
    with locks.hold(session_id):
        try:
            yield
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            logger.exception("Ledger write failed for session %s", session_id)
            raise LedgerUnavailable("Booking storage is unavailable") from exc
        except Exception:
            db.rollback()
            raise


def surfaces_ledger_errors(func):
    """Turn persistence errors raised outside `atomic` into LedgerUnavailable."""

    @functools.wraps(func)
    def wrapper(self, *args, **kwargs):
        try:
            return func(self, *args, **kwargs)
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.exception("Ledger read failed in %s", func.__name__)
            raise LedgerUnavailable("Booking storage is unavailable") from exc

    return wrapper
