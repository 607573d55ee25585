# /mediconnect/utils/db_util.py
import logging
import time

from flask import current_app
from sqlalchemy.exc import OperationalError

from mediconnect.extensions import db

logger = logging.getLogger(__name__)

# PostgreSQL: deadlock_detected, lock_not_available, serialization_failure
_CONTENTION_CODES = {'40P01', '55P03', '40001'}


def is_lock_contention(exc: OperationalError) -> bool:
    orig = getattr(exc, 'orig', None)
    pgcode = getattr(orig, 'pgcode', None) or getattr(orig, 'sqlstate', None)
    if pgcode in _CONTENTION_CODES:
        return True
    message = str(exc).lower()
    return 'database is locked' in message or 'deadlock detected' in message


def run_with_write_retry(operation, attempts=None):
    """Runs a unit of work that commits itself, repeating it on lock contention.

    Business errors raised by `operation` are never repeated; the session is
    rolled back and the error propagates.
    """
    attempts = attempts or current_app.config.get('DB_WRITE_ATTEMPTS', 5)
    for attempt in range(1, attempts + 1):
        try:
            return operation()
        except OperationalError as exc:
            db.session.rollback()
            if attempt == attempts or not is_lock_contention(exc):
                raise
            logger.warning("Write contention (attempt %d/%d): %s", attempt, attempts, exc.orig)
            time.sleep(0.02 * attempt)
        except Exception:
            db.session.rollback()
            raise
