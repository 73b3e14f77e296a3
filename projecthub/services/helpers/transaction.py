"""
Transaction boundary for service operations.

    with atomic("complete_stage"):
        ...mutations...

Commits once on success. Any exception rolls the whole unit back; store
failures are logged with detail here and re-raised as PersistenceError so
callers only see the generic retryable message.
"""

import logging
from contextlib import contextmanager

from sqlalchemy.exc import SQLAlchemyError

from projecthub.core.exceptions import PersistenceError
from projecthub.models import db

logger = logging.getLogger(__name__)


@contextmanager
def atomic(operation: str):
    try:
        yield db.session
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        logger.exception("Database error during %s", operation)
        raise PersistenceError(exc) from exc
    except Exception:
        db.session.rollback()
        raise
