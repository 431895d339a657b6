from __future__ import annotations

import json
import logging
from typing import Callable, TypeVar

from flask import current_app
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.exc import StaleDataError

from squadcall.extensions import db
from .errors import Conflict, ServiceError

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Raised at flush/commit when another writer got there first: a versioned row
# moved underneath us, or a unique key (one vote per voter, one active
# proposal per squad) was taken.
CONFLICT_ERRORS = (StaleDataError, IntegrityError)


def run_in_transaction(work: Callable[[], T], *, operation: str) -> T:
    """
    Run `work` and commit it as one transaction.

    `work` must re-read everything it mutates: on a write conflict the
    session is rolled back and `work` is called again from scratch, up to
    CALL_WRITE_RETRIES extra times, then Conflict is raised. Service errors
    roll back and propagate untouched so a rejected operation never leaves
    a partial write behind.
    """
    retries = int(current_app.config.get("CALL_WRITE_RETRIES", 1))
    attempt = 0
    while True:
        try:
            result = work()
            db.session.commit()
            return result
        except ServiceError:
            db.session.rollback()
            raise
        except CONFLICT_ERRORS as exc:
            db.session.rollback()
            if attempt >= retries:
                logger.warning(json.dumps({
                    "event": "write_conflict",
                    "operation": operation,
                    "attempts": attempt + 1,
                    "outcome": "gave_up",
                    "error": exc.__class__.__name__,
                }))
                raise Conflict(
                    "Another update landed at the same time; please retry."
                ) from exc
            attempt += 1
            logger.info(json.dumps({
                "event": "write_conflict",
                "operation": operation,
                "attempts": attempt,
                "outcome": "retrying",
                "error": exc.__class__.__name__,
            }))
        except Exception:
            db.session.rollback()
            raise
