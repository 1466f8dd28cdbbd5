# Overview: Retry helper for commits that can fail on transient database conflicts.

from __future__ import annotations

import logging
import time

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


logger = logging.getLogger(__name__)

TRANSIENT_ERRORS = (OperationalError, StaleDataError)


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1, retry_on=TRANSIENT_ERRORS):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks) and StaleDataError
    (optimistic locking conflicts) by default. The session is rolled back
    before each retry and func() is called again from scratch, so func must
    re-read anything it depends on.

    Delays grow as backoff_base * 2**attempt (1s, 2s, ... for base 1.0).
    Anything not in retry_on propagates immediately.
    """
    last_exc = None
    for attempt in range(attempts):
        try:
            return func()
        except retry_on as exc:
            db.session.rollback()
            last_exc = exc
            if attempt >= attempts - 1:
                raise
            delay = backoff_base * (2 ** attempt)
            logger.warning(
                "Transient failure on attempt %d/%d (%s); retrying in %.1fs",
                attempt + 1, attempts, type(exc).__name__, delay,
            )
            time.sleep(delay)
    if last_exc:
        raise last_exc
