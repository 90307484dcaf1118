import logging
import time
from functools import wraps
from sqlalchemy.exc import DBAPIError
from sqlalchemy.orm.exc import StaleDataError
from permitflow.errors import RetryExhausted

logger = logging.getLogger(__name__)

MAX_ATTEMPTS = 3

# PostgreSQL serialization_failure and deadlock_detected
WRITE_CONFLICT_PGCODES = ('40001', '40P01')


def linear_backoff(step_seconds=0.1):
    """Backoff policy: wait step_seconds * attempt before the next try"""
    def delay(attempt):
        return step_seconds * attempt
    return delay


def is_write_conflict(error):
    if isinstance(error, StaleDataError):
        return True
    if isinstance(error, DBAPIError):
        pgcode = getattr(error.orig, 'pgcode', None)
        return pgcode in WRITE_CONFLICT_PGCODES
    return False


def optimistic_retry(attempts=MAX_ATTEMPTS, backoff=None):
    """Retry a transactional write from a fresh read when it hits a write conflict.

    Wraps a method of an object exposing ``session``. Every failed attempt
    is rolled back before the next one, so nothing from it is kept. Errors
    that are not write conflicts propagate unchanged; exhausting the
    attempts raises RetryExhausted.
    """
    backoff = backoff or linear_backoff()

    def decorator(fn):
        @wraps(fn)
        def wrapper(self, *args, **kwargs):
            for attempt in range(1, attempts + 1):
                try:
                    return fn(self, *args, **kwargs)
                except Exception as e:
                    self.session.rollback()
                    if not is_write_conflict(e):
                        raise
                    logger.warning(
                        'Write conflict in %s, attempt %d/%d: %s',
                        fn.__name__, attempt, attempts, e
                    )
                    if attempt < attempts:
                        time.sleep(backoff(attempt))

            logger.error('%s failed after %d attempts', fn.__name__, attempts)
            raise RetryExhausted(attempts)
        return wrapper
    return decorator
