"""
CareLink Service — Optimistic locking retry decorator

Uses exponential backoff + jitter to handle StaleDataError.
StaleDataError occurs when a conditional UPDATE (version_id or status
compare) matched no row because another transaction committed first.
"""
import asyncio
import random
import functools
import logging

from sqlalchemy.orm.exc import StaleDataError as OrmStaleDataError

from app.core.config import get_settings
from app.core.errors import TransientConflict

settings = get_settings()
logger = logging.getLogger(__name__)


class StaleDataError(Exception):
    """Raised when an optimistic lock conflict is detected:
    the row changed between our read and our conditional update,
    meaning another concurrent transaction won the race.
    """
    pass


def with_optimistic_retry(max_retries: int | None = None):
    """
    Decorator for async functions that perform optimistic-lock DB writes.
    On StaleDataError, retries with exponential backoff + jitter; once the
    retries are exhausted the caller gets TransientConflict.

    The wrapped function owns its transaction: it must roll back before
    raising StaleDataError so the retry starts from a clean session.

    Usage:
        @with_optimistic_retry()
        async def book_appointment(db, ...):
            ...
    """
    _max = max_retries or settings.OPT_LOCK_MAX_RETRIES

    def decorator(func):
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            for attempt in range(1, _max + 1):
                try:
                    return await func(*args, **kwargs)
                except (StaleDataError, OrmStaleDataError) as exc:
                    if attempt == _max:
                        logger.error(
                            "Optimistic lock conflict unresolved after %d retries for %s",
                            _max, func.__name__,
                        )
                        raise TransientConflict() from exc
                    # Exponential backoff: base * 2^attempt + jitter
                    base_delay = settings.OPT_LOCK_BASE_DELAY_MS / 1000.0
                    max_delay = settings.OPT_LOCK_MAX_DELAY_MS / 1000.0
                    jitter = random.uniform(0, settings.OPT_LOCK_JITTER_MS / 1000.0)
                    delay = min(base_delay * (2 ** attempt), max_delay) + jitter
                    logger.warning(
                        "StaleDataError on attempt %d/%d for %s, retrying in %.3fs",
                        attempt, _max, func.__name__, delay,
                    )
                    await asyncio.sleep(delay)
        return wrapper
    return decorator
