import functools
import logging
import time

from django.conf import settings
from django.db import OperationalError, transaction

from .exceptions import StaleWrite, Transient

logger = logging.getLogger(__name__)


def atomic_with_retry(func):
    """
    Run `func` in one database transaction, retrying it from scratch when the
    store times out or a compare-and-swap write loses a race.

    Attempts and backoff come from LEDGER_RETRY_ATTEMPTS and
    LEDGER_RETRY_BACKOFF; exhausting them raises Transient.
    """
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        attempts = max(1, settings.LEDGER_RETRY_ATTEMPTS)
        for attempt in range(1, attempts + 1):
            try:
                with transaction.atomic():
                    return func(*args, **kwargs)
            except (OperationalError, StaleWrite) as exc:
                if attempt == attempts:
                    logger.error("%s gave up after %d attempts: %s", func.__qualname__, attempts, exc)
                    raise Transient() from exc
                delay = settings.LEDGER_RETRY_BACKOFF * (2 ** (attempt - 1))
                logger.warning(
                    "%s attempt %d/%d failed (%s), retrying in %.2fs",
                    func.__qualname__, attempt, attempts, exc, delay,
                )
                time.sleep(delay)
    return wrapper
