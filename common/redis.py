import contextlib
import logging
from collections.abc import Iterator

from django.conf import settings

from redis import Redis
from redis.exceptions import LockError

from common.exceptions import LockNotAcquiredError


logger = logging.getLogger(__name__)

redis_connection = Redis.from_url(settings.REDIS_URL)


@contextlib.contextmanager
def redis_lock(name: str, timeout: int, blocking_timeout: float | None = None) -> Iterator[None]:
    """
    Hold a Redis lock named `name` for the duration of the block.

    `timeout` bounds how long the lock survives a crashed holder. `blocking_timeout`
    bounds how long we wait for it; `LockNotAcquiredError` is raised when it runs out.
    """
    lock = redis_connection.lock(name, timeout=timeout, blocking_timeout=blocking_timeout)
    if not lock.acquire():
        raise LockNotAcquiredError(name)
    try:
        yield
    finally:
        try:
            lock.release()
        except LockError:
            # expired while held, someone else may own it now
            logger.warning("Lock %s expired before release", name)
