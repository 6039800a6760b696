"""Decorators for calendar provider calls."""

import logging
from collections.abc import Callable
from functools import wraps
from typing import Any

from django.conf import settings

from tenacity import (
    Retrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from calendar_integration.exceptions import TransientProviderError


logger = logging.getLogger(__name__)


def with_provider_retry(func: Callable[..., Any]) -> Callable[..., Any]:
    """
    Decorator that retries the wrapped call with exponential backoff while it raises
    `TransientProviderError`.

    Attempts and waits come from the CALENDAR_PROVIDER_* settings and are read on every
    call. The last `TransientProviderError` is re-raised once attempts run out; any other
    exception propagates immediately.
    """

    @wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        retrying = Retrying(
            stop=stop_after_attempt(settings.CALENDAR_PROVIDER_MAX_ATTEMPTS),
            wait=wait_exponential(
                multiplier=settings.CALENDAR_PROVIDER_RETRY_WAIT_MULTIPLIER,
                max=settings.CALENDAR_PROVIDER_RETRY_MAX_WAIT_SECONDS,
            ),
            retry=retry_if_exception_type(TransientProviderError),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        return retrying(func, *args, **kwargs)

    return wrapper
