"""Retry decorator with jittered exponential back-off."""

from __future__ import annotations

import random
import time
from functools import wraps
from typing import Tuple, Type

from utils.log_config import get_logger

log = get_logger(__name__)


def retry(
    max_attempts: int = 3,
    backoff_base: float = 0.01,
    exceptions: Tuple[Type[BaseException], ...] = (Exception,),
    jitter: float = 0.5,
):
    """
    Decorator — re-invokes the wrapped function up to *max_attempts*
    times when it raises one of *exceptions*.

    The delay doubles per attempt and is spread by ``±jitter`` so that
    writers racing on the same document do not retry in lock-step.
    """

    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            last_exc: BaseException | None = None
            for attempt in range(1, max_attempts + 1):
                try:
                    return func(*args, **kwargs)
                except exceptions as exc:
                    last_exc = exc
                    if attempt < max_attempts:
                        delay = backoff_base * (2 ** (attempt - 1))
                        delay *= 1.0 + random.uniform(-jitter, jitter)
                        log.debug(
                            "Retry %d/%d for %s after %.3fs — %s",
                            attempt,
                            max_attempts,
                            func.__name__,
                            delay,
                            exc,
                        )
                        time.sleep(max(0.0, delay))
            raise last_exc  # type: ignore[misc]

        return wrapper

    return decorator
