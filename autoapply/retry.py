"""Exponential backoff for external calls (HTTP sources, SMTP) and queued work — stdlib only."""
from __future__ import annotations

import functools
import logging
import random
import time
from typing import Any, Callable, Tuple, Type

logger = logging.getLogger(__name__)


def backoff_delay(
    attempt: int,
    *,
    base_delay: float = 1.0,
    max_delay: float = 30.0,
    backoff_factor: float = 2.0,
) -> float:
    """Seconds to wait after the *attempt*-th failure (1-based), without jitter."""
    if attempt < 1 or base_delay <= 0:
        return 0.0
    return min(base_delay * (backoff_factor ** (attempt - 1)), max_delay)


def retry(
    *,
    max_attempts: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 30.0,
    backoff_factor: float = 2.0,
    jitter: bool = True,
    retryable: Tuple[Type[BaseException], ...] = (Exception,),
    sleep: Callable[[float], None] = time.sleep,
) -> Callable:
    """Decorator: call again on *retryable* errors, waiting longer each time.

    The last error is re-raised once *max_attempts* calls have failed; other
    exceptions propagate immediately.
    """
    if max_attempts < 1:
        raise ValueError(f"max_attempts must be >= 1, got {max_attempts}")

    def pause(attempt: int) -> float:
        delay = backoff_delay(attempt, base_delay=base_delay, max_delay=max_delay, backoff_factor=backoff_factor)
        return delay * (0.5 + random.random()) if jitter else delay

    def decorator(fn: Callable) -> Callable:
        name = fn.__qualname__

        @functools.wraps(fn)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            attempt = 1
            while True:
                try:
                    return fn(*args, **kwargs)
                except retryable as exc:
                    if attempt >= max_attempts:
                        logger.error("%s gave up after %d attempt(s): %s", name, attempt, exc)
                        raise
                    delay = pause(attempt)
                    logger.warning("%s failed (%s); attempt %d/%d in %.1fs", name, exc, attempt + 1, max_attempts, delay)
                    sleep(delay)
                    attempt += 1

        return wrapper

    return decorator
