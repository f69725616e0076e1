"""
Caller-side retry for retryable governance errors.

The services never retry internally; callers that want to absorb contention
wrap the call with ``retry_on_conflict``. Retrying ``record_usage`` with the
same idempotency key is always safe.
"""

import random
import time
from typing import Callable, Optional, TypeVar

from ..config import get_config
from ..exceptions import ConcurrentUpdateConflictError
from .logger import get_logger

T = TypeVar("T")


def calculate_exponential_backoff(
    retry_count: int,
    base_delay: float = 0.05,
    max_delay: float = 2.0,
    multiplier: float = 2.0,
    jitter: bool = True,
) -> float:
    """
    Calculate exponential backoff delay with jitter.

    Args:
        retry_count: Current retry attempt (0-based)
        base_delay: Base delay in seconds
        max_delay: Maximum delay in seconds
        multiplier: Exponential multiplier
        jitter: Whether to add +/-25% randomization to spread out retries

    Returns:
        Delay in seconds before next retry, never below base_delay
    """
    if retry_count < 0:
        return base_delay

    delay = min(base_delay * (multiplier**retry_count), max_delay)

    if jitter:
        jitter_range = delay * 0.25
        delay = delay + random.uniform(-jitter_range, jitter_range)

    return max(delay, base_delay)


def retry_on_conflict(
    func: Callable[[], T],
    attempts: Optional[int] = None,
    base_delay_ms: Optional[int] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """
    Call ``func`` until it stops raising ConcurrentUpdateConflictError.

    Args:
        func: Zero-argument callable, typically a lambda around a service call
        attempts: Total attempts (default: config.governance.conflict_retry_attempts)
        base_delay_ms: Base backoff (default: config.governance.conflict_retry_backoff_ms)
        sleep: Sleep function, injectable for tests

    Returns:
        Whatever ``func`` returns

    Raises:
        ConcurrentUpdateConflictError: When every attempt conflicted
    """
    governance = get_config().governance
    attempts = attempts if attempts is not None else governance.conflict_retry_attempts
    if base_delay_ms is None:
        base_delay_ms = governance.conflict_retry_backoff_ms

    logger = get_logger()
    for attempt in range(attempts):
        try:
            return func()
        except ConcurrentUpdateConflictError:
            if attempt + 1 >= attempts:
                raise
            delay = calculate_exponential_backoff(attempt, base_delay=base_delay_ms / 1000.0)
            logger.debug(
                f"Retrying after conflict: attempt={attempt + 1}, delay_s={delay:.3f}"
            )
            sleep(delay)

    raise ValueError("attempts must be at least 1")
