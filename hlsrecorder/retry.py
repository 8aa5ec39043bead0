"""Bounded retry with a fixed backoff."""

import logging
import time
from typing import Callable, Optional, Tuple, Type, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


def retry_with_backoff(
    operation: Callable[[], T],
    attempts: int,
    backoff: float,
    is_success: Callable[[T], bool] = lambda result: True,
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
    sleep: Callable[[float], None] = time.sleep,
) -> Optional[T]:
    """
    Run an operation until it succeeds or attempts run out.

    An attempt fails when the operation raises one of ``retry_on`` or when
    ``is_success`` rejects its result. Other exceptions propagate immediately.

    Args:
        operation: Callable performing one attempt
        attempts: Maximum number of attempts
        backoff: Seconds to wait between attempts
        is_success: Predicate accepting a result
        retry_on: Exception types treated as a failed attempt
        sleep: Function used to wait between attempts

    Returns:
        The first accepted result, or None if every attempt failed

    Example:
        >>> retry_with_backoff(lambda: 42, attempts=3, backoff=0.0)
        42
    """
    for attempt in range(1, attempts + 1):
        try:
            result = operation()
        except retry_on as e:
            logger.warning(f"Attempt {attempt}/{attempts} failed: {str(e)}")
        else:
            if is_success(result):
                return result
            logger.warning(f"Attempt {attempt}/{attempts} rejected")

        if attempt < attempts:
            sleep(backoff)

    logger.warning(f"Giving up after {attempts} attempts")
    return None
