"""Decorator utilities for cross-cutting concerns."""
import time
import logging
import functools
from typing import Any, Callable, Optional, Tuple, Type, TypeVar, cast

# Setup logging
logger = logging.getLogger(__name__)

F = TypeVar('F', bound=Callable[..., Any])


def async_log_execution_time(
    func: Optional[F] = None,
    *,
    expected: Tuple[Type[BaseException], ...] = (),
) -> Any:
    """Decorator to log async function execution time.

    Successful runs are logged at INFO, failed runs at WARNING; the failure
    itself is left for the caller to report. Failures of an `expected` type
    are part of normal operation and are logged at INFO instead.

    Usable bare (``@async_log_execution_time``) or with arguments
    (``@async_log_execution_time(expected=(ValueError,))``).

    Args:
        func: The async function to decorate
        expected: Exception types that do not count as unexpected failures

    Returns:
        Decorated async function that logs execution time
    """
    def decorator(inner: F) -> F:
        @functools.wraps(inner)
        async def wrapper(*args, **kwargs):
            start_time = time.monotonic()
            try:
                result = await inner(*args, **kwargs)
            except BaseException as e:
                duration = time.monotonic() - start_time
                level = logging.INFO if isinstance(e, expected) else logging.WARNING
                logger.log(level, f"{inner.__name__} failed after {duration:.2f}s: {type(e).__name__}")
                raise
            duration = time.monotonic() - start_time
            logger.info(f"{inner.__name__} completed in {duration:.2f}s")
            return result
        return cast(F, wrapper)

    if func is not None:
        return decorator(func)
    return decorator
