"""
Retry helpers.

- retry_on_transient_errors: decorator for idempotent async reads
  (exponential backoff with jitter).
- bounded_retry: explicit combinator for non-idempotent work such as order
  submission, parameterized by attempt budget, backoff schedule and a
  success predicate.
"""
import asyncio
import functools
import random
from typing import Any, Awaitable, Callable, Optional, Tuple, Type, TypeVar

from src.exceptions import RetryExhaustedError
from src.monitoring.logger import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


def retry_on_transient_errors(
    max_retries: int = 3,
    base_delay: float = 1.0,
    max_backoff: float = 10.0,
    transient_errors: Optional[Tuple[Type[Exception], ...]] = None
):
    """
    Decorator to retry async functions on transient errors.

    Implements exponential backoff with jitter.

    Args:
        max_retries: Maximum number of retry attempts
        base_delay: Initial wait time in seconds
        max_backoff: Maximum wait time in seconds
        transient_errors: Tuple of exception types to retry on.
                          Any exception except logic errors when None.
    """
    def decorator(func: Callable):
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            retry_count = 0
            backoff = base_delay

            while True:
                try:
                    return await func(*args, **kwargs)
                except Exception as e:
                    is_transient = not isinstance(e, (ValueError, TypeError, SyntaxError))
                    if transient_errors and not isinstance(e, transient_errors):
                        is_transient = False

                    if not is_transient:
                        raise

                    if retry_count >= max_retries:
                        logger.warning(
                            f"Max retries ({max_retries}) exhausted for {func.__name__}",
                            error=str(e)
                        )
                        raise

                    logger.warning(
                        f"Transient error in {func.__name__}, retrying ({retry_count + 1}/{max_retries})",
                        error=str(e),
                        wait=f"{backoff:.2f}s"
                    )

                    await asyncio.sleep(backoff)

                    retry_count += 1
                    backoff = min(backoff * 2, max_backoff)
                    backoff += random.uniform(0, 0.5)  # Jitter

        return wrapper
    return decorator


async def bounded_retry(
    attempt: Callable[[int], Awaitable[T]],
    *,
    max_attempts: int,
    is_success: Callable[[T], bool],
    backoff: Callable[[Optional[T], Optional[BaseException]], float],
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
    label: str = "operation",
) -> T:
    """
    Run `attempt` until `is_success` holds, at most `max_attempts` times.

    Args:
        attempt: Coroutine factory, called with the 1-based attempt number
        max_attempts: Attempt budget (>= 1)
        is_success: Predicate over an attempt's result
        backoff: Seconds to wait before the next attempt, given the last
                 result (None if it raised) and the last error (None if it
                 returned)
        retry_on: Exceptions that consume an attempt instead of propagating
        label: Name used in log lines

    Returns:
        The first successful result

    Raises:
        RetryExhaustedError: No attempt succeeded. No wait follows the last attempt.
    """
    if max_attempts < 1:
        raise ValueError(f"max_attempts must be >= 1, got {max_attempts}")

    last_result: Any = None
    last_error: Optional[BaseException] = None

    for number in range(1, max_attempts + 1):
        last_result, last_error = None, None
        try:
            last_result = await attempt(number)
        except retry_on as e:
            last_error = e
            logger.warning(
                "Attempt raised",
                operation=label,
                attempt=number,
                max_attempts=max_attempts,
                error=str(e),
            )
        else:
            if is_success(last_result):
                return last_result
            logger.info("Attempt unsuccessful", operation=label, attempt=number, max_attempts=max_attempts)

        if number < max_attempts:
            wait = backoff(last_result, last_error)
            logger.info("Retrying", operation=label, next_attempt=number + 1, wait=f"{wait:.2f}s")
            await asyncio.sleep(wait)

    raise RetryExhaustedError(max_attempts, last_result=last_result, last_error=last_error)
