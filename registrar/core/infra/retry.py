"""Retry strategies for UI automation steps."""

import logging as stdlib_logging
from typing import Any, Awaitable, Callable, Tuple, Type, TypeVar, Union

from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
    wait_fixed,
)

from registrar.core.exceptions import AutomationStepTimeoutError

# Stdlib logger needed for tenacity's before_sleep_log
_stdlib_logger = stdlib_logging.getLogger(__name__)

T = TypeVar("T")


def _make_retry(
    attempts: int,
    wait_strategy: object,
    exception_types: Union[Type[Exception], Tuple[Type[Exception], ...]],
) -> Any:
    """
    Factory for creating retry decorators with consistent configuration.

    Args:
        attempts: Maximum number of attempts
        wait_strategy: Tenacity wait strategy
        exception_types: Exception type(s) to retry on

    Returns:
        Configured retry decorator
    """
    return retry(
        stop=stop_after_attempt(attempts),
        wait=wait_strategy,
        retry=retry_if_exception_type(exception_types),
        before_sleep=before_sleep_log(_stdlib_logger, stdlib_logging.WARNING),
        reraise=True,
    )


def get_ui_step_retry(attempts: int = 3, wait_seconds: float = 2.0, backoff: bool = False) -> Any:
    """
    Get retry strategy for a single UI step.

    Only AutomationStepTimeoutError is absorbed; everything else propagates
    on the first occurrence.

    Args:
        attempts: Total attempts including the first one
        wait_seconds: Wait between attempts (first wait when backoff is on)
        backoff: Double the wait after every failed attempt

    Returns:
        Retry decorator configured for UI step timeouts
    """
    if backoff and wait_seconds > 0:
        wait_strategy = wait_exponential(multiplier=wait_seconds, min=wait_seconds)
    else:
        wait_strategy = wait_fixed(wait_seconds)
    return _make_retry(
        attempts=attempts,
        wait_strategy=wait_strategy,
        exception_types=AutomationStepTimeoutError,
    )


async def run_step(
    step: str,
    func: Callable[[], Awaitable[T]],
    attempts: int = 3,
    wait_seconds: float = 2.0,
    backoff: bool = False,
) -> T:
    """
    Run one named UI step under the UI step retry policy.

    Args:
        step: Step name, used for logging
        func: Zero-argument coroutine function performing the step
        attempts: Total attempts
        wait_seconds: Wait between attempts
        backoff: Double the wait after every failed attempt

    Returns:
        Whatever the step returns

    Raises:
        AutomationStepTimeoutError: After the last attempt timed out
    """
    _stdlib_logger.debug("Running UI step %s", step)

    @get_ui_step_retry(attempts, wait_seconds, backoff)
    async def attempt() -> T:
        return await func()

    return await attempt()
