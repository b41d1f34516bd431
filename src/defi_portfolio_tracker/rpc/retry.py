"""Backoff for callers that want to retry transient read failures.

The aggregation core never retries on its own. The CLI wraps whole commands
with :func:`with_retry` when ``--retries`` is given.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from functools import wraps
from typing import Any, TypeVar

from pydantic import BaseModel, ConfigDict, Field

from defi_portfolio_tracker.core.errors import TransientError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RetryConfig(BaseModel):
    """
    How many times to retry and how long to wait in between.

    Attributes
    ----------
    max_retries : int
        Attempts after the first one; zero disables retrying
    base_delay : float
        Seconds to wait after the first failure
    max_delay : float
        Upper bound on any single wait
    exponential_base : float
        Growth factor applied per attempt

    """

    model_config = ConfigDict(frozen=True)

    max_retries: int = Field(default=3, ge=0)
    base_delay: float = Field(default=1.0, ge=0)
    max_delay: float = Field(default=30.0, ge=0)
    exponential_base: float = Field(default=2.0, ge=1)

    def get_delay(self, attempt: int) -> float:
        """Seconds to sleep after the 0-indexed failed ``attempt``."""
        return min(self.base_delay * self.exponential_base**attempt, self.max_delay)


def with_retry(
    config: RetryConfig | None = None,
) -> Callable[[Callable[..., Awaitable[T]]], Callable[..., Awaitable[T]]]:
    """
    Retry a coroutine function while it raises ``TransientError``.

    Ledger misuse and configuration errors propagate on the first attempt.
    Once the attempts run out the last transient error is re-raised.

    Parameters
    ----------
    config : RetryConfig | None
        Backoff settings, defaults when omitted.

    """
    config = config or RetryConfig()

    def decorator(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        @wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> T:
            attempt = 0
            while True:
                try:
                    return await func(*args, **kwargs)
                except TransientError as e:
                    if attempt >= config.max_retries:
                        raise
                    delay = config.get_delay(attempt)
                    attempt += 1
                    logger.debug(
                        "%s failed (attempt %d/%d), retrying in %.1fs: %s",
                        func.__name__,
                        attempt,
                        config.max_retries + 1,
                        delay,
                        e,
                    )
                    await asyncio.sleep(delay)

        return wrapper

    return decorator
