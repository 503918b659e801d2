"""Retry policy for the free AI tier.

The free provider is unauthenticated and flaky, so its calls are retried
with exponential backoff and jitter. The premium provider is never wrapped:
a credit is deducted before each premium call, and a failure is refunded
rather than retried.
"""

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, TypeVar

from app.providers.errors import RateLimitError, TransientError

__all__ = ["backoff_delay", "with_retries"]

if TYPE_CHECKING:
    from app.providers.config import ProviderConfig

logger = logging.getLogger(__name__)

T = TypeVar("T")

RETRYABLE_ERRORS: tuple[type[Exception], ...] = (TransientError, RateLimitError)


def backoff_delay(attempt: int, config: "ProviderConfig", error: Exception) -> float:
    """Seconds to wait before retry number ``attempt + 1``.

    A retry-after hint from a rate-limited provider wins. Otherwise the
    base delay doubles per attempt, plus up to 10% jitter, capped at
    retry_max_delay_ms.
    """
    if isinstance(error, RateLimitError) and error.retry_after_seconds:
        return error.retry_after_seconds

    base_ms = config.retry_base_delay_ms * (2**attempt)
    jitter_ms = random.uniform(0, base_ms * 0.1)
    return min(base_ms + jitter_ms, config.retry_max_delay_ms) / 1000


async def with_retries(
    func: Callable[[], Awaitable[T]],
    config: "ProviderConfig",
    *,
    provider_name: str = "free",
    retryable_errors: tuple[type[Exception], ...] = RETRYABLE_ERRORS,
) -> T:
    """Call ``func`` until it succeeds or config.max_retries is spent.

    Args:
        func: Zero-argument coroutine factory, called once per attempt.
        config: Retry settings (max_retries, base and max delay).
        provider_name: Provider named in the retry log lines.
        retryable_errors: Errors worth another attempt. Anything else
            propagates on the first failure.

    Returns:
        The first successful result.

    Raises:
        TransientError: Last failure once every attempt is spent.
        RateLimitError: Last failure once every attempt is spent.
    """
    attempts = config.max_retries + 1
    attempt = 0
    while True:
        try:
            return await func()
        except retryable_errors as e:
            if attempt + 1 >= attempts:
                logger.error(
                    "%s provider failed after %d attempts: %s",
                    provider_name,
                    attempts,
                    e,
                )
                raise

            delay = backoff_delay(attempt, config, e)
            logger.warning(
                "%s provider error (attempt %d/%d): %s. Retrying in %.2fs",
                provider_name,
                attempt + 1,
                attempts,
                e,
                delay,
            )
            await asyncio.sleep(delay)
            attempt += 1
