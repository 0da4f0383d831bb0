"""
Retry hook for catalog fetches.

The fetch scheduler accepts exactly one hook that wraps every fetch function.
`retry_hook` builds that hook from a `RetryConfig`: transport failures are
retried with capped exponential backoff, anything else surfaces on the first
attempt so the cache entry moves to ERROR right away.
"""

import asyncio
import functools
import random
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Tuple, Type

from shared.errors import RetryError, TransportError
from shared.logging import get_logger


FetchFn = Callable[..., Awaitable[Any]]


@dataclass(frozen=True)
class RetryConfig:
    """Backoff settings for one fetch."""

    max_attempts: int = 3
    base_delay: float = 0.5
    max_delay: float = 5.0
    exponential_base: float = 2.0
    jitter: bool = True

    def delay_for(self, attempt: int) -> float:
        """Seconds to wait after the given failed attempt (1-based)."""
        delay = min(self.base_delay * (self.exponential_base ** (attempt - 1)), self.max_delay)
        if self.jitter:
            delay += random.uniform(-0.1 * delay, 0.1 * delay)
        return max(0.0, delay)


def retry_on_exception(config: RetryConfig,
                       exceptions: Tuple[Type[BaseException], ...] = (TransportError,)) -> Callable[[FetchFn], FetchFn]:
    """Wrap a fetch so that `exceptions` are retried up to `config.max_attempts` times."""

    def decorator(fetch: FetchFn) -> FetchFn:
        name = getattr(fetch, "__name__", "fetch")
        logger = get_logger("retry").bind(function=name)

        @functools.wraps(fetch)
        async def wrapper(*args, **kwargs) -> Any:
            attempt = 1
            while True:
                try:
                    result = await fetch(*args, **kwargs)
                except exceptions as e:
                    if attempt >= config.max_attempts:
                        logger.warning("Fetch retries exhausted", attempts=attempt, error=str(e))
                        raise RetryError(
                            f"{name} failed after {attempt} attempts",
                            last_exception=e,
                            attempts=attempt
                        ) from e

                    delay = config.delay_for(attempt)
                    logger.debug("Fetch attempt failed", attempt=attempt, delay=delay, error=str(e))
                    await asyncio.sleep(delay)
                    attempt += 1
                    continue

                if attempt > 1:
                    logger.info("Fetch succeeded after retry", attempt=attempt)
                return result

        return wrapper

    return decorator


def retry_hook(config: RetryConfig,
               exceptions: Tuple[Type[BaseException], ...] = (TransportError,)) -> Optional[Callable[[FetchFn], FetchFn]]:
    """Build the scheduler's fetch hook, or None when retries are disabled."""
    if config.max_attempts <= 1:
        return None
    return retry_on_exception(config, exceptions)
