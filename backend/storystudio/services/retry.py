"""Bounded exponential-backoff retry for generative service calls.

Only transient failures (rate limiting, overload, temporary unavailability,
dropped connections) are retried. Everything else, including auth errors,
malformed requests, schema/parse errors and missing credentials, propagates
on the first attempt without sleeping.

Usage:
    from storystudio.services.retry import RetryPolicy

    policy = RetryPolicy.from_settings()
    result = await policy.run(lambda: client.synthesize_speech(text, "Kore"))
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, TypeVar

import httpx
from google.genai.errors import APIError, ClientError, ServerError
from pydantic import ValidationError
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from storystudio.config import settings

logger = logging.getLogger(__name__)

T = TypeVar("T")

_TRANSIENT_STATUS_CODES = {429, 500, 502, 503, 504}
_TRANSIENT_MARKERS = ("429", "503", "overloaded", "temporarily unavailable", "rate limit")


def is_transient(exc: BaseException) -> bool:
    """Return True only for transient errors worth retrying."""
    if isinstance(exc, ServerError):
        return True
    if isinstance(exc, ClientError):
        return getattr(exc, "code", 0) == 429
    if isinstance(exc, APIError):
        return getattr(exc, "code", 0) in _TRANSIENT_STATUS_CODES
    if isinstance(exc, (ConnectionError, TimeoutError, httpx.TransportError)):
        return True
    if isinstance(exc, ValidationError):
        return False
    # Errors raised by other layers that only carry the status in the text
    msg = str(exc).lower()
    return any(marker in msg for marker in _TRANSIENT_MARKERS)


@dataclass(frozen=True)
class RetryPolicy:
    """Retry transient failures with a doubling delay.

    max_retries counts retries after the first attempt, so an operation is
    called at most max_retries + 1 times. The first retry waits
    initial_delay seconds, each later one twice the previous wait.
    """

    max_retries: int = 3
    initial_delay: float = 1.0
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep

    @classmethod
    def from_settings(cls) -> "RetryPolicy":
        return cls(
            max_retries=settings.pipeline.retry_max_attempts,
            initial_delay=settings.pipeline.retry_base_delay,
        )

    async def run(self, operation: Callable[[], Awaitable[T]]) -> T:
        """Await operation(), retrying on transient errors.

        Raises:
            The last error once the retry budget is exhausted, or the first
            non-transient error immediately.
        """
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_retries + 1),
            wait=wait_exponential(multiplier=self.initial_delay, exp_base=2),
            retry=retry_if_exception(is_transient),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            sleep=self.sleep,
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                return await operation()
        raise AssertionError("unreachable")  # pragma: no cover


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    max_retries: int = 3,
    initial_delay: float = 1.0,
) -> T:
    """Functional shortcut for RetryPolicy(max_retries, initial_delay).run()."""
    return await RetryPolicy(max_retries=max_retries, initial_delay=initial_delay).run(operation)
