"""Bounded exponential backoff with jitter for network calls.

Every REST call and every streaming probe goes through
:func:`call_with_retry` with an explicit :class:`RetryPolicy`, so tests can
swap in deterministic jitter and a no-op sleep.
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
import random
from collections.abc import Awaitable, Callable, Iterator
from typing import TypeVar

from tesla_exporter.exceptions import TeslaStreamingError, TeslaTransportError

_logger = logging.getLogger(__name__)

T = TypeVar("T")


def full_jitter(delay: float) -> float:
    """Scale *delay* by a uniform random factor in ``[0, 1)``."""
    return delay * random.random()


def no_jitter(delay: float) -> float:
    return delay


def is_retryable(exc: Exception) -> bool:
    """Default retry predicate.

    Transport failures are retried unless the server answered with a
    non-recoverable status.  Streaming failures (error message, close,
    deadline) are always worth another probe.
    """
    if isinstance(exc, TeslaTransportError):
        return exc.retryable
    return isinstance(exc, TeslaStreamingError)


@dataclasses.dataclass(frozen=True)
class RetryPolicy:
    """Retry schedule shared by all network calls.

    Parameters
    ----------
    base_interval : float
        Delay in seconds before the first retry.
    factor : float
        Multiplier applied to the delay after every retry.
    max_retries : int
        Number of retries after the initial attempt.  ``0`` disables
        retrying.
    jitter : callable
        Maps a nominal delay to the delay actually slept.
    sleep : callable
        Awaitable sleep function.
    """

    base_interval: float = 0.1
    factor: float = 2.0
    max_retries: int = 3
    jitter: Callable[[float], float] = full_jitter
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep

    def delays(self) -> Iterator[float]:
        """Yield the jittered delay before each retry."""
        delay = self.base_interval
        for _ in range(self.max_retries):
            yield self.jitter(delay)
            delay *= self.factor

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1


async def call_with_retry(
    fn: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    *,
    should_retry: Callable[[Exception], bool] = is_retryable,
    operation: str = "request",
) -> T:
    """Await ``fn()`` until it succeeds or *policy* is exhausted.

    The last error is re-raised unchanged once no retries remain or when
    *should_retry* rejects it.
    """
    delays = policy.delays()
    attempt = 0
    while True:
        attempt += 1
        try:
            return await fn()
        except Exception as exc:
            if not should_retry(exc):
                raise
            delay = next(delays, None)
            if delay is None:
                _logger.debug("%s failed after %d attempts", operation, attempt)
                raise
            _logger.warning(
                "%s failed (attempt %d/%d), retrying in %.3fs: %s",
                operation,
                attempt,
                policy.max_attempts,
                delay,
                exc,
            )
            await policy.sleep(delay)
