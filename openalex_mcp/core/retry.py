# =============================================================================
# core/retry.py  —  Retry with capped exponential backoff
# =============================================================================
#
# Every upstream call goes through with_retry().  The delay before retry n
# (0-based) is:
#
#     min(initial_delay * backoff_factor ** n, max_delay)
#
# Only failures that can plausibly succeed on a second try are retried:
#   - TransientUpstreamError  (5xx, 408, connection/timeouts)
#   - RateLimitError          (429)
# A 404 or any other 4xx propagates on the first attempt.
#
# Sleeping uses asyncio.sleep, so a backoff suspends only the calling tool
# invocation, never the event loop.
# =============================================================================

import asyncio
from dataclasses import dataclass
import logging
from typing import Awaitable, Callable, TypeVar

from openalex_mcp.core.errors import (
    RateLimitError,
    RetryExhaustedError,
    TransientUpstreamError,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

RETRYABLE_ERRORS = (TransientUpstreamError, RateLimitError)


@dataclass(frozen=True)
class RetryPolicy:
    """How many times to try an upstream call and how long to wait in between."""

    max_retries: int = 3
    initial_delay: float = 1.0          # seconds
    max_delay: float = 10.0             # seconds
    backoff_factor: float = 2.0

    def delay_for(self, attempt: int) -> float:
        """Delay after the given 0-based failed attempt."""
        return min(self.initial_delay * self.backoff_factor ** attempt, self.max_delay)


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    label: str,
) -> T:
    """Run `operation` until it succeeds or the policy is used up.

    Args:
        operation: Zero-argument coroutine factory; called once per attempt.
        policy: The retry envelope.
        label: Human-readable name of the call, used in logs and errors
               (e.g. "GET /works/W123").

    Returns:
        Whatever the first successful attempt returned.

    Raises:
        RetryExhaustedError: every attempt failed with a retryable error.
        UpstreamError: a non-retryable failure (404, other 4xx), unwrapped.
    """
    attempts = max(1, policy.max_retries)
    last_error: Exception | None = None

    for attempt in range(attempts):
        try:
            return await operation()
        except RETRYABLE_ERRORS as e:
            last_error = e
            if attempt == attempts - 1:
                break
            delay = policy.delay_for(attempt)
            kind = "rate limited" if isinstance(e, RateLimitError) else "transient failure"
            logger.warning(
                f"{label}: {kind} on attempt {attempt + 1}/{attempts} ({e}); "
                f"retrying in {delay:.2f}s"
            )
            await asyncio.sleep(delay)

    raise RetryExhaustedError(label, attempts, last_error)
