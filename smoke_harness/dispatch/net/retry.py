"""Retry logic with exponential backoff for connection establishment."""

import asyncio
import random
from typing import Any, Awaitable, Callable, TypeVar

from smoke_harness.dispatch.exceptions import RetryExhaustedError

T = TypeVar('T')


class RetryHandler:
  """Retries transient connection failures with exponential backoff."""

  def __init__(
    self,
    max_retries: int = 0,
    base_delay: float = 0.1,
    max_delay: float = 5.0,
    backoff_factor: float = 2.0,
    jitter: bool = True
  ):
    """Initialize retry handler with configuration parameters.

    Args:
      max_retries: Maximum number of retry attempts after the first try
      base_delay: Base delay in seconds for first retry
      max_delay: Maximum delay in seconds between retries
      backoff_factor: Multiplier for exponential backoff
      jitter: Whether to add random jitter to delays
    """
    self.max_retries = max_retries
    self.base_delay = base_delay
    self.max_delay = max_delay
    self.backoff_factor = backoff_factor
    self.jitter = jitter

  async def execute(
    self,
    func: Callable[..., Awaitable[T]],
    *args: Any,
    **kwargs: Any
  ) -> T:
    """Execute an async function, retrying on retryable failures.

    Returns:
      Result of successful function execution

    Raises:
      RetryExhaustedError: When retries were configured and all failed
      Exception: Non-retryable exceptions, or the only failure when
        ``max_retries`` is zero, are re-raised unchanged
    """
    for attempt in range(self.max_retries + 1):
      try:
        return await func(*args, **kwargs)
      except Exception as e:
        if not self.is_retryable(e) or self.max_retries == 0:
          raise

        if attempt == self.max_retries:
          raise RetryExhaustedError(
            f"Max retries ({self.max_retries}) exceeded. Last error: {e}",
            max_retries=self.max_retries,
            last_exception=e
          )

        await asyncio.sleep(self._calculate_delay(attempt + 1))

    raise RetryExhaustedError(
      f"Max retries ({self.max_retries}) exceeded",
      max_retries=self.max_retries
    )

  def is_retryable(self, exception: Exception) -> bool:
    """Connection refusals, resets, other OS errors and timeouts are retryable."""
    if isinstance(exception, asyncio.TimeoutError):
      return True

    if isinstance(exception, OSError):
      return True

    return False

  def _calculate_delay(self, attempt: int) -> float:
    """Calculate delay for retry attempt using exponential backoff.

    Args:
      attempt: Current attempt number (1-based)

    Returns:
      Delay in seconds
    """
    delay = self.base_delay * (self.backoff_factor ** (attempt - 1))
    delay = min(delay, self.max_delay)

    if self.jitter:
      # ±50% of the delay
      jitter_range = delay * 0.5
      delay += random.uniform(-jitter_range, jitter_range)
      delay = max(0.0, delay)

    return delay
