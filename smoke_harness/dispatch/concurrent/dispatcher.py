"""Concurrent dispatcher running one connection attempt per request."""

import asyncio
import socket
import time
from typing import Optional, Sequence, Union

from smoke_harness.dispatch.concurrent.attempt import ConnectionAttempt
from smoke_harness.dispatch.exceptions import ConfigurationError
from smoke_harness.dispatch.framing import create_response_reader
from smoke_harness.dispatch.logging import get_harness_logger
from smoke_harness.dispatch.models import (
  BatchOutcome,
  DispatchSettings,
  Request,
  Target,
)
from smoke_harness.dispatch.net.retry import RetryHandler

logger = get_harness_logger(__name__)


class ConcurrentDispatcher:
  """Fires every request on its own connection and joins on all of them.

  Each attempt runs as an independent asyncio task owning its own socket.
  ``dispatch`` returns only once every attempt reached a terminal state, and
  the outcome lists results in request order regardless of completion order.
  A failing attempt never cancels or delays the others; the optional batch
  timeout cancels only the attempts still pending when it expires.
  """

  def __init__(self, settings: Optional[DispatchSettings] = None):
    """Initialize the dispatcher.

    Args:
      settings: Timeouts, framing and retry options (defaults if omitted)
    """
    self.settings = settings or DispatchSettings()
    self.response_reader = create_response_reader(
      self.settings.framing, self.settings.max_response_bytes
    )
    self.retry_handler = RetryHandler(
      max_retries=self.settings.connect_retries,
      base_delay=self.settings.retry_delay,
    )

  async def resolve_target(self, target: Union[str, Target]) -> Target:
    """Parse the target and check that its host resolves.

    Raises:
      ConfigurationError: If the address is malformed or cannot be resolved
    """
    if not isinstance(target, Target):
      target = Target.parse(target)

    loop = asyncio.get_running_loop()
    try:
      await loop.getaddrinfo(target.host, target.port, type=socket.SOCK_STREAM)
    except (socket.gaierror, UnicodeError, ValueError) as e:
      raise ConfigurationError(
        f"Cannot resolve target host '{target.host}': {e}", field="target"
      )

    return target

  async def dispatch(
    self,
    target: Union[str, Target],
    requests: Sequence[Request],
  ) -> BatchOutcome:
    """Send every request concurrently and collect ordered results.

    Args:
      target: Endpoint as ``host:port`` or a Target
      requests: One request per connection, in reporting order

    Returns:
      BatchOutcome with one result per request, in input order

    Raises:
      ConfigurationError: If the target cannot be parsed or resolved; no
        connection is attempted in that case
    """
    target = await self.resolve_target(target)
    batch_logger = logger.bind(target=str(target))
    started = time.monotonic()

    attempts = [
      ConnectionAttempt(
        index=index,
        target=target,
        request=request,
        settings=self.settings,
        response_reader=self.response_reader,
        retry_handler=self.retry_handler,
      )
      for index, request in enumerate(requests)
    ]

    batch_logger.info(
      "Dispatching batch",
      total_requests=len(attempts),
      framing=self.settings.framing,
      timeout=self.settings.timeout,
      batch_timeout=self.settings.batch_timeout,
    )

    results = []
    if attempts:
      tasks = [asyncio.create_task(attempt.run()) for attempt in attempts]
      done, pending = await asyncio.wait(tasks, timeout=self.settings.batch_timeout)

      if pending:
        batch_logger.warning(
          "Batch timeout expired, cancelling pending attempts",
          pending=len(pending),
          batch_timeout=self.settings.batch_timeout,
        )
        for task in pending:
          task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)

      for attempt, task in zip(attempts, tasks):
        if attempt.result is not None:
          results.append(attempt.result)
        elif task.cancelled():
          results.append(attempt.cancelled_result("Batch timeout expired"))
        else:
          error = task.exception()
          batch_logger.error(
            "Connection attempt raised unexpectedly",
            index=attempt.index,
            error=repr(error),
          )
          results.append(attempt.crashed_result(error))

    outcome = BatchOutcome(
      target=target,
      results=results,
      elapsed_ms=int((time.monotonic() - started) * 1000),
    )

    batch_logger.log_batch_summary(
      str(target),
      outcome.total,
      outcome.succeeded_count,
      outcome.elapsed_ms,
      failures_by_kind=outcome.failures_by_kind(),
    )
    return outcome

  def __repr__(self) -> str:
    return (
      f"ConcurrentDispatcher(framing='{self.settings.framing}', "
      f"timeout={self.settings.timeout}, "
      f"batch_timeout={self.settings.batch_timeout})"
    )


def run_batch(
  target: Union[str, Target],
  requests: Sequence[Request],
  settings: Optional[DispatchSettings] = None,
) -> BatchOutcome:
  """Synchronous entry point: run one batch on a fresh event loop."""
  dispatcher = ConcurrentDispatcher(settings)
  return asyncio.run(dispatcher.dispatch(target, requests))
