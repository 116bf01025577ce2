"""A single connect/write/read cycle against the target."""

import asyncio
import time
from enum import Enum
from typing import Optional

from smoke_harness.dispatch.exceptions import (
  AttemptError,
  ConnectFailedError,
  ReadFailedError,
  ReadTimeoutError,
  RetryExhaustedError,
  WriteFailedError,
)
from smoke_harness.dispatch.framing import ResponseReader
from smoke_harness.dispatch.logging import get_harness_logger
from smoke_harness.dispatch.models import (
  AttemptResult,
  DispatchSettings,
  ErrorKind,
  Request,
  Target,
)
from smoke_harness.dispatch.net.retry import RetryHandler

logger = get_harness_logger(__name__)


class AttemptPhase(str, Enum):
  """Where an attempt currently is in its connect/write/read cycle."""

  PENDING = "pending"
  CONNECT = "connect"
  WRITE = "write"
  READ = "read"
  DONE = "done"


# Error kind reported when an attempt is cancelled in a given phase.
CANCELLED_PHASE_KINDS = {
  AttemptPhase.PENDING: ErrorKind.CONNECT_FAILED,
  AttemptPhase.CONNECT: ErrorKind.CONNECT_FAILED,
  AttemptPhase.WRITE: ErrorKind.WRITE_FAILED,
  AttemptPhase.READ: ErrorKind.READ_TIMEOUT,
}

# Error kind reported when an attempt raises an unclassified exception.
CRASHED_PHASE_KINDS = {
  AttemptPhase.PENDING: ErrorKind.CONNECT_FAILED,
  AttemptPhase.CONNECT: ErrorKind.CONNECT_FAILED,
  AttemptPhase.WRITE: ErrorKind.WRITE_FAILED,
  AttemptPhase.READ: ErrorKind.READ_FAILED,
}


class ConnectionAttempt:
  """Owns one connection for its lifetime and produces one AttemptResult.

  Attempt errors never escape ``run``: each is converted into a failed
  result carrying its error kind. The result is stored on ``result`` before
  the connection is closed, so a cancellation arriving during close leaves
  it intact. For attempts cancelled earlier the dispatcher asks for
  ``cancelled_result``, and for anything else that escapes,
  ``crashed_result``.
  """

  def __init__(
    self,
    index: int,
    target: Target,
    request: Request,
    settings: DispatchSettings,
    response_reader: ResponseReader,
    retry_handler: Optional[RetryHandler] = None,
  ):
    """Initialize the attempt.

    Args:
      index: Position of the request in the batch
      target: Endpoint to connect to
      request: Payload to send
      settings: Timeouts and connection options
      response_reader: Framing strategy for the response
      retry_handler: Optional connect retry policy
    """
    self.index = index
    self.target = target
    self.request = request
    self.settings = settings
    self.response_reader = response_reader
    self.retry_handler = retry_handler or RetryHandler(max_retries=0)

    self.phase = AttemptPhase.PENDING
    self.result: Optional[AttemptResult] = None
    self._started_at: Optional[float] = None

  async def run(self) -> AttemptResult:
    """Connect, write the request, read the response and close."""
    self._started_at = time.monotonic()
    logger.log_attempt_started(self.index, str(self.target), self.request.payload)

    writer: Optional[asyncio.StreamWriter] = None
    try:
      try:
        reader, writer = await self._connect()
        await self._write(writer)
        response = await self._read(reader)
      except AttemptError as e:
        result = AttemptResult.failure(
          self.index,
          ErrorKind(e.kind),
          str(e),
          latency_ms=self.elapsed_ms(),
          label=self.request.label,
        )
      else:
        result = AttemptResult.success(
          self.index,
          response,
          latency_ms=self.elapsed_ms(),
          label=self.request.label,
        )

      # The result stands even if closing is cancelled below.
      self.result = result
      self.phase = AttemptPhase.DONE
      logger.log_attempt_finished(
        self.index,
        result.status,
        result.latency_ms,
        response_size=len(result.response),
        error_message=result.error_message,
      )
    finally:
      if writer is not None:
        await self._close(writer)

    return result

  def cancelled_result(self, reason: str) -> AttemptResult:
    """Result for an attempt cancelled before reaching a terminal state.

    The error kind follows the phase the attempt was in when cancelled.
    """
    kind = CANCELLED_PHASE_KINDS.get(self.phase, ErrorKind.READ_TIMEOUT)
    return AttemptResult.failure(
      self.index,
      kind,
      f"{reason} during {self.phase.value}",
      latency_ms=self.elapsed_ms(),
      label=self.request.label,
    )

  def crashed_result(self, error: BaseException) -> AttemptResult:
    """Result for an attempt whose task raised outside the error model."""
    kind = CRASHED_PHASE_KINDS.get(self.phase, ErrorKind.READ_FAILED)
    return AttemptResult.failure(
      self.index,
      kind,
      f"Unexpected error during {self.phase.value}: {_describe(error)}",
      latency_ms=self.elapsed_ms(),
      label=self.request.label,
    )

  def elapsed_ms(self) -> int:
    if self._started_at is None:
      return 0
    return int((time.monotonic() - self._started_at) * 1000)

  async def _connect(self) -> tuple[asyncio.StreamReader, asyncio.StreamWriter]:
    self.phase = AttemptPhase.CONNECT
    timeout = self.settings.timeout
    try:
      return await self.retry_handler.execute(self._open_connection)
    except RetryExhaustedError as e:
      raise ConnectFailedError(
        f"Connection failed after {e.max_retries} retries: {_describe(e.last_exception)}",
        cause=e.last_exception,
      )
    except asyncio.TimeoutError as e:
      raise ConnectFailedError(f"Timed out connecting after {timeout}s", cause=e)
    except OSError as e:
      raise ConnectFailedError(_describe(e), cause=e)

  async def _open_connection(self) -> tuple[asyncio.StreamReader, asyncio.StreamWriter]:
    return await asyncio.wait_for(
      asyncio.open_connection(self.target.host, self.target.port),
      timeout=self.settings.timeout,
    )

  async def _write(self, writer: asyncio.StreamWriter) -> None:
    self.phase = AttemptPhase.WRITE
    try:
      writer.write(self.request.payload)
      await asyncio.wait_for(writer.drain(), timeout=self.settings.timeout)
      if self.settings.half_close and writer.can_write_eof():
        writer.write_eof()
    except asyncio.TimeoutError as e:
      raise WriteFailedError(
        f"Timed out writing {len(self.request)} bytes", cause=e
      )
    except OSError as e:
      raise WriteFailedError(_describe(e), cause=e)

  async def _read(self, reader: asyncio.StreamReader) -> bytes:
    self.phase = AttemptPhase.READ
    timeout = self.settings.timeout
    try:
      return await asyncio.wait_for(
        self.response_reader.read_response(reader), timeout=timeout
      )
    except asyncio.TimeoutError:
      raise ReadTimeoutError(
        f"No complete response within {timeout}s", timeout_seconds=timeout
      )
    except OSError as e:
      raise ReadFailedError(_describe(e), cause=e)

  async def _close(self, writer: asyncio.StreamWriter) -> None:
    writer.close()
    try:
      await writer.wait_closed()
    except OSError as e:
      logger.debug(
        "Error while closing connection",
        index=self.index,
        error=_describe(e),
      )

  def __repr__(self) -> str:
    return (
      f"ConnectionAttempt(index={self.index}, "
      f"target='{self.target}', phase={self.phase.value})"
    )


def _describe(error: Optional[BaseException]) -> str:
  if error is None:
    return "unknown error"
  return str(error) or type(error).__name__
