"""Unit tests for ConnectionAttempt."""

import asyncio
from unittest.mock import AsyncMock, Mock, patch

import pytest

from smoke_harness.dispatch.concurrent.attempt import AttemptPhase, ConnectionAttempt
from smoke_harness.dispatch.framing import EOFResponseReader, LengthPrefixedResponseReader
from smoke_harness.dispatch.models import DispatchSettings, ErrorKind, Request, Target
from smoke_harness.dispatch.net.retry import RetryHandler

OPEN_CONNECTION = "smoke_harness.dispatch.concurrent.attempt.asyncio.open_connection"


@pytest.fixture
def target():
  return Target("127.0.0.1", 9092)


@pytest.fixture
def settings():
  return DispatchSettings(timeout=0.5)


def make_reader(data: bytes = b"", eof: bool = True) -> asyncio.StreamReader:
  reader = asyncio.StreamReader()
  if data:
    reader.feed_data(data)
  if eof:
    reader.feed_eof()
  return reader


def make_writer() -> Mock:
  writer = Mock()
  writer.drain = AsyncMock()
  writer.wait_closed = AsyncMock()
  writer.can_write_eof = Mock(return_value=True)
  return writer


def make_attempt(target, settings, payload=b"ping", retry_handler=None, reader_class=EOFResponseReader):
  return ConnectionAttempt(
    index=0,
    target=target,
    request=Request(payload=payload, label="probe"),
    settings=settings,
    response_reader=reader_class(settings.max_response_bytes),
    retry_handler=retry_handler,
  )


class TestConnectionAttempt:
  """Test cases for a single connect/write/read cycle."""

  @pytest.mark.asyncio
  async def test_success(self, target, settings):
    writer = make_writer()
    open_connection = AsyncMock(return_value=(make_reader(b"pong"), writer))

    with patch(OPEN_CONNECTION, new=open_connection):
      attempt = make_attempt(target, settings)
      result = await attempt.run()

    assert result.succeeded
    assert result.response == b"pong"
    assert result.label == "probe"
    assert attempt.phase is AttemptPhase.DONE
    open_connection.assert_called_once_with("127.0.0.1", 9092)
    writer.write.assert_called_once_with(b"ping")
    writer.close.assert_called_once()
    writer.write_eof.assert_not_called()

  @pytest.mark.asyncio
  async def test_half_close_after_write(self, target):
    settings = DispatchSettings(timeout=0.5, half_close=True)
    writer = make_writer()

    with patch(OPEN_CONNECTION, new=AsyncMock(return_value=(make_reader(b"pong"), writer))):
      result = await make_attempt(target, settings).run()

    assert result.succeeded
    writer.write_eof.assert_called_once()

  @pytest.mark.asyncio
  async def test_connection_refused(self, target, settings):
    error = ConnectionRefusedError(111, "Connection refused")

    with patch(OPEN_CONNECTION, new=AsyncMock(side_effect=error)):
      result = await make_attempt(target, settings).run()

    assert result.error_kind is ErrorKind.CONNECT_FAILED
    assert "Connection refused" in result.error_message

  @pytest.mark.asyncio
  async def test_connect_timeout(self, target):
    settings = DispatchSettings(timeout=0.05)

    async def never_connects(*args, **kwargs):
      await asyncio.sleep(10)

    with patch(OPEN_CONNECTION, new=never_connects):
      result = await make_attempt(target, settings).run()

    assert result.error_kind is ErrorKind.CONNECT_FAILED
    assert "Timed out connecting" in result.error_message

  @pytest.mark.asyncio
  async def test_connect_retry_then_success(self, target, settings):
    open_connection = AsyncMock(side_effect=[
      ConnectionRefusedError(111, "Connection refused"),
      (make_reader(b"pong"), make_writer()),
    ])
    retry_handler = RetryHandler(max_retries=2, base_delay=0, jitter=False)

    with patch(OPEN_CONNECTION, new=open_connection):
      result = await make_attempt(target, settings, retry_handler=retry_handler).run()

    assert result.succeeded
    assert open_connection.call_count == 2

  @pytest.mark.asyncio
  async def test_connect_retries_exhausted(self, target, settings):
    error = ConnectionRefusedError(111, "Connection refused")
    retry_handler = RetryHandler(max_retries=2, base_delay=0, jitter=False)

    with patch(OPEN_CONNECTION, new=AsyncMock(side_effect=error)):
      result = await make_attempt(target, settings, retry_handler=retry_handler).run()

    assert result.error_kind is ErrorKind.CONNECT_FAILED
    assert "after 2 retries" in result.error_message

  @pytest.mark.asyncio
  async def test_write_failure(self, target, settings):
    writer = make_writer()
    writer.drain = AsyncMock(side_effect=ConnectionResetError("Connection reset by peer"))

    with patch(OPEN_CONNECTION, new=AsyncMock(return_value=(make_reader(), writer))):
      result = await make_attempt(target, settings).run()

    assert result.error_kind is ErrorKind.WRITE_FAILED
    assert "reset" in result.error_message
    writer.close.assert_called_once()

  @pytest.mark.asyncio
  async def test_read_timeout(self, target):
    settings = DispatchSettings(timeout=0.05)
    reader = make_reader(eof=False)

    with patch(OPEN_CONNECTION, new=AsyncMock(return_value=(reader, make_writer()))):
      result = await make_attempt(target, settings).run()

    assert result.error_kind is ErrorKind.READ_TIMEOUT
    assert "0.05s" in result.error_message

  @pytest.mark.asyncio
  async def test_read_failure(self, target, settings):
    reader = Mock()
    reader.read = AsyncMock(side_effect=ConnectionResetError("Connection reset by peer"))

    with patch(OPEN_CONNECTION, new=AsyncMock(return_value=(reader, make_writer()))):
      result = await make_attempt(target, settings).run()

    assert result.error_kind is ErrorKind.READ_FAILED

  @pytest.mark.asyncio
  async def test_unexpected_eof(self, target, settings):
    with patch(OPEN_CONNECTION, new=AsyncMock(return_value=(make_reader(), make_writer()))):
      result = await make_attempt(target, settings).run()

    assert result.error_kind is ErrorKind.UNEXPECTED_EOF

  @pytest.mark.asyncio
  async def test_bad_frame_is_read_failure(self, target, settings):
    reader = make_reader(b"\xff\xff\xff\xff")

    with patch(OPEN_CONNECTION, new=AsyncMock(return_value=(reader, make_writer()))):
      result = await make_attempt(
        target, settings, reader_class=LengthPrefixedResponseReader
      ).run()

    assert result.error_kind is ErrorKind.READ_FAILED
    assert "Negative frame size" in result.error_message

  @pytest.mark.asyncio
  async def test_close_error_does_not_change_result(self, target, settings):
    writer = make_writer()
    writer.wait_closed = AsyncMock(side_effect=ConnectionResetError())

    with patch(OPEN_CONNECTION, new=AsyncMock(return_value=(make_reader(b"pong"), writer))):
      result = await make_attempt(target, settings).run()

    assert result.succeeded

  @pytest.mark.asyncio
  async def test_result_kept_when_cancelled_while_closing(self, target, settings):
    writer = make_writer()
    closing = asyncio.Event()

    async def slow_wait_closed():
      closing.set()
      await asyncio.sleep(10)

    writer.wait_closed = slow_wait_closed

    with patch(OPEN_CONNECTION, new=AsyncMock(return_value=(make_reader(b"pong"), writer))):
      attempt = make_attempt(target, settings)
      task = asyncio.create_task(attempt.run())
      await asyncio.wait_for(closing.wait(), timeout=1.0)
      task.cancel()
      await asyncio.gather(task, return_exceptions=True)

    assert task.cancelled()
    assert attempt.phase is AttemptPhase.DONE
    assert attempt.result.succeeded
    assert attempt.result.response == b"pong"

  @pytest.mark.asyncio
  async def test_unclassified_error_escapes_run(self, target, settings):
    response_reader = Mock()
    response_reader.read_response = AsyncMock(side_effect=TypeError("bad size"))
    attempt = ConnectionAttempt(
      index=0,
      target=target,
      request=Request(payload=b"ping"),
      settings=settings,
      response_reader=response_reader,
    )
    writer = make_writer()

    with patch(OPEN_CONNECTION, new=AsyncMock(return_value=(make_reader(), writer))):
      with pytest.raises(TypeError):
        await attempt.run()

    assert attempt.result is None
    writer.close.assert_called_once()
    result = attempt.crashed_result(TypeError("bad size"))
    assert result.error_kind is ErrorKind.READ_FAILED
    assert result.error_message == "Unexpected error during read: bad size"


class TestCancelledResult:
  """Test cases for results of attempts cancelled mid-flight."""

  @pytest.mark.parametrize("phase,kind", [
    (AttemptPhase.PENDING, ErrorKind.CONNECT_FAILED),
    (AttemptPhase.CONNECT, ErrorKind.CONNECT_FAILED),
    (AttemptPhase.WRITE, ErrorKind.WRITE_FAILED),
    (AttemptPhase.READ, ErrorKind.READ_TIMEOUT),
  ])
  def test_kind_follows_phase(self, target, settings, phase, kind):
    attempt = make_attempt(target, settings)
    attempt.phase = phase

    result = attempt.cancelled_result("Batch timeout expired")

    assert result.error_kind is kind
    assert result.error_message == f"Batch timeout expired during {phase.value}"
    assert result.label == "probe"
    assert result.latency_ms == 0
