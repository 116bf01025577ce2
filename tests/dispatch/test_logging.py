"""Unit tests for structured logging support."""

import logging
from unittest.mock import patch

import pytest
import structlog

from smoke_harness.dispatch.logging import (
  HarnessLogger,
  PayloadPreviewFilter,
  _payload_preview_processor,
  configure_logging,
  get_harness_logger,
)


@pytest.fixture(autouse=True)
def reset_logging():
  """Restore logging and structlog defaults around each test."""
  yield
  structlog.reset_defaults()
  root = logging.getLogger()
  for handler in list(root.handlers):
    root.removeHandler(handler)
  root.setLevel(logging.WARNING)


class TestPayloadPreviewFilter:
  """Test bytes rendering in log events."""

  def test_short_payload_rendered_as_hex(self):
    assert PayloadPreviewFilter.preview(b"\x00\x12\xff") == "0012ff"

  def test_long_payload_truncated(self):
    preview = PayloadPreviewFilter.preview(bytes(range(40)))

    assert preview == "000102030405060708090a0b0c0d0e0f...(40 bytes)"

  def test_nested_structures(self):
    data = {
      "payload": b"\x01\x02",
      "nested": {"response": bytearray(b"\xff")},
      "items": [b"\x00", "text"],
      "pair": (b"\x0a", 1),
      "count": 3,
    }

    filtered = PayloadPreviewFilter.filter_payload_data(data)

    assert filtered == {
      "payload": "0102",
      "nested": {"response": "ff"},
      "items": ["00", "text"],
      "pair": ("0a", 1),
      "count": 3,
    }

  def test_primitives_unchanged(self):
    assert PayloadPreviewFilter.filter_payload_data("string") == "string"
    assert PayloadPreviewFilter.filter_payload_data(42) == 42
    assert PayloadPreviewFilter.filter_payload_data(None) is None

  def test_processor_filters_event_dict(self):
    event = _payload_preview_processor(None, "info", {"event": "x", "payload": b"\x07"})

    assert event == {"event": "x", "payload": "07"}


class TestLoggingConfiguration:
  """Test logging configuration."""

  def test_default_level_is_info(self):
    configure_logging()

    assert logging.getLogger().level == logging.INFO

  def test_debug_mode(self):
    configure_logging(debug_mode=True)

    assert logging.getLogger().level == logging.DEBUG

  def test_explicit_level_overrides_debug_mode(self):
    configure_logging(debug_mode=True, log_level="warning")

    assert logging.getLogger().level == logging.WARNING

  def test_log_file_handler(self, tmp_path):
    log_file = tmp_path / "harness.log"

    configure_logging(log_file=str(log_file))

    handlers = logging.getLogger().handlers
    assert any(isinstance(h, logging.FileHandler) for h in handlers)

  def test_reconfiguring_replaces_handlers(self):
    configure_logging()
    configure_logging()

    stream_handlers = [
      h for h in logging.getLogger().handlers
      if type(h) is logging.StreamHandler
    ]
    assert len(stream_handlers) == 1


class TestHarnessLogger:
  """Test the harness logger wrapper."""

  def test_target_context(self):
    logger = HarnessLogger("test", target="localhost:9092")

    assert logger.context == {"target": "localhost:9092"}

  def test_bind_merges_context(self):
    logger = get_harness_logger("test", target="localhost:9092")

    bound = logger.bind(index=3)

    assert bound.context == {"target": "localhost:9092", "index": 3}
    assert logger.context == {"target": "localhost:9092"}

  def test_kwargs_bytes_are_previewed(self):
    logger = HarnessLogger("test")

    with patch.object(logger, "logger") as mock_logger:
      logger.info("sent", payload=b"\xab\xcd")

    mock_logger.info.assert_called_once_with("sent", payload="abcd")

  def test_attempt_started_logged_at_debug(self):
    logger = HarnessLogger("test")

    with patch.object(logger, "logger") as mock_logger:
      logger.log_attempt_started(1, "localhost:9092", b"\x00\x01")

    args, kwargs = mock_logger.debug.call_args
    assert args == ("Connection attempt started",)
    assert kwargs["index"] == 1
    assert kwargs["payload"] == "0001"
    assert kwargs["payload_size"] == 2

  def test_attempt_failure_logged_at_warning(self):
    logger = HarnessLogger("test")

    with patch.object(logger, "logger") as mock_logger:
      logger.log_attempt_finished(0, "connect_failed", 3, error_message="refused")

    mock_logger.warning.assert_called_once()
    mock_logger.debug.assert_not_called()
    assert mock_logger.warning.call_args[1]["status"] == "connect_failed"

  def test_attempt_success_logged_at_debug(self):
    logger = HarnessLogger("test")

    with patch.object(logger, "logger") as mock_logger:
      logger.log_attempt_finished(0, "success", 3, response_size=10)

    mock_logger.debug.assert_called_once()
    mock_logger.warning.assert_not_called()

  def test_batch_summary(self):
    logger = HarnessLogger("test")

    with patch.object(logger, "logger") as mock_logger:
      logger.log_batch_summary(
        "localhost:9092", 3, 2, 15, failures_by_kind={"read_timeout": 1}
      )

    kwargs = mock_logger.info.call_args[1]
    assert kwargs["failed"] == 1
    assert kwargs["failures_by_kind"] == {"read_timeout": 1}
    assert kwargs["event_type"] == "batch_summary"
