"""Structured logging support for the dispatch module."""

import logging
import os
import sys
from typing import Any, Dict, Optional

import structlog


class PayloadPreviewFilter:
  """Renders raw bytes in log events as short hex previews."""

  MAX_PREVIEW_BYTES = 16

  @classmethod
  def filter_payload_data(cls, data: Any) -> Any:
    """Recursively replace bytes values with hex previews.

    Args:
      data: Data structure to filter

    Returns:
      Filtered data structure with bytes rendered as strings
    """
    if isinstance(data, (bytes, bytearray, memoryview)):
      return cls.preview(bytes(data))
    elif isinstance(data, dict):
      return {key: cls.filter_payload_data(value) for key, value in data.items()}
    elif isinstance(data, list):
      return [cls.filter_payload_data(item) for item in data]
    elif isinstance(data, tuple):
      return tuple(cls.filter_payload_data(item) for item in data)
    else:
      return data

  @classmethod
  def preview(cls, payload: bytes) -> str:
    """Hex preview of a payload, truncated past ``MAX_PREVIEW_BYTES``.

    Args:
      payload: Raw bytes

    Returns:
      Hex string, with the total length appended when truncated
    """
    if len(payload) <= cls.MAX_PREVIEW_BYTES:
      return payload.hex()
    return f"{payload[:cls.MAX_PREVIEW_BYTES].hex()}...({len(payload)} bytes)"


def configure_logging(
  debug_mode: bool = False,
  log_level: Optional[str] = None,
  log_file: Optional[str] = None,
  structured: bool = True,
) -> None:
  """Configure structured logging for the harness.

  Log records go to stderr so stdout stays reserved for attempt summaries.

  Args:
    debug_mode: Enable debug mode with detailed logging
    log_level: Override log level (DEBUG, INFO, WARNING, ERROR)
    log_file: Optional file path for log output
    structured: Use structured JSON logging format
  """
  if log_level:
    level = getattr(logging, log_level.upper(), logging.INFO)
  elif debug_mode:
    level = logging.DEBUG
  else:
    level = logging.INFO

  processors = [
    structlog.stdlib.filter_by_level,
    structlog.stdlib.add_logger_name,
    structlog.stdlib.add_log_level,
    structlog.stdlib.PositionalArgumentsFormatter(),
    structlog.processors.TimeStamper(fmt="iso"),
    structlog.processors.StackInfoRenderer(),
    structlog.processors.format_exc_info,
    _add_process_context,
    _payload_preview_processor,
  ]

  if structured:
    processors.append(structlog.processors.JSONRenderer())
  else:
    processors.append(structlog.dev.ConsoleRenderer())

  structlog.configure(
    processors=processors,
    wrapper_class=structlog.stdlib.BoundLogger,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
  )

  handlers = []

  console_handler = logging.StreamHandler(sys.stderr)
  console_handler.setLevel(level)
  handlers.append(console_handler)

  if log_file:
    file_handler = logging.FileHandler(log_file)
    file_handler.setLevel(level)
    handlers.append(file_handler)

  # force: the CLI may be invoked repeatedly in one process
  logging.basicConfig(
    level=level,
    handlers=handlers,
    format="%(message)s" if structured else "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    force=True,
  )

  logging.getLogger("asyncio").setLevel(logging.WARNING)


def _add_process_context(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
  """Add process information to log events."""
  event_dict["process_id"] = os.getpid()
  return event_dict


def _payload_preview_processor(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
  """Processor rendering bytes values in log events as hex previews."""
  return PayloadPreviewFilter.filter_payload_data(event_dict)


class HarnessLogger:
  """Logger for dispatch operations with context management."""

  def __init__(self, name: str, target: Optional[str] = None):
    """Initialize harness logger with context.

    Args:
      name: Logger name
      target: Optional target address for context
    """
    self.name = name
    self.logger = structlog.get_logger(name)
    self.context: Dict[str, Any] = {}

    if target:
      self.context["target"] = target
      self.logger = self.logger.bind(target=target)

  def bind(self, **kwargs: Any) -> "HarnessLogger":
    """Return a new logger with additional bound context."""
    new_logger = HarnessLogger(self.name)
    new_logger.context = {**self.context, **kwargs}
    new_logger.logger = structlog.get_logger(self.name).bind(**new_logger.context)
    return new_logger

  def debug(self, message: str, **kwargs: Any) -> None:
    self.logger.debug(message, **PayloadPreviewFilter.filter_payload_data(kwargs))

  def info(self, message: str, **kwargs: Any) -> None:
    self.logger.info(message, **PayloadPreviewFilter.filter_payload_data(kwargs))

  def warning(self, message: str, **kwargs: Any) -> None:
    self.logger.warning(message, **PayloadPreviewFilter.filter_payload_data(kwargs))

  def error(self, message: str, **kwargs: Any) -> None:
    self.logger.error(message, **PayloadPreviewFilter.filter_payload_data(kwargs))

  def log_attempt_started(
    self,
    index: int,
    target: str,
    payload: bytes,
    **kwargs: Any
  ) -> None:
    """Log the start of a connection attempt.

    Args:
      index: Attempt index within the batch
      target: Target address
      payload: Request payload (rendered as a hex preview)
      **kwargs: Additional context
    """
    self.debug(
      "Connection attempt started",
      event_type="attempt_started",
      index=index,
      target=target,
      payload=payload,
      payload_size=len(payload),
      **kwargs
    )

  def log_attempt_finished(
    self,
    index: int,
    status: str,
    latency_ms: int,
    response_size: int = 0,
    error_message: Optional[str] = None,
    **kwargs: Any
  ) -> None:
    """Log the terminal state of a connection attempt.

    Failures are logged at warning level, successes at debug level.
    """
    context = {
      "event_type": "attempt_finished",
      "index": index,
      "status": status,
      "latency_ms": latency_ms,
      "response_size": response_size,
      **kwargs
    }

    if error_message:
      context["error_message"] = error_message
      self.warning("Connection attempt failed", **context)
    else:
      self.debug("Connection attempt succeeded", **context)

  def log_batch_summary(
    self,
    target: str,
    total: int,
    succeeded: int,
    elapsed_ms: int,
    failures_by_kind: Optional[Dict[str, int]] = None,
    **kwargs: Any
  ) -> None:
    """Log aggregate results for a finished batch."""
    context = {
      "event_type": "batch_summary",
      "target": target,
      "total": total,
      "succeeded": succeeded,
      "failed": total - succeeded,
      "elapsed_ms": elapsed_ms,
      **kwargs
    }

    if failures_by_kind:
      context["failures_by_kind"] = failures_by_kind

    self.info("Batch dispatch completed", **context)


def get_harness_logger(name: str, target: Optional[str] = None) -> HarnessLogger:
  """Get a harness logger instance with optional target context."""
  return HarnessLogger(name, target)
