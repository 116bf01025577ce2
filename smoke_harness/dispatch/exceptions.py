"""Custom exception classes for the dispatch module."""

from typing import Optional


class HarnessError(Exception):
    """Base exception class for all harness errors."""

    def __init__(self, message: str, cause: Optional[Exception] = None):
        super().__init__(message)
        self.cause = cause


class ConfigurationError(HarnessError):
    """Raised when the target, payloads, settings or a profile are invalid.

    Configuration errors are the only errors that stop a run before any
    connection is opened.
    """

    def __init__(
        self,
        message: str,
        config_file: Optional[str] = None,
        field: Optional[str] = None,
    ):
        super().__init__(message)
        self.config_file = config_file
        self.field = field


class AttemptError(HarnessError):
    """Base class for failures local to a single connection attempt.

    Subclasses set ``kind`` to the error kind reported in the batch outcome.
    """

    kind: str = "read_failed"

    def __init__(self, message: str, cause: Optional[Exception] = None):
        super().__init__(message, cause)


class ConnectFailedError(AttemptError):
    """Raised when a connection could not be established."""

    kind = "connect_failed"


class WriteFailedError(AttemptError):
    """Raised when the request payload could not be written."""

    kind = "write_failed"


class ReadTimeoutError(AttemptError):
    """Raised when no complete response arrived within the timeout."""

    kind = "read_timeout"

    def __init__(
        self,
        message: str = "Timed out waiting for response",
        timeout_seconds: Optional[float] = None,
    ):
        super().__init__(message)
        self.timeout_seconds = timeout_seconds


class ReadFailedError(AttemptError):
    """Raised when reading the response failed."""

    kind = "read_failed"


class UnexpectedEOFError(AttemptError):
    """Raised when the peer closed before a complete response was read."""

    kind = "unexpected_eof"

    def __init__(self, message: str, partial: bytes = b""):
        super().__init__(message)
        self.partial = partial


class FrameError(ReadFailedError):
    """Raised when a response frame header is malformed or too large."""

    def __init__(self, message: str, frame_size: Optional[int] = None):
        super().__init__(message)
        self.frame_size = frame_size


class RetryExhaustedError(HarnessError):
    """Raised when maximum retry attempts are exceeded."""

    def __init__(
        self,
        message: str,
        max_retries: int,
        last_exception: Optional[Exception] = None
    ):
        super().__init__(message, last_exception)
        self.max_retries = max_retries
        self.last_exception = last_exception
