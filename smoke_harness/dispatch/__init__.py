"""Concurrent framed-request dispatch against a single TCP endpoint."""

from .concurrent import ConcurrentDispatcher, ConnectionAttempt, run_batch
from .exceptions import (
    AttemptError,
    ConfigurationError,
    ConnectFailedError,
    FrameError,
    HarnessError,
    ReadFailedError,
    ReadTimeoutError,
    RetryExhaustedError,
    UnexpectedEOFError,
    WriteFailedError,
)
from .models import (
    AttemptResult,
    BatchOutcome,
    DispatchSettings,
    ErrorKind,
    HarnessProfile,
    PayloadSource,
    Request,
    Target,
)
from .payloads import build_requests, collect_payloads

__all__ = [
    "ConcurrentDispatcher",
    "ConnectionAttempt",
    "run_batch",
    "HarnessError",
    "ConfigurationError",
    "AttemptError",
    "ConnectFailedError",
    "WriteFailedError",
    "ReadTimeoutError",
    "ReadFailedError",
    "UnexpectedEOFError",
    "FrameError",
    "RetryExhaustedError",
    "AttemptResult",
    "BatchOutcome",
    "DispatchSettings",
    "ErrorKind",
    "HarnessProfile",
    "PayloadSource",
    "Request",
    "Target",
    "build_requests",
    "collect_payloads",
]
