"""Network helpers for connection attempts."""

from smoke_harness.dispatch.net.retry import RetryHandler

__all__ = [
    "RetryHandler",
]
