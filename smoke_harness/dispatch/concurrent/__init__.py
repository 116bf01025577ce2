"""Concurrent connection attempt components."""

from .attempt import AttemptPhase, ConnectionAttempt
from .dispatcher import ConcurrentDispatcher, run_batch

__all__ = ["AttemptPhase", "ConnectionAttempt", "ConcurrentDispatcher", "run_batch"]
