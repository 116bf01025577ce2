"""Profile management for the harness."""

from .loader import ConfigLoader
from ..models import HarnessProfile, PayloadSource

__all__ = [
    "ConfigLoader",
    "HarnessProfile",
    "PayloadSource",
]
