"""Data models for dispatch settings, requests, attempt results and profiles."""

from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Any, Optional

from .exceptions import ConfigurationError

DEFAULT_TARGET = "localhost:9092"
FRAMING_MODES = ("eof", "length-prefixed")


class ErrorKind(str, Enum):
    """Per-attempt failure kinds recorded in a batch outcome."""

    CONNECT_FAILED = "connect_failed"
    WRITE_FAILED = "write_failed"
    READ_TIMEOUT = "read_timeout"
    READ_FAILED = "read_failed"
    UNEXPECTED_EOF = "unexpected_eof"


@dataclass(frozen=True)
class Target:
    """A TCP endpoint given as ``host:port``."""

    host: str
    port: int

    def __post_init__(self):
        """Validate the endpoint after initialization."""
        if not self.host:
            raise ConfigurationError("Target host cannot be empty", field="target")

        if not isinstance(self.port, int) or not (1 <= self.port <= 65535):
            raise ConfigurationError(
                f"Target port must be between 1 and 65535, got {self.port!r}",
                field="target",
            )

    @classmethod
    def parse(cls, value: str) -> "Target":
        """Parse a ``host:port`` string.

        IPv6 hosts must be bracketed, as in ``[::1]:9092``.

        Raises:
          ConfigurationError: If the value is not a valid address
        """
        text = (value or "").strip()
        if not text:
            raise ConfigurationError("Target address cannot be empty", field="target")

        if text.startswith("["):
            host, closed, rest = text[1:].partition("]")
            if not closed or not rest.startswith(":"):
                raise ConfigurationError(
                    f"Invalid target address '{text}': expected [host]:port",
                    field="target",
                )
            port_text = rest[1:]
        else:
            host, sep, port_text = text.rpartition(":")
            if not sep:
                raise ConfigurationError(
                    f"Invalid target address '{text}': expected host:port",
                    field="target",
                )
            if ":" in host:
                raise ConfigurationError(
                    f"Invalid target address '{text}': bracket IPv6 hosts",
                    field="target",
                )

        try:
            port = int(port_text)
        except ValueError:
            raise ConfigurationError(
                f"Invalid port in target address '{text}'", field="target"
            )

        return cls(host=host, port=port)

    def __str__(self) -> str:
        if ":" in self.host:
            return f"[{self.host}]:{self.port}"
        return f"{self.host}:{self.port}"


@dataclass(frozen=True)
class Request:
    """An opaque framed payload sent on one connection."""

    payload: bytes
    label: Optional[str] = None

    def __post_init__(self):
        """Normalize and validate the payload after initialization."""
        if isinstance(self.payload, (bytearray, memoryview)):
            object.__setattr__(self, "payload", bytes(self.payload))

        if not isinstance(self.payload, bytes):
            raise ValueError("Request payload must be bytes")

        if not self.payload:
            raise ValueError("Request payload cannot be empty")

    def __len__(self) -> int:
        return len(self.payload)


@dataclass(frozen=True)
class AttemptResult:
    """Terminal result of one connection attempt."""

    index: int
    succeeded: bool
    response: bytes = b""
    error_kind: Optional[ErrorKind] = None
    error_message: Optional[str] = None
    latency_ms: int = 0
    label: Optional[str] = None

    def __post_init__(self):
        """Validate result consistency after initialization."""
        if self.succeeded and self.error_kind is not None:
            raise ValueError("Successful result cannot carry an error kind")

        if not self.succeeded and self.error_kind is None:
            raise ValueError("Failed result requires an error kind")

        if self.latency_ms < 0:
            raise ValueError("Latency cannot be negative")

    @classmethod
    def success(
        cls,
        index: int,
        response: bytes,
        latency_ms: int = 0,
        label: Optional[str] = None,
    ) -> "AttemptResult":
        return cls(
            index=index,
            succeeded=True,
            response=response,
            latency_ms=latency_ms,
            label=label,
        )

    @classmethod
    def failure(
        cls,
        index: int,
        error_kind: ErrorKind,
        message: str,
        latency_ms: int = 0,
        label: Optional[str] = None,
    ) -> "AttemptResult":
        return cls(
            index=index,
            succeeded=False,
            error_kind=ErrorKind(error_kind),
            error_message=message,
            latency_ms=latency_ms,
            label=label,
        )

    @property
    def status(self) -> str:
        """``success`` or the error kind value."""
        return "success" if self.succeeded else self.error_kind.value

    def summary_line(self) -> str:
        """One-line human summary: status and byte count or error kind."""
        name = f"#{self.index}" + (f" ({self.label})" if self.label else "")
        if self.succeeded:
            return f"{name} success {len(self.response)} bytes"
        return f"{name} failure {self.error_kind.value}: {self.error_message}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "index": self.index,
            "label": self.label,
            "status": self.status,
            "bytes": len(self.response),
            "response_hex": self.response.hex() if self.succeeded else None,
            "error_kind": self.error_kind.value if self.error_kind else None,
            "error_message": self.error_message,
            "latency_ms": self.latency_ms,
        }


@dataclass
class BatchOutcome:
    """Ordered results of one dispatch invocation."""

    target: Target
    results: list[AttemptResult] = field(default_factory=list)
    elapsed_ms: int = 0

    @property
    def total(self) -> int:
        return len(self.results)

    @property
    def succeeded_count(self) -> int:
        return sum(1 for result in self.results if result.succeeded)

    @property
    def failed_count(self) -> int:
        return self.total - self.succeeded_count

    @property
    def all_succeeded(self) -> bool:
        """True when no attempt failed, including the empty batch."""
        return self.failed_count == 0

    @property
    def exit_code(self) -> int:
        return 0 if self.all_succeeded else 1

    def failures_by_kind(self) -> dict[str, int]:
        counts: dict[str, int] = {}
        for result in self.results:
            if not result.succeeded:
                counts[result.error_kind.value] = counts.get(result.error_kind.value, 0) + 1
        return counts

    def summary_lines(self) -> list[str]:
        """Per-attempt summary lines in input order, then a totals line."""
        lines = [result.summary_line() for result in self.results]
        lines.append(f"{self.succeeded_count}/{self.total} attempts succeeded")
        return lines

    def to_dict(self) -> dict[str, Any]:
        return {
            "target": str(self.target),
            "total": self.total,
            "succeeded": self.succeeded_count,
            "failed": self.failed_count,
            "elapsed_ms": self.elapsed_ms,
            "results": [result.to_dict() for result in self.results],
        }


@dataclass
class DispatchSettings:
    """Per-batch dispatch parameters."""

    timeout: float = 5.0
    batch_timeout: Optional[float] = None
    framing: str = "eof"
    max_response_bytes: int = 1024 * 1024
    half_close: bool = False
    connect_retries: int = 0
    retry_delay: float = 0.1

    def __post_init__(self):
        """Validate dispatch settings after initialization."""
        _require_number(self.timeout, "timeout")
        if self.timeout <= 0:
            raise ConfigurationError("Timeout must be positive", field="timeout")

        if self.batch_timeout is not None:
            _require_number(self.batch_timeout, "batch_timeout")
            if self.batch_timeout <= 0:
                raise ConfigurationError(
                    "Batch timeout must be positive", field="batch_timeout"
                )

        if self.framing not in FRAMING_MODES:
            raise ConfigurationError(
                f"Unknown framing '{self.framing}'. Available: {list(FRAMING_MODES)}",
                field="framing",
            )

        _require_int(self.max_response_bytes, "max_response_bytes")
        if self.max_response_bytes <= 0:
            raise ConfigurationError(
                "Max response bytes must be positive", field="max_response_bytes"
            )

        if not isinstance(self.half_close, bool):
            raise ConfigurationError(
                f"half_close must be true or false, got {self.half_close!r}",
                field="half_close",
            )

        _require_int(self.connect_retries, "connect_retries")
        if self.connect_retries < 0:
            raise ConfigurationError(
                "Connect retries cannot be negative", field="connect_retries"
            )

        _require_number(self.retry_delay, "retry_delay")
        if self.retry_delay < 0:
            raise ConfigurationError(
                "Retry delay cannot be negative", field="retry_delay"
            )

    @classmethod
    def field_names(cls) -> tuple[str, ...]:
        return tuple(f.name for f in fields(cls))


@dataclass(frozen=True)
class PayloadSource:
    """Where a payload comes from: a hex literal or a file path."""

    hex: Optional[str] = None
    file: Optional[str] = None

    def __post_init__(self):
        if (self.hex is None) == (self.file is None):
            raise ConfigurationError(
                "Payload entry must set exactly one of 'hex' or 'file'",
                field="payloads",
            )

    def label(self) -> Optional[str]:
        return f"file:{self.file}" if self.file is not None else None


@dataclass
class HarnessProfile:
    """A named set of harness options loaded from a profile file."""

    name: str
    target: Optional[str] = None
    count: Optional[int] = None
    settings: dict[str, Any] = field(default_factory=dict)
    payloads: list[PayloadSource] = field(default_factory=list)

    PROFILE_KEYS = ("target", "count", "payloads")

    @classmethod
    def from_dict(
        cls, name: str, config_dict: dict[str, Any], config_file: str = ""
    ) -> "HarnessProfile":
        """Create a profile from a parsed dictionary.

        Raises:
          ConfigurationError: If keys are unknown or values have the wrong type
        """
        allowed = set(cls.PROFILE_KEYS) | set(DispatchSettings.field_names())
        unknown = sorted(set(config_dict) - allowed)
        if unknown:
            raise ConfigurationError(
                f"Unknown profile keys: {unknown}",
                config_file=config_file,
                field=unknown[0],
            )

        target = config_dict.get("target")
        if target is not None and not isinstance(target, str):
            raise ConfigurationError(
                "Target must be a 'host:port' string",
                config_file=config_file,
                field="target",
            )

        count = config_dict.get("count")
        if count is not None and (
            not isinstance(count, int) or isinstance(count, bool) or count < 0
        ):
            raise ConfigurationError(
                "Count must be a non-negative integer",
                config_file=config_file,
                field="count",
            )

        payload_entries = config_dict.get("payloads") or []
        if not isinstance(payload_entries, list):
            raise ConfigurationError(
                "Payloads section must be a list",
                config_file=config_file,
                field="payloads",
            )

        payloads = []
        for position, entry in enumerate(payload_entries):
            if not isinstance(entry, dict):
                raise ConfigurationError(
                    f"Payload entry {position} must be a dictionary",
                    config_file=config_file,
                    field=f"payloads.{position}",
                )
            try:
                payloads.append(PayloadSource(**entry))
            except TypeError as e:
                raise ConfigurationError(
                    f"Invalid payload entry {position}: {e}",
                    config_file=config_file,
                    field=f"payloads.{position}",
                )
            except ConfigurationError as e:
                e.config_file = config_file
                e.field = f"payloads.{position}"
                raise

        settings = {
            key: value
            for key, value in config_dict.items()
            if key in DispatchSettings.field_names()
        }

        return cls(
            name=name,
            target=target,
            count=count,
            settings=settings,
            payloads=payloads,
        )


def _require_number(value: Any, field_name: str) -> None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigurationError(
            f"{field_name} must be a number, got {value!r}", field=field_name
        )


def _require_int(value: Any, field_name: str) -> None:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigurationError(
            f"{field_name} must be an integer, got {value!r}", field=field_name
        )
