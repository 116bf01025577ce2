"""Loading request payloads from hex literals and files."""

import binascii
import itertools
import logging
import re
from pathlib import Path
from typing import Iterable, Optional, Sequence, Union

from .exceptions import ConfigurationError
from .models import PayloadSource, Request

logger = logging.getLogger(__name__)

_WHITESPACE = re.compile(r"\s+")


def parse_hex(text: str, field: str = "payload") -> bytes:
  """Decode a hex literal, ignoring whitespace and an optional ``0x`` prefix.

  Raises:
    ConfigurationError: If the text is empty, of odd length or not hex
  """
  if not isinstance(text, str):
    raise ConfigurationError(
      f"Hex payload must be a string, got {type(text).__name__}", field=field
    )

  cleaned = _WHITESPACE.sub("", text)
  if cleaned[:2].lower() == "0x":
    cleaned = cleaned[2:]

  if not cleaned:
    raise ConfigurationError("Hex payload cannot be empty", field=field)

  if len(cleaned) % 2:
    raise ConfigurationError(
      f"Hex payload has odd length ({len(cleaned)} digits)", field=field
    )

  try:
    return binascii.unhexlify(cleaned)
  except (binascii.Error, ValueError) as e:
    raise ConfigurationError(f"Invalid hex payload: {e}", field=field)


def load_payload_file(path: Union[str, Path]) -> bytes:
  """Read a payload file.

  Files ending in ``.hex`` hold hex text; anything else is sent as raw bytes.

  Raises:
    ConfigurationError: If the file is missing, unreadable or empty
  """
  file_path = Path(path)

  if not file_path.is_file():
    raise ConfigurationError(
      f"Payload file not found: {file_path}", config_file=str(file_path)
    )

  try:
    if file_path.suffix.lower() == ".hex":
      payload = parse_hex(file_path.read_text(encoding="utf-8"), field=str(file_path))
    else:
      payload = file_path.read_bytes()
  except OSError as e:
    raise ConfigurationError(
      f"Error reading payload file: {e}", config_file=str(file_path)
    )
  except UnicodeDecodeError as e:
    raise ConfigurationError(
      f"Hex payload file is not valid text: {e}", config_file=str(file_path)
    )

  if not payload:
    raise ConfigurationError(
      f"Payload file is empty: {file_path}", config_file=str(file_path)
    )

  logger.debug(f"Loaded {len(payload)} byte payload from {file_path}")
  return payload


def load_payload_source(source: PayloadSource) -> bytes:
  """Resolve a profile payload entry to bytes."""
  if source.file is not None:
    return load_payload_file(source.file)
  return parse_hex(source.hex)


def collect_payloads(
  hex_literals: Iterable[str] = (),
  files: Iterable[Union[str, Path]] = (),
  sources: Iterable[PayloadSource] = (),
) -> list[tuple[bytes, Optional[str]]]:
  """Load payloads from all inputs, paired with a label.

  Only file payloads are labelled. Order: profile sources, then hex
  literals, then files.
  """
  payloads = []
  for source in sources:
    payloads.append((load_payload_source(source), source.label()))
  for position, literal in enumerate(hex_literals):
    payloads.append((parse_hex(literal, field=f"payload_hex.{position}"), None))
  for path in files:
    payloads.append((load_payload_file(path), f"file:{path}"))
  return payloads


def build_requests(
  payloads: Sequence[Union[bytes, tuple[bytes, str]]],
  count: Optional[int] = None,
) -> list[Request]:
  """Turn payloads into one request per logical connection.

  Without a count, one request is built per payload. With a count, payloads
  are cycled until exactly ``count`` requests exist.

  Raises:
    ConfigurationError: If the count is negative, or positive with no payloads
  """
  entries = [
    entry if isinstance(entry, tuple) else (entry, None)
    for entry in payloads
  ]

  if count is None:
    count = len(entries)

  if count < 0:
    raise ConfigurationError("Request count cannot be negative", field="count")

  if count and not entries:
    raise ConfigurationError(
      f"Cannot build {count} requests without a payload", field="payloads"
    )

  requests = []
  for payload, label in itertools.islice(itertools.cycle(entries), count):
    try:
      requests.append(Request(payload=payload, label=label))
    except ValueError as e:
      raise ConfigurationError(str(e), field="payloads")

  return requests
