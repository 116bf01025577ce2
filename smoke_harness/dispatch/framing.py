"""Response framing strategies deciding where a response ends."""

import asyncio
import logging
import struct
from abc import ABC, abstractmethod
from typing import Dict, Type

from .exceptions import ConfigurationError, FrameError, UnexpectedEOFError
from .models import FRAMING_MODES

logger = logging.getLogger(__name__)

SIZE_PREFIX = struct.Struct(">i")


class ResponseReader(ABC):
  """Abstract base class for response framing strategies.

  A reader consumes one response from a stream. Timeouts are applied by the
  caller; readers only decide where the response ends.
  """

  def __init__(self, max_response_bytes: int, chunk_size: int = 65536):
    """Initialize the reader.

    Args:
      max_response_bytes: Upper bound on bytes read for one response
      chunk_size: Maximum bytes requested from the stream per read
    """
    self.max_response_bytes = max_response_bytes
    self.chunk_size = chunk_size

  @abstractmethod
  async def read_response(self, reader: asyncio.StreamReader) -> bytes:
    """Read one complete response.

    Raises:
      UnexpectedEOFError: If the peer closed before the response was complete
      FrameError: If the response framing is invalid
      OSError: If the underlying socket read fails
    """
    pass


class EOFResponseReader(ResponseReader):
  """Reads until the peer closes the connection.

  Reaching ``max_response_bytes`` also ends the response. A peer that closes
  without sending anything produces ``UnexpectedEOFError``.
  """

  async def read_response(self, reader: asyncio.StreamReader) -> bytes:
    chunks = []
    received = 0

    while received < self.max_response_bytes:
      chunk = await reader.read(min(self.chunk_size, self.max_response_bytes - received))
      if not chunk:
        break
      chunks.append(chunk)
      received += len(chunk)

    if not received:
      raise UnexpectedEOFError("Peer closed the connection without responding")

    if received >= self.max_response_bytes:
      logger.debug(f"Response reached the {self.max_response_bytes} byte cap")

    return b"".join(chunks)


class LengthPrefixedResponseReader(ResponseReader):
  """Reads one frame prefixed by a 4-byte big-endian signed size.

  The returned bytes include the size prefix, exactly as received.
  """

  async def read_response(self, reader: asyncio.StreamReader) -> bytes:
    try:
      header = await reader.readexactly(SIZE_PREFIX.size)
    except asyncio.IncompleteReadError as e:
      if not e.partial:
        raise UnexpectedEOFError("Peer closed the connection without responding")
      raise UnexpectedEOFError(
        f"Peer closed after {len(e.partial)} of {SIZE_PREFIX.size} size prefix bytes",
        partial=e.partial,
      )

    (frame_size,) = SIZE_PREFIX.unpack(header)

    if frame_size < 0:
      raise FrameError(f"Negative frame size {frame_size}", frame_size=frame_size)

    if frame_size > self.max_response_bytes:
      raise FrameError(
        f"Frame size {frame_size} exceeds limit of {self.max_response_bytes} bytes",
        frame_size=frame_size,
      )

    try:
      body = await reader.readexactly(frame_size)
    except asyncio.IncompleteReadError as e:
      raise UnexpectedEOFError(
        f"Peer closed after {len(e.partial)} of {frame_size} frame bytes",
        partial=header + e.partial,
      )

    return header + body


_READERS: Dict[str, Type[ResponseReader]] = {
  "eof": EOFResponseReader,
  "length-prefixed": LengthPrefixedResponseReader,
}


def create_response_reader(framing: str, max_response_bytes: int) -> ResponseReader:
  """Create the reader for a framing mode.

  Raises:
    ConfigurationError: If the framing mode is unknown
  """
  reader_class = _READERS.get(framing)
  if reader_class is None:
    raise ConfigurationError(
      f"Unknown framing '{framing}'. Available: {list(FRAMING_MODES)}",
      field="framing",
    )
  return reader_class(max_response_bytes)
