"""Reassembles frames from an arbitrarily chunked byte stream.

The transport gives no guarantee that a read holds exactly one frame, so bytes are buffered and
scanned for a plausible frame: a 0x7E prefix, the protocol version, a payload length no larger than
896 bytes and a 0x7E suffix where the length says it should be. When a candidate fails, one byte is
dropped and the scan continues, which re-synchronises on the next frame.
"""

import logging
from typing import Iterator, List, Union

from sapodilla.protocol.constants import (
  FLAG_LENGTH_MASK,
  FRAME_DELIMITER,
  MAX_PAYLOAD_LENGTH,
  MIN_FRAME_LENGTH,
  PROTOCOL_VERSION,
)
from sapodilla.protocol.errors import FramingError, LinkError, PayloadTooLarge
from sapodilla.protocol.packets import Packet

logger = logging.getLogger(__name__)

_FLAGS_OFFSET = 18


class StreamDecoder:
  """Turns byte runs into packets. Not thread safe; feed it from one task."""

  def __init__(self, max_buffer: int = 64 * 1024):
    self._buffer = bytearray()
    self._max_buffer = max_buffer

  @property
  def pending_bytes(self) -> int:
    return len(self._buffer)

  def reset(self) -> None:
    self._buffer.clear()

  def feed(self, data: bytes) -> List[Union[Packet, LinkError]]:
    """Buffer `data` and return every packet, or error, that can now be decided.

    Errors are returned in stream order next to the packets instead of being raised, so that one bad
    frame never hides the good ones that follow it.
    """

    self._buffer.extend(data)
    results: List[Union[Packet, LinkError]] = []

    while True:
      start = self._buffer.find(FRAME_DELIMITER)
      if start == -1:
        if len(self._buffer) > 0:
          logger.debug("discarding %d bytes without frame delimiter", len(self._buffer))
        self._buffer.clear()
        break
      if start > 0:
        logger.debug("discarding %d bytes before frame delimiter", start)
        del self._buffer[:start]

      if len(self._buffer) < 2:
        break
      if self._buffer[1] != PROTOCOL_VERSION:
        # most likely the suffix of a frame we lost the start of
        del self._buffer[:1]
        continue

      if len(self._buffer) < _FLAGS_OFFSET + 2:
        break
      length = int.from_bytes(self._buffer[_FLAGS_OFFSET:_FLAGS_OFFSET + 2], "little")
      length &= FLAG_LENGTH_MASK
      if length > MAX_PAYLOAD_LENGTH:
        results.append(PayloadTooLarge(length))
        del self._buffer[:1]
        continue

      frame_length = MIN_FRAME_LENGTH + length
      if len(self._buffer) < frame_length:
        break
      if self._buffer[frame_length - 1] != FRAME_DELIMITER:
        results.append(FramingError(f"missing suffix for frame of {frame_length} bytes"))
        del self._buffer[:1]
        continue

      frame = bytes(self._buffer[:frame_length])
      try:
        packet = Packet.decode(frame)
      except LinkError as e:
        # a frame that lost a byte ends on the next frame's prefix
        results.append(e)
        del self._buffer[:1]
        continue

      del self._buffer[:frame_length]
      results.append(packet)

    if len(self._buffer) > self._max_buffer:
      dropped = len(self._buffer) - self._max_buffer
      logger.warning("receive buffer overflow, dropping %d bytes", dropped)
      del self._buffer[:dropped]

    return results


def iter_packets(data: bytes) -> Iterator[Union[Packet, LinkError]]:
  """Decode a complete capture. Trailing bytes that do not form a frame are reported as an error."""
  decoder = StreamDecoder(max_buffer=len(data) + 1)
  yield from decoder.feed(data)
  if decoder.pending_bytes > 0:
    yield FramingError(f"{decoder.pending_bytes} trailing bytes do not form a complete frame")
