"""Splitting payloads into packets and putting inbound packages back together."""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

from sapodilla.protocol.constants import (
  JOB_ID_LENGTH,
  MAX_PACKAGE_TOTAL,
  MAX_PAYLOAD_LENGTH,
  ContentType,
  EncodingType,
  InteractionType,
)
from sapodilla.protocol.errors import SequenceAnomaly, UnexpectedContent
from sapodilla.protocol.packets import Packet

logger = logging.getLogger(__name__)

PackageKey = Tuple[int, ContentType]


@dataclass(frozen=True)
class Chunk:
  """One packet's worth of an outbound payload, prefix included."""

  package_total: int
  package_index: int
  data: bytes

  @property
  def is_multi_package(self) -> bool:
    return self.package_total > 1


def split(payload: bytes, content_type: ContentType, prefix: bytes = b"") -> List[Chunk]:
  """Partition `payload` into chunks that fit in one packet each.

  `prefix` is repeated in front of every chunk and counts against the 896 byte packet limit. Data
  packages carry the 4-byte job id this way. An empty payload still yields one (empty) chunk.
  """

  if content_type == ContentType.DATA and len(prefix) != JOB_ID_LENGTH:
    raise ValueError(f"data packages need a {JOB_ID_LENGTH} byte job id prefix")
  chunk_size = MAX_PAYLOAD_LENGTH - len(prefix)
  if chunk_size <= 0:
    raise ValueError(f"prefix of {len(prefix)} bytes leaves no room for data")

  pieces = [payload[i:i + chunk_size] for i in range(0, len(payload), chunk_size)] or [b""]
  if len(pieces) > MAX_PACKAGE_TOTAL:
    raise ValueError(f"payload of {len(payload)} bytes needs more than {MAX_PACKAGE_TOTAL} packets")

  return [
    Chunk(package_total=len(pieces), package_index=index, data=prefix + piece)
    for index, piece in enumerate(pieces, start=1)
  ]


@dataclass(frozen=True)
class Package:
  """A complete logical message. For data packages, `payload` has the job id prefix removed."""

  message_number: int
  content_type: ContentType
  interaction: InteractionType
  encoding: EncodingType
  payload: bytes = field(repr=False)
  job_id: Optional[int] = None

  def json(self) -> Any:
    """Parse the payload as JSON.

    Raises:
      UnexpectedContent: the package is not a JSON message or does not parse.
    """

    if self.encoding != EncodingType.JSON:
      raise UnexpectedContent(f"package #{self.message_number} is not JSON encoded")
    try:
      return json.loads(self.payload.decode("utf-8"))
    except (UnicodeDecodeError, ValueError) as e:
      raise UnexpectedContent(f"package #{self.message_number} holds invalid JSON: {e}") from e


@dataclass
class _PendingPackage:
  total: int
  interaction: InteractionType
  encoding: EncodingType
  first_seen: float
  last_seen: float
  parts: Dict[int, bytes] = field(default_factory=dict)


class FragmentAssembler:
  """Collects packets until every part of a package has arrived.

  Incomplete packages are kept until they complete or the caller evicts them with `evict_stale`.
  """

  def __init__(self, clock: Callable[[], float] = time.monotonic):
    self._pending: Dict[PackageKey, _PendingPackage] = {}
    self._clock = clock

  @property
  def pending_keys(self) -> List[PackageKey]:
    return list(self._pending.keys())

  def pending_age(self, key: PackageKey) -> float:
    """Seconds since the last packet of the pending package `key` arrived."""
    return self._clock() - self._pending[key].last_seen

  def ingest(self, packet: Packet) -> Optional[Package]:
    """Add a (decrypted) packet. Returns the completed package, or None while parts are missing.

    Raises:
      SequenceAnomaly: the part was already received, or its package total disagrees with earlier
        parts. The packet is not applied.
      UnexpectedContent: a data packet too short to carry a job id.
    """

    if packet.content_type == ContentType.DATA and len(packet.payload) < JOB_ID_LENGTH:
      raise UnexpectedContent(
        f"data packet #{packet.message_number} has no room for a job id ({len(packet.payload)} bytes)"
      )

    if packet.package_total == 1:
      return self._complete(packet, [packet.payload])

    key = (packet.message_number, packet.content_type)
    now = self._clock()
    pending = self._pending.get(key)
    if pending is None:
      pending = _PendingPackage(
        total=packet.package_total,
        interaction=packet.interaction,
        encoding=packet.encoding,
        first_seen=now,
        last_seen=now,
      )
      self._pending[key] = pending
    elif pending.total != packet.package_total:
      raise SequenceAnomaly(
        f"message #{packet.message_number} claims {packet.package_total} parts, "
        f"earlier parts claimed {pending.total}",
        message_number=packet.message_number,
      )
    elif packet.package_index in pending.parts:
      raise SequenceAnomaly(
        f"duplicate part {packet.package_index} of message #{packet.message_number}",
        message_number=packet.message_number,
        kind=SequenceAnomaly.DUPLICATE,
      )

    pending.parts[packet.package_index] = packet.payload
    pending.last_seen = now
    logger.debug(
      "message #%d: %d of %d parts", packet.message_number, len(pending.parts), pending.total
    )
    if len(pending.parts) < pending.total:
      return None

    del self._pending[key]
    return self._complete(packet, [pending.parts[i] for i in range(1, pending.total + 1)])

  def _complete(self, packet: Packet, parts: List[bytes]) -> Package:
    job_id = None
    if packet.content_type == ContentType.DATA:
      job_id = int.from_bytes(parts[0][:JOB_ID_LENGTH], "little")
      for part in parts:
        if int.from_bytes(part[:JOB_ID_LENGTH], "little") != job_id:
          raise UnexpectedContent(f"data message #{packet.message_number} mixes job ids")
      parts = [part[JOB_ID_LENGTH:] for part in parts]
    return Package(
      message_number=packet.message_number,
      content_type=packet.content_type,
      interaction=packet.interaction,
      encoding=packet.encoding,
      payload=b"".join(parts),
      job_id=job_id,
    )

  def evict(self, key: PackageKey) -> bool:
    """Abandon a pending package. Returns whether it existed."""
    return self._pending.pop(key, None) is not None

  def evict_stale(self, max_age: float) -> List[PackageKey]:
    """Abandon every pending package that has not grown for `max_age` seconds."""
    now = self._clock()
    stale = [key for key, p in self._pending.items() if now - p.last_seen >= max_age]
    for key in stale:
      logger.warning(
        "abandoning message #%d after %.1fs with %d of %d parts",
        key[0], now - self._pending[key].last_seen,
        len(self._pending[key].parts), self._pending[key].total,
      )
      del self._pending[key]
    return stale

  def clear(self) -> None:
    self._pending.clear()
