"""Message number bookkeeping.

The host and the accessory number their packages independently. Host-originated packages take
numbers from a local counter. Responses echo the number of the request they answer, so they are
checked against the host counter. Requests the accessory originates itself (events) are checked
for monotonicity per content type.
"""

from typing import Dict, Optional, Set

from sapodilla.protocol.constants import MAX_MESSAGE_NUMBER, ContentType, InteractionType
from sapodilla.protocol.errors import SequenceAnomaly
from sapodilla.protocol.packets import Packet


class SequenceTracker:
  def __init__(self, origin: int = 1):
    if not 0 <= origin <= MAX_MESSAGE_NUMBER:
      raise ValueError(f"origin {origin} does not fit in 32 bits")
    self._next_host = origin
    self._last_host: Optional[int] = None
    self._last_accessory: Dict[ContentType, int] = {}
    self._seen_indices: Dict[ContentType, Set[int]] = {}

  @property
  def last_host_number(self) -> Optional[int]:
    """The most recently issued host message number."""
    return self._last_host

  def last_accessory_number(self, content_type: ContentType) -> Optional[int]:
    return self._last_accessory.get(content_type)

  def next_host_number(self) -> int:
    """Issue the next host message number.

    Raises:
      SequenceAnomaly: the 32-bit number space is exhausted. Numbers are never wrapped.
    """

    if self._next_host > MAX_MESSAGE_NUMBER:
      raise SequenceAnomaly(
        "host message numbers exhausted", message_number=self._next_host,
        kind=SequenceAnomaly.EXHAUSTED,
      )
    number = self._next_host
    self._next_host += 1
    self._last_host = number
    return number

  def observe(self, packet: Packet) -> Optional[SequenceAnomaly]:
    """Record an inbound packet. Returns the anomaly it represents, if any; never raises."""

    n = packet.message_number

    if packet.interaction == InteractionType.RESPONSE:
      if self._last_host is None or n > self._last_host:
        return SequenceAnomaly(
          f"response to message #{n}, which was never sent", message_number=n,
          kind=SequenceAnomaly.UNKNOWN,
        )
      return None

    ct = packet.content_type
    last = self._last_accessory.get(ct)
    if last is None or n > last:
      self._last_accessory[ct] = n
      self._seen_indices[ct] = {packet.package_index}
      return None
    if n < last:
      return SequenceAnomaly(
        f"{ct.name.lower()} message #{n} arrived after #{last}", message_number=n,
        kind=SequenceAnomaly.OUT_OF_ORDER,
      )
    if packet.package_index in self._seen_indices[ct]:
      return SequenceAnomaly(
        f"duplicate {ct.name.lower()} message #{n} part {packet.package_index}", message_number=n,
        kind=SequenceAnomaly.DUPLICATE,
      )
    self._seen_indices[ct].add(packet.package_index)
    return None
