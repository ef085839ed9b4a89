"""The link engine: everything between the transport's bytes and JSON calls.

Inbound: bytes -> stream decoder -> cipher -> sequence tracker -> fragment assembler -> router ->
session or data consumer. Outbound: session or uploader -> fragment split -> cipher -> codec ->
transport.
"""

import asyncio
import dataclasses
import logging
import time
from typing import Awaitable, Callable, List, Optional, Union

from sapodilla.protocol.cipher import transform
from sapodilla.protocol.constants import (
  ContentType,
  EncodingType,
  EncryptionMode,
  InteractionType,
)
from sapodilla.protocol.errors import (
  ChecksumError,
  FramingError,
  LinkError,
  SequenceAnomaly,
  UnsolicitedResponse,
)
from sapodilla.protocol.fragments import FragmentAssembler, PackageKey, split
from sapodilla.protocol.packets import Packet
from sapodilla.protocol.router import MessageRouter, PackageHandler
from sapodilla.protocol.sequence import SequenceTracker
from sapodilla.protocol.session import JsonRpcSession
from sapodilla.protocol.stream import StreamDecoder
from sapodilla.protocol.uploader import JobDataUploader, ProgressCallback

logger = logging.getLogger(__name__)

Send = Callable[[bytes], Awaitable[None]]
ErrorListener = Callable[[LinkError], None]


class DeviceLink:
  """Protocol state of one device connection.

  The link does not own the transport. The owner hands every received byte run to `on_receive` and
  provides `send`, which writes one frame.

  Attributes:
    session: JSON calls and event subscriptions.
    uploader: bulk data for accepted jobs.
  """

  def __init__(
    self,
    send: Send,
    terminal_id: Optional[int] = None,
    key: Optional[bytes] = None,
    encryption_mode: EncryptionMode = EncryptionMode.NONE,
    origin: int = 1,
    clock: Callable[[], float] = time.monotonic,
  ):
    """
    Args:
      send: writes bytes to the transport.
      terminal_id: fixed terminal id for outgoing frames. If None, every frame carries its own
        message number as terminal id.
      key: link key, needed to send or receive RC4 payloads.
      encryption_mode: encryption applied to outgoing payloads.
      origin: first host message number.
      clock: monotonic clock, for ageing incomplete packages.
    """

    if encryption_mode == EncryptionMode.RC4 and key is None:
      raise ValueError("RC4 encryption needs a key")

    self._send = send
    self._terminal_id = terminal_id
    self._key = key
    self._encryption_mode = encryption_mode
    self._write_lock = asyncio.Lock()
    self._error_listeners: List[ErrorListener] = []
    self._closed = False

    self.decoder = StreamDecoder()
    self.tracker = SequenceTracker(origin=origin)
    self.assembler = FragmentAssembler(clock=clock)
    self.session = JsonRpcSession(self._send_message)
    self.router = MessageRouter(
      on_response=self.session.handle_response,
      on_request=self.session.handle_request,
    )
    self.uploader = JobDataUploader(self.send_payload)

  @property
  def closed(self) -> bool:
    return self._closed

  # outbound

  async def send_payload(
    self,
    payload: Union[bytes, Callable[[int], bytes]],
    content_type: ContentType,
    interaction: InteractionType = InteractionType.REQUEST,
    encoding: EncodingType = EncodingType.BINARY,
    prefix: bytes = b"",
    progress: Optional[ProgressCallback] = None,
  ) -> int:
    """Send one package, split into as many packets as it needs.

    Packages are sent one at a time: message numbers go out in the order they are issued and the
    packets of two packages never interleave.

    Args:
      payload: the package payload, or a function that builds it from the message number.
      prefix: bytes repeated in front of every packet payload (the job id for data packages).
      progress: called after each packet with the total and sent byte counts of the payload.

    Returns:
      The message number of the package.
    """

    if self._closed:
      raise LinkError("link is closed")

    async with self._write_lock:
      message_number = self.tracker.next_host_number()
      if callable(payload):
        payload = payload(message_number)
      chunks = split(payload, content_type, prefix=prefix)
      terminal_id = message_number if self._terminal_id is None else self._terminal_id

      sent = 0
      for chunk in chunks:
        packet = Packet(
          content_type=content_type,
          interaction=interaction,
          encoding=encoding,
          terminal_id=terminal_id,
          message_number=message_number,
          package_total=chunk.package_total,
          package_index=chunk.package_index,
          is_multi_package=chunk.is_multi_package,
          encryption_mode=self._encryption_mode,
          payload=transform(chunk.data, self._encryption_mode, self._key),
        )
        logger.debug("-> %s", packet.describe())
        await self._send(packet.encode())
        sent += len(chunk.data) - len(prefix)
        if progress is not None:
          progress(len(payload), sent)

    return message_number

  async def _send_message(self, build: Callable[[int], bytes]) -> int:
    return await self.send_payload(
      build,
      content_type=ContentType.MESSAGE,
      interaction=InteractionType.REQUEST,
      encoding=EncodingType.JSON,
    )

  # inbound

  def on_receive(self, data: bytes) -> None:
    """Feed bytes from the transport. Malformed traffic is reported, never raised."""
    if self._closed:
      logger.debug("link closed, ignoring %d bytes", len(data))
      return
    for item in self.decoder.feed(data):
      if isinstance(item, LinkError):
        self._report(item)
      else:
        self._process(item)

  def _process(self, packet: Packet) -> None:
    logger.debug("<- %s", packet.describe())
    try:
      if packet.encryption_mode != EncryptionMode.NONE:
        if self._key is None:
          raise LinkError(f"message #{packet.message_number} is encrypted but no key is set")
        packet = dataclasses.replace(
          packet,
          payload=transform(packet.payload, packet.encryption_mode, self._key),
          encryption_mode=EncryptionMode.NONE,
        )

      anomaly = self.tracker.observe(packet)
      if anomaly is not None:
        self._report(anomaly)
        if anomaly.kind == SequenceAnomaly.DUPLICATE:
          return

      package = self.assembler.ingest(packet)
      if package is not None:
        self.router.dispatch(package)
    except LinkError as e:
      self._report(e)
    except Exception:  # pylint: disable=broad-except
      # raised by a data consumer
      logger.exception("handler for message #%d failed", packet.message_number)

  def _report(self, error: LinkError) -> None:
    if isinstance(error, UnsolicitedResponse):
      logger.info("%s", error)
    elif isinstance(error, (ChecksumError, FramingError, SequenceAnomaly)):
      logger.warning("%s: %s", type(error).__name__, error)
    else:
      logger.error("%s: %s", type(error).__name__, error)

    for listener in list(self._error_listeners):
      try:
        listener(error)
      except Exception:  # pylint: disable=broad-except
        logger.exception("error listener failed")

  # management

  def add_error_listener(self, listener: ErrorListener) -> Callable[[], None]:
    """Call `listener` with every error the link recovers from. Returns a function to remove it."""
    self._error_listeners.append(listener)
    return lambda: self.remove_error_listener(listener)

  def remove_error_listener(self, listener: ErrorListener) -> None:
    if listener in self._error_listeners:
      self._error_listeners.remove(listener)

  def set_data_consumer(self, consumer: Optional[PackageHandler]) -> None:
    self.router.set_data_consumer(consumer)

  def evict_stale(self, max_age: float) -> List[PackageKey]:
    """Abandon incomplete inbound packages that have not grown for `max_age` seconds."""
    return self.assembler.evict_stale(max_age)

  def close(self, exc: Optional[BaseException] = None) -> None:
    """Stop the link. Pending calls fail with `exc`, or a `LinkError` if None."""
    if self._closed:
      return
    self._closed = True
    self.session.close(exc if exc is not None else LinkError("link closed"))
    self.assembler.clear()
    self.decoder.reset()
