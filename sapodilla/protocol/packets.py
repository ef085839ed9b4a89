"""Packet codec: one physical frame on the serial link.

`Packet.encode` and `Packet.decode` are pure functions of their input. Decoding never touches shared
state, so a malformed frame cannot affect anything but itself.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from sapodilla.io.binary import Reader, Writer
from sapodilla.protocol.constants import (
  FLAG_ENCRYPTION_MASK,
  FLAG_ENCRYPTION_SHIFT,
  FLAG_LENGTH_MASK,
  FLAG_MULTI_PACKAGE,
  FRAME_DELIMITER,
  MAX_MESSAGE_NUMBER,
  MAX_PACKAGE_TOTAL,
  MAX_PAYLOAD_LENGTH,
  MIN_FRAME_LENGTH,
  PROTOCOL_VERSION,
  ContentType,
  EncodingType,
  EncryptionMode,
  InteractionType,
)
from sapodilla.protocol.errors import (
  ChecksumError,
  FramingError,
  PayloadTooLarge,
  UnsupportedEncryptionMode,
)


def checksum(data: bytes) -> int:
  """8-bit wrapping sum. Callers pass the frame from the version byte to the end of the payload."""
  return sum(data) & 0xFF


@dataclass(frozen=True)
class Flags:
  """The 16-bit flags field."""

  payload_length: int
  is_multi_package: bool = False
  encryption_mode: int = EncryptionMode.NONE

  def pack(self) -> int:
    if not 0 <= self.payload_length <= FLAG_LENGTH_MASK:
      raise ValueError(f"payload length {self.payload_length} does not fit the flags field")
    if not 0 <= self.encryption_mode <= 0b111:
      raise ValueError(f"encryption mode {self.encryption_mode} does not fit the flags field")
    flags = self.payload_length & FLAG_LENGTH_MASK
    flags |= (int(self.encryption_mode) << FLAG_ENCRYPTION_SHIFT) & FLAG_ENCRYPTION_MASK
    if self.is_multi_package:
      flags |= FLAG_MULTI_PACKAGE
    return flags

  @classmethod
  def unpack(cls, flags: int) -> "Flags":
    """Split a flags value. The encryption mode is returned raw so that callers can reject it."""
    return cls(
      payload_length=flags & FLAG_LENGTH_MASK,
      is_multi_package=bool(flags & FLAG_MULTI_PACKAGE),
      encryption_mode=(flags & FLAG_ENCRYPTION_MASK) >> FLAG_ENCRYPTION_SHIFT,
    )


@dataclass(frozen=True)
class Packet:
  """A decoded frame.

  `payload` is the data field exactly as it travels on the wire, so for an encrypted packet it
  is ciphertext.
  """

  content_type: ContentType
  interaction: InteractionType
  encoding: EncodingType
  terminal_id: int
  message_number: int
  package_total: int = 1
  package_index: int = 1
  is_multi_package: bool = False
  encryption_mode: EncryptionMode = EncryptionMode.NONE
  payload: bytes = field(default=b"", repr=False)

  def __post_init__(self):
    if len(self.payload) > MAX_PAYLOAD_LENGTH:
      raise ValueError(f"payload of {len(self.payload)} bytes exceeds {MAX_PAYLOAD_LENGTH} bytes")
    if not 1 <= self.package_total <= MAX_PACKAGE_TOTAL:
      raise ValueError(f"package total {self.package_total} out of range")
    if not 1 <= self.package_index <= self.package_total:
      raise ValueError(f"package index {self.package_index} not in [1, {self.package_total}]")
    for name in ("terminal_id", "message_number"):
      if not 0 <= getattr(self, name) <= MAX_MESSAGE_NUMBER:
        raise ValueError(f"{name} {getattr(self, name)} does not fit in 32 bits")

  @property
  def flags(self) -> Flags:
    return Flags(
      payload_length=len(self.payload),
      is_multi_package=self.is_multi_package,
      encryption_mode=self.encryption_mode,
    )

  @property
  def payload_length(self) -> int:
    return len(self.payload)

  def encode(self) -> bytes:
    """Serialize to a complete frame, prefix to suffix."""
    body = (
      Writer()
      .u8(PROTOCOL_VERSION)
      .u8(0)  # reserved
      .u8(self.content_type)
      .u8(self.interaction)
      .u8(self.encoding)
      .u32(self.terminal_id)
      .u32(self.message_number)
      .u16(self.package_total)
      .u16(self.package_index)
      .u16(self.flags.pack())
      .raw_bytes(self.payload)
      .finish()
    )
    return Writer().u8(FRAME_DELIMITER).raw_bytes(body).u8(checksum(body)).u8(FRAME_DELIMITER).finish()

  @classmethod
  def decode(cls, data: bytes) -> "Packet":
    """Decode exactly one frame.

    Raises:
      FramingError: bad delimiters, version, length or header field.
      PayloadTooLarge: the declared payload length is above 896 bytes.
      ChecksumError: the checksum byte does not match.
      UnsupportedEncryptionMode: the flags name an encryption mode other than none or RC4.
    """

    if len(data) < MIN_FRAME_LENGTH:
      raise FramingError(f"frame of {len(data)} bytes is shorter than {MIN_FRAME_LENGTH} bytes")
    if data[0] != FRAME_DELIMITER:
      raise FramingError(f"bad prefix 0x{data[0]:02X}")
    if data[-1] != FRAME_DELIMITER:
      raise FramingError(f"bad suffix 0x{data[-1]:02X}")
    if data[1] != PROTOCOL_VERSION:
      raise FramingError(f"unknown protocol version 0x{data[1]:02X}")

    r = Reader(data)
    r.raw_bytes(3)  # prefix, version, reserved
    content_type = r.u8()
    interaction = r.u8()
    encoding = r.u8()
    terminal_id = r.u32()
    message_number = r.u32()
    package_total = r.u16()
    package_index = r.u16()
    flags = Flags.unpack(r.u16())

    if flags.payload_length > MAX_PAYLOAD_LENGTH:
      raise PayloadTooLarge(flags.payload_length)
    if len(data) != MIN_FRAME_LENGTH + flags.payload_length:
      raise FramingError(
        f"frame of {len(data)} bytes does not match declared payload length {flags.payload_length}"
      )

    payload = r.raw_bytes(flags.payload_length)
    expected = checksum(data[1:-2])
    if expected != data[-2]:
      raise ChecksumError(expected=expected, actual=data[-2])

    try:
      encryption_mode = EncryptionMode(flags.encryption_mode)
    except ValueError as e:
      raise UnsupportedEncryptionMode(flags.encryption_mode) from e

    try:
      content_type = ContentType(content_type)
      interaction = InteractionType(interaction)
      encoding = EncodingType(encoding)
    except ValueError as e:
      raise FramingError(str(e)) from e

    if not 1 <= package_index <= package_total:
      raise FramingError(f"package index {package_index} not in [1, {package_total}]")

    return cls(
      content_type=content_type,
      interaction=interaction,
      encoding=encoding,
      terminal_id=terminal_id,
      message_number=message_number,
      package_total=package_total,
      package_index=package_index,
      is_multi_package=flags.is_multi_package,
      encryption_mode=encryption_mode,
      payload=payload,
    )

  def describe(self) -> str:
    """One line summary, used by the packet debugger and in logs."""
    return (
      f"{self.content_type.name.lower()} {self.interaction.name.lower()} "
      f"({self.encoding.name.lower()}) #{self.message_number} "
      f"[{self.package_index}/{self.package_total}] terminal={self.terminal_id} "
      f"encryption={self.encryption_mode.name.lower()} length={self.payload_length}"
    )
