"""Link protocol constants and enumerations.

Frame layout (all multi-byte fields little-endian)::

  Byte  00:    prefix 0x7E
  Byte  01:    version 0x64
  Byte  02:    reserved 0x00
  Byte  03:    content type
  Byte  04:    interaction type
  Byte  05:    encoding type
  Bytes 06-09: terminal id
  Bytes 10-13: message number
  Bytes 14-15: package total
  Bytes 16-17: package index (1-based)
  Bytes 18-19: flags
  Bytes 20+:   payload (0-896 bytes)
  Byte:        checksum, 8-bit sum of every byte after the prefix up to the end of the payload
  Byte:        suffix 0x7E

Flags::

  bits 0-9:   payload length
  bits 10-12: encryption mode
  bit  13:    multi-package
"""

from __future__ import annotations

from enum import IntEnum

FRAME_DELIMITER = 0x7E
PROTOCOL_VERSION = 0x64
HEADER_LENGTH = 20
# prefix + header, checksum, suffix
MIN_FRAME_LENGTH = HEADER_LENGTH + 2
MAX_PAYLOAD_LENGTH = 896
JOB_ID_LENGTH = 4

FLAG_LENGTH_MASK = 0x03FF
FLAG_ENCRYPTION_SHIFT = 10
FLAG_ENCRYPTION_MASK = 0b111 << FLAG_ENCRYPTION_SHIFT
FLAG_MULTI_PACKAGE = 1 << 13

MAX_MESSAGE_NUMBER = 0xFFFFFFFF
MAX_PACKAGE_TOTAL = 0xFFFF


class ContentType(IntEnum):
  MESSAGE = 0x01
  DATA = 0x02


class InteractionType(IntEnum):
  REQUEST = 0x06
  RESPONSE = 0x07


class EncodingType(IntEnum):
  BINARY = 0x02
  JSON = 0x03


class EncryptionMode(IntEnum):
  NONE = 0b000
  RC4 = 0b010
