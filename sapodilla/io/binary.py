"""Binary data reading and writing utilities. All multi-byte values are little-endian by default."""

import struct


class Reader:
  """A simple binary reader that tracks position and reads various data types."""

  def __init__(self, data: bytes, little_endian: bool = True):
    self._data = data
    self._offset = 0
    self._little_endian = little_endian

  def offset(self) -> int:
    """Return the current read offset."""
    return self._offset

  def has_remaining(self, n: int = 1) -> bool:
    """Check if at least n bytes remain."""
    return self._offset + n <= len(self._data)

  def remaining(self) -> int:
    """Return the number of bytes remaining."""
    return len(self._data) - self._offset

  def raw_bytes(self, length: int) -> bytes:
    """Read raw bytes and advance the offset."""
    if self._offset + length > len(self._data):
      raise ValueError(
        f"Not enough data: need {length} bytes at offset {self._offset}, "
        f"got {len(self._data) - self._offset}"
      )
    result = bytes(self._data[self._offset : self._offset + length])
    self._offset += length
    return result

  def _read(self, fmt: str, size: int) -> int:
    prefix = "<" if self._little_endian else ">"
    return int(struct.unpack(prefix + fmt, self.raw_bytes(size))[0])

  def u8(self) -> int:
    return self._read("B", 1)

  def u16(self) -> int:
    return self._read("H", 2)

  def u32(self) -> int:
    return self._read("I", 4)


class Writer:
  """Builds a byte string field by field. Every method returns the writer so calls can be chained.

  Example:
    >>> Writer().u8(0x7E).u16(1).raw_bytes(b"\\xff").finish()
    b'~\\x01\\x00\\xff'
  """

  def __init__(self, little_endian: bool = True):
    self._buf = bytearray()
    self._little_endian = little_endian

  def _write(self, fmt: str, value: int) -> "Writer":
    prefix = "<" if self._little_endian else ">"
    try:
      self._buf += struct.pack(prefix + fmt, value)
    except struct.error as e:
      raise ValueError(f"Value {value} does not fit format '{fmt}'") from e
    return self

  def u8(self, value: int) -> "Writer":
    return self._write("B", value)

  def u16(self, value: int) -> "Writer":
    return self._write("H", value)

  def u32(self, value: int) -> "Writer":
    return self._write("I", value)

  def raw_bytes(self, data: bytes) -> "Writer":
    self._buf += data
    return self

  def __len__(self) -> int:
    return len(self._buf)

  def finish(self) -> bytes:
    return bytes(self._buf)
