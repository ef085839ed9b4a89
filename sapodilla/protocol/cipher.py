"""Payload cipher.

The device only ever announces RC4, a legacy stream cipher. It is implemented here because the
transform has to match the device byte for byte, not for its strength. Key material is provisioned
by the caller.
"""

from typing import Optional

from sapodilla.protocol.constants import EncryptionMode
from sapodilla.protocol.errors import UnsupportedEncryptionMode


class RC4:
  """RC4 keystream generator. Each instance produces one keystream; create a new one per payload."""

  def __init__(self, key: bytes):
    if not 1 <= len(key) <= 256:
      raise ValueError(f"RC4 key must be 1 to 256 bytes, got {len(key)}")
    s = list(range(256))
    j = 0
    for i in range(256):
      j = (j + s[i] + key[i % len(key)]) & 0xFF
      s[i], s[j] = s[j], s[i]
    self._s = s
    self._i = 0
    self._j = 0

  def keystream(self, length: int) -> bytes:
    s = self._s
    i, j = self._i, self._j
    out = bytearray(length)
    for n in range(length):
      i = (i + 1) & 0xFF
      j = (j + s[i]) & 0xFF
      s[i], s[j] = s[j], s[i]
      out[n] = s[(s[i] + s[j]) & 0xFF]
    self._i, self._j = i, j
    return bytes(out)

  def apply(self, data: bytes) -> bytes:
    return bytes(a ^ b for a, b in zip(data, self.keystream(len(data))))


def transform(payload: bytes, mode: int, key: Optional[bytes] = None) -> bytes:
  """Encrypt or decrypt `payload`. The transform is its own inverse.

  Args:
    payload: the data field of one packet.
    mode: encryption mode from the packet flags.
    key: link key material, required for RC4.

  Raises:
    UnsupportedEncryptionMode: `mode` is neither none nor RC4.
    ValueError: RC4 was requested without a key.
  """

  if mode == EncryptionMode.NONE:
    return payload
  if mode == EncryptionMode.RC4:
    if key is None:
      raise ValueError("RC4 payload but no link key configured")
    return RC4(key).apply(payload)
  raise UnsupportedEncryptionMode(mode)
