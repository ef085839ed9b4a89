import unittest

from sapodilla.protocol.cipher import RC4, transform
from sapodilla.protocol.constants import EncryptionMode
from sapodilla.protocol.errors import UnsupportedEncryptionMode


class TestRC4(unittest.TestCase):
  def test_known_vectors(self):
    self.assertEqual(RC4(b"Key").apply(b"Plaintext"), bytes.fromhex("bbf316e8d940af0ad3"))
    self.assertEqual(RC4(b"Wiki").apply(b"pedia"), bytes.fromhex("1021bf0420"))
    self.assertEqual(RC4(b"Key").keystream(10), bytes.fromhex("eb9f7781b734ca72a719"))

  def test_keystream_continues(self):
    rc4 = RC4(b"Key")
    self.assertEqual(rc4.keystream(4) + rc4.keystream(6), RC4(b"Key").keystream(10))

  def test_key_length(self):
    with self.assertRaises(ValueError):
      RC4(b"")
    with self.assertRaises(ValueError):
      RC4(bytes(257))


class TestTransform(unittest.TestCase):
  def test_none_is_identity(self):
    self.assertEqual(transform(b"\x01\x02", EncryptionMode.NONE), b"\x01\x02")

  def test_rc4_involution(self):
    key = bytes(range(16))
    for data in (b"", b"\x00", bytes(range(256)) * 4, b'{"id":1,"method":"get-prop"}'):
      encrypted = transform(data, EncryptionMode.RC4, key)
      self.assertEqual(len(encrypted), len(data))
      self.assertEqual(transform(encrypted, EncryptionMode.RC4, key), data)

  def test_rc4_restarts_per_payload(self):
    key = b"link key"
    self.assertEqual(
      transform(b"abc", EncryptionMode.RC4, key), transform(b"abc", EncryptionMode.RC4, key)
    )

  def test_rc4_needs_key(self):
    with self.assertRaises(ValueError):
      transform(b"abc", EncryptionMode.RC4)

  def test_unsupported_mode(self):
    with self.assertRaises(UnsupportedEncryptionMode):
      transform(b"abc", 0b001, b"key")
