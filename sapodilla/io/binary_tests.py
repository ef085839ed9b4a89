import unittest

from sapodilla.io.binary import Reader, Writer


class TestBinary(unittest.TestCase):
  def test_writer_little_endian(self):
    data = Writer().u8(0x7E).u16(0x0102).u32(649).raw_bytes(b"\xff").finish()
    self.assertEqual(data, b"\x7e\x02\x01\x89\x02\x00\x00\xff")

  def test_writer_rejects_overflow(self):
    with self.assertRaises(ValueError):
      Writer().u16(0x10000)

  def test_reader(self):
    r = Reader(b"\x7e\x02\x01\x89\x02\x00\x00\xff")
    self.assertEqual(r.u8(), 0x7E)
    self.assertEqual(r.u16(), 0x0102)
    self.assertEqual(r.u32(), 649)
    self.assertEqual(r.remaining(), 1)
    self.assertEqual(r.raw_bytes(1), b"\xff")
    self.assertFalse(r.has_remaining())

  def test_reader_short_read(self):
    with self.assertRaises(ValueError):
      Reader(b"\x01").u16()
