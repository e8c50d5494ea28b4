"""
Tests for the little-endian / LEB128 wire primitives.
"""
import unittest
from oracle_v2.utils.encoding import encode_varint, int_to_le, ByteReader, ByteWriter
from oracle_v2.errors import MalformedPayload


class TestVarint(unittest.TestCase):
    def test_known_encodings(self):
        cases = {
            0: b'\x00',
            1: b'\x01',
            127: b'\x7f',
            128: b'\x80\x01',
            300: b'\xac\x02',
            16384: b'\x80\x80\x01',
        }
        for value, encoded in cases.items():
            self.assertEqual(encode_varint(value), encoded)
            self.assertEqual(ByteReader(encoded).read_varint(), value)

    def test_negative_rejected(self):
        with self.assertRaises(ValueError):
            encode_varint(-1)

    def test_truncated_varint(self):
        """A continuation bit with nothing after it is malformed."""
        with self.assertRaises(MalformedPayload):
            ByteReader(b'\x80').read_varint()

    def test_overlong_varint(self):
        with self.assertRaises(MalformedPayload):
            ByteReader(b'\xff' * 11).read_varint()


class TestByteReader(unittest.TestCase):
    def test_fixed_width_little_endian(self):
        reader = ByteReader(b'\x01\x00' + b'\x02\x00\x00\x00' + int_to_le(2**100, 16))
        self.assertEqual(reader.read_u16(), 1)
        self.assertEqual(reader.read_u32(), 2)
        self.assertEqual(reader.read_u128(), 2**100)
        self.assertEqual(reader.remaining, 0)

    def test_read_past_end(self):
        reader = ByteReader(b'\x01\x02\x03')
        with self.assertRaises(MalformedPayload):
            reader.read_u32()

    def test_length_larger_than_buffer(self):
        """A declared length is checked against the bytes left before allocating."""
        reader = ByteReader(encode_varint(5) + b'\x00' * 4)
        with self.assertRaises(MalformedPayload):
            reader.read_length()

    def test_length_with_item_size(self):
        reader = ByteReader(encode_varint(2) + b'\x00' * 63)
        with self.assertRaises(MalformedPayload):
            reader.read_length(32)

        reader = ByteReader(encode_varint(2) + b'\x00' * 64)
        self.assertEqual(reader.read_length(32), 2)

    def test_vector(self):
        writer = ByteWriter()
        writer.write_vector(b'abc')
        writer.write_uint(7, 8)
        data = writer.getvalue()
        self.assertEqual(data, b'\x03abc' + b'\x07' + b'\x00' * 7)

        reader = ByteReader(data)
        self.assertEqual(reader.read_vector(), b'abc')
        self.assertEqual(reader.read_u64(), 7)

    def test_int_to_le_overflow(self):
        with self.assertRaises(OverflowError):
            int_to_le(256, 1)


if __name__ == '__main__':
    unittest.main()
