"""
Little-endian integer and LEB128 varint encoding for the proof wire format.
"""
from oracle_v2.errors import MalformedPayload

# A varint never needs more than ten 7-bit groups for a 64-bit length
MAX_VARINT_BYTES = 10


def encode_varint(value: int) -> bytes:
    """Encode a non-negative integer as 7-bit groups, low group first."""
    if value < 0:
        raise ValueError("varint cannot encode a negative value")
    out = bytearray()
    while True:
        byte = value & 0x7F
        value >>= 7
        if value:
            out.append(byte | 0x80)
        else:
            out.append(byte)
            return bytes(out)


def int_to_le(value: int, size: int) -> bytes:
    """Fixed-width little-endian encoding; raises OverflowError if it does not fit."""
    return value.to_bytes(size, 'little', signed=False)


class ByteReader:
    """Cursor over an immutable byte buffer that fails closed on exhaustion."""

    def __init__(self, data: bytes):
        self.data = bytes(data)
        self.pos = 0

    @property
    def remaining(self) -> int:
        return len(self.data) - self.pos

    def read_bytes(self, n: int) -> bytes:
        if n < 0 or n > self.remaining:
            raise MalformedPayload(
                f"need {n} bytes at offset {self.pos}, only {self.remaining} remain"
            )
        chunk = self.data[self.pos:self.pos + n]
        self.pos += n
        return chunk

    def read_uint(self, size: int) -> int:
        return int.from_bytes(self.read_bytes(size), 'little')

    def read_u8(self) -> int:
        return self.read_uint(1)

    def read_u16(self) -> int:
        return self.read_uint(2)

    def read_u32(self) -> int:
        return self.read_uint(4)

    def read_u64(self) -> int:
        return self.read_uint(8)

    def read_u128(self) -> int:
        return self.read_uint(16)

    def read_varint(self) -> int:
        result = 0
        for shift in range(0, 7 * MAX_VARINT_BYTES, 7):
            if self.remaining == 0:
                raise MalformedPayload(f"truncated varint at offset {self.pos}")
            byte = self.data[self.pos]
            self.pos += 1
            result |= (byte & 0x7F) << shift
            if not byte & 0x80:
                return result
        raise MalformedPayload(f"varint longer than {MAX_VARINT_BYTES} bytes")

    def read_length(self, item_size: int = 1) -> int:
        """
        Read a vector length prefix and check the vector fits in what is left.

        item_size is the minimum encoded size of one element.
        """
        length = self.read_varint()
        if length * item_size > self.remaining:
            raise MalformedPayload(
                f"vector of {length} items needs at least {length * item_size} bytes, "
                f"{self.remaining} remain"
            )
        return length

    def read_vector(self) -> bytes:
        return self.read_bytes(self.read_length())


class ByteWriter:
    def __init__(self):
        self.buf = bytearray()

    def write_bytes(self, data: bytes):
        self.buf.extend(data)

    def write_uint(self, value: int, size: int):
        self.buf.extend(int_to_le(value, size))

    def write_varint(self, value: int):
        self.buf.extend(encode_varint(value))

    def write_vector(self, data: bytes):
        self.write_varint(len(data))
        self.buf.extend(data)

    def getvalue(self) -> bytes:
        return bytes(self.buf)
