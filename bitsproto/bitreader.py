"""
BITS Bit Reader

A forward-only cursor over a flat, most-significant-bit-first bit sequence.
Bit extraction is delegated to Kaitai Struct's KaitaiStream, which already
implements big-endian unaligned bit reads over a byte buffer. The reader
adds what the packet format needs on top of it:

- an explicit bit length (a hex string with an odd digit count carries
  4 bits fewer than its byte buffer)
- a bit-granular cursor, used to measure how much a nested decode consumed
- OutOfBits instead of a bare EOFError when the stream is exhausted

Usage:
    reader = BitReader.from_hex("D2FE28")
    reader.read_bits(3)   # 6 (version)
    reader.read_bits(3)   # 4 (type id)
    reader.position()     # 6
"""

from __future__ import annotations

import io
import string
from typing import Optional

from kaitaistruct import KaitaiStream

from bitsproto.errors import InvalidHex, OutOfBits


_HEX_DIGITS = frozenset(string.hexdigits)


# ============================================================================
# Hex conversion
# ============================================================================

def hex_to_bytes(text: str) -> tuple[bytes, int]:
    """Convert a hex string to (bytes, bit_length).

    Every hex digit contributes exactly 4 bits, most-significant bit first.
    An odd digit count is right-padded with a zero nibble in the byte
    buffer; the returned bit length excludes that nibble.
    """
    digits = text.strip()
    bad = [c for c in digits if c not in _HEX_DIGITS]
    if bad:
        raise InvalidHex(text, f"unexpected character {bad[0]!r}")
    bit_length = len(digits) * 4
    if len(digits) % 2:
        digits += "0"
    return bytes.fromhex(digits), bit_length


def bytes_to_hex(data: bytes) -> str:
    """Render bytes as upper-case hex, two digits per byte."""
    return data.hex().upper()


# ============================================================================
# BitReader
# ============================================================================

class BitReader:
    """Cursor over a read-only bit sequence.

    State is the underlying bytes, the bit length and the cursor
    (0 <= cursor <= length). The cursor only moves forward.
    """

    def __init__(self, data: bytes, length: Optional[int] = None) -> None:
        data = bytes(data)
        capacity = len(data) * 8
        if length is None:
            length = capacity
        if not 0 <= length <= capacity:
            raise ValueError(
                f"bit length {length} out of range for {len(data)} byte(s)"
            )
        self._data = data
        self._length = length
        self._cursor = 0
        self._stream = KaitaiStream(io.BytesIO(data))

    @classmethod
    def from_hex(cls, text: str) -> BitReader:
        data, length = hex_to_bytes(text)
        return cls(data, length)

    @classmethod
    def from_bytes(cls, data: bytes, length: Optional[int] = None) -> BitReader:
        return cls(data, length)

    @classmethod
    def from_bits(cls, bits: str) -> BitReader:
        """Build a reader from a string of '0'/'1' characters."""
        bits = "".join(bits.split())
        if any(b not in "01" for b in bits):
            raise ValueError(f"not a bit string: {bits!r}")
        if not bits:
            return cls(b"", 0)
        pad = -len(bits) % 8
        value = int(bits, 2) << pad
        return cls(value.to_bytes((len(bits) + pad) // 8, "big"), len(bits))

    # ------------------------------------------------------------------
    # Cursor
    # ------------------------------------------------------------------

    @property
    def length(self) -> int:
        """Total number of bits in the sequence."""
        return self._length

    def position(self) -> int:
        """Current bit offset from the start of the sequence."""
        return self._cursor

    def remaining(self) -> int:
        """Bits left to read."""
        return self._length - self._cursor

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def read_bits(self, n: int) -> int:
        """Consume n bits and return them as a big-endian unsigned integer."""
        if n < 0:
            raise ValueError(f"cannot read a negative number of bits ({n})")
        if n == 0:
            return 0
        remaining = self.remaining()
        if n > remaining:
            raise OutOfBits(n, remaining, self._cursor)
        try:
            value = self._stream.read_bits_int_be(n)
        except EOFError as e:
            raise OutOfBits(n, remaining, self._cursor) from e
        self._cursor += n
        return value

    def read_flag(self) -> bool:
        """Consume a single bit."""
        return self.read_bits(1) == 1

    def tail_is_zero(self) -> bool:
        """Whether every unread bit is 0. Does not move the cursor."""
        remaining = self.remaining()
        if remaining == 0:
            return True
        shift = len(self._data) * 8 - self._length
        tail = (int.from_bytes(self._data, "big") >> shift) & ((1 << remaining) - 1)
        return tail == 0

    def __repr__(self) -> str:
        return f"<BitReader: {self._cursor}/{self._length} bits>"

    def __len__(self) -> int:
        return self._length
