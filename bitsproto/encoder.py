"""
BITS Packet Encoder

Serialises a Packet tree back into the wire format read by the decoder.
Output is padded with zero bits to a byte boundary, so for well-formed
input `encode_hex(decode_hex(h)) == h`.

Operators are written with the framing recorded on them. A TotalBits
framing is always rewritten to the actual size of the encoded children
and a PacketCount to the actual number of children, so a tree edited or
built by hand still encodes to something the decoder accepts. Hand-built
operators without a framing get PacketCount.
"""

from __future__ import annotations

from bitsproto.bitreader import bytes_to_hex
from bitsproto.errors import EncodingError
from bitsproto.packet import (
    GROUP_BITS,
    TYPE_ID_BITS,
    VERSION_BITS,
    Packet,
    PacketCount,
    TotalBits,
    fold,
)


class BitWriter:
    """Append-only big-endian bit sink."""

    def __init__(self) -> None:
        self._value = 0
        self._length = 0

    @property
    def length(self) -> int:
        """Number of bits written so far."""
        return self._length

    def write(self, n: int, value: int) -> None:
        """Append `value` as an n-bit unsigned field."""
        if n < 0:
            raise ValueError(f"cannot write a negative number of bits ({n})")
        if not 0 <= value < (1 << n):
            raise EncodingError(f"value {value} does not fit in {n} bit(s)")
        self._value = (self._value << n) | value
        self._length += n

    def extend(self, other: BitWriter) -> None:
        """Append everything written to another writer."""
        self._value = (self._value << other._length) | other._value
        self._length += other._length

    def to_bytes(self) -> bytes:
        """Contents, zero-padded up to a whole number of bytes."""
        pad = -self._length % 8
        return (self._value << pad).to_bytes((self._length + pad) // 8, "big")

    def to_bits(self) -> str:
        """Contents as a '0'/'1' string, without padding."""
        if not self._length:
            return ""
        return format(self._value, f"0{self._length}b")

    def __repr__(self) -> str:
        return f"<BitWriter: {self._length} bits>"


def _write_header(writer: BitWriter, packet: Packet) -> None:
    writer.write(VERSION_BITS, packet.version)
    writer.write(TYPE_ID_BITS, packet.type_id)


def _encode_literal(packet: Packet) -> BitWriter:
    value = packet.payload.value
    groups = max(1, -(-value.bit_length() // GROUP_BITS))
    writer = BitWriter()
    _write_header(writer, packet)
    for i in reversed(range(groups)):
        writer.write(1, 1 if i else 0)
        writer.write(GROUP_BITS, (value >> (i * GROUP_BITS)) & 0xF)
    return writer


def _encode_operator(packet: Packet, encoded: list[BitWriter]) -> BitWriter:
    if not encoded:
        raise EncodingError(
            f"operator '{packet.payload.operation.func}' has no sub-packets"
        )
    body = BitWriter()
    for child in encoded:
        body.extend(child)

    if isinstance(packet.payload.length, TotalBits):
        length = TotalBits(body.length)
        size = length.bits
    else:
        length = PacketCount(len(encoded))
        size = length.count

    writer = BitWriter()
    _write_header(writer, packet)
    writer.write(1, length.length_type_id)
    try:
        writer.write(length.field_width, size)
    except EncodingError:
        raise EncodingError(
            f"{length!r} exceeds the {length.field_width}-bit length field"
        ) from None
    writer.extend(body)
    return writer


def encode_bits(packet: Packet) -> BitWriter:
    """Encode a packet tree into a BitWriter (unpadded)."""
    return fold(packet, _encode_literal, _encode_operator)


def encode_packet(packet: Packet) -> bytes:
    """Encode a packet tree to bytes, zero-padded to a byte boundary."""
    return encode_bits(packet).to_bytes()


def encode_hex(packet: Packet) -> str:
    """Encode a packet tree to an upper-case hex string."""
    return bytes_to_hex(encode_packet(packet))
