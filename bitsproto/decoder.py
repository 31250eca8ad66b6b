"""
BITS Packet Decoder

Turns a bit stream into a Packet tree. The wire format, per packet:

    VVV TTT                       version, type id (3 bits each)
    type 4 (literal):
        1AAAA 1BBBB ... 0ZZZZ     5-bit groups; the first bit says "more
                                  groups follow", the other four are value
                                  bits, most-significant group first
    any other type (operator):
        I                         length type id
        I=0: LLLLLLLLLLLLLLL      15 bits: total bit length of children
        I=1: LLLLLLLLLLL          11 bits: number of children
        <children>

Decoding is a single left-to-right pass with no backtracking. Nesting is
handled with an explicit stack of open operator frames instead of
recursion, so arbitrarily deep input cannot exhaust the interpreter stack.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterator, Optional

from bitsproto.bitreader import BitReader
from bitsproto.errors import (
    EmptyOperator,
    FrameOverrun,
    NestingTooDeep,
    OutOfBits,
    TrailingBits,
    TruncatedPacket,
)
from bitsproto.packet import (
    GROUP_BITS,
    LITERAL_TYPE_ID,
    TYPE_ID_BITS,
    VERSION_BITS,
    Length,
    Literal,
    Operation,
    Operator,
    Packet,
    PacketCount,
    TotalBits,
)

logger = logging.getLogger(__name__)


@dataclass
class _Frame:
    """An operator whose children are still being decoded."""
    version: int
    operation: Operation
    length: Length
    # Bit offset of the operator header, for error messages
    start: int
    # Bit offset of the first child
    children_start: int
    children: list[Packet] = field(default_factory=list)

    def complete(self, position: int) -> bool:
        """Whether the frame has all its children, given the cursor."""
        if isinstance(self.length, TotalBits):
            consumed = position - self.children_start
            if consumed > self.length.bits:
                raise FrameOverrun(self.length.bits, consumed, self.start)
            return consumed == self.length.bits
        return len(self.children) == self.length.count

    def build(self) -> Packet:
        return Packet(
            self.version,
            Operator(self.operation, tuple(self.children), self.length),
        )


class PacketDecoder:
    """Decodes one packet (and its whole subtree) per decode() call.

    Args:
        max_depth: Optional cap on nesting depth (a lone literal is depth 1).
            None means depth is limited only by the input size.
    """

    def __init__(self, max_depth: Optional[int] = None) -> None:
        if max_depth is not None and max_depth < 1:
            raise ValueError(f"max_depth must be at least 1, got {max_depth}")
        self.max_depth = max_depth

    def decode(self, reader: BitReader) -> Packet:
        """Consume exactly one packet from the reader."""
        stack: list[_Frame] = []

        while True:
            start = reader.position()
            version = self._read(reader, "version", VERSION_BITS)
            type_id = self._read(reader, "type_id", TYPE_ID_BITS)

            if type_id == LITERAL_TYPE_ID:
                value = self._read_literal(reader)
                packet = Packet(version, Literal(value))
                logger.debug("bit %d: v%d literal %d", start, version, value)
            else:
                operation = Operation.from_id(type_id)
                length = self._read_length(reader)
                if (isinstance(length, TotalBits) and length.bits == 0) or (
                    isinstance(length, PacketCount) and length.count == 0
                ):
                    raise EmptyOperator(length, start)
                if self.max_depth is not None and len(stack) + 2 > self.max_depth:
                    raise NestingTooDeep(self.max_depth, start)
                logger.debug(
                    "bit %d: v%d %s [%r]", start, version, operation.func, length
                )
                stack.append(_Frame(version, operation, length, start, reader.position()))
                continue

            # Attach the finished packet to its parent, closing every frame
            # that is now complete.
            while stack:
                frame = stack[-1]
                frame.children.append(packet)
                if not frame.complete(reader.position()):
                    break
                stack.pop()
                packet = frame.build()
                logger.debug(
                    "bit %d: closed %s with %d child(ren)",
                    frame.start, frame.operation.func, len(frame.children),
                )
            else:
                return packet

    # ------------------------------------------------------------------
    # Field readers
    # ------------------------------------------------------------------

    @staticmethod
    def _read(reader: BitReader, name: str, width: int) -> int:
        try:
            return reader.read_bits(width)
        except OutOfBits as e:
            raise TruncatedPacket(name, width, e.remaining, e.position) from e

    def _read_literal(self, reader: BitReader) -> int:
        value = 0
        more = True
        while more:
            more = self._read(reader, "literal_continuation", 1) == 1
            value = value << GROUP_BITS | self._read(reader, "literal_group", GROUP_BITS)
        return value

    def _read_length(self, reader: BitReader) -> Length:
        if self._read(reader, "length_type_id", 1) == TotalBits.length_type_id:
            return TotalBits(
                self._read(reader, "total_length_in_bits", TotalBits.field_width)
            )
        return PacketCount(self._read(reader, "sub_packet_count", PacketCount.field_width))


# ============================================================================
# Top-level drivers
# ============================================================================

def decode_packet(reader: BitReader, max_depth: Optional[int] = None) -> Packet:
    """Decode one packet from the reader's current position."""
    return PacketDecoder(max_depth).decode(reader)


def decode_hex(text: str, strict: bool = False, max_depth: Optional[int] = None) -> Packet:
    """Decode the single top-level packet encoded in a hex string.

    Trailing bits after the packet are padding and are left unread. With
    strict=True they must all be zero, otherwise TrailingBits is raised.
    """
    reader = BitReader.from_hex(text)
    packet = PacketDecoder(max_depth).decode(reader)
    if reader.remaining():
        if strict and not reader.tail_is_zero():
            raise TrailingBits(reader.remaining(), reader.position())
        logger.debug("ignoring %d trailing bit(s)", reader.remaining())
    return packet


def iter_packets(
    reader: BitReader,
    decoder: Optional[PacketDecoder] = None,
) -> Iterator[Packet]:
    """Yield consecutive top-level packets until only zero bits remain."""
    decoder = decoder or PacketDecoder()
    while not reader.tail_is_zero():
        yield decoder.decode(reader)
