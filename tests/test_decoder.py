"""
PacketDecoder Test Suite

1. Literal framing and group accounting
2. Operator framing: total bit length and sub-packet count
3. Nested decoding (deep trees without recursion)
4. Malformed input: truncation, overrun, empty operators, depth caps
5. Top-level driver: padding, strict mode, concatenated packets
"""

import pytest

from bitsproto.bitreader import BitReader
from bitsproto.decoder import PacketDecoder, decode_hex, decode_packet, iter_packets
from bitsproto.encoder import encode_hex, encode_packet
from bitsproto.errors import (
    EmptyOperator,
    FrameOverrun,
    InvalidHex,
    MalformedPacket,
    NestingTooDeep,
    OutOfBits,
    TrailingBits,
    TruncatedPacket,
)
from bitsproto.evaluator import evaluate
from bitsproto.packet import (
    GROUP_BITS,
    TYPE_ID_BITS,
    VERSION_BITS,
    Operation,
    Packet,
    PacketCount,
    TotalBits,
)

from vectors import VECTORS, ids


# Literal v0 value 1, and literal v6 value 10 (11 bits each)
LITERAL_ONE = "000" "100" "00001"
LITERAL_TEN = "110" "100" "01010"


def operator_bits(type_id: int, length_type: int, length: int) -> str:
    width = 15 if length_type == 0 else 11
    return "000" + format(type_id, "03b") + str(length_type) + format(length, f"0{width}b")


# --- 1. Literals ---

def test_literal_scenario():
    reader = BitReader.from_hex("D2FE28")
    packet = decode_packet(reader)
    assert packet.version == 6
    assert packet.type_id == 4
    assert packet.is_literal
    assert packet.value == 2021
    # 6 header bits + 3 groups of 5
    assert reader.position() == 6 + 5 * 3


def test_single_group_literal():
    reader = BitReader.from_bits(LITERAL_TEN)
    packet = decode_packet(reader)
    assert packet.value == 10
    assert reader.remaining() == 0


def test_literal_group_width():
    # Each group is GROUP_BITS value bits plus a continuation bit
    reader = BitReader.from_hex("D2FE28")
    decode_packet(reader)
    assert reader.position() == VERSION_BITS + TYPE_ID_BITS + 3 * (GROUP_BITS + 1)
    assert encode_packet(Packet.literal(2021, version=6)) == b"\xd2\xfe\x28"


def test_literal_groups_concatenate_in_read_order():
    groups = [0b1010, 0b0000, 0b1111, 0b0001, 0b0110]
    bits = "000100" + "".join(
        ("1" if i < len(groups) - 1 else "0") + format(g, "04b")
        for i, g in enumerate(groups)
    )
    reader = BitReader.from_bits(bits)
    packet = decode_packet(reader)
    assert packet.value == 0xA0F16
    assert reader.position() - 6 == 5 * len(groups)


def test_literal_wider_than_64_bits():
    value = (1 << 100) + 12345
    groups = -(-value.bit_length() // 4)
    bits = "000100" + "".join(
        ("1" if i else "0") + format((value >> (4 * i)) & 0xF, "04b")
        for i in reversed(range(groups))
    )
    assert decode_packet(BitReader.from_bits(bits)).value == value


# --- 2. Operators ---

def test_total_length_scenario():
    reader = BitReader.from_hex("38006F45291200")
    packet = decode_packet(reader)
    assert packet.version == 1
    assert packet.type_id == 6
    assert packet.operation is Operation.LESS_THAN
    assert packet.payload.length == TotalBits(27)
    assert [c.value for c in packet.children] == [10, 20]
    # Children occupy exactly the declared 27 bits after the 22-bit header
    assert reader.position() == 22 + 27


def test_packet_count_scenario():
    reader = BitReader.from_hex("EE00D40C823060")
    packet = decode_packet(reader)
    assert packet.version == 7
    assert packet.type_id == 3
    assert packet.payload.length == PacketCount(3)
    assert len(packet.children) == 3
    assert [c.value for c in packet.children] == [1, 2, 3]
    assert reader.position() == 18 + 3 * 11


def test_nested_mixed_framing():
    packet = decode_hex("9C0141080250320F1802104A08")
    assert packet.operation is Operation.EQUAL_TO
    left, right = packet.children
    assert left.operation is Operation.SUM
    assert right.operation is Operation.PRODUCT
    assert [c.value for c in left.children] == [1, 3]
    assert [c.value for c in right.children] == [2, 2]


@pytest.mark.parametrize("vector", VECTORS, ids=ids(VECTORS))
def test_vectors_decode(vector):
    packet = decode_hex(vector.hex)
    assert packet.to_expression() == vector.expression


def test_every_operator_type_id_decodes():
    for type_id in (0, 1, 2, 3, 5, 6, 7):
        bits = operator_bits(type_id, 1, 2) + LITERAL_ONE + LITERAL_TEN
        packet = decode_packet(BitReader.from_bits(bits))
        assert packet.type_id == type_id
        assert len(packet.children) == 2


# --- 3. Depth ---

def test_deep_nesting_decodes_iteratively():
    packet = Packet.literal(7)
    for _ in range(3000):
        packet = Packet.operator(Operation.SUM, [packet])
    decoded = decode_hex(encode_hex(packet))
    assert decoded.depth() == 3001
    assert evaluate(decoded) == 7


def nested_sum(depth: int, leaf: int = 7) -> Packet:
    packet = Packet.literal(leaf)
    for _ in range(depth):
        packet = Packet.operator(Operation.SUM, [packet])
    return packet


def test_deep_trees_compare_and_hash_iteratively():
    hex_string = encode_hex(nested_sum(3000))
    first, second = decode_hex(hex_string), decode_hex(hex_string)
    assert first == second
    assert hash(first) == hash(second)
    assert first != decode_hex(encode_hex(nested_sum(3000, leaf=8)))
    assert nested_sum(3000) == nested_sum(3000)


def test_max_depth_allows_exact_depth():
    packet = PacketDecoder(max_depth=2).decode(BitReader.from_hex("38006F45291200"))
    assert len(packet.children) == 2


def test_max_depth_exceeded():
    with pytest.raises(NestingTooDeep) as exc:
        decode_hex("9C0141080250320F1802104A08", max_depth=2)
    assert exc.value.limit == 2
    assert isinstance(exc.value, MalformedPacket)


def test_max_depth_must_be_positive():
    with pytest.raises(ValueError):
        PacketDecoder(max_depth=0)


# --- 4. Malformed input ---

def test_truncated_literal():
    with pytest.raises(TruncatedPacket) as exc:
        decode_hex("D2FE")
    assert exc.value.field == "literal_continuation"
    assert exc.value.position == 16
    assert exc.value.remaining == 0
    # Truncation is a kind of OutOfBits and chains the reader error
    assert isinstance(exc.value, OutOfBits)
    assert isinstance(exc.value.__cause__, OutOfBits)


def test_truncated_header():
    with pytest.raises(TruncatedPacket) as exc:
        decode_packet(BitReader.from_bits("1101"))
    assert exc.value.field == "type_id"


def test_truncated_length_field():
    with pytest.raises(TruncatedPacket) as exc:
        decode_hex("3800")
    assert exc.value.field == "total_length_in_bits"


def test_missing_children():
    bits = operator_bits(0, 1, 3) + LITERAL_ONE + LITERAL_ONE
    with pytest.raises(TruncatedPacket) as exc:
        decode_packet(BitReader.from_bits(bits))
    assert exc.value.field == "version"


def test_frame_overrun():
    bits = operator_bits(0, 0, 5) + LITERAL_ONE
    with pytest.raises(FrameOverrun) as exc:
        decode_packet(BitReader.from_bits(bits))
    assert exc.value.declared == 5
    assert exc.value.consumed == 11
    assert exc.value.position == 0


def test_nested_frame_overrun():
    inner = operator_bits(1, 1, 1) + LITERAL_ONE
    # Outer declares 20 bits; the inner operator spans 18 + 11 = 29
    bits = operator_bits(0, 0, 20) + inner
    with pytest.raises(FrameOverrun) as exc:
        decode_packet(BitReader.from_bits(bits))
    assert exc.value.consumed == 29


def test_frame_overrun_when_later_child_crosses_boundary():
    # The first child stops 3 bits short of the declared 14; the second
    # child runs past the end of the frame
    bits = operator_bits(0, 0, 14) + LITERAL_ONE + LITERAL_TEN
    with pytest.raises(FrameOverrun) as exc:
        decode_packet(BitReader.from_bits(bits))
    assert exc.value.declared == 14
    assert exc.value.consumed == 22


@pytest.mark.parametrize("length_type", [0, 1])
def test_empty_operator(length_type):
    bits = operator_bits(0, length_type, 0) + LITERAL_ONE
    with pytest.raises(EmptyOperator):
        decode_packet(BitReader.from_bits(bits))


def test_invalid_hex():
    with pytest.raises(InvalidHex):
        decode_hex("not hex")


# --- 5. Top-level driver ---

def test_trailing_zero_padding_ignored():
    assert decode_hex("D2FE28", strict=True).value == 2021
    assert decode_hex("38006F45291200", strict=True).type_id == 6


def test_trailing_nonzero_bits_lenient_by_default():
    assert decode_hex("D2FE29").value == 2021


def test_trailing_nonzero_bits_strict():
    with pytest.raises(TrailingBits) as exc:
        decode_hex("D2FE29", strict=True)
    assert exc.value.count == 3
    assert exc.value.position == 21


def test_iter_packets_sequential():
    reader = BitReader.from_bits(LITERAL_TEN + LITERAL_ONE + "000")
    packets = list(iter_packets(reader))
    assert [(p.version, p.value) for p in packets] == [(6, 10), (0, 1)]
    assert reader.position() == 22


def test_iter_packets_empty_stream():
    assert list(iter_packets(BitReader.from_hex("0000"))) == []


def test_decoder_is_reusable():
    decoder = PacketDecoder()
    reader = BitReader.from_bits(LITERAL_ONE + LITERAL_TEN)
    assert decoder.decode(reader).value == 1
    assert decoder.decode(reader).value == 10
