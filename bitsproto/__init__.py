"""
BITS - Bit-packed nested instruction packets
Decoding, evaluation and re-encoding of the BITS packet format.

The Reader  — BitReader: a forward-only cursor over a flat bit sequence
The Decoder — PacketDecoder: bits → immutable Packet tree
The Folds   — evaluate(), to_expression(), encode_packet()
"""

__version__ = "0.2.0"

from bitsproto.bitreader import BitReader, hex_to_bytes, bytes_to_hex
from bitsproto.packet import (
    Packet,
    Literal,
    Operator,
    Operation,
    TotalBits,
    PacketCount,
    fold,
)
from bitsproto.decoder import PacketDecoder, decode_packet, decode_hex, iter_packets
from bitsproto.evaluator import evaluate
from bitsproto.encoder import BitWriter, encode_packet, encode_hex
from bitsproto.errors import (
    PacketError,
    InvalidHex,
    OutOfBits,
    TruncatedPacket,
    MalformedPacket,
    FrameOverrun,
    EmptyOperator,
    NestingTooDeep,
    TrailingBits,
    UnknownOperation,
    InvalidOperandCount,
    EncodingError,
)

__all__ = [
    "BitReader",
    "hex_to_bytes",
    "bytes_to_hex",
    "Packet",
    "Literal",
    "Operator",
    "Operation",
    "TotalBits",
    "PacketCount",
    "fold",
    "PacketDecoder",
    "decode_packet",
    "decode_hex",
    "iter_packets",
    "evaluate",
    "BitWriter",
    "encode_packet",
    "encode_hex",
    "PacketError",
    "InvalidHex",
    "OutOfBits",
    "TruncatedPacket",
    "MalformedPacket",
    "FrameOverrun",
    "EmptyOperator",
    "NestingTooDeep",
    "TrailingBits",
    "UnknownOperation",
    "InvalidOperandCount",
    "EncodingError",
]
