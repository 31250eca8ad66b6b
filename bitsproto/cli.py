#!/usr/bin/env python3
"""
BITS — packet decoder and evaluator

Command-line interface.

Usage:
    bitsproto 9C0141080250320F1802104A08            Evaluate a packet
    bitsproto -o expr C200B40A82                    Render as an expression
    bitsproto -o tree 38006F45291200                Show the packet tree
    bitsproto -o versions 8A004A801A8002F478        Sum of version fields
    bitsproto -i bin 110100101111111000101000       Read a bit string
    cat packets.txt | bitsproto                     One packet per line
"""

from __future__ import annotations

import argparse
import logging
import sys
import textwrap
from typing import Iterable, Optional

from bitsproto import __version__
from bitsproto.bitreader import BitReader
from bitsproto.decoder import PacketDecoder, decode_hex
from bitsproto.encoder import encode_hex
from bitsproto.errors import PacketError, TrailingBits
from bitsproto.evaluator import evaluate
from bitsproto.packet import Packet


# ============================================================================
# Formatting helpers
# ============================================================================

class C:
    """ANSI colors."""
    BOLD = "\033[1m"
    DIM = "\033[2m"
    RED = "\033[31m"
    GREEN = "\033[32m"
    CYAN = "\033[36m"
    RESET = "\033[0m"

    @staticmethod
    def off():
        C.BOLD = C.DIM = C.RED = C.GREEN = C.CYAN = C.RESET = ""


def fail(text: str) -> str:
    return f"  {C.RED}✗{C.RESET} {text}"


def dim(text: str) -> str:
    return f"{C.DIM}{text}{C.RESET}"


# ============================================================================
# Input / output
# ============================================================================

def read_packet(text: str, in_format: str, strict: bool = False) -> Packet:
    if in_format == "hex":
        return decode_hex(text, strict=strict)
    reader = BitReader.from_bits(text)
    packet = PacketDecoder().decode(reader)
    if strict and not reader.tail_is_zero():
        raise TrailingBits(reader.remaining(), reader.position())
    return packet


def render(packet: Packet, out_format: str) -> str:
    if out_format == "eval":
        return str(evaluate(packet))
    if out_format == "expr":
        return packet.to_expression()
    if out_format == "hex":
        return encode_hex(packet)
    if out_format == "versions":
        return str(packet.version_sum())
    if out_format == "tree":
        return "\n".join(packet.outline())
    raise ValueError(f"Unknown output format: {out_format}")


def iter_inputs(inputs: list[str], stream) -> Iterable[str]:
    if inputs:
        yield from inputs
        return
    for line in stream:
        line = line.strip()
        if line:
            yield line


# ============================================================================
# CLI setup
# ============================================================================

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="bitsproto",
        description="BITS — decode and evaluate bit-packed packets",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=textwrap.dedent("""
        output formats:
          eval       evaluated integer result (default)
          expr       infix expression, e.g. (1 + 3) == (2 * 2)
          hex        re-encoded packet
          tree       indented packet outline
          versions   sum of all version fields
        """),
    )
    parser.add_argument("inputs", nargs="*", help="Packets to decode (default: read stdin)")
    parser.add_argument("-i", "--in-format", default="hex", choices=["hex", "bin"],
                        help="Input encoding")
    parser.add_argument("-o", "--out-format", default="eval",
                        choices=["eval", "expr", "hex", "tree", "versions"],
                        help="What to print for each packet")
    parser.add_argument("--strict", action="store_true",
                        help="Reject non-zero bits after the packet")
    parser.add_argument("--no-color", action="store_true", help="Disable colored output")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log decoding steps")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    if args.no_color or not sys.stderr.isatty():
        C.off()
    if args.verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(levelname)s %(name)s: %(message)s",
            stream=sys.stderr,
        )

    failures = 0
    for text in iter_inputs(args.inputs, sys.stdin):
        try:
            packet = read_packet(text, args.in_format, strict=args.strict)
            print(render(packet, args.out_format))
        except (PacketError, ValueError) as e:
            failures += 1
            label = text if len(text) <= 24 else text[:21] + "..."
            print(fail(f"{type(e).__name__}: {e} {dim(f'[{label}]')}"), file=sys.stderr)

    return 1 if failures else 0


if __name__ == "__main__":
    sys.exit(main())
