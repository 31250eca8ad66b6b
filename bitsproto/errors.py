"""
BITS Error Types

Every failure raised by the decoder, evaluator and encoder derives from
PacketError. Decoding is a one-shot transform over static input: the bit
cursor has no rollback, so errors propagate straight to the caller and no
partial tree is ever returned.

Hierarchy:
    PacketError
    ├── InvalidHex
    ├── OutOfBits
    │   └── TruncatedPacket
    ├── MalformedPacket
    │   ├── FrameOverrun
    │   ├── EmptyOperator
    │   ├── NestingTooDeep
    │   └── TrailingBits
    ├── UnknownOperation
    ├── InvalidOperandCount
    └── EncodingError
"""

from __future__ import annotations

from typing import Any, Optional


class PacketError(Exception):
    """Base class for all BITS errors."""


class InvalidHex(PacketError):
    """Input text is not a hexadecimal string."""

    def __init__(self, text: str, reason: str = ""):
        preview = text if len(text) <= 32 else text[:29] + "..."
        detail = f": {reason}" if reason else ""
        super().__init__(f"invalid hex input {preview!r}{detail}")
        self.text = text


class OutOfBits(PacketError):
    """A read asked for more bits than remain in the stream."""

    def __init__(self, requested: int, remaining: int, position: int):
        super().__init__(
            f"requested {requested} bit(s) at offset {position}, "
            f"only {remaining} remaining"
        )
        self.requested = requested
        self.remaining = remaining
        self.position = position


class TruncatedPacket(OutOfBits):
    """A packet field could not be read because the stream ended."""

    def __init__(self, field: str, requested: int, remaining: int, position: int):
        PacketError.__init__(
            self,
            f"truncated packet: field '{field}' needs {requested} bit(s) "
            f"at offset {position}, only {remaining} remaining",
        )
        self.field = field
        self.requested = requested
        self.remaining = remaining
        self.position = position


class MalformedPacket(PacketError):
    """The bits decode, but not into a well-formed packet."""


class FrameOverrun(MalformedPacket):
    def __init__(self, declared: int, consumed: int, position: int):
        super().__init__(
            f"sub-packets consumed {consumed} bit(s) but the operator at "
            f"offset {position} declared {declared}"
        )
        self.declared = declared
        self.consumed = consumed
        self.position = position


class EmptyOperator(MalformedPacket):
    def __init__(self, framing: Any, position: int):
        super().__init__(
            f"operator at offset {position} declares no sub-packets ({framing})"
        )
        self.framing = framing
        self.position = position


class NestingTooDeep(MalformedPacket):
    def __init__(self, limit: int, position: int):
        super().__init__(f"nesting exceeds {limit} levels at offset {position}")
        self.limit = limit
        self.position = position


class TrailingBits(MalformedPacket):
    def __init__(self, count: int, position: int):
        super().__init__(
            f"{count} trailing bit(s) after offset {position} are not zero padding"
        )
        self.count = count
        self.position = position


class UnknownOperation(PacketError):
    def __init__(self, type_id: int):
        super().__init__(f"invalid operator type id {type_id}")
        self.type_id = type_id


class InvalidOperandCount(PacketError):
    """An operator has a child count its operation cannot accept."""

    def __init__(self, operation: Any, count: int, expected: Optional[str] = None):
        name = getattr(operation, "func", operation)
        wanted = f" (expected {expected})" if expected else ""
        super().__init__(
            f"invalid number of operands {count} for operation '{name}'{wanted}"
        )
        self.operation = operation
        self.count = count


class EncodingError(PacketError):
    """A packet cannot be represented in the wire format."""
