"""
BITS Packet Model

A decoded packet is a small immutable tree:

    Packet(version, payload)
        payload = Literal(value)
                | Operator(operation, children, length)

The payload is a tagged union rather than a class hierarchy: literals and
operators share nothing beyond being decodable and evaluable. type_id is
derived from the payload (4 for a literal, the operation id otherwise), so
the two can never disagree.

Operators keep the length framing they were decoded with (TotalBits or
PacketCount) so a tree re-encodes to the same bits it came from.

Tree walks (flat_packets, depth, to_expression, evaluation) are iterative
post-order folds; nesting depth is bounded only by memory.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Iterable, Iterator, Optional, Sequence, Union

from bitsproto.errors import UnknownOperation


LITERAL_TYPE_ID = 4
VERSION_BITS = 3
TYPE_ID_BITS = 3
# Value bits per literal group; each group also carries a continuation bit
GROUP_BITS = 4


# ============================================================================
# Operations
# ============================================================================

class Operation(Enum):
    """Operator type ids. Id 4 is reserved for literals."""
    SUM = 0
    PRODUCT = 1
    MINIMUM = 2
    MAXIMUM = 3
    GREATER_THAN = 5
    LESS_THAN = 6
    EQUAL_TO = 7

    @classmethod
    def from_id(cls, type_id: int) -> Operation:
        try:
            return cls(type_id)
        except ValueError:
            raise UnknownOperation(type_id) from None

    @property
    def func(self) -> str:
        """Function-call name, e.g. 'sum' or 'gt'."""
        return _FUNC_NAMES[self]

    @property
    def symbol(self) -> str:
        """Infix symbol, or the function name for min/max."""
        return _SYMBOLS[self]

    @property
    def is_function(self) -> bool:
        """Rendered as name(args) rather than infix."""
        return self in (Operation.MINIMUM, Operation.MAXIMUM)

    @property
    def is_comparison(self) -> bool:
        return self in (Operation.GREATER_THAN, Operation.LESS_THAN, Operation.EQUAL_TO)


_FUNC_NAMES = {
    Operation.SUM: "sum",
    Operation.PRODUCT: "product",
    Operation.MINIMUM: "min",
    Operation.MAXIMUM: "max",
    Operation.GREATER_THAN: "gt",
    Operation.LESS_THAN: "lt",
    Operation.EQUAL_TO: "eq",
}

_SYMBOLS = {
    Operation.SUM: "+",
    Operation.PRODUCT: "*",
    Operation.MINIMUM: "min",
    Operation.MAXIMUM: "max",
    Operation.GREATER_THAN: ">",
    Operation.LESS_THAN: "<",
    Operation.EQUAL_TO: "==",
}


# ============================================================================
# Length framing
# ============================================================================

@dataclass(frozen=True)
class TotalBits:
    """Length-type 0: children occupy exactly `bits` bits."""
    bits: int

    length_type_id = 0
    field_width = 15

    def __repr__(self) -> str:
        return f"bits={self.bits}"


@dataclass(frozen=True)
class PacketCount:
    """Length-type 1: exactly `count` children follow."""
    count: int

    length_type_id = 1
    field_width = 11

    def __repr__(self) -> str:
        return f"count={self.count}"


Length = Union[TotalBits, PacketCount]


# ============================================================================
# Payloads
# ============================================================================

@dataclass(frozen=True)
class Literal:
    value: int

    def __post_init__(self) -> None:
        if self.value < 0:
            raise ValueError(f"literal value must be unsigned, got {self.value}")


@dataclass(frozen=True, eq=False)
class Operator:
    operation: Operation
    children: tuple[Packet, ...]
    # None for hand-built trees; the encoder then picks a framing
    length: Optional[Length] = None

    def __post_init__(self) -> None:
        if not isinstance(self.operation, Operation):
            object.__setattr__(self, "operation", Operation.from_id(self.operation))
        object.__setattr__(self, "children", tuple(self.children))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Operator):
            return NotImplemented
        return (
            (self.operation, self.length, len(self.children))
            == (other.operation, other.length, len(other.children))
            and _trees_equal(zip(self.children, other.children))
        )

    def __hash__(self) -> int:
        return hash((self.operation, self.length, tuple(hash(c) for c in self.children)))


Payload = Union[Literal, Operator]


# ============================================================================
# Packet
# ============================================================================

@dataclass(frozen=True, eq=False)
class Packet:
    """One decoded unit: a 3-bit version and a literal or operator payload.

    Equality and hashing walk the tree iteratively, like every other
    traversal here.
    """
    version: int
    payload: Payload

    def __post_init__(self) -> None:
        if not 0 <= self.version < (1 << VERSION_BITS):
            raise ValueError(f"version must fit {VERSION_BITS} bits, got {self.version}")

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Packet):
            return NotImplemented
        return _trees_equal([(self, other)])

    def __hash__(self) -> int:
        return fold(
            self,
            lambda p: hash(_node_key(p)),
            lambda p, hashes: hash((_node_key(p), tuple(hashes))),
        )

    # ------------------------------------------------------------------
    # Constructors
    # ------------------------------------------------------------------

    @classmethod
    def literal(cls, value: int, version: int = 0) -> Packet:
        return cls(version, Literal(value))

    @classmethod
    def operator(
        cls,
        operation: Union[Operation, int],
        children: Sequence[Packet],
        version: int = 0,
        length: Optional[Length] = None,
    ) -> Packet:
        return cls(version, Operator(operation, tuple(children), length))

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def type_id(self) -> int:
        if isinstance(self.payload, Literal):
            return LITERAL_TYPE_ID
        return self.payload.operation.value

    @property
    def is_literal(self) -> bool:
        return isinstance(self.payload, Literal)

    @property
    def is_operator(self) -> bool:
        return isinstance(self.payload, Operator)

    @property
    def children(self) -> tuple[Packet, ...]:
        """Sub-packets in declaration order; empty for literals."""
        if isinstance(self.payload, Operator):
            return self.payload.children
        return ()

    @property
    def operation(self) -> Optional[Operation]:
        if isinstance(self.payload, Operator):
            return self.payload.operation
        return None

    @property
    def value(self) -> Optional[int]:
        """Literal value, or None for operators (see evaluate())."""
        if isinstance(self.payload, Literal):
            return self.payload.value
        return None

    # ------------------------------------------------------------------
    # Tree walks
    # ------------------------------------------------------------------

    def iter_postorder(self) -> Iterator[Packet]:
        """Yield every packet in the tree, children before their parent."""
        stack: list[tuple[Packet, bool]] = [(self, False)]
        while stack:
            node, expanded = stack.pop()
            if expanded or node.is_literal:
                yield node
                continue
            stack.append((node, True))
            for child in reversed(node.children):
                stack.append((child, False))

    def flat_packets(self) -> list[Packet]:
        """This packet and all of its descendants, post-order."""
        return list(self.iter_postorder())

    def packet_count(self) -> int:
        """Number of descendants, not counting this packet."""
        return len(self.flat_packets()) - 1

    def version_sum(self) -> int:
        return sum(p.version for p in self.iter_postorder())

    def depth(self) -> int:
        """Nesting depth; a lone literal has depth 1."""
        return fold(
            self,
            lambda p: 1,
            lambda p, depths: 1 + max(depths, default=0),
        )

    # ------------------------------------------------------------------
    # Transforms
    # ------------------------------------------------------------------

    def to_literal(self) -> Packet:
        """Collapse this tree into an equivalent literal packet.

        The version is kept; the value is the evaluated result. The
        receiver is not modified.
        """
        from bitsproto.evaluator import evaluate
        return Packet(self.version, Literal(evaluate(self)))

    def to_expression(self) -> str:
        """Render as an infix expression, e.g. '(1 + 3) == (2 * 2)'."""
        return fold(self, lambda p: str(p.payload.value), _render_operator)

    def outline(self, indent: str = "  ") -> list[str]:
        """One line per packet, pre-order, indented by depth."""
        lines: list[str] = []
        stack: list[tuple[Packet, int]] = [(self, 0)]
        while stack:
            node, level = stack.pop()
            if node.is_literal:
                label = f"literal {node.payload.value}"
            else:
                framing = f" [{node.payload.length!r}]" if node.payload.length else ""
                label = f"{node.payload.operation.func}{framing}"
            lines.append(f"{indent * level}v{node.version} {label}")
            for child in reversed(node.children):
                stack.append((child, level + 1))
        return lines

    def __repr__(self) -> str:
        if self.is_literal:
            return f"<Packet v{self.version} literal={self.payload.value}>"
        return (
            f"<Packet v{self.version} {self.payload.operation.func} "
            f"children={len(self.children)}>"
        )


# ============================================================================
# Folding
# ============================================================================

def fold(
    packet: Packet,
    on_literal: Callable[[Packet], Any],
    on_operator: Callable[[Packet, list[Any]], Any],
) -> Any:
    """Reduce a tree bottom-up without recursion.

    on_literal maps a literal packet to a result. on_operator receives an
    operator packet and its children's results in declaration order.
    """
    results: list[Any] = []
    stack: list[tuple[Packet, bool]] = [(packet, False)]
    while stack:
        node, expanded = stack.pop()
        if node.is_literal:
            results.append(on_literal(node))
        elif not expanded:
            stack.append((node, True))
            for child in reversed(node.children):
                stack.append((child, False))
        else:
            n = len(node.children)
            args = results[len(results) - n:]
            del results[len(results) - n:]
            results.append(on_operator(node, args))
    return results[0]


def _node_key(packet: Packet) -> tuple:
    """Everything that identifies a node apart from its children."""
    payload = packet.payload
    if isinstance(payload, Literal):
        return (packet.version, LITERAL_TYPE_ID, payload.value)
    return (packet.version, payload.operation, payload.length, len(payload.children))


def _trees_equal(pairs: Iterable[tuple[Packet, Packet]]) -> bool:
    stack = list(pairs)
    while stack:
        a, b = stack.pop()
        if a is b:
            continue
        if _node_key(a) != _node_key(b):
            return False
        stack.extend(zip(a.children, b.children))
    return True


def _render_operator(packet: Packet, exprs: list[str]) -> str:
    operation = packet.payload.operation
    parts = [
        f"({expr})" if child.is_operator and not child.payload.operation.is_function else expr
        for expr, child in zip(exprs, packet.children)
    ]
    if operation.is_function or len(parts) == 1:
        return f"{operation.func}({', '.join(parts)})"
    return f" {operation.symbol} ".join(parts)
