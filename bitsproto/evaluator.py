"""
BITS Evaluator

Reduces a packet tree to a single integer with a post-order fold:

    type 0  sum          >= 1 operand
    type 1  product      >= 1 operand
    type 2  min          >= 1 operand
    type 3  max          >= 1 operand
    type 4  literal      its own value
    type 5  gt           exactly 2 operands, 1 if a > b else 0
    type 6  lt           exactly 2 operands, 1 if a < b else 0
    type 7  eq           exactly 2 operands, 1 if a == b else 0

Evaluation is pure: the tree is never modified and the same tree always
yields the same value. Structurally invalid trees raise InvalidOperandCount;
no default operand is ever substituted.
"""

from __future__ import annotations

import math
import operator as op

from bitsproto.errors import InvalidOperandCount
from bitsproto.packet import Operation, Packet, fold


_REDUCERS = {
    Operation.SUM: sum,
    Operation.PRODUCT: math.prod,
    Operation.MINIMUM: min,
    Operation.MAXIMUM: max,
}

_COMPARATORS = {
    Operation.GREATER_THAN: op.gt,
    Operation.LESS_THAN: op.lt,
    Operation.EQUAL_TO: op.eq,
}


def apply_operation(operation: Operation, operands: list[int]) -> int:
    """Combine already-evaluated operands with one operation."""
    if operation.is_comparison:
        if len(operands) != 2:
            raise InvalidOperandCount(operation, len(operands), "exactly 2")
        left, right = operands
        return int(_COMPARATORS[operation](left, right))
    if not operands:
        raise InvalidOperandCount(operation, 0, "at least 1")
    return _REDUCERS[operation](operands)


def evaluate(packet: Packet) -> int:
    """Evaluate a packet tree to an integer."""
    return fold(
        packet,
        lambda p: p.payload.value,
        lambda p, values: apply_operation(p.payload.operation, values),
    )
