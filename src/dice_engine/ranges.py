"""Static value ranges of dice expressions."""

from __future__ import annotations

from typing import Any

from .config import settings
from .errors import DiceError, RangeError
from .expr import BinaryOpNode, DiceTermNode, ExprFolder, ExprNode, NumberNode, UnaryOpNode, fold_expr
from .log import logger


Range = tuple[int, int]


def _corners(op, left: Range, right: Range) -> Range:
    values = [op(a, b) for a in left for b in right]
    return min(values), max(values)


def _modulo_range(left: Range, right: Range) -> Range:
    (left_min, left_max), (right_min, right_max) = left, right
    if right_min <= 0 <= right_max:
        raise RangeError(f"[MODULO_BY_ZERO] Divisor range [{right_min}, {right_max}] includes zero.")

    pairs = (left_max - left_min + 1) * (right_max - right_min + 1)
    if pairs > settings.modulo_warn_pairs:
        logger.warning(
            f"RANGE_MODULO | pairs={pairs} | left=[{left_min}, {left_max}] | right=[{right_min}, {right_max}]"
        )

    lowest = highest = None
    for divisor in range(right_min, right_max + 1):
        for dividend in range(left_min, left_max + 1):
            value = dividend % divisor
            if lowest is None or value < lowest:
                lowest = value
            if highest is None or value > highest:
                highest = value
    return lowest, highest


class _RangeFolder(ExprFolder[Range, Any]):
    def visit_number(self, node: NumberNode[Any]) -> Range:
        return node.value, node.value

    def visit_dice(self, node: DiceTermNode[Any]) -> Range:
        return node.dice.min_roll(), node.dice.max_roll()

    def visit_binary(self, node: BinaryOpNode[Any], left: Range, right: Range) -> Range:
        (left_min, left_max), (right_min, right_max) = left, right
        if node.operator == "+":
            return left_min + right_min, left_max + right_max
        if node.operator == "-":
            return left_min - right_max, left_max - right_min
        if node.operator == "*":
            # Either side may be negative, so any corner can be extremal.
            return _corners(lambda a, b: a * b, left, right)
        if node.operator == "/":
            if right_min <= 0 <= right_max:
                raise RangeError(
                    f"[DIVISION_BY_ZERO] Divisor range [{right_min}, {right_max}] includes zero in '{node}'."
                )
            return _corners(lambda a, b: a // b, left, right)
        if node.operator == "%":
            return _modulo_range(left, right)
        raise DiceError(f"[UNKNOWN_OPERATOR] Unknown operator '{node.operator}'.")

    def visit_unary(self, node: UnaryOpNode[Any], operand: Range) -> Range:
        low, high = operand
        return -high, -low


def calc_range(expr: ExprNode[Any]) -> Range:
    """Smallest and largest value ``expr`` can produce."""
    return fold_expr(expr, _RangeFolder())
