"""Rewriting dice of any size into standard dice.

A die with ``n`` faces is treated as a number written in mixed radix, where
every digit comes from a base that can be rolled with standard dice. For
example a d36 is a d6 for the units plus a d6 for the sixes::

    1d6 + 6 * (1d6 - 1)

Among every factorization found, the one with the fewest dice to roll wins.
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from typing import Any

from .errors import FactorizationError
from .expr import (
    BinaryOpNode,
    DiceTermNode,
    ExprNode,
    Label,
    NumberNode,
    TreeRebuilder,
    count_complexity,
    fold_expr,
)
from .log import logger
from .models import DieKind
from .parser import parse_dice_expression


# Digit bases and an expression rolling 1..base with standard dice. Order
# matters: ties between equally simple factorizations go to the earlier base.
KNOWN_DICE: tuple[tuple[int, ExprNode[Any]], ...] = (
    (1000, parse_dice_expression("(100 * (1d10 % 10) + 1d100 % 100 - 1) % 1000 + 1")),
    (100, parse_dice_expression("1d100")),
    (10, parse_dice_expression("1d10")),
    (6, parse_dice_expression("1d6")),
    (20, parse_dice_expression("1d20")),
    (12, parse_dice_expression("1d12")),
    (8, parse_dice_expression("1d8")),
    (4, parse_dice_expression("1d4")),
    (5, parse_dice_expression("(1d10 - 1) / 2 + 1")),
    (3, parse_dice_expression("(1d6 - 1) / 2 + 1")),
    (2, parse_dice_expression("(1d6 - 1) / 3 + 1")),
)


def _digit(base_expr: ExprNode[Any], place_value: int) -> ExprNode[Any]:
    if place_value == 1:
        return base_expr.copy()
    return BinaryOpNode(
        NumberNode(place_value, {}),
        "*",
        BinaryOpNode(base_expr.copy(), "-", NumberNode(1, {}), {}),
        {},
    )


def _factor(sides: int, place_value: int) -> ExprNode[Any] | None:
    candidates: list[ExprNode[Any]] = []
    for base, base_expr in KNOWN_DICE:
        if sides % base != 0:
            continue
        digit = _digit(base_expr, place_value)
        remainder = sides // base
        if remainder == 1:
            candidates.append(digit)
            continue
        rest = _factor(remainder, place_value * base)
        if rest is not None:
            candidates.append(BinaryOpNode(digit, "+", rest, {}))

    # min() keeps the first of equally complex candidates.
    return min(candidates, key=count_complexity, default=None)


def convert_to_standard_dice(sides: int) -> ExprNode[Any]:
    """Build an expression over standard dice whose range is exactly ``[1, sides]``.

    Falls back to a single ``1d{sides}`` term if no factorization exists.

    Raises:
        FactorizationError: If ``sides`` is not a positive integer.
    """
    if isinstance(sides, bool) or not isinstance(sides, int) or sides <= 0:
        raise FactorizationError(f"[INVALID_SIDES] Invalid number of sides: {sides}.")
    result = _factor(sides, 1)
    if result is None:
        logger.warning(f"FACTOR_FALLBACK | sides={sides}")
        return DiceTermNode.from_dice_string(f"1d{sides}", None, {})
    return result


class ConversionCache:
    """Memoized ``convert_to_standard_dice``, keyed by number of sides.

    Safe to share between threads.
    """

    def __init__(self) -> None:
        self._conversions: dict[int, ExprNode[Any]] = {}
        self._lock = threading.Lock()

    def convert(self, sides: int, kind: DieKind | None = None) -> ExprNode[Any]:
        conversion = self._conversions.get(sides)
        if conversion is None:
            conversion = convert_to_standard_dice(sides)
            with self._lock:
                conversion = self._conversions.setdefault(sides, conversion)
            logger.debug(
                f"FACTOR | sides={sides} | expr={conversion} | dice={count_complexity(conversion)}"
            )
        return conversion.with_kind(kind)

    def clear(self) -> None:
        with self._lock:
            self._conversions.clear()

    def __contains__(self, sides: object) -> bool:
        return sides in self._conversions

    def __len__(self) -> int:
        return len(self._conversions)


default_cache = ConversionCache()


def convert_to_standard_dice_cached(
    sides: int, kind: DieKind | None = None, cache: ConversionCache | None = None
) -> ExprNode[Any]:
    return (default_cache if cache is None else cache).convert(sides, kind)


# (original label, is new root, original dice term, index of the copy) -> label
Labeler = Callable[[Label, bool, DiceTermNode[Any], int | None], Label]


def _keep_label(label: Label, is_new_root: bool, original: DiceTermNode[Any], index: int | None) -> Label:
    return label


class _Expander(TreeRebuilder[Any]):
    def __init__(self, labeler: Labeler, cache: ConversionCache | None) -> None:
        self.labeler = labeler
        self.cache = cache

    def _standard_copy(self, node: DiceTermNode[Any], is_new_root: bool, index: int) -> ExprNode[Any]:
        dice = node.dice
        conversion = convert_to_standard_dice_cached(dice.sides, dice.kind, self.cache).copy()
        return conversion.update_labels(lambda _label, _node: self.labeler(node.label, is_new_root, node, index))

    def visit_dice(self, node: DiceTermNode[Any]) -> ExprNode[Any]:
        count = node.dice.count
        if node.dice.is_standard:
            return node
        result = self._standard_copy(node, count == 1, 0)
        for index in range(1, count):
            result = BinaryOpNode(
                result,
                "+",
                self._standard_copy(node, False, index),
                self.labeler(node.label, index == count - 1, node, None),
            )
        return result


def expand_non_standard_dice(
    expr: ExprNode[Any],
    labeler: Labeler = _keep_label,
    cache: ConversionCache | None = None,
) -> ExprNode[Any]:
    """Replace every non-standard dice term with standard dice.

    An ``NdM`` term becomes the sum of ``N`` copies of the conversion of a
    ``dM``. ``labeler`` labels each copy and, for ``N > 1``, each sum node
    joining them; the outermost sum is flagged as the new root.

    The result always has the same range as ``expr``.
    """
    return fold_expr(expr, _Expander(labeler, cache))
