"""Applying concrete rolls to an expression tree.

``evaluate_expr`` labels every node with its ``value``, and every dice term
additionally with the ``rolls`` that produced it.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping, Sequence
from typing import Any

from .errors import EvaluationError
from .expr import (
    BinaryOpNode,
    DiceTermNode,
    ExprFolder,
    ExprNode,
    NumberNode,
    UnaryOpNode,
    apply_binary,
    apply_unary,
    fold_expr,
    paren_if,
)


RollsFor = Callable[[DiceTermNode[Any], int], Sequence[int] | None]


def rolls_from_map(rolls: Mapping[DiceTermNode[Any], Sequence[int]]) -> RollsFor:
    """Look up rolls by dice term node identity."""

    def rolls_for(node: DiceTermNode[Any], index: int) -> Sequence[int] | None:
        return rolls.get(node)

    return rolls_for


def rolls_from_iterator(results: Iterable[Any]) -> RollsFor:
    """Hand out ``result.rolls`` (or ``result["rolls"]``) one per dice term.

    The results are consumed in the order the evaluator visits dice terms.
    Several ``evaluate_expr`` calls can share the same supply.
    """
    iterator = iter(results)

    def rolls_for(node: DiceTermNode[Any], index: int) -> Sequence[int] | None:
        result = next(iterator, None)
        if result is None:
            return None
        return result["rolls"] if isinstance(result, Mapping) else result.rolls

    return rolls_for


class _Evaluator(ExprFolder[ExprNode[Any], Any]):
    def __init__(self, rolls_for: RollsFor) -> None:
        self.rolls_for = rolls_for
        self.index = 0

    def visit_number(self, node: NumberNode[Any]) -> ExprNode[Any]:
        return node.update_labels(lambda current, _node: {**current, "value": node.value})

    def visit_dice(self, node: DiceTermNode[Any]) -> ExprNode[Any]:
        rolls = self.rolls_for(node, self.index)
        self.index += 1
        if rolls is None:
            raise EvaluationError(f"[MISSING_ROLLS] No rolls found for expression {node}.")
        dice = node.dice
        if len(rolls) != dice.count:
            raise EvaluationError(
                f"[WRONG_ROLL_COUNT] Expected {dice.count} rolls for expression {node}, but got {len(rolls)}."
            )
        invalid = [roll for roll in rolls if roll < 1 or roll > dice.sides]
        if invalid:
            raise EvaluationError(
                f"[INVALID_ROLL] Invalid rolls found for expression {node}: {', '.join(map(str, invalid))}."
            )
        rolls = tuple(rolls)
        return node.update_labels(lambda current, _node: {**current, "value": sum(rolls), "rolls": rolls})

    def visit_binary(self, node: BinaryOpNode[Any], left: ExprNode[Any], right: ExprNode[Any]) -> ExprNode[Any]:
        value = apply_binary(node.operator, left.label["value"], right.label["value"])
        return BinaryOpNode(left, node.operator, right, {**node.label, "value": value})

    def visit_unary(self, node: UnaryOpNode[Any], operand: ExprNode[Any]) -> ExprNode[Any]:
        value = apply_unary(node.operator, operand.label["value"])
        return UnaryOpNode(node.operator, operand, {**node.label, "value": value})


def evaluate_expr(expr: ExprNode[Any], rolls_for: RollsFor) -> ExprNode[Any]:
    """Evaluate ``expr`` with the rolls supplied by ``rolls_for``.

    Args:
        expr: Tree to evaluate.
        rolls_for: Called with each dice term and its visit index; returns
            that term's individual die faces, or None if it has none.

    Returns:
        A copy of ``expr`` where every node's label also has ``value``, and
        every dice term's label has ``rolls``.

    Raises:
        EvaluationError: If rolls are missing, the wrong count, or out of range.
    """
    return fold_expr(expr, _Evaluator(rolls_for))


class _ValueRenderer(ExprFolder[str, Any]):
    def visit_number(self, node: NumberNode[Any]) -> str:
        return str(node)

    def visit_dice(self, node: DiceTermNode[Any]) -> str:
        rolls = "+".join(str(roll) for roll in node.label.get("rolls", ("?",)))
        return f"{node.dice}{{{rolls}={node.label['value']}}}"

    def visit_binary(self, node: BinaryOpNode[Any], left: str, right: str) -> str:
        left = paren_if(node.left.precedence < node.precedence, left)
        right = paren_if(node.right.precedence < node.precedence, right)
        return f"{left} {node.operator} {right}"

    def visit_unary(self, node: UnaryOpNode[Any], operand: str) -> str:
        return f"{node.operator}{paren_if(node.operand.precedence < node.precedence, operand)}"


def to_string_with_values(expr: ExprNode[Any], include_result: bool = True) -> str:
    """Render an evaluated tree with inline rolls, e.g. ``2d6{3+4=7} + 1 = 8``."""
    rendered = fold_expr(expr, _ValueRenderer())
    return f"{rendered} = {expr.label['value']}" if include_result else rendered
