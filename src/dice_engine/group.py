"""Groups of independent dice slots, e.g. ``1d6;1d6``."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from .evaluate import evaluate_expr, rolls_from_iterator
from .expr import DiceTermNode, ExprNode, gather_dice_terms
from .models import Dice
from .standard import ConversionCache, convert_to_standard_dice_cached, expand_non_standard_dice


# Label key under which DiceGroup.standardize records each expression's slot.
GROUP_LABEL = "dice_group"


@dataclass(frozen=True)
class GroupSlot:
    group_index: int
    dice_index: int


@dataclass(frozen=True)
class ExpansionOrigin:
    """Where a node introduced by ``DiceExprGroup.standardize`` came from."""

    expr: DiceTermNode[Any]
    index: int | None
    root: bool


@dataclass(frozen=True)
class DiceGroup:
    dice: tuple[Dice, ...]

    @classmethod
    def of(cls, *dice: Dice) -> DiceGroup:
        return cls(tuple(dice))

    @classmethod
    def from_string(cls, text: str) -> DiceGroup:
        """Parse ``"1d6;1d6"`` into a group of two slots."""
        return cls(tuple(Dice.from_dice_string(part.strip()) for part in text.split(";")))

    def __len__(self) -> int:
        return len(self.dice)

    def __str__(self) -> str:
        return ";".join(str(d) for d in self.dice)

    def as_expr_group(self) -> DiceExprGroup:
        return DiceExprGroup(tuple(DiceTermNode(d, {}) for d in self.dice))

    def standardize(self, cache: ConversionCache | None = None) -> DiceExprGroup:
        """Rewrite the group so it only uses standard dice.

        A standard slot stays a single dice term. A non-standard ``NdM``
        slot becomes ``N`` separate expressions, one per die. Every
        expression is labelled with its ``GroupSlot`` under ``GROUP_LABEL``.
        """
        exprs: list[ExprNode[Any]] = []
        for group_index, dice in enumerate(self.dice):
            if dice.is_standard:
                exprs.append(DiceTermNode(dice, {GROUP_LABEL: GroupSlot(group_index, 0)}))
                continue
            conversion = convert_to_standard_dice_cached(dice.sides, dice.kind, cache)
            for dice_index in range(dice.count):
                slot = GroupSlot(group_index, dice_index)
                exprs.append(conversion.copy().update_labels(lambda current, _node: {**current, GROUP_LABEL: slot}))
        return DiceExprGroup(tuple(exprs))


@dataclass(frozen=True, eq=False)
class DiceExprGroup:
    exprs: tuple[ExprNode[Any], ...]

    def __len__(self) -> int:
        return len(self.exprs)

    def flatten_dice(self) -> list[DiceTermNode[Any]]:
        """Every dice term across all expressions, in rolling order."""
        return [node for expr in self.exprs for node in gather_dice_terms(expr)]

    def flatten_dice_to_group(self) -> DiceGroup:
        return DiceGroup(tuple(node.dice for node in self.flatten_dice()))

    def apply_values(self, results: Iterable[Any]) -> DiceExprGroup:
        """Evaluate every expression with rolls taken in order from ``results``.

        ``results`` lines up with ``flatten_dice()``: one entry with a
        ``rolls`` sequence per dice term.
        """
        rolls_for = rolls_from_iterator(results)
        return DiceExprGroup(tuple(evaluate_expr(expr, rolls_for) for expr in self.exprs))

    def standardize(self, orig_label: str | None = None, cache: ConversionCache | None = None) -> DiceExprGroup:
        """Expand non-standard dice in every expression.

        If ``orig_label`` is given, each node introduced for a non-standard
        dice term gets an ``ExpansionOrigin`` under that key.
        """

        def labeler(label, is_new_root, original, index):
            if orig_label is None:
                return label
            return {**label, orig_label: ExpansionOrigin(original, index, is_new_root)}

        return DiceExprGroup(tuple(expand_non_standard_dice(expr, labeler, cache) for expr in self.exprs))
