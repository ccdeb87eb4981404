"""Rollers: turn a group of dice into results.

Anything implementing ``DiceRoller`` (or ``AsyncDiceRoller``) can be wrapped
in a ``StandardizingDiceRoller`` so it only ever has to roll standard dice.
"""

from __future__ import annotations

import random
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

from .errors import InternalError
from .expr import ExprNode, is_dice_term
from .group import GROUP_LABEL, DiceExprGroup, DiceGroup
from .log import logger
from .models import Dice
from .standard import ConversionCache


@dataclass(frozen=True)
class DiceResult:
    dice: Dice
    value: int
    rolls: tuple[int, ...]
    # Evaluated standard-dice expressions that produced this result, if any.
    exprs: tuple[ExprNode[Any], ...] | None = None


@runtime_checkable
class DiceRoller(Protocol):
    def roll(self, group: DiceGroup) -> list[DiceResult]: ...


@runtime_checkable
class AsyncDiceRoller(Protocol):
    async def roll_async(self, group: DiceGroup) -> list[DiceResult]: ...


class PlainDiceRoller:
    """Rolls every slot directly with an RNG, without standardizing."""

    def __init__(self, rng: random.Random | None = None) -> None:
        self.rng = rng

    def roll(self, group: DiceGroup) -> list[DiceResult]:
        results = []
        for dice in group.dice:
            rolls = tuple(dice.rolls(self.rng))
            results.append(DiceResult(dice=dice, value=sum(rolls), rolls=rolls))
        return results

    async def roll_async(self, group: DiceGroup) -> list[DiceResult]:
        return self.roll(group)


class AsyncifiedRoller:
    """Gives a synchronous roller a ``roll_async`` method."""

    def __init__(self, roller: DiceRoller) -> None:
        self.roller = roller

    def roll(self, group: DiceGroup) -> list[DiceResult]:
        return self.roller.roll(group)

    async def roll_async(self, group: DiceGroup) -> list[DiceResult]:
        return self.roller.roll(group)


def asyncify_roller(roller: DiceRoller) -> AsyncifiedRoller:
    return AsyncifiedRoller(roller)


def reassemble_results(
    group: DiceGroup, standardized: DiceExprGroup, results: Sequence[DiceResult]
) -> list[DiceResult]:
    """Fold results for the flattened standard dice back into ``group``'s slots.

    Args:
        group: The group as the caller asked for it.
        standardized: ``group.standardize()``.
        results: One result per dice term of ``standardized.flatten_dice()``.

    Raises:
        InternalError: If a standardized expression lacks its slot label.
    """
    evaluated = standardized.apply_values(results)

    values = [0] * len(group)
    rolls: list[list[int]] = [[] for _ in group.dice]
    exprs: list[list[ExprNode[Any]]] = [[] for _ in group.dice]
    for expr in evaluated.exprs:
        slot = expr.label.get(GROUP_LABEL)
        if slot is None:
            raise InternalError(f"[MISSING_GROUP_LABEL] Standardized expression {expr} has no group label.")
        value = expr.label["value"]
        values[slot.group_index] += value
        if is_dice_term(expr):
            rolls[slot.group_index].extend(expr.label["rolls"])
        else:
            rolls[slot.group_index].append(value)
            exprs[slot.group_index].append(expr)

    return [
        DiceResult(dice=dice, value=values[i], rolls=tuple(rolls[i]), exprs=tuple(exprs[i]) or None)
        for i, dice in enumerate(group.dice)
    ]


class StandardizingDiceRoller:
    """Lets a roller that only knows standard dice roll any dice.

    The requested group is standardized, the resulting standard dice are
    rolled by ``inner`` as one flat group, and the results are put back
    together per original slot.
    """

    def __init__(self, inner: Any, cache: ConversionCache | None = None) -> None:
        self.inner = inner
        self.cache = cache

    def _prepare(self, group: DiceGroup) -> tuple[DiceExprGroup, DiceGroup]:
        standardized = group.standardize(self.cache)
        flat = standardized.flatten_dice_to_group()
        logger.debug(f"ROLL_STANDARDIZE | group={group} | standard={flat}")
        return standardized, flat

    def roll(self, group: DiceGroup) -> list[DiceResult]:
        standardized, flat = self._prepare(group)
        results = reassemble_results(group, standardized, self.inner.roll(flat))
        logger.debug(f"ROLL_OK | group={group} | values={[r.value for r in results]}")
        return results

    async def roll_async(self, group: DiceGroup) -> list[DiceResult]:
        standardized, flat = self._prepare(group)
        results = reassemble_results(group, standardized, await self.inner.roll_async(flat))
        logger.debug(f"ROLL_OK | group={group} | values={[r.value for r in results]}")
        return results
