"""Combinations of dice read as one bigger die.

Two d6 read as tens and units (``1d6;1d6``) behave like a single d36. These
helpers translate between per-slot ranges and ranges on that single die.
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass
from functools import reduce

from .errors import DiceError, DiceSpecError
from .models import Dice


_RANGE_RE = re.compile(r"^(?P<min>\d+)(?:\s*-\s*(?P<max>\d+))?$")


@dataclass(frozen=True)
class NumberRange:
    min: int
    max: int


def parse_range(text: str) -> NumberRange | None:
    """Parse ``"3"`` or ``"3-5"``. Returns None if the text is not a range."""
    m = _RANGE_RE.match(text)
    if not m:
        return None
    low = int(m.group("min"))
    high = int(m.group("max")) if m.group("max") else low
    return NumberRange(low, high)


def parse_ranges(text: str) -> list[NumberRange] | None:
    """Parse semicolon-separated ranges, e.g. ``"1-2;3-4"``."""
    ranges = [parse_range(part.strip()) for part in text.split(";")]
    if any(r is None for r in ranges):
        return None
    return ranges


def flatten_range_expr(dice: Sequence[Dice], text: str) -> list[NumberRange]:
    """Map one range per slot onto ranges of the combined die.

    The last slot is the least significant digit. Given ``1d6;1d6`` and
    ``"1-2;3-4"`` the result is ``[3-4, 9-10]``.

    Raises:
        DiceError: If the ranges do not parse or do not match the slot count.
    """
    ranges = parse_ranges(text)
    if ranges is None:
        raise DiceError(f"[INVALID_RANGE] invalid range expression {text}")
    if len(ranges) != len(dice):
        raise DiceError(f"[INVALID_RANGE] expected {len(dice)} ranges, found {len(ranges)}: {text}")

    # The least significant slot keeps its range as-is.
    flattened = [ranges[-1]]
    place_value = dice[-1].sides
    for index in range(len(dice) - 2, -1, -1):
        slot_range = ranges[index]
        flattened = [
            NumberRange(r.min + (face - 1) * place_value, r.max + (face - 1) * place_value)
            for r in flattened
            for face in range(slot_range.min, slot_range.max + 1)
        ]
        place_value *= dice[index].sides
    return flattened


def flatten_dice_combination(dice: Sequence[Dice]) -> Dice:
    """Turn single dice read as digits into one die, e.g. ``1d6;1d6`` into ``1d36``."""
    if len(dice) == 1:
        return dice[0]

    def multiply(acc: int, d: Dice) -> int:
        if d.count > 1:
            raise DiceSpecError("[INVALID_DICE] cannot flatten dice with multiple counts")
        return acc * d.sides

    return Dice(1, reduce(multiply, reversed(dice), 1))
