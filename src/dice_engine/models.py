from __future__ import annotations

import random
import re
import secrets
from collections.abc import Hashable, Iterator
from dataclasses import dataclass, replace
from functools import cache
from typing import TypeAlias

from .config import settings
from .errors import DiceSpecError


# Face counts a person can be expected to own as physical dice.
STANDARD_DIE_SIDES: frozenset[int] = frozenset({4, 6, 8, 10, 12, 20, 100})

DieKind: TypeAlias = Hashable

_DICE_RE = re.compile(r"^(?P<count>\d+)d(?P<sides>\d+)$")


@cache
def default_rng() -> random.Random:
    """Process-wide RNG: seeded if ``DICE_ENGINE_RANDOM_SEED`` is set."""
    if settings.random_seed is not None:
        return random.Random(settings.random_seed)
    return secrets.SystemRandom()


@dataclass(frozen=True)
class Dice:
    count: int
    sides: int
    kind: DieKind | None = None

    def __post_init__(self) -> None:
        if self.count <= 0:
            raise DiceSpecError(f"[INVALID_DICE] Invalid dice count {self.count}. Example: '2d6'.")
        if self.sides <= 0:
            raise DiceSpecError(f"[INVALID_DICE] Invalid dice sides {self.sides}. Example: '2d6'.")

    @classmethod
    def from_dice_string(cls, spec: str, kind: DieKind | None = None) -> Dice:
        m = _DICE_RE.match(spec)
        if not m:
            raise DiceSpecError(f"[INVALID_DICE] Invalid dice spec '{spec}'. Example: '2d6'.")
        return cls(int(m.group("count")), int(m.group("sides")), kind)

    def rolls(self, rng: random.Random | None = None) -> Iterator[int]:
        """Yield ``count`` independent faces in ``[1, sides]``."""
        rng = rng or default_rng()
        for _ in range(self.count):
            yield rng.randint(1, self.sides)

    def roll(self, rng: random.Random | None = None) -> int:
        return sum(self.rolls(rng))

    def min_roll(self) -> int:
        return self.count

    def max_roll(self) -> int:
        return self.count * self.sides

    def flip(self, roll: int) -> int:
        """Mirror a total within ``[min_roll(), max_roll()]``."""
        return self.max_roll() - roll + 1

    def copy(self) -> Dice:
        return replace(self)

    def with_kind(self, kind: DieKind | None) -> Dice:
        if kind == self.kind:
            return self
        return replace(self, kind=kind)

    @property
    def is_standard(self) -> bool:
        return self.sides in STANDARD_DIE_SIDES

    def __str__(self) -> str:
        return f"{self.count}d{self.sides}"
