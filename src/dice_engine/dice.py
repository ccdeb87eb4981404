from __future__ import annotations

import random
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from .evaluate import to_string_with_values
from .expr import ExprNode
from .group import DiceExprGroup, DiceGroup
from .log import logger
from .models import DieKind
from .parser import parse_dice_expression
from .roller import AsyncDiceRoller, DiceResult, DiceRoller, PlainDiceRoller, StandardizingDiceRoller


# Label key marking nodes introduced when expanding non-standard dice.
ORIGIN_LABEL = "origin"


def _now_utc_iso() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


@dataclass(frozen=True)
class RollOutcome:
    input: str
    expr: ExprNode[Any]
    evaluated: ExprNode[Any]
    total: int
    explanation: str

    @property
    def normalized_expression(self) -> str:
        return str(self.expr)

    def as_dict(self) -> dict[str, Any]:
        """Audit record of the roll."""
        return {
            "request_id": uuid.uuid4().hex,
            "timestamp": _now_utc_iso(),
            "input": self.input,
            "normalized_expression": self.normalized_expression,
            "standard_expression": str(self.evaluated),
            "total": self.total,
            "explanation": self.explanation,
        }


def _prepare(text: str, kind: DieKind | None) -> tuple[ExprNode[Any], DiceExprGroup, DiceGroup]:
    expr = parse_dice_expression(text, kind)
    standardized = DiceExprGroup((expr,)).standardize(ORIGIN_LABEL)
    return expr, standardized, standardized.flatten_dice_to_group()


def _finish(text: str, expr: ExprNode[Any], standardized: DiceExprGroup, results: list[DiceResult]) -> RollOutcome:
    evaluated = standardized.apply_values(results).exprs[0]
    outcome = RollOutcome(
        input=text,
        expr=expr,
        evaluated=evaluated,
        total=evaluated.label["value"],
        explanation=to_string_with_values(evaluated),
    )
    logger.debug(f"ROLL_TEXT | input={text} | explanation={outcome.explanation}")
    return outcome


def roll_from_text(
    text: str,
    roller: DiceRoller | None = None,
    kind: DieKind | None = None,
    rng: random.Random | None = None,
) -> RollOutcome:
    """Parse, standardize, then roll. Raises DiceError for invalid input.

    Non-standard dice are rewritten into standard ones before ``roller`` sees
    them, so the explanation shows the standard dice actually rolled.
    """
    expr, standardized, flat = _prepare(text, kind)
    roller = roller or PlainDiceRoller(rng)
    return _finish(text, expr, standardized, roller.roll(flat))


async def roll_from_text_async(
    text: str,
    roller: AsyncDiceRoller | None = None,
    kind: DieKind | None = None,
    rng: random.Random | None = None,
) -> RollOutcome:
    expr, standardized, flat = _prepare(text, kind)
    roller = roller or PlainDiceRoller(rng)
    return _finish(text, expr, standardized, await roller.roll_async(flat))


def roll_group_from_text(
    text: str,
    roller: DiceRoller | None = None,
    rng: random.Random | None = None,
) -> list[DiceResult]:
    """Roll a group such as ``"1d6;1d36"``, one result per slot."""
    group = DiceGroup.from_string(text)
    return StandardizingDiceRoller(roller or PlainDiceRoller(rng)).roll(group)
