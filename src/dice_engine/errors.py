from __future__ import annotations


class DiceError(ValueError):
    """Base class for every dice engine failure.

    Messages start with a stable bracketed code, e.g. ``[INVALID_DICE]``.
    """


class DiceSpecError(DiceError):
    """Malformed ``NdM`` text or a non-positive count/sides."""


class DiceSyntaxError(DiceError):
    """Dice expression text that does not follow the grammar."""

    def __init__(self, message: str, position: int | None = None) -> None:
        self.position = position
        super().__init__(message)


class FactorizationError(DiceError):
    """Face count that cannot be converted to standard dice."""


class EvaluationError(DiceError):
    """Rolls that do not satisfy the expression being evaluated."""


class RangeError(DiceError):
    """Range arithmetic that has no well-defined answer."""


class InternalError(DiceError):
    """A transformation produced an inconsistent result. Indicates a bug."""
