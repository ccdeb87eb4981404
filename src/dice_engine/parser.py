from __future__ import annotations

import re
from typing import Any

from .errors import DiceError, DiceSyntaxError
from .expr import BinaryOpNode, DiceTermNode, ExprNode, NumberNode, UnaryOpNode
from .models import DieKind


_WHITESPACE_RE = re.compile(r"\s+")

_END = "\0"


def _is_digit(char: str) -> bool:
    return "0" <= char <= "9"


def normalize_text(text: str) -> str:
    """Drop all whitespace and lowercase the ``d`` of dice terms."""
    return _WHITESPACE_RE.sub("", text).lower()


class DiceExpressionParser:
    """Recursive-descent parser for dice arithmetic.

    Grammar::

        expression     := additive
        additive       := multiplicative (("+" | "-") multiplicative)*
        multiplicative := unary (("*" | "/" | "%") unary)*
        unary          := "-" unary | primary
        primary        := "(" expression ")" | INTEGER ["d" INTEGER]

    Every dice term produced is tagged with ``kind``.
    """

    def __init__(self, text: str, kind: DieKind | None = None) -> None:
        self.text = normalize_text(text)
        self.kind = kind
        self.current = 0

    def parse(self) -> ExprNode[Any]:
        if not self.text:
            raise DiceSyntaxError(
                "[UNPARSEABLE_INPUT] Empty input. Example: '2d6 + 3' or '1d20 - 1d4'.", position=0
            )
        result = self._expression()
        if not self._at_end():
            raise self._error(f"[TRAILING_INPUT] Unexpected character at end: '{self._peek()}'.")
        return result

    def _expression(self) -> ExprNode[Any]:
        return self._additive()

    def _additive(self) -> ExprNode[Any]:
        expr = self._multiplicative()
        while self._match("+", "-"):
            operator = self._previous()
            expr = BinaryOpNode(expr, operator, self._multiplicative(), {})
        return expr

    def _multiplicative(self) -> ExprNode[Any]:
        expr = self._unary()
        while self._match("*", "/", "%"):
            operator = self._previous()
            expr = BinaryOpNode(expr, operator, self._unary(), {})
        return expr

    def _unary(self) -> ExprNode[Any]:
        if self._match("-"):
            return UnaryOpNode("-", self._unary(), {})
        return self._primary()

    def _primary(self) -> ExprNode[Any]:
        if self._match("("):
            expr = self._expression()
            if not self._match(")"):
                raise self._error("[UNMATCHED_PAREN] Expected ')'.")
            return expr

        if _is_digit(self._peek()):
            start = self.current
            self._skip_digits()

            if self._peek() == "d":
                self.current += 1
                if _is_digit(self._peek()):
                    self._skip_digits()
                    try:
                        return DiceTermNode.from_dice_string(self.text[start : self.current], self.kind, {})
                    except DiceError:
                        pass

            # Not a valid dice term: the digits are a plain number.
            self.current = start
            self._skip_digits()
            return NumberNode(int(self.text[start : self.current]), {})

        if self._at_end():
            raise self._error("[MISSING_OPERAND] Expected a number, dice or '(' but reached the end.")
        raise self._error(f"[UNEXPECTED_CHARACTER] Unexpected character: '{self._peek()}'.")

    def _skip_digits(self) -> None:
        while _is_digit(self._peek()):
            self.current += 1

    def _match(self, *expected: str) -> bool:
        if self._at_end() or self.text[self.current] not in expected:
            return False
        self.current += 1
        return True

    def _peek(self) -> str:
        return _END if self._at_end() else self.text[self.current]

    def _previous(self) -> str:
        return self.text[self.current - 1]

    def _at_end(self) -> bool:
        return self.current >= len(self.text)

    def _error(self, message: str) -> DiceSyntaxError:
        return DiceSyntaxError(f"{message} (at position {self.current} of '{self.text}')", position=self.current)


def parse_dice_expression(text: str, kind: DieKind | None = None) -> ExprNode[Any]:
    return DiceExpressionParser(text, kind).parse()
