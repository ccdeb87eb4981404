"""Immutable dice expression trees.

A tree is built from four node types: ``NumberNode``, ``DiceTermNode``,
``BinaryOpNode`` and ``UnaryOpNode``. Every node carries a ``label``, a
read-only mapping of annotations added by transformations (for example
``value`` and ``rolls`` after evaluation). Nodes are never modified; every
transformation returns new nodes, and returns the same node when nothing
changed.

``fold_expr`` is the single traversal primitive. It visits operands before
the operator, left before right, and every other transformation in this
package is written as an ``ExprFolder``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field, replace
from typing import Any, Generic, TypeAlias, TypeGuard, TypeVar

from .errors import DiceError, EvaluationError, InternalError
from .models import Dice, DieKind


Label: TypeAlias = Mapping[str, Any]

L = TypeVar("L", bound=Label)
T = TypeVar("T")

BINARY_PRECEDENCE: dict[str, int] = {"+": 1, "-": 1, "%": 2, "*": 3, "/": 3}
UNARY_PRECEDENCE: dict[str, int] = {"-": 5}
ATOMIC_PRECEDENCE = 10


def apply_binary(operator: str, left: int, right: int) -> int:
    if operator == "+":
        return left + right
    if operator == "-":
        return left - right
    if operator == "*":
        return left * right
    if operator in ("/", "%"):
        if right == 0:
            raise EvaluationError(f"[DIVISION_BY_ZERO] Cannot evaluate {left} {operator} 0.")
        # Floor division and a modulo that takes the divisor's sign.
        return left // right if operator == "/" else left % right
    raise DiceError(f"[UNKNOWN_OPERATOR] Unknown operator '{operator}'.")


def apply_unary(operator: str, value: int) -> int:
    if operator == "-":
        return -value
    raise DiceError(f"[UNKNOWN_OPERATOR] Unknown unary operator '{operator}'.")


def paren_if(condition: bool, text: str) -> str:
    return f"({text})" if condition else text


class Visitor(Generic[L]):
    """Callbacks for ``ExprNode.walk``. Override only what you need."""

    def visit_number(self, node: NumberNode[L]) -> None:
        pass

    def visit_dice(self, node: DiceTermNode[L]) -> None:
        pass

    def visit_binary(self, node: BinaryOpNode[L]) -> None:
        pass

    def visit_unary(self, node: UnaryOpNode[L]) -> None:
        pass


class ExprNode(ABC, Generic[L]):
    label: L

    @property
    @abstractmethod
    def precedence(self) -> int: ...

    @abstractmethod
    def evaluate(self, value_for: Callable[[Dice], int]) -> int:
        """Compute the value, asking ``value_for`` for each dice term's total."""

    @abstractmethod
    def walk(self, visitor: Visitor[L]) -> None:
        """Visit operands before their operator, left before right."""

    @abstractmethod
    def copy(self) -> ExprNode[L]: ...

    @abstractmethod
    def with_kind(self, kind: DieKind | None) -> ExprNode[L]:
        """Tag every dice term with ``kind``."""

    def update_labels(self, updater: Callable[[L, Any], Label]) -> Any:
        """Return this node with ``updater(label, node)`` as its label.

        Returns ``self`` if the new label equals the current one.
        """
        new_label = updater(self.label, self)
        if new_label is self.label or new_label == self.label:
            return self
        return replace(self, label=new_label)


@dataclass(frozen=True, eq=False)
class NumberNode(ExprNode[L]):
    value: int
    label: L = field(default_factory=dict)

    @property
    def precedence(self) -> int:
        return ATOMIC_PRECEDENCE

    def evaluate(self, value_for: Callable[[Dice], int]) -> int:
        return self.value

    def walk(self, visitor: Visitor[L]) -> None:
        visitor.visit_number(self)

    def copy(self) -> NumberNode[L]:
        return replace(self)

    def with_kind(self, kind: DieKind | None) -> NumberNode[L]:
        return self

    def __str__(self) -> str:
        return str(self.value)


@dataclass(frozen=True, eq=False)
class DiceTermNode(ExprNode[L]):
    dice: Dice
    label: L = field(default_factory=dict)

    @classmethod
    def from_dice_string(cls, spec: str, kind: DieKind | None = None, label: Label | None = None) -> DiceTermNode:
        return cls(Dice.from_dice_string(spec, kind), label if label is not None else {})

    @property
    def precedence(self) -> int:
        return ATOMIC_PRECEDENCE

    def evaluate(self, value_for: Callable[[Dice], int]) -> int:
        return value_for(self.dice)

    def walk(self, visitor: Visitor[L]) -> None:
        visitor.visit_dice(self)

    def copy(self) -> DiceTermNode[L]:
        return replace(self, dice=self.dice.copy())

    def with_kind(self, kind: DieKind | None) -> DiceTermNode[L]:
        dice = self.dice.with_kind(kind)
        if dice is self.dice:
            return self
        return replace(self, dice=dice)

    def __str__(self) -> str:
        return str(self.dice)


@dataclass(frozen=True, eq=False)
class BinaryOpNode(ExprNode[L]):
    left: ExprNode[L]
    operator: str
    right: ExprNode[L]
    label: L = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.operator not in BINARY_PRECEDENCE:
            raise DiceError(f"[UNKNOWN_OPERATOR] Unknown operator '{self.operator}'.")

    @property
    def precedence(self) -> int:
        return BINARY_PRECEDENCE[self.operator]

    def evaluate(self, value_for: Callable[[Dice], int]) -> int:
        return apply_binary(self.operator, self.left.evaluate(value_for), self.right.evaluate(value_for))

    def walk(self, visitor: Visitor[L]) -> None:
        self.left.walk(visitor)
        self.right.walk(visitor)
        visitor.visit_binary(self)

    def copy(self) -> BinaryOpNode[L]:
        return replace(self, left=self.left.copy(), right=self.right.copy())

    def with_kind(self, kind: DieKind | None) -> BinaryOpNode[L]:
        left = self.left.with_kind(kind)
        right = self.right.with_kind(kind)
        if left is self.left and right is self.right:
            return self
        return replace(self, left=left, right=right)

    def __str__(self) -> str:
        left = paren_if(self.left.precedence < self.precedence, str(self.left))
        right = paren_if(self.right.precedence < self.precedence, str(self.right))
        return f"{left} {self.operator} {right}"


@dataclass(frozen=True, eq=False)
class UnaryOpNode(ExprNode[L]):
    operator: str
    operand: ExprNode[L]
    label: L = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.operator not in UNARY_PRECEDENCE:
            raise DiceError(f"[UNKNOWN_OPERATOR] Unknown unary operator '{self.operator}'.")

    @property
    def precedence(self) -> int:
        return UNARY_PRECEDENCE[self.operator]

    def evaluate(self, value_for: Callable[[Dice], int]) -> int:
        return apply_unary(self.operator, self.operand.evaluate(value_for))

    def walk(self, visitor: Visitor[L]) -> None:
        self.operand.walk(visitor)
        visitor.visit_unary(self)

    def copy(self) -> UnaryOpNode[L]:
        return replace(self, operand=self.operand.copy())

    def with_kind(self, kind: DieKind | None) -> UnaryOpNode[L]:
        operand = self.operand.with_kind(kind)
        if operand is self.operand:
            return self
        return replace(self, operand=operand)

    def __str__(self) -> str:
        return f"{self.operator}{paren_if(self.operand.precedence < self.precedence, str(self.operand))}"


def is_dice_term(node: ExprNode[L]) -> TypeGuard[DiceTermNode[L]]:
    return isinstance(node, DiceTermNode)


class ExprFolder(ABC, Generic[T, L]):
    """Per-node reducers for ``fold_expr``."""

    @abstractmethod
    def visit_number(self, node: NumberNode[L]) -> T: ...

    @abstractmethod
    def visit_dice(self, node: DiceTermNode[L]) -> T: ...

    @abstractmethod
    def visit_binary(self, node: BinaryOpNode[L], left: T, right: T) -> T: ...

    @abstractmethod
    def visit_unary(self, node: UnaryOpNode[L], operand: T) -> T: ...


class _FoldingVisitor(Visitor[L], Generic[T, L]):
    def __init__(self, folder: ExprFolder[T, L]) -> None:
        self.folder = folder
        self.stack: list[T] = []

    def visit_number(self, node: NumberNode[L]) -> None:
        self.stack.append(self.folder.visit_number(node))

    def visit_dice(self, node: DiceTermNode[L]) -> None:
        self.stack.append(self.folder.visit_dice(node))

    def _pop(self, expected: int) -> list[T]:
        if len(self.stack) < expected:
            raise InternalError(
                f"[FOLD_MISMATCH] Expected {expected} operand results, but got {len(self.stack)} results."
            )
        operands = self.stack[-expected:]
        del self.stack[-expected:]
        return operands

    def visit_binary(self, node: BinaryOpNode[L]) -> None:
        left, right = self._pop(2)
        self.stack.append(self.folder.visit_binary(node, left, right))

    def visit_unary(self, node: UnaryOpNode[L]) -> None:
        [operand] = self._pop(1)
        self.stack.append(self.folder.visit_unary(node, operand))


def fold_expr(expr: ExprNode[L], folder: ExprFolder[T, L]) -> T:
    """Reduce ``expr`` bottom-up with ``folder``."""
    visitor: _FoldingVisitor[T, L] = _FoldingVisitor(folder)
    expr.walk(visitor)
    if len(visitor.stack) != 1:
        raise InternalError(
            f"[FOLD_MISMATCH] Expected a single result, but got {len(visitor.stack)} results."
        )
    return visitor.stack[0]


class TreeRebuilder(ExprFolder[ExprNode[Any], L]):
    """Folder that rebuilds the tree, reusing nodes whose children did not change.

    Subclasses override the visits they want to transform.
    """

    def visit_number(self, node: NumberNode[L]) -> ExprNode[Any]:
        return node

    def visit_dice(self, node: DiceTermNode[L]) -> ExprNode[Any]:
        return node

    def visit_binary(self, node: BinaryOpNode[L], left: ExprNode[Any], right: ExprNode[Any]) -> ExprNode[Any]:
        if left is node.left and right is node.right:
            return node
        return BinaryOpNode(left, node.operator, right, node.label)

    def visit_unary(self, node: UnaryOpNode[L], operand: ExprNode[Any]) -> ExprNode[Any]:
        if operand is node.operand:
            return node
        return UnaryOpNode(node.operator, operand, node.label)


class _DiceGatherer(Visitor[Any]):
    def __init__(self) -> None:
        self.nodes: list[DiceTermNode[Any]] = []

    def visit_dice(self, node: DiceTermNode[Any]) -> None:
        self.nodes.append(node)


def gather_dice_terms(expr: ExprNode[L]) -> list[DiceTermNode[L]]:
    """Every dice term in ``expr``, in traversal order."""
    gatherer = _DiceGatherer()
    expr.walk(gatherer)
    return gatherer.nodes


def gather_dice(expr: ExprNode[L]) -> list[Dice]:
    return [node.dice for node in gather_dice_terms(expr)]


def count_complexity(expr: ExprNode[L]) -> int:
    """Number of dice terms someone has to roll for ``expr``."""
    return len(gather_dice_terms(expr))


class _DiceNumberer(TreeRebuilder[L]):
    def __init__(self, key: str) -> None:
        self.key = key
        self.counter = 0

    def visit_dice(self, node: DiceTermNode[L]) -> ExprNode[Any]:
        self.counter += 1
        number = self.counter
        return node.update_labels(lambda current, _node: {**current, self.key: number})


def number_dice_terms(key: str, expr: ExprNode[L]) -> ExprNode[Any]:
    """Label each dice term with a 1-based position under ``key``."""
    return fold_expr(expr, _DiceNumberer(key))
