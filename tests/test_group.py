import pytest

from dice_engine.errors import DiceSpecError
from dice_engine.expr import DiceTermNode, NumberNode
from dice_engine.group import GROUP_LABEL, DiceExprGroup, DiceGroup, ExpansionOrigin, GroupSlot
from dice_engine.models import Dice
from dice_engine.parser import parse_dice_expression
from dice_engine.ranges import calc_range
from dice_engine.standard import ConversionCache

D6 = Dice(1, 6)
D20 = Dice(1, 20)


def test_of_and_as_expr_group():
    group = DiceGroup.of(D6, D20).as_expr_group()
    assert isinstance(group, DiceExprGroup)
    assert len(group) == 2
    assert all(isinstance(expr, DiceTermNode) for expr in group.exprs)
    assert len(DiceGroup.of().as_expr_group()) == 0


def test_from_string():
    group = DiceGroup.from_string("1d6; 2d9")
    assert group == DiceGroup.of(D6, Dice(2, 9))
    assert str(group) == "1d6;2d9"
    with pytest.raises(DiceSpecError):
        DiceGroup.from_string("1d6;;1d6")


def test_standardize_keeps_standard_dice():
    standardized = DiceGroup.of(D6, D20).standardize()
    assert [str(node) for node in standardized.flatten_dice()] == ["1d6", "1d20"]
    assert [expr.label[GROUP_LABEL] for expr in standardized.exprs] == [GroupSlot(0, 0), GroupSlot(1, 0)]


def test_standardize_converts_non_standard_dice():
    standardized = DiceGroup.of(Dice(1, 9)).standardize()
    assert len(standardized) == 1
    assert calc_range(standardized.exprs[0]) == (1, 9)
    assert [str(node) for node in standardized.flatten_dice()] == ["1d6", "1d6"]


def test_standardize_splits_dice_count():
    standardized = DiceGroup.of(Dice(3, 9)).standardize()
    assert len(standardized) == 3
    for i, expr in enumerate(standardized.exprs):
        assert expr.label[GROUP_LABEL] == GroupSlot(group_index=0, dice_index=i)


def test_standardize_labels_every_slot():
    standardized = DiceGroup.of(D6, Dice(2, 8), Dice(1, 36)).standardize()
    slots = [expr.label[GROUP_LABEL] for expr in standardized.exprs]
    assert slots == [GroupSlot(0, 0), GroupSlot(1, 0), GroupSlot(2, 0)]
    assert str(standardized.flatten_dice_to_group()) == "1d6;2d8;1d6;1d6"


def test_flatten_dice_from_complex_expressions():
    group = DiceExprGroup(
        (
            DiceTermNode(D6),
            DiceTermNode(Dice(2, 8)),
            parse_dice_expression("1d4 + 3"),
            parse_dice_expression("(3d12 + 2) * (1d4 - 1)"),
        )
    )
    assert [str(node) for node in group.flatten_dice()] == ["1d6", "2d8", "1d4", "3d12", "1d4"]
    assert DiceExprGroup((NumberNode(5), NumberNode(10))).flatten_dice() == []


def test_apply_values():
    group = DiceExprGroup((DiceTermNode(D6), DiceTermNode(Dice(2, 8))))
    evaluated = group.apply_values([{"rolls": [4]}, {"rolls": [6, 4]}])
    assert evaluated.exprs[0].label == {"value": 4, "rolls": (4,)}
    assert evaluated.exprs[1].label == {"value": 10, "rolls": (6, 4)}


def test_apply_values_across_terms():
    group = DiceExprGroup((parse_dice_expression("2d6 + 1d4"),))
    evaluated = group.apply_values([{"rolls": [3, 5]}, {"rolls": [2]}])
    assert evaluated.exprs[0].label["value"] == 10


def test_apply_values_without_dice():
    evaluated = DiceExprGroup((NumberNode(5),)).apply_values([])
    assert evaluated.exprs[0].label["value"] == 5


def test_expr_group_standardize_with_origin_label():
    expr = parse_dice_expression("1d9 + 2")
    standardized = DiceExprGroup((expr,)).standardize("origin")
    dice_nodes = standardized.flatten_dice()
    assert len(dice_nodes) == 2
    assert all(node.dice.is_standard for node in dice_nodes)

    origin = standardized.exprs[0].left.label["origin"]
    assert origin == ExpansionOrigin(expr=expr.left, index=0, root=True)
    assert "origin" not in standardized.exprs[0].label


def test_expr_group_standardize_without_label():
    standardized = DiceExprGroup((parse_dice_expression("1d10"), parse_dice_expression("1d12"))).standardize()
    assert len(standardized) == 2
    assert str(standardized.exprs[0]) == "1d10"
    assert standardized.exprs[1].label == {}


def test_standardize_fills_given_cache():
    cache = ConversionCache()
    DiceGroup.of(Dice(1, 9)).standardize(cache)
    DiceExprGroup((parse_dice_expression("1d36"),)).standardize(cache=cache)
    assert len(cache) == 2
