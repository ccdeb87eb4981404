import pytest

from dice_engine.errors import FactorizationError
from dice_engine.expr import DiceTermNode, count_complexity, gather_dice, gather_dice_terms
from dice_engine.models import Dice
from dice_engine.parser import parse_dice_expression
from dice_engine.ranges import calc_range
from dice_engine.standard import (
    ConversionCache,
    convert_to_standard_dice,
    convert_to_standard_dice_cached,
    default_cache,
    expand_non_standard_dice,
)


@pytest.mark.parametrize(
    ("sides", "expected"),
    [
        (6, "1d6"),
        (100, "1d100"),
        (36, "1d6 + 6 * (1d6 - 1)"),
        (60, "1d10 + 10 * (1d6 - 1)"),
        (120, "1d10 + 10 * (1d12 - 1)"),
        (300, "1d100 + 100 * ((1d6 - 1) / 2 + 1 - 1)"),
        (1000, "(100 * (1d10 % 10) + 1d100 % 100 - 1) % 1000 + 1"),
        (9, "(1d6 - 1) / 2 + 1 + 3 * ((1d6 - 1) / 2 + 1 - 1)"),
        (3, "(1d6 - 1) / 2 + 1"),
        (7, "1d7"),
    ],
)
def test_convert_to_standard_dice(sides, expected):
    assert str(convert_to_standard_dice(sides)) == expected


def test_standard_sides_stay_single_dice_term():
    assert isinstance(convert_to_standard_dice(20), DiceTermNode)


@pytest.mark.parametrize("sides", range(1, 101))
def test_conversion_range_matches_die(sides):
    assert calc_range(convert_to_standard_dice(sides)) == (1, sides)


@pytest.mark.parametrize("sides", [300, 360, 1000, 2000, 4096])
def test_conversion_range_matches_large_die(sides):
    assert calc_range(convert_to_standard_dice(sides)) == (1, sides)


@pytest.mark.parametrize("sides", [0, -5, 5.5, True, "6"])
def test_invalid_sides(sides):
    with pytest.raises(FactorizationError) as exc:
        convert_to_standard_dice(sides)
    assert "Invalid number of sides" in str(exc.value)


def test_conversion_uses_fewest_dice():
    # 100 could also be 1d10 + 10 * (1d10 - 1), but one d100 is simpler.
    assert count_complexity(convert_to_standard_dice(100)) == 1
    assert count_complexity(convert_to_standard_dice(36)) == 2


def test_conversion_is_exhaustive_over_every_roll():
    expr = convert_to_standard_dice(36)
    faces = []
    for units in range(1, 7):
        for sixes in range(1, 7):
            rolls = iter([units, sixes])
            faces.append(expr.evaluate(lambda dice: next(rolls)))
    assert sorted(faces) == list(range(1, 37))


def test_cache_memoizes_by_sides_and_applies_kind():
    cache = ConversionCache()
    plain = cache.convert(36)
    assert 36 in cache
    assert len(cache) == 1
    assert cache.convert(36) is plain

    tagged = cache.convert(36, "oracle")
    assert len(cache) == 1
    assert [d.kind for d in gather_dice(tagged)] == ["oracle", "oracle"]
    assert [d.kind for d in gather_dice(plain)] == [None, None]

    cache.clear()
    assert len(cache) == 0


def test_cached_conversion_uses_given_cache():
    cache = ConversionCache()
    convert_to_standard_dice_cached(1000, cache=cache)
    assert 1000 in cache


def test_given_cache_leaves_default_cache_untouched():
    default_cache.clear()
    cache = ConversionCache()
    convert_to_standard_dice_cached(36, cache=cache)
    expand_non_standard_dice(parse_dice_expression("1d9 + 2d36"), cache=cache)
    assert 9 in cache
    assert 36 in cache
    assert len(cache) == 2
    assert len(default_cache) == 0


@pytest.mark.parametrize(
    ("text", "expected", "expected_range"),
    [
        ("1d36", "1d6 + 6 * (1d6 - 1)", (1, 36)),
        ("2d36", "1d6 + 6 * (1d6 - 1) + 1d6 + 6 * (1d6 - 1)", (2, 72)),
        ("3d6", "3d6", (3, 18)),
        ("1d36 + 2d6", "1d6 + 6 * (1d6 - 1) + 2d6", (3, 48)),
        ("1d36 * 2", "(1d6 + 6 * (1d6 - 1)) * 2", (2, 72)),
        ("(1d36 - 5) / 2", "(1d6 + 6 * (1d6 - 1) - 5) / 2", (-2, 15)),
        ("-1d36", "-(1d6 + 6 * (1d6 - 1))", (-36, -1)),
        ("1d1000", "(100 * (1d10 % 10) + 1d100 % 100 - 1) % 1000 + 1", (1, 1000)),
        ("1d36 + 1d36", "1d6 + 6 * (1d6 - 1) + 1d6 + 6 * (1d6 - 1)", (2, 72)),
    ],
)
def test_expand_non_standard_dice(text, expected, expected_range):
    expanded = expand_non_standard_dice(parse_dice_expression(text))
    assert str(expanded) == expected
    assert calc_range(expanded) == expected_range


@pytest.mark.parametrize("text", ["1d9 + 2d7 * 3", "-(3d12 % 1d5)", "1d300 / 1d60", "4d2 - 1d3"])
def test_expand_preserves_range(text):
    expr = parse_dice_expression(text)
    assert calc_range(expand_non_standard_dice(expr)) == calc_range(expr)


def test_expand_leaves_standard_tree_untouched():
    expr = parse_dice_expression("2d6 + 1d20 * 3")
    assert expand_non_standard_dice(expr) is expr


def test_expand_keeps_kind():
    expr = parse_dice_expression("1d36", kind="challenge")
    expanded = expand_non_standard_dice(expr)
    assert [d.kind for d in gather_dice(expanded)] == ["challenge", "challenge"]


def test_expand_labeler_tracks_provenance():
    original = DiceTermNode(Dice(3, 9), {"slot": "a"})
    calls = []

    def labeler(label, is_new_root, node, index):
        calls.append((is_new_root, index))
        assert node is original
        return {**label, "root": is_new_root, "index": index}

    expanded = expand_non_standard_dice(original, labeler)

    assert calls == [(False, 0), (False, 1), (False, None), (False, 2), (True, None)]
    assert expanded.label == {"slot": "a", "root": True, "index": None}
    assert expanded.right.label == {"slot": "a", "root": False, "index": 2}
    assert expanded.left.left.label == {"slot": "a", "root": False, "index": 0}


def test_expand_single_die_copy_is_root():
    expanded = expand_non_standard_dice(
        DiceTermNode(Dice(1, 36)), lambda label, is_new_root, node, index: {"root": is_new_root, "index": index}
    )
    assert expanded.label == {"root": True, "index": 0}


def test_expanded_copies_are_distinct_nodes():
    expanded = expand_non_standard_dice(parse_dice_expression("2d36"))
    terms = [id(node) for node in gather_dice_terms(expanded)]
    assert len(set(terms)) == 4

