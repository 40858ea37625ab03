from __future__ import annotations

import time

import pytest

from conftest import ScriptedRng
from renderer import DiscordRollRenderer
from roller import MAX_EXPLOSIONS, DiceError, Roller, compare_matches
from rolls import (
    DiceExpressionRoll,
    DiceRollResult,
    ExpressionRoll,
    FateDieRoll,
    FateSides,
    GroupRoll,
    MathFunctionRoll,
    NumberRoll,
)


def roll(expression, *faces, default=None):
    rng = ScriptedRng(faces, default)
    return Roller(rng).roll(expression), rng


def faces_of(result):
    return [r.roll for r in result.rolls]


def valid_of(result):
    return [r.valid for r in result.rolls]


class TestDice:
    def test_plain_dice(self):
        result, rng = roll("2d6", 3, 4)
        assert isinstance(result, DiceRollResult)
        assert result.value == 7
        assert faces_of(result) == [3, 4]
        assert rng.calls == [(1, 6), (1, 6)]

    def test_count_defaults_to_one(self):
        result, rng = roll("d20", 12)
        assert result.value == 12
        assert result.count == NumberRoll(1)

    def test_percentile(self):
        result, rng = roll("d%", 42)
        assert result.value == 42
        assert rng.calls == [(1, 100)]

    def test_fate_dice(self):
        result, rng = roll("4dF", -1, 0, 1, 1)
        assert result.value == 1
        assert isinstance(result.die, FateSides)
        assert all(isinstance(r, FateDieRoll) for r in result.rolls)
        assert rng.calls == [(-1, 1)] * 4

    def test_too_many_dice(self):
        with pytest.raises(DiceError):
            roll("1001d6")

    def test_zero_sides(self):
        with pytest.raises(DiceError):
            roll("1d0")


class TestModifiers:
    def test_explode_adds_rolls(self):
        result, _ = roll("2d6!", 6, 2, 3)
        assert faces_of(result) == [6, 3, 2]
        assert result.value == 11

    def test_explode_with_target(self):
        result, _ = roll("1d100!>95", 97, 96, 12)
        assert faces_of(result) == [97, 96, 12]
        assert result.value == 205

    def test_explosions_are_capped(self):
        result, _ = roll("1d6!", default=6)
        assert len(result.rolls) == 1 + MAX_EXPLOSIONS

    def test_explode_every_face_rejected(self):
        with pytest.raises(DiceError):
            roll("1d1!", 1)

    def test_compound(self):
        result, _ = roll("1d6!!", 6, 6, 1)
        assert faces_of(result) == [13]
        assert result.value == 13

    def test_penetrate(self):
        result, _ = roll("1d6!p", 6, 4)
        assert faces_of(result) == [6, 3]
        assert result.value == 9

    def test_fate_cannot_explode(self):
        with pytest.raises(DiceError):
            roll("2dF!", 1, 1)

    def test_reroll(self):
        result, _ = roll("2d6r", 1, 4, 5)
        assert faces_of(result) == [5, 4]

    def test_reroll_once(self):
        result, _ = roll("1d6ro<3", 1, 2)
        assert faces_of(result) == [2]

    def test_keep_highest(self):
        result, _ = roll("4d6kh3", 1, 5, 3, 6)
        assert valid_of(result) == [False, True, True, True]
        assert result.value == 14
        assert len(result.rolls) == 4

    def test_keep_lowest(self):
        result, _ = roll("2d20kl1", 15, 4)
        assert valid_of(result) == [False, True]
        assert result.value == 4

    def test_drop_lowest(self):
        result, _ = roll("4d6d1", 1, 5, 3, 6)
        assert valid_of(result) == [False, True, True, True]

    def test_drop_highest(self):
        result, _ = roll("3d6dh1", 2, 6, 4)
        assert valid_of(result) == [True, False, True]
        assert result.value == 6

    def test_success_pool(self):
        result, _ = roll("3d6>=4", 5, 2, 4)
        assert result.value == 2
        assert [r.success for r in result.rolls] == [True, False, True]

    def test_failures_subtract(self):
        result, _ = roll("3d10>7f1", 8, 1, 5)
        assert [r.value for r in result.rolls] == [1, -1, 0]
        assert result.value == 0

    def test_fate_success_marks(self):
        result, _ = roll("3dF=1", 1, 0, -1)
        assert [(r.success, r.value) for r in result.rolls] == [(True, 1), (False, 0), (False, 0)]

    def test_match(self):
        result, _ = roll("4d6m", 3, 3, 5, 1)
        assert [r.matched for r in result.rolls] == [True, True, False, False]

    def test_sort_descending(self):
        result, _ = roll("3d6sd", 2, 6, 4)
        assert faces_of(result) == [6, 4, 2]

    def test_sort_ascending(self):
        result, _ = roll("3d6s", 2, 6, 4)
        assert faces_of(result) == [2, 4, 6]


class TestArithmetic:
    @pytest.mark.parametrize(
        "expression, value",
        [
            ("2*3+4", 10),
            ("2+3*4", 14),
            ("(1+2)*3", 9),
            ("7/2", 3.5),
            ("6/2", 3),
            ("2**3", 8),
            ("-7%3", -1),
            ("10-2-3", 5),
            ("floor(7/2)", 3),
            ("ceil(1.2)", 2),
            ("round(2.5)", 3),
            ("abs(-4)", 4),
        ],
    )
    def test_values(self, expression, value):
        result, _ = roll(expression)
        assert result.value == value

    def test_operands_flatten_per_level(self):
        result, _ = roll("1d100!>95+10-5+3-2", 50)
        assert isinstance(result, ExpressionRoll)
        assert result.ops == ("+", "-", "+", "-")
        assert result.value == 56

    def test_negative_literal(self):
        result, _ = roll("1d100!>95+-10", 50)
        assert result.dice[1] == NumberRoll(-10)
        assert result.value == 40

    def test_negated_dice(self):
        result, _ = roll("-1d6", 4)
        assert result.value == -4

    def test_function_node(self):
        result, _ = roll("floor(1d6/2)", 5)
        assert isinstance(result, MathFunctionRoll)
        assert result.op == "floor"
        assert result.value == 2

    def test_division_by_zero(self):
        with pytest.raises(DiceError):
            roll("10/0")

    def test_label(self):
        result, _ = roll("1d20 [attack] + 5", 12)
        assert result.dice[0].label == "attack"
        assert result.value == 17


class TestGroups:
    def test_keep_best_element(self):
        result, _ = roll("{1d6, 1d8}kh1", 2, 7)
        assert isinstance(result, GroupRoll)
        assert [d.valid for d in result.dice] == [False, True]
        assert result.value == 7

    def test_single_element_applies_to_each_die(self):
        result, _ = roll("{2d6+1d8}kh2", 2, 5, 7)
        inner = result.dice[0]
        assert isinstance(inner, DiceExpressionRoll)
        assert valid_of(inner.dice[0]) == [False, True]
        assert inner.dice[0].value == 5
        assert result.value == 12

    def test_group_success(self):
        result, _ = roll("{3d6, 1d20}>10", 3, 3, 3, 15)
        assert result.value == 1
        assert [d.success for d in result.dice] == [False, True]

    def test_group_sort(self):
        result, _ = roll("{1d6, 1d8}sd", 2, 7)
        assert [d.value for d in result.dice] == [7, 2]


class TestErrors:
    @pytest.mark.parametrize("expression", ["", "   ", "2d", "1d6+", "abc", "(1d6", "1d6)", "{1d6", "1d6 [x"])
    def test_malformed(self, expression):
        with pytest.raises(DiceError):
            roll(expression, default=1)

    @pytest.mark.parametrize("expression", ["9**9**9", "10**5000", "2**1024", "10**300*10**300"])
    def test_results_too_large(self, expression):
        with pytest.raises(DiceError, match="too large"):
            roll(expression)

    def test_large_power_fails_fast(self):
        started = time.perf_counter()
        with pytest.raises(DiceError):
            Roller().roll("9**9**9")
        assert time.perf_counter() - started < 1

    def test_complex_power(self):
        with pytest.raises(DiceError, match="real number"):
            roll("(-8)**0.5")

    def test_zero_to_negative_power(self):
        with pytest.raises(DiceError, match="Division by zero"):
            roll("0**-1")

    def test_overlong_literal(self):
        with pytest.raises(DiceError):
            roll("1" * 5000)

    def test_bounded_results_render(self):
        result, _ = roll("10**300")
        assert DiscordRollRenderer().render("10**300", result).startswith("```md\r\n# 1")

    def test_errors_are_value_errors(self):
        with pytest.raises(ValueError):
            roll("nope")


def test_compare_matches():
    assert compare_matches(5, (">", 4))
    assert not compare_matches(4, (">", 4))
    assert compare_matches(4, (">=", 4))
    assert compare_matches(1, ("=", 1))
    assert compare_matches(2, ("<=", 2))


def test_roll_and_render():
    result, _ = roll("2d6+1", 3, 4)
    assert DiscordRollRenderer().render("2d6+1", result) == "```md\r\n# 8 \r\nDetails: [2d6+1 ((3, 4) + 1)]```"
