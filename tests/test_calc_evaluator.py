"""Tests for scratchcalc.calc SheetEvaluator and format_value."""

from __future__ import annotations

import math

import pytest
from hypothesis import given, strategies as st
from scratchcalc.calc._environment import MISSING, Environment
from scratchcalc.calc._errors import CompileError, EvaluationError, ParseError
from scratchcalc.calc._evaluator import SheetEvaluator, evaluate_sheet, format_value
from scratchcalc.calc._protocol import LineKind, NumberFormat


def _run(lines: list[str], env: Environment | None = None, fmt: str = "dec"):
    env = env if env is not None else Environment()
    outcomes, display = SheetEvaluator().evaluate(lines, env, fmt)
    return outcomes, display, env


class TestBasicEvaluation:
    def test_assignment_then_reference(self) -> None:
        outcomes, display, env = _run(["x = 2 + 3", "x * 2"])
        assert outcomes[1].outcome == {"value": 5, "name": "x"}
        assert outcomes[2].outcome == {"value": 10, "name": "anon2"}
        assert display == {1: "5", 2: "10"}
        assert env.get("x") == 5
        assert env.get("anon2") == 10

    def test_blank_and_comment_lines_skipped(self) -> None:
        outcomes, display, _ = _run(["", "  ", "# note", "1 + 1"])
        assert list(outcomes) == [4]
        assert display == {4: "2"}

    def test_line_numbers_are_one_based(self) -> None:
        outcomes, _, _ = _run(["1", "2", "3"])
        assert [rec.line_number for rec in outcomes.values()] == [1, 2, 3]

    def test_anonymous_result_referenced_later(self) -> None:
        _, display, _ = _run(["6 * 7", "anon1 + 1"])
        assert display[2] == "43"

    def test_math_builtins(self) -> None:
        _, display, _ = _run(["sqrt(16)", "floor(2.7) + ceil(0.2)", "round(pi, 2)"])
        assert display == {1: "4.0", 2: "3", 3: "3.14"}

    def test_true_division_gives_float(self) -> None:
        _, display, _ = _run(["10 / 4", "10 // 4", "10 % 4", "2 ** 10"])
        assert display == {1: "2.5", 2: "2", 3: "2", 4: "1024"}

    def test_strings_and_booleans(self) -> None:
        outcomes, display, _ = _run(["'ab' + 'cd'", "3 > 2", "not 1", "type(1.5)"])
        assert display == {1: "abcd", 2: "True", 3: "False", 4: "float"}
        assert outcomes[2].value is True

    def test_conditional_expression(self) -> None:
        _, display, _ = _run(["x = 7", "'big' if x > 5 else 'small'"])
        assert display[2] == "big"

    def test_chained_comparison(self) -> None:
        _, display, _ = _run(["1 < 2 < 3", "1 < 3 < 2"])
        assert display == {1: "True", 2: "False"}

    def test_bool_ops_return_deciding_operand(self) -> None:
        _, display, _ = _run(["0 or 5", "3 and 0", "2 and 4"])
        assert display == {1: "5", 2: "0", 3: "4"}

    def test_bitwise_and_hex_literals(self) -> None:
        _, display, _ = _run(["0xff & 0x0f", "1 << 4", "~0", "5 ^ 3"])
        assert display == {1: "15", 2: "16", 3: "-1", 4: "6"}

    def test_record_kinds(self) -> None:
        outcomes, _, _ = _run(["a = 1", "a + 1"])
        assert outcomes[1].kind is LineKind.ASSIGNMENT
        assert outcomes[2].kind is LineKind.EXPRESSION

    def test_function_form(self) -> None:
        env = Environment()
        outcomes, display = evaluate_sheet(["y = 4", "y * y"], env)
        assert display[2] == "16"
        assert outcomes[2].name == "anon2"

    def test_custom_prefix(self) -> None:
        env = Environment()
        SheetEvaluator(anonymous_prefix="_").evaluate(["1 + 1"], env)
        assert env.get("_1") == 2

    def test_invalid_prefix(self) -> None:
        with pytest.raises(ValueError):
            SheetEvaluator(anonymous_prefix="1x")


class TestLineErrors:
    def test_syntax_error_leaves_binding_absent(self) -> None:
        outcomes, display, env = _run(["x = +"])
        assert outcomes[1].error_type is CompileError
        assert outcomes[1].outcome.keys() == {"error"}
        assert 1 not in display
        assert env.get("x") is MISSING

    def test_syntax_error_keeps_previous_binding(self) -> None:
        env = Environment()
        env.set("x", 1)
        _run(["x = 1 +"], env)
        assert env.get("x") == 1

    def test_division_by_zero(self) -> None:
        outcomes, display, env = _run(["10 / 0"])
        assert outcomes[1].error_type is EvaluationError
        assert outcomes[1].error == "division by zero"
        assert display == {}
        assert len(env) == 0

    def test_math_domain_error(self) -> None:
        outcomes, _, _ = _run(["sqrt(-1)"])
        assert outcomes[1].error_type is EvaluationError

    def test_type_mismatch(self) -> None:
        outcomes, _, _ = _run(["1 + 'a'"])
        assert outcomes[1].error_type is EvaluationError
        assert "unsupported operand" in outcomes[1].error

    def test_undefined_name_only_fails_its_line(self) -> None:
        outcomes, display, _ = _run(["a = 1", "b = nope + 1", "a + 1"])
        assert outcomes[2].error_type is EvaluationError
        assert outcomes[2].error == "name 'nope' is not defined"
        assert display == {1: "1", 3: "2"}

    def test_empty_assignment_is_parse_error(self) -> None:
        outcomes, _, env = _run(["x ="])
        assert outcomes[1].error_type is ParseError
        assert env.get("x") is MISSING

    def test_disallowed_syntax(self) -> None:
        outcomes, _, _ = _run(["__import__('os').system('true')"])
        assert outcomes[1].error_type is CompileError

    def test_calling_a_number(self) -> None:
        outcomes, _, _ = _run(["pi(2)"])
        assert outcomes[1].error == "'float' object is not callable"

    def test_shadowed_builtin_not_callable(self) -> None:
        outcomes, _, env = _run(["sqrt = 4", "sqrt(4)"])
        assert outcomes[2].error_type is EvaluationError
        assert env.builtins()["sqrt"] is math.sqrt

    def test_error_records_carry_no_display_text(self) -> None:
        outcomes, _, _ = _run(["1/0"])
        assert outcomes[1].display_text is None
        assert not outcomes[1].ok

    def test_result_errors_property(self) -> None:
        result = SheetEvaluator().evaluate(["1", "1/0", "2"], Environment())
        assert [rec.line_number for rec in result.errors] == [2]


class TestLimits:
    def test_huge_power_rejected(self) -> None:
        outcomes, _, _ = _run(["9 ** 9 ** 9"])
        assert outcomes[1].error_type is EvaluationError

    def test_huge_shift_rejected(self) -> None:
        outcomes, _, _ = _run(["1 << 100000"])
        assert outcomes[1].error_type is EvaluationError

    def test_string_repetition_rejected(self) -> None:
        outcomes, _, _ = _run(["'ab' * 10 ** 6"])
        assert outcomes[1].error_type is EvaluationError

    def test_float_overflow(self) -> None:
        outcomes, _, _ = _run(["10.0 ** 400"])
        assert outcomes[1].error_type is EvaluationError

    def test_complex_result_rejected(self) -> None:
        outcomes, _, _ = _run(["(-8) ** 0.5"])
        assert outcomes[1].error == "complex results are not supported"

    def test_deep_expression(self) -> None:
        outcomes, _, _ = _run(["+".join(["1"] * 5000)])
        rec = outcomes[1]
        assert rec.ok or rec.error_type in (CompileError, EvaluationError)

    @pytest.mark.parametrize("nested", ["-" * 100000 + "1", "not " * 50000 + "1"])
    def test_deeply_nested_unary_fails_only_its_line(self, nested: str) -> None:
        outcomes, display, _ = _run(["a = 1", nested, "a + 1"])
        assert outcomes[2].error_type in (CompileError, EvaluationError)
        assert display == {1: "1", 3: "2"}

    def test_printf_width_rejected_before_formatting(self) -> None:
        outcomes, _, _ = _run(["'%0400000000d' % 1", "'%.999999999f' % 1.5"])
        for rec in outcomes.values():
            assert rec.error_type is EvaluationError
            assert "format width or precision" in rec.error

    def test_printf_within_limit(self) -> None:
        _, display, _ = _run(["'%05d' % 42", "'%.2f' % 3.14159"])
        assert display == {1: "00042", 2: "3.14"}

    def test_escaped_percent_not_mistaken_for_width(self) -> None:
        _, display, _ = _run(["'%%99999999d %d' % 7"])
        assert display == {1: "%99999999d 7"}


class TestReevaluation:
    def test_idempotent_passes(self) -> None:
        lines = ["a = 3", "b = a * 2", "b + 1", "oops +", "1/0"]
        env = Environment()
        ev = SheetEvaluator()
        first = ev.evaluate(lines, env)
        second = ev.evaluate(lines, env)
        assert first == second

    def test_idempotent_with_nan_result(self) -> None:
        env = Environment()
        ev = SheetEvaluator()
        first = ev.evaluate(["inf = 1e999", "inf - inf"], env)
        second = ev.evaluate(["inf = 1e999", "inf - inf"], env)
        assert math.isnan(first.outcomes[2].value)
        assert first == second

    def test_stale_binding_persists(self) -> None:
        env = Environment()
        ev = SheetEvaluator()
        ev.evaluate(["a = 1", "b = 2"], env)
        ev.evaluate(["b = 2"], env)
        assert env.get("a") == 1

    def test_stale_binding_still_visible(self) -> None:
        env = Environment()
        ev = SheetEvaluator()
        ev.evaluate(["rate = 4"], env)
        _, display = ev.evaluate(["rate * 10"], env)
        assert display[1] == "40"

    def test_redefinition_overwrites(self) -> None:
        env = Environment()
        ev = SheetEvaluator()
        ev.evaluate(["x = 1"], env)
        ev.evaluate(["x = 2"], env)
        assert env.get("x") == 2

    def test_positional_names_rebind_when_lines_shift(self) -> None:
        env = Environment()
        ev = SheetEvaluator()
        ev.evaluate(["5 * 5"], env)
        ev.evaluate(["", "5 * 5"], env)
        assert env.get("anon1") == 25
        assert env.get("anon2") == 25

    def test_later_line_sees_earlier_binding_same_pass(self) -> None:
        _, display, _ = _run(["a = 2", "a = a * 10", "a"])
        assert display == {1: "2", 2: "20", 3: "20"}

    def test_error_does_not_abort_pass(self) -> None:
        outcomes, display, _ = _run(["1/0", "x = +", "y = 3", "y * 2"])
        assert display == {3: "3", 4: "6"}
        assert len(outcomes) == 4


class TestHexFormat:
    def test_hex_display(self) -> None:
        _, display, _ = _run(["255", "-16", "2.5", "'s'", "True", "10 / 2"], fmt="hex")
        assert display == {1: "0xff", 2: "-0x10", 3: "2.5", 4: "s", 5: "True", 6: "0x5"}

    def test_format_does_not_change_values(self) -> None:
        dec, _, _ = _run(["x = 255"])
        hx, _, _ = _run(["x = 255"], fmt="hex")
        assert dec[1].value == hx[1].value == 255

    def test_toggle_round_trip(self) -> None:
        lines = ["a = 12", "a / 5", "a * 4", "'txt'"]
        env = Environment()
        ev = SheetEvaluator()
        _, dec = ev.evaluate(lines, env, NumberFormat.DEC)
        _, hx = ev.evaluate(lines, env, NumberFormat.HEX)
        _, dec_again = ev.evaluate(lines, env, NumberFormat.DEC)
        assert dec_again == dec
        assert hx[2] == dec[2] == "2.4"
        assert hx[3] == "0x30"


class TestFormatValue:
    @pytest.mark.parametrize(
        "value,fmt,expected",
        [
            (255, "hex", "0xff"),
            (255, "dec", "255"),
            (255, "decimal", "255"),
            (16.0, "hex", "0x10"),
            (16.0, "dec", "16.0"),
            (0.5, "hex", "0.5"),
            (-1, "hex", "-0x1"),
            (True, "hex", "True"),
            (float("inf"), "hex", "inf"),
            (float("nan"), "hex", "nan"),
            ("abc", "hex", "abc"),
            (math.sqrt, "dec", str(math.sqrt)),
        ],
    )
    def test_cases(self, value: object, fmt: str, expected: str) -> None:
        assert format_value(value, fmt) == expected

    def test_default_is_decimal(self) -> None:
        assert format_value(10) == "10"

    def test_invalid_format_name(self) -> None:
        with pytest.raises(ValueError):
            format_value(1, "octal")

    @given(st.integers())
    def test_hex_matches_builtin_hex(self, value: int) -> None:
        text = format_value(value, NumberFormat.HEX)
        assert text == hex(value)
        assert text == text.lower()
        assert int(text, 16) == value

    @given(st.integers(min_value=-(2**64), max_value=2**64))
    def test_dec_matches_str(self, value: int) -> None:
        assert format_value(value, NumberFormat.DEC) == str(value)

    @given(
        st.one_of(
            st.integers(),
            st.floats(allow_nan=True, allow_infinity=True),
            st.booleans(),
            st.text(),
        ),
        st.sampled_from(list(NumberFormat)),
    )
    def test_total(self, value: object, fmt: NumberFormat) -> None:
        assert isinstance(format_value(value, fmt), str)

    @given(st.floats(min_value=-1e6, max_value=1e6).filter(lambda f: not f.is_integer()))
    def test_fractional_unaffected_by_format(self, value: float) -> None:
        assert format_value(value, "hex") == format_value(value, "dec") == str(value)

    def test_int_beyond_str_limit(self) -> None:
        big = 1 << 20000
        assert format_value(big, "dec") in (str(big), hex(big))
