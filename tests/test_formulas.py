"""Tests for formula parsing and evaluation."""

from __future__ import annotations

import datetime
import math
import random
from typing import Any

import pytest

from sheetcalc.formulas import (
    ENGINE_ERRORS,
    SUPPORTED_FUNCTIONS,
    ErrorKind,
    FormulaDomainError,
    FormulaFunctionError,
    FormulaParseError,
    FormulaRefError,
    FormulaValueError,
    classify,
    evaluate_formula,
    parse_formula,
)


# ────────────────────────────────────────────────────────────────
# Helpers
# ────────────────────────────────────────────────────────────────


def _eval(formula: str, ctx: dict | None = None, **kwargs: Any) -> Any:
    """Parse and evaluate a formula string."""
    tree = parse_formula(formula)
    return evaluate_formula(tree, ctx or {}, **kwargs)


# ────────────────────────────────────────────────────────────────
# Parser tests
# ────────────────────────────────────────────────────────────────


class TestParser:
    def test_simple_addition(self) -> None:
        assert parse_formula("=1 + 2") is not None

    def test_must_start_with_equals(self) -> None:
        with pytest.raises(FormulaParseError):
            parse_formula("1 + 2")

    @pytest.mark.parametrize(
        "text",
        ["=", "=1 +", "=(1 + 2", "=1 + 2)", "=SUM(1,", "=1 $ 2", "=a1 + 1", "=\"open"],
    )
    def test_syntax_errors(self, text: str) -> None:
        with pytest.raises(FormulaParseError):
            parse_formula(text)

    def test_error_has_position(self) -> None:
        with pytest.raises(FormulaParseError) as exc_info:
            parse_formula("=1 + * 2")
        assert exc_info.value.position is not None
        assert exc_info.value.kind == ErrorKind.parse

    def test_function_name_not_read_as_cell(self) -> None:
        """LOG10( is a function call, LOG10 alone would be a cell."""
        assert _eval("=LOG10(100)") == pytest.approx(2.0)
        assert _eval("=LOG10", {"LOG10": 7}) == 7

    def test_space_before_paren(self) -> None:
        assert _eval("=SUM (1, 2)") == 3


# ────────────────────────────────────────────────────────────────
# Arithmetic
# ────────────────────────────────────────────────────────────────


class TestArithmetic:
    def test_basic(self) -> None:
        assert _eval("=2+3") == 5
        assert _eval("=(2+3)*4") == 20
        assert _eval("=15/3") == 5

    def test_precedence(self) -> None:
        assert _eval("=2 + 3 * 4") == 14
        assert _eval("=10 - 4 - 3") == 3
        assert _eval("=2 * 3 ^ 2") == 18

    def test_power_right_associative(self) -> None:
        assert _eval("=2^3^2") == 512

    def test_negative_exponent(self) -> None:
        assert _eval("=2^-1") == pytest.approx(0.5)

    def test_unary(self) -> None:
        assert _eval("=-5 + +2") == -3
        assert _eval("=--4") == 4

    def test_percent(self) -> None:
        assert _eval("=50%") == pytest.approx(0.5)
        assert _eval("=200*3%") == pytest.approx(6.0)

    def test_float_literals(self) -> None:
        assert _eval("=1.5 * 2") == pytest.approx(3.0)
        assert _eval("=1e3") == pytest.approx(1000.0)

    def test_division_by_zero(self) -> None:
        with pytest.raises(ZeroDivisionError):
            _eval("=1/0")

    def test_division_by_empty_cell(self) -> None:
        with pytest.raises(ZeroDivisionError):
            _eval("=1/A1", {})

    def test_overflow(self) -> None:
        with pytest.raises(OverflowError):
            _eval("=10^400")

    def test_huge_int_power_is_exact(self) -> None:
        assert _eval("=2^64") == 2**64

    def test_complex_result_is_domain_error(self) -> None:
        with pytest.raises(FormulaDomainError):
            _eval("=(-8)^0.5")

    def test_text_literal_in_arithmetic(self) -> None:
        with pytest.raises(FormulaValueError):
            _eval('="abc" + 1')

    def test_numeric_text_literal_coerces(self) -> None:
        assert _eval('="2" * 3') == 6


# ────────────────────────────────────────────────────────────────
# Cell references
# ────────────────────────────────────────────────────────────────


class TestCellReferences:
    def test_numeric_cell(self) -> None:
        assert _eval("=A1*2", {"A1": 21}) == 42

    def test_numeric_text_cell(self) -> None:
        assert _eval("=A1+1", {"A1": "41"}) == 42

    def test_missing_cell_is_zero(self) -> None:
        assert _eval("=A1+5", {}) == 5

    def test_empty_and_none_are_zero(self) -> None:
        assert _eval("=A1+A2+1", {"A1": "", "A2": None}) == 1

    def test_text_cell_is_zero_in_arithmetic(self) -> None:
        assert _eval("=A1+1", {"A1": "hello"}) == 1

    def test_text_cell_strict(self) -> None:
        with pytest.raises(FormulaRefError):
            _eval("=A1+1", {"A1": "hello"}, strict=True)

    def test_missing_cell_strict_still_zero(self) -> None:
        assert _eval("=A1+1", {}, strict=True) == 1

    def test_text_cell_returned_as_str(self) -> None:
        result = _eval("=A1", {"A1": "hello"})
        assert result == "hello"
        assert type(result) is str

    def test_bool_cell(self) -> None:
        assert _eval("=A1+1", {"A1": True}) == 2

    def test_bare_range_is_ref_error(self) -> None:
        with pytest.raises(FormulaRefError):
            _eval("=A1:A3", {"A1": 1})

    def test_range_in_arithmetic_is_ref_error(self) -> None:
        with pytest.raises(FormulaRefError):
            _eval("=A1:A3+1", {"A1": 1})

    def test_range_in_scalar_function_is_ref_error(self) -> None:
        with pytest.raises(FormulaRefError):
            _eval("=POWER(A1:A2, 2)", {"A1": 1, "A2": 2})


# ────────────────────────────────────────────────────────────────
# Aggregates
# ────────────────────────────────────────────────────────────────


@pytest.fixture
def col_a() -> dict[str, Any]:
    return {"A1": 10, "A2": 20, "A3": 30}


class TestAggregates:
    def test_sum_range(self, col_a: dict) -> None:
        assert _eval("=SUM(A1:A3)", col_a) == 60

    def test_average_range(self, col_a: dict) -> None:
        assert _eval("=AVERAGE(A1:A3)", col_a) == 20

    def test_max_min_range(self, col_a: dict) -> None:
        assert _eval("=MAX(A1:A3)", col_a) == 30
        assert _eval("=MIN(A1:A3)", col_a) == 10

    def test_count(self) -> None:
        ctx = {"A1": 1, "A2": "x", "A3": 3, "A4": ""}
        assert _eval("=COUNT(A1:A4)", ctx) == 2

    def test_counta(self) -> None:
        ctx = {"A1": 1, "A2": "x", "A3": 3, "A4": ""}
        assert _eval("=COUNTA(A1:A4)", ctx) == 3

    def test_mixed_range_and_scalars(self, col_a: dict) -> None:
        assert _eval("=SUM(A1:A2, 5, A3)", col_a) == 65
        assert _eval("=MAX(A1:A3, 100)", col_a) == 100

    def test_sum_skips_text_cells(self) -> None:
        assert _eval("=SUM(A1:A3)", {"A1": 1, "A2": "abc", "A3": 2}) == 3

    def test_sum_bare_text_cell_counts_as_zero(self) -> None:
        assert _eval("=SUM(A1, A2)", {"A1": 1, "A2": "abc"}) == 1

    def test_bare_cells_are_scalars(self) -> None:
        assert _eval("=AVERAGE(A1)", {}) == 0
        assert _eval("=MIN(A1, A2)", {"A2": 5}) == 0
        assert _eval("=MAX(A1, A2)", {"A1": "abc", "A2": -5}) == 0
        assert _eval("=AVERAGE(A1, A2)", {"A1": "abc", "A2": 4}) == 2

    def test_bare_text_cell_strict(self) -> None:
        with pytest.raises(FormulaRefError):
            _eval("=SUM(A1, A2)", {"A1": 1, "A2": "abc"}, strict=True)
        with pytest.raises(FormulaRefError):
            _eval("=COUNT(A1)", {"A1": "abc"}, strict=True)

    def test_text_in_range_skipped_even_when_strict(self) -> None:
        assert _eval("=SUM(A1:A2)", {"A1": 1, "A2": "abc"}, strict=True) == 1

    def test_count_bare_cells(self) -> None:
        assert _eval("=COUNT(A1, A2, A3)", {"A1": 1, "A2": "x"}) == 3

    def test_counta_bare_cells(self) -> None:
        assert _eval("=COUNTA(A1, A2, A3)", {"A1": 1, "A2": "x"}) == 2

    def test_sum_empty_range_is_zero(self) -> None:
        assert _eval("=SUM(A1:A3)", {}) == 0

    def test_average_empty_range(self) -> None:
        with pytest.raises(FormulaDomainError):
            _eval("=AVERAGE(A1:A3)", {})

    def test_max_min_empty_range(self) -> None:
        with pytest.raises(FormulaDomainError):
            _eval("=MAX(A1:A3)", {})
        with pytest.raises(FormulaDomainError):
            _eval("=MIN(B1:B2)", {"A1": 1})

    def test_reversed_range(self, col_a: dict) -> None:
        assert _eval("=SUM(A3:A1)", col_a) == 60

    def test_two_dimensional(self) -> None:
        ctx = {"A1": 1, "B1": 2, "A2": 3, "B2": 4}
        assert _eval("=SUM(A1:B2)", ctx) == 10

    def test_sum_requires_argument(self) -> None:
        with pytest.raises(FormulaFunctionError):
            _eval("=SUM()")

    def test_literal_text_skipped(self) -> None:
        assert _eval('=SUM(1, "abc")') == 1
        assert _eval('=AVERAGE(2, "abc", 4)') == 3
        assert _eval('=COUNT(1, "abc", "2")') == 2
        assert _eval('=SUM("2", TRUE)') == 3

    def test_only_literal_text_is_empty(self) -> None:
        with pytest.raises(FormulaDomainError):
            _eval('=MAX("abc")')

    def test_aggregate_inside_expression(self, col_a: dict) -> None:
        assert _eval("=SUM(A1:A3) * 2 + 1", col_a) == 121


# ────────────────────────────────────────────────────────────────
# Scalar math
# ────────────────────────────────────────────────────────────────


class TestMath:
    def test_power(self) -> None:
        assert _eval("=POWER(2,3)") == 8

    def test_sqrt(self) -> None:
        assert _eval("=SQRT(16)") == 4

    def test_sqrt_negative(self) -> None:
        with pytest.raises(FormulaDomainError):
            _eval("=SQRT(-1)")

    def test_trig(self) -> None:
        assert _eval("=SIN(0)") == 0
        assert _eval("=COS(0)") == 1
        assert _eval("=TAN(PI()/4)") == pytest.approx(1.0)

    def test_log10(self) -> None:
        assert _eval("=LOG10(1000)") == pytest.approx(3.0)

    def test_log10_non_positive(self) -> None:
        with pytest.raises(FormulaDomainError):
            _eval("=LOG10(0)")

    def test_round(self) -> None:
        assert _eval("=ROUND(3.14159,2)") == pytest.approx(3.14)
        assert _eval("=ROUND(2.5)") == 3
        assert _eval("=ROUND(-2.5)") == -3
        assert _eval("=ROUND(2.675, 2)") == pytest.approx(2.68)
        assert _eval("=ROUND(1234, -2)") == 1200
        assert _eval("=ROUND(7)") == 7

    def test_ceiling_floor(self) -> None:
        assert _eval("=CEILING(4.2)") == 5
        assert _eval("=FLOOR(4.8)") == 4
        assert _eval("=CEILING(-4.2)") == -4
        assert _eval("=FLOOR(-4.2)") == -5
        assert _eval("=CEILING(7, 5)") == 10
        assert _eval("=FLOOR(7, 5)") == 5

    def test_abs(self) -> None:
        assert _eval("=ABS(-3)") == 3

    def test_mod(self) -> None:
        assert _eval("=MOD(10,3)") == 1
        assert _eval("=MOD(-7,3)") == 2
        assert _eval("=MOD(7,-3)") == -2

    def test_mod_zero(self) -> None:
        with pytest.raises(FormulaDomainError):
            _eval("=MOD(5, 0)")

    def test_constants(self) -> None:
        assert _eval("=PI()") == pytest.approx(math.pi)
        assert _eval("=E()") == pytest.approx(math.e)

    def test_arity(self) -> None:
        with pytest.raises(FormulaFunctionError):
            _eval("=POWER(2)")
        with pytest.raises(FormulaFunctionError):
            _eval("=PI(1)")

    def test_random_range(self) -> None:
        for _ in range(20):
            value = _eval("=RANDOM()")
            assert 0 <= value < 1

    def test_random_seeded(self) -> None:
        first = _eval("=RANDOM()", rng=random.Random(7))
        second = _eval("=RANDOM()", rng=random.Random(7))
        assert first == second
        assert _eval("=RAND()", rng=random.Random(7)) == first

    def test_randbetween(self) -> None:
        rng = random.Random(1)
        seen = {_eval("=RANDBETWEEN(1, 3)", rng=rng) for _ in range(100)}
        assert seen == {1, 2, 3}

    def test_randbetween_inverted(self) -> None:
        with pytest.raises(FormulaDomainError):
            _eval("=RANDBETWEEN(5, 1)")


# ────────────────────────────────────────────────────────────────
# Functions: names, logical, error, text
# ────────────────────────────────────────────────────────────────


class TestFunctionNames:
    def test_unknown_function(self) -> None:
        with pytest.raises(FormulaFunctionError) as exc_info:
            _eval("=INVALID_FUNCTION()")
        assert exc_info.value.func_name == "INVALID_FUNCTION"

    def test_names_are_case_sensitive(self) -> None:
        with pytest.raises(FormulaFunctionError):
            _eval("=sum(1, 2)")

    def test_supported_set(self) -> None:
        assert {"SUM", "POWER", "RANDBETWEEN", "IF", "IFERROR", "LEN", "TODAY", "EOMONTH"} <= SUPPORTED_FUNCTIONS


class TestLogical:
    def test_if(self) -> None:
        assert _eval("=IF(A1>0, 1, 2)", {"A1": 5}) == 1
        assert _eval("=IF(A1>0, 1, 2)", {"A1": -5}) == 2

    def test_if_without_else(self) -> None:
        assert _eval("=IF(FALSE, 1)") is False

    def test_if_is_lazy(self) -> None:
        assert _eval("=IF(TRUE, 1, 1/0)") == 1

    def test_and_or_not(self) -> None:
        assert _eval("=AND(TRUE, 1)") is True
        assert _eval("=AND(TRUE, 0)") is False
        assert _eval("=OR(FALSE, 0, 2)") is True
        assert _eval("=NOT(FALSE)") is True

    def test_comparisons(self) -> None:
        assert _eval("=1<2") is True
        assert _eval("=2>=2") is True
        assert _eval("=1<>1") is False
        assert _eval("=1=1.0") is True

    def test_text_comparison_case_insensitive(self) -> None:
        assert _eval('="abc"="ABC"') is True
        assert _eval('="a"<"b"') is True

    def test_mixed_type_ordering(self) -> None:
        assert _eval('=1<"a"') is True
        assert _eval('="z"<TRUE') is True

    def test_text_condition(self) -> None:
        with pytest.raises(FormulaValueError):
            _eval('=IF("maybe", 1, 2)')


class TestErrorFunctions:
    def test_iferror_catches(self) -> None:
        assert _eval("=IFERROR(1/0, -1)") == -1

    def test_iferror_passes_value(self) -> None:
        assert _eval("=IFERROR(4/2, -1)") == 2

    def test_iferror_catches_unknown_function(self) -> None:
        assert _eval("=IFERROR(NOPE(1), 0)") == 0

    def test_iferror_fallback_is_lazy(self) -> None:
        assert _eval("=IFERROR(1, 1/0)") == 1
        assert _eval("=IFERROR(NOPE(), IFERROR(1/0, ISERROR(SQRT(-1))))") is True

    def test_iserror(self) -> None:
        assert _eval("=ISERROR(SQRT(-1))") is True
        assert _eval("=ISERROR(SQRT(4))") is False

    def test_iserror_range(self) -> None:
        assert _eval("=ISERROR(A1:A2)") is True


class TestText:
    def test_concat_operator(self) -> None:
        assert _eval('="a" & 1 & TRUE') == "a1TRUE"

    def test_concat_integral_float(self) -> None:
        assert _eval('=2.0 & "x"') == "2x"

    def test_concatenate(self) -> None:
        assert _eval('=CONCATENATE(A1, "-", A2)', {"A1": "x", "A2": 3}) == "x-3"

    def test_left_right_mid(self) -> None:
        assert _eval('=LEFT("hello", 2)') == "he"
        assert _eval('=LEFT("hello")') == "h"
        assert _eval('=RIGHT("hello", 3)') == "llo"
        assert _eval('=RIGHT("hello", 0)') == ""
        assert _eval('=MID("hello", 2, 3)') == "ell"

    def test_mid_start_below_one(self) -> None:
        with pytest.raises(FormulaDomainError):
            _eval('=MID("hello", 0, 1)')

    def test_negative_count(self) -> None:
        with pytest.raises(FormulaDomainError):
            _eval('=LEFT("hello", -1)')

    def test_len_upper_lower_trim(self) -> None:
        assert _eval('=LEN("hello")') == 5
        assert _eval('=UPPER("abc")') == "ABC"
        assert _eval('=LOWER("ABC")') == "abc"
        assert _eval('=TRIM("  a   b ")') == "a b"

    def test_escaped_quote(self) -> None:
        assert _eval(r'="say \"hi\""') == 'say "hi"'


# ────────────────────────────────────────────────────────────────
# Dates
# ────────────────────────────────────────────────────────────────


_FIXED_NOW = datetime.datetime(2024, 3, 15, 9, 30, 5, 250000, tzinfo=datetime.timezone.utc)


def _fixed_clock() -> datetime.datetime:
    return _FIXED_NOW


class TestDates:
    def test_today_and_now(self) -> None:
        assert _eval("=TODAY()", clock=_fixed_clock) == "2024-03-15"
        assert _eval("=NOW()", clock=_fixed_clock) == "2024-03-15T09:30:05.250Z"

    def test_now_converted_to_utc(self) -> None:
        plus_two = datetime.timezone(datetime.timedelta(hours=2))

        def clock() -> datetime.datetime:
            return datetime.datetime(2024, 3, 16, 1, 0, tzinfo=plus_two)

        assert _eval("=TODAY()", clock=clock) == "2024-03-15"
        assert _eval("=NOW()", clock=clock) == "2024-03-15T23:00:00.000Z"

    def test_default_clock(self) -> None:
        today = _eval("=TODAY()")
        assert datetime.date.fromisoformat(today)

    def test_parts_of_today(self) -> None:
        assert _eval("=YEAR(TODAY())", clock=_fixed_clock) == 2024
        assert _eval("=MONTH(TODAY())", clock=_fixed_clock) == 3
        assert _eval("=DAY(NOW())", clock=_fixed_clock) == 15

    def test_parts_of_iso_text(self) -> None:
        ctx = {"A1": "2023-12-31", "A2": "2024-02-29T23:59:00Z"}
        assert _eval("=YEAR(A1)", ctx) == 2023
        assert _eval("=MONTH(A2)", ctx) == 2
        assert _eval('=DAY("2024-07-04")') == 4

    def test_parts_of_serial_number(self) -> None:
        assert _eval("=YEAR(45000)") == 2023
        assert _eval("=MONTH(45000)") == 3
        assert _eval("=DAY(45000)") == 15

    def test_date(self) -> None:
        assert _eval("=DATE(2024, 2, 29)") == "2024-02-29"
        assert _eval("=YEAR(DATE(2020, 1, 1))") == 2020

    def test_invalid_date(self) -> None:
        with pytest.raises(FormulaDomainError):
            _eval("=DATE(2023, 2, 29)")
        with pytest.raises(FormulaDomainError):
            _eval("=YEAR(0)")
        with pytest.raises(FormulaValueError):
            _eval('=YEAR("soon")')
        with pytest.raises(FormulaValueError):
            _eval("=MONTH(TRUE)")

    def test_eomonth(self) -> None:
        assert _eval('=EOMONTH("2024-01-15", 1)') == "2024-02-29"
        assert _eval('=EOMONTH("2024-01-15", -1)') == "2023-12-31"
        assert _eval("=EOMONTH(TODAY(), 0)", clock=_fixed_clock) == "2024-03-31"

    def test_arity(self) -> None:
        with pytest.raises(FormulaFunctionError):
            _eval("=TODAY(1)")
        with pytest.raises(FormulaFunctionError):
            _eval("=YEAR()")
        with pytest.raises(FormulaFunctionError):
            _eval("=DATE(2024, 1)")


# ────────────────────────────────────────────────────────────────
# Error classification
# ────────────────────────────────────────────────────────────────


class TestClassify:
    @pytest.mark.parametrize(
        "exc, kind",
        [
            (FormulaParseError("bad"), ErrorKind.parse),
            (FormulaFunctionError("X"), ErrorKind.unknown_function),
            (FormulaDomainError("SQRT", "neg"), ErrorKind.domain),
            (FormulaRefError("A1:A2"), ErrorKind.reference),
            (FormulaValueError("nan"), ErrorKind.value),
            (ZeroDivisionError(), ErrorKind.arithmetic),
            (OverflowError(), ErrorKind.arithmetic),
            (ValueError(), ErrorKind.domain),
            (RecursionError(), ErrorKind.parse),
            (TypeError(), ErrorKind.value),
        ],
    )
    def test_kinds(self, exc: Exception, kind: ErrorKind) -> None:
        assert classify(exc) == kind

    def test_engine_errors_cover_formula_errors(self) -> None:
        assert isinstance(FormulaRefError("A1"), ENGINE_ERRORS)
