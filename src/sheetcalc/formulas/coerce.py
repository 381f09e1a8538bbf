"""Operand coercion shared by the evaluator and the function tables."""

from __future__ import annotations

import math
from typing import Any

from sheetcalc.formulas.errors import (
    FormulaDomainError,
    FormulaRefError,
    FormulaValueError,
)
from sheetcalc.values import CellText, to_number


def scalar(value: Any) -> Any:
    """Reject an expanded range where a single value is required."""
    if isinstance(value, list):
        raise FormulaRefError("range", "A range cannot be used as a cell value")
    return value


def num(value: Any, opts: Any, func_name: str | None = None) -> int | float:
    """Coerce an operand to a number for arithmetic.

    Cell text counts as 0 (an error when ``opts.strict``); literal text
    must be numeric.
    """
    value = scalar(value)
    if isinstance(value, CellText):
        if opts.strict:
            raise FormulaRefError(str(value), f"Cell text {str(value)!r} used as a number")
        return 0
    number = to_number(value)
    if number is None:
        where = f"{func_name}: " if func_name else ""
        raise FormulaValueError(f"{where}expected a number, got {value!r}")
    return number


def check_number(value: Any) -> int | float:
    """Reject complex and non-finite results."""
    if isinstance(value, complex):
        raise FormulaDomainError("POWER", "result is not a real number")
    if isinstance(value, float) and not math.isfinite(value):
        raise OverflowError("Numeric result out of range")
    return value


def power(base: int | float, exp: int | float) -> int | float:
    """``base ** exp``, exact for small int exponents, overflow-checked otherwise."""
    if isinstance(base, int) and isinstance(exp, int) and 0 <= exp <= 64:
        return base**exp
    return check_number(float(base) ** exp)


def truthy(value: Any) -> bool:
    """Excel truthiness: non-zero numbers, TRUE, and the text "TRUE"/"FALSE"."""
    value = scalar(value)
    if isinstance(value, str):
        if value.upper() in ("TRUE", "FALSE"):
            return value.upper() == "TRUE"
        if isinstance(value, CellText):
            return False
        raise FormulaValueError(f"Cannot use {value!r} as a condition")
    return bool(value)
