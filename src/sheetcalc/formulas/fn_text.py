"""Text formula functions: CONCATENATE, LEFT, RIGHT, MID, LEN, UPPER, LOWER, TRIM."""

from __future__ import annotations

from typing import Any

from sheetcalc.formulas.coerce import num
from sheetcalc.formulas.errors import FormulaDomainError, FormulaFunctionError
from sheetcalc.values import to_text


def _count(name: str, value: Any, opts: Any) -> int:
    """Character count argument: a non-negative integer."""
    n = int(num(value, opts, name))
    if n < 0:
        raise FormulaDomainError(name, f"character count must be non-negative, got {n}")
    return n


def _fn_concatenate(args: list, ctx: dict, opts: Any) -> str:
    if len(args) < 1:
        raise FormulaFunctionError("CONCATENATE", "CONCATENATE requires at least 1 argument")
    return "".join(to_text(a) for a in args)


def _fn_left(args: list, ctx: dict, opts: Any) -> str:
    """LEFT(text [, n]): first n characters (default 1)."""
    if len(args) < 1 or len(args) > 2:
        raise FormulaFunctionError("LEFT", "LEFT requires 1-2 arguments")
    n = _count("LEFT", args[1], opts) if len(args) == 2 else 1
    return to_text(args[0])[:n]


def _fn_right(args: list, ctx: dict, opts: Any) -> str:
    """RIGHT(text [, n]): last n characters (default 1)."""
    if len(args) < 1 or len(args) > 2:
        raise FormulaFunctionError("RIGHT", "RIGHT requires 1-2 arguments")
    n = _count("RIGHT", args[1], opts) if len(args) == 2 else 1
    text = to_text(args[0])
    return text[len(text) - n:] if n else ""


def _fn_mid(args: list, ctx: dict, opts: Any) -> str:
    """MID(text, start, n): n characters from 1-based position start."""
    if len(args) != 3:
        raise FormulaFunctionError("MID", "MID requires exactly 3 arguments")
    start = int(num(args[1], opts, "MID"))
    if start < 1:
        raise FormulaDomainError("MID", f"start must be at least 1, got {start}")
    n = _count("MID", args[2], opts)
    return to_text(args[0])[start - 1:start - 1 + n]


def _fn_len(args: list, ctx: dict, opts: Any) -> int:
    if len(args) != 1:
        raise FormulaFunctionError("LEN", "LEN requires exactly 1 argument")
    return len(to_text(args[0]))


def _fn_upper(args: list, ctx: dict, opts: Any) -> str:
    if len(args) != 1:
        raise FormulaFunctionError("UPPER", "UPPER requires exactly 1 argument")
    return to_text(args[0]).upper()


def _fn_lower(args: list, ctx: dict, opts: Any) -> str:
    if len(args) != 1:
        raise FormulaFunctionError("LOWER", "LOWER requires exactly 1 argument")
    return to_text(args[0]).lower()


def _fn_trim(args: list, ctx: dict, opts: Any) -> str:
    """TRIM(text): strip ends and collapse inner runs of spaces."""
    if len(args) != 1:
        raise FormulaFunctionError("TRIM", "TRIM requires exactly 1 argument")
    return " ".join(to_text(args[0]).split())


TEXT_FUNCTIONS: dict[str, Any] = {
    "CONCATENATE": _fn_concatenate,
    "LEFT": _fn_left,
    "RIGHT": _fn_right,
    "MID": _fn_mid,
    "LEN": _fn_len,
    "UPPER": _fn_upper,
    "LOWER": _fn_lower,
    "TRIM": _fn_trim,
}
