"""Logical formula functions: AND, OR, NOT.

Arguments follow Excel truthiness (see ``coerce.truthy``): numbers are
true when non-zero and the text ``"TRUE"``/``"FALSE"`` is accepted.
"""

from __future__ import annotations

from typing import Any

from sheetcalc.formulas.coerce import truthy
from sheetcalc.formulas.errors import FormulaFunctionError


def _conditions(name: str, args: list) -> list[bool]:
    if not args:
        raise FormulaFunctionError(name, f"{name} requires at least 1 argument")
    return [truthy(a) for a in args]


def _fn_and(args: list, ctx: dict, opts: Any) -> bool:
    return all(_conditions("AND", args))


def _fn_or(args: list, ctx: dict, opts: Any) -> bool:
    return any(_conditions("OR", args))


def _fn_not(args: list, ctx: dict, opts: Any) -> bool:
    if len(args) != 1:
        raise FormulaFunctionError("NOT", "NOT requires exactly 1 argument")
    return not truthy(args[0])


LOGICAL_FUNCTIONS: dict[str, Any] = {
    "AND": _fn_and,
    "OR": _fn_or,
    "NOT": _fn_not,
}
