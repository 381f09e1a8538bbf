"""Tree-walking evaluator for parsed formula expressions.

Supports:
- Cell references resolved against a caller-supplied context
- Ranges expanded to value lists inside aggregate functions
- A static name -> handler table (no dynamic code execution)
"""

from __future__ import annotations

import random
from collections.abc import Mapping
from typing import Any, NamedTuple

from lark import Token, Tree

from sheetcalc.formulas.coerce import check_number, num, power, scalar, truthy
from sheetcalc.formulas.errors import (
    ENGINE_ERRORS,
    FormulaDomainError,
    FormulaError,
    FormulaFunctionError,
    FormulaRefError,
)
from sheetcalc.formulas.fn_date import DATE_FUNCTIONS, utc_now
from sheetcalc.formulas.fn_logical import LOGICAL_FUNCTIONS
from sheetcalc.formulas.fn_math import MATH_FUNCTIONS
from sheetcalc.formulas.fn_text import TEXT_FUNCTIONS
from sheetcalc.formulas.parser import function_name
from sheetcalc.ranges import expand_range, expand_raw
from sheetcalc.values import CellText, is_empty, to_number, to_text


class EvalOptions(NamedTuple):
    """Per-call evaluation settings.

    Attributes:
        strict: Treat non-numeric cell text used in arithmetic as an error
            instead of 0.
        rng: Random source for RANDOM/RANDBETWEEN (``random.Random`` or the
            ``random`` module itself).
        clock: Zero-argument callable returning the current
            ``datetime.datetime`` for TODAY/NOW.
    """

    strict: bool = False
    rng: Any = random
    clock: Any = utc_now


def evaluate_formula(
    tree: Tree,
    context: Mapping[str, Any],
    *,
    strict: bool = False,
    rng: Any = None,
    clock: Any = None,
) -> Any:
    """Evaluate a parsed formula tree against a cell context.

    Args:
        tree: Parse tree from ``parse_formula()``.
        context: Mapping of cell addresses to raw cell values.
        strict: Reject non-numeric cell text in arithmetic.
        rng: Optional random source, e.g. ``random.Random(42)``.
        clock: Optional replacement for the UTC wall clock.

    Returns:
        The computed value (int, float, str or bool).

    Raises:
        FormulaError: On any evaluation failure.
        ZeroDivisionError: On division by zero.
    """
    opts = EvalOptions(
        strict=strict,
        rng=rng if rng is not None else random,
        clock=clock if clock is not None else utc_now,
    )
    result = scalar(_eval(tree, context, opts))
    if isinstance(result, CellText):
        return str(result)
    return result


def _eval(node: Tree | Token, ctx: Mapping[str, Any], opts: EvalOptions) -> Any:
    """Recursively evaluate a tree node."""
    if isinstance(node, Token):
        return _eval_token(node)

    rule = node.data

    # Start rule just wraps expr
    if rule == "start":
        return _eval(node.children[0], ctx, opts)

    # Arithmetic
    if rule in _BINARY_OPS:
        left = num(_eval(node.children[0], ctx, opts), opts)
        right = num(_eval(node.children[1], ctx, opts), opts)
        return check_number(_BINARY_OPS[rule](left, right))
    if rule == "neg":
        return -num(_eval(node.children[0], ctx, opts), opts)
    if rule == "pos":
        return num(_eval(node.children[0], ctx, opts), opts)
    if rule == "percent":
        return num(_eval(node.children[0], ctx, opts), opts) / 100

    # Text
    if rule == "concat":
        left = scalar(_eval(node.children[0], ctx, opts))
        right = scalar(_eval(node.children[1], ctx, opts))
        return to_text(left) + to_text(right)

    # Comparison
    if rule in _COMPARISONS:
        left = _compare_key(_eval(node.children[0], ctx, opts))
        right = _compare_key(_eval(node.children[1], ctx, opts))
        return _COMPARISONS[rule](left, right)

    # Literals
    if rule == "number":
        return _parse_number(node.children[0])
    if rule == "boolean":
        return str(node.children[0]) == "TRUE"
    if rule == "string":
        return _parse_string(node.children[0])

    # References
    if rule == "cell_ref":
        return resolve_cell(str(node.children[0]), ctx)
    if rule == "range_ref":
        start, end = (str(t) for t in node.children)
        raise FormulaRefError(
            f"{start}:{end}",
            f"Range {start}:{end} is only valid inside an aggregate function",
        )

    # Function call
    if rule == "func_call":
        return _eval_func(node, ctx, opts)

    raise FormulaError(f"Unknown node type: {rule}")


def _eval_token(token: Token) -> Any:
    """Evaluate a bare token (shouldn't normally happen at top level)."""
    if token.type == "NUMBER":
        return _parse_number(token)
    if token.type == "BOOL":
        return str(token) == "TRUE"
    if token.type == "ESCAPED_STRING":
        return _parse_string(token)
    return str(token)


def _parse_number(token: Token) -> int | float:
    """Parse a NUMBER token to int or float."""
    s = str(token)
    if any(ch in s for ch in ".eE"):
        return check_number(float(s))
    return int(s)


def _parse_string(token: Token) -> str:
    raw = str(token)
    return raw[1:-1].replace('\\"', '"').replace("\\\\", "\\")


def resolve_cell(addr: str, ctx: Mapping[str, Any]) -> Any:
    """Resolve a single cell reference.

    Numeric values become numbers, absent or empty cells become 0 and
    any other text comes back as ``CellText``.
    """
    raw = ctx.get(addr)
    if is_empty(raw):
        return 0
    number = to_number(raw)
    if number is not None:
        return number
    return CellText(to_text(raw))


def _div(left: int | float, right: int | float) -> float:
    if right == 0:
        raise ZeroDivisionError("Division by zero in formula")
    return left / right


_BINARY_OPS: dict[str, Any] = {
    "add": lambda a, b: a + b,
    "sub": lambda a, b: a - b,
    "mul": lambda a, b: a * b,
    "div": _div,
    "pow": power,
}


def _compare_key(value: Any) -> tuple[int, Any]:
    """Order numbers < text < booleans; text compares case-insensitively."""
    value = scalar(value)
    if isinstance(value, bool):
        return (2, value)
    if isinstance(value, (int, float)):
        return (0, value)
    return (1, to_text(value).lower())


_COMPARISONS: dict[str, Any] = {
    "gt": lambda a, b: a > b,
    "lt": lambda a, b: a < b,
    "gte": lambda a, b: a >= b,
    "lte": lambda a, b: a <= b,
    "eq": lambda a, b: a == b,
    "neq": lambda a, b: a != b,
}


# ---------- Function dispatch ----------

_LAZY_FUNCTIONS = {"IF", "IFERROR", "ISERROR"}
_AGGREGATE_FUNCTIONS = {"SUM", "AVERAGE", "COUNT", "COUNTA", "MAX", "MIN"}


def _resolve_aggregate_arg(
    arg_node: Tree | Token,
    func_name: str,
    ctx: Mapping[str, Any],
    opts: EvalOptions,
) -> Any:
    """Evaluate an aggregate argument; ranges expand to value lists.

    A bare cell is a scalar like anywhere else (empty is 0, text is
    ``CellText``), except under COUNTA, which counts presence and so
    reads it as a one-cell range.
    """
    if isinstance(arg_node, Tree):
        if arg_node.data == "range_ref":
            start, end = (str(t) for t in arg_node.children)
            if func_name == "COUNTA":
                return expand_raw(start, end, ctx)
            return expand_range(start, end, ctx)
        if arg_node.data == "cell_ref" and func_name == "COUNTA":
            addr = str(arg_node.children[0])
            return expand_raw(addr, addr, ctx)
    return _eval(arg_node, ctx, opts)


def _numbers(func_name: str, args: list, opts: EvalOptions) -> list[int | float]:
    """Flatten aggregate arguments to numbers.

    Expanded ranges are already numeric.  Direct arguments go through
    ``num``, so cell text counts as 0 (an error when strict); literal
    text that is not numeric is skipped.
    """
    result: list[int | float] = []
    for a in args:
        if isinstance(a, list):
            result.extend(a)
        elif isinstance(a, str) and not isinstance(a, CellText) and to_number(a) is None:
            continue
        else:
            result.append(num(a, opts, func_name))
    return result


def _eval_func(node: Tree, ctx: Mapping[str, Any], opts: EvalOptions) -> Any:
    """Evaluate a function call node."""
    func_name = function_name(node.children[0])
    args_node = node.children[1]
    raw_args = args_node.children if args_node.children else []

    if func_name not in _FUNC_TABLE:
        raise FormulaFunctionError(func_name)

    # Lazy functions receive unevaluated AST nodes
    if func_name in _LAZY_FUNCTIONS:
        return _FUNC_TABLE[func_name](raw_args, ctx, opts)

    # Aggregate functions allow range expansion
    if func_name in _AGGREGATE_FUNCTIONS:
        evaluated_args = [
            _resolve_aggregate_arg(arg, func_name, ctx, opts) for arg in raw_args
        ]
        return _FUNC_TABLE[func_name](evaluated_args, ctx, opts)

    # Eager functions receive pre-evaluated values
    evaluated_args = [scalar(_eval(arg, ctx, opts)) for arg in raw_args]
    return _FUNC_TABLE[func_name](evaluated_args, ctx, opts)


def _fn_sum(args: list, ctx: Mapping, opts: EvalOptions) -> int | float:
    if len(args) < 1:
        raise FormulaFunctionError("SUM", "SUM requires at least 1 argument")
    return check_number(sum(_numbers("SUM", args, opts)))


def _fn_average(args: list, ctx: Mapping, opts: EvalOptions) -> float:
    if len(args) < 1:
        raise FormulaFunctionError("AVERAGE", "AVERAGE requires at least 1 argument")
    values = _numbers("AVERAGE", args, opts)
    if not values:
        raise FormulaDomainError("AVERAGE", "no numeric values to average")
    return check_number(sum(values) / len(values))


def _fn_count(args: list, ctx: Mapping, opts: EvalOptions) -> int:
    """COUNT(...): numeric members of ranges plus direct arguments that coerce."""
    return len(_numbers("COUNT", args, opts))


def _fn_counta(args: list, ctx: Mapping, opts: EvalOptions) -> int:
    """COUNTA(...): non-empty values of any type."""
    total = 0
    for a in args:
        if isinstance(a, list):
            total += len(a)
        elif not is_empty(a):
            total += 1
    return total


def _fn_min(args: list, ctx: Mapping, opts: EvalOptions) -> int | float:
    if len(args) < 1:
        raise FormulaFunctionError("MIN", "MIN requires at least 1 argument")
    values = _numbers("MIN", args, opts)
    if not values:
        raise FormulaDomainError("MIN", "no numeric values")
    return min(values)


def _fn_max(args: list, ctx: Mapping, opts: EvalOptions) -> int | float:
    if len(args) < 1:
        raise FormulaFunctionError("MAX", "MAX requires at least 1 argument")
    values = _numbers("MAX", args, opts)
    if not values:
        raise FormulaDomainError("MAX", "no numeric values")
    return max(values)


def _fn_if(raw_args: list, ctx: Mapping, opts: EvalOptions) -> Any:
    """IF(condition, then_value [, else_value]): lazy evaluation."""
    if len(raw_args) < 2 or len(raw_args) > 3:
        raise FormulaFunctionError("IF", "IF requires 2-3 arguments")
    condition = _eval(raw_args[0], ctx, opts)
    if truthy(condition):
        return _eval(raw_args[1], ctx, opts)
    if len(raw_args) == 3:
        return _eval(raw_args[2], ctx, opts)
    return False


_FAILED = object()


def _attempt(node: Tree | Token, ctx: Mapping, opts: EvalOptions) -> Any:
    """Evaluate *node* to a single value, or ``_FAILED`` on any engine error."""
    try:
        return scalar(_eval(node, ctx, opts))
    except ENGINE_ERRORS:
        return _FAILED


def _fn_iferror(raw_args: list, ctx: Mapping, opts: EvalOptions) -> Any:
    """IFERROR(value, fallback): lazy, the fallback only runs on failure."""
    if len(raw_args) != 2:
        raise FormulaFunctionError("IFERROR", "IFERROR requires exactly 2 arguments")
    value = _attempt(raw_args[0], ctx, opts)
    if value is _FAILED:
        return _eval(raw_args[1], ctx, opts)
    return value


def _fn_iserror(raw_args: list, ctx: Mapping, opts: EvalOptions) -> bool:
    if len(raw_args) != 1:
        raise FormulaFunctionError("ISERROR", "ISERROR requires exactly 1 argument")
    return _attempt(raw_args[0], ctx, opts) is _FAILED


_FUNC_TABLE: dict[str, Any] = {
    "SUM": _fn_sum,
    "AVERAGE": _fn_average,
    "COUNT": _fn_count,
    "COUNTA": _fn_counta,
    "MIN": _fn_min,
    "MAX": _fn_max,
    "IF": _fn_if,
    "IFERROR": _fn_iferror,
    "ISERROR": _fn_iserror,
}
_FUNC_TABLE.update(MATH_FUNCTIONS)
_FUNC_TABLE.update(LOGICAL_FUNCTIONS)
_FUNC_TABLE.update(TEXT_FUNCTIONS)
_FUNC_TABLE.update(DATE_FUNCTIONS)

SUPPORTED_FUNCTIONS: frozenset[str] = frozenset(_FUNC_TABLE)
