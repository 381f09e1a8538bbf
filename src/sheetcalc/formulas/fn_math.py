"""Scalar math formula functions: POWER, SQRT, trig, rounding, MOD, constants, random."""

from __future__ import annotations

import math
from decimal import ROUND_HALF_UP, Context, Decimal
from typing import Any

from sheetcalc.formulas.coerce import check_number, num, power
from sheetcalc.formulas.errors import FormulaDomainError, FormulaFunctionError

_ROUND_CONTEXT = Context(prec=1000)


def _arity(name: str, args: list, low: int, high: int | None = None) -> None:
    high = low if high is None else high
    if not low <= len(args) <= high:
        if low == high:
            expected = f"exactly {low} argument{'s' if low != 1 else ''}"
        else:
            expected = f"{low}-{high} arguments"
        raise FormulaFunctionError(name, f"{name} requires {expected}")


def _unary(name: str, fn: Any) -> Any:
    """Build a one-argument handler around a float function."""

    def handler(args: list, ctx: dict, opts: Any) -> float:
        _arity(name, args, 1)
        return check_number(fn(num(args[0], opts, name)))

    handler.__name__ = f"_fn_{name.lower()}"
    return handler


def _fn_power(args: list, ctx: dict, opts: Any) -> int | float:
    """POWER(base, exponent)."""
    _arity("POWER", args, 2)
    return power(num(args[0], opts, "POWER"), num(args[1], opts, "POWER"))


def _fn_sqrt(args: list, ctx: dict, opts: Any) -> float:
    """SQRT(x): no complex results, negative input is a domain error."""
    _arity("SQRT", args, 1)
    x = num(args[0], opts, "SQRT")
    if x < 0:
        raise FormulaDomainError("SQRT", f"negative argument {x}")
    return math.sqrt(x)


def _fn_log10(args: list, ctx: dict, opts: Any) -> float:
    _arity("LOG10", args, 1)
    x = num(args[0], opts, "LOG10")
    if x <= 0:
        raise FormulaDomainError("LOG10", f"argument must be positive, got {x}")
    return math.log10(x)


def _fn_round(args: list, ctx: dict, opts: Any) -> int | float:
    """ROUND(x [, digits]): half away from zero, like Excel."""
    _arity("ROUND", args, 1, 2)
    x = num(args[0], opts, "ROUND")
    digits = int(num(args[1], opts, "ROUND")) if len(args) == 2 else 0
    if isinstance(x, int) and digits >= 0:
        return x
    # floats carry at most 15-17 significant digits
    digits = max(min(digits, 15), -308)
    quantum = Decimal(1).scaleb(-digits)
    rounded = Decimal(repr(float(x))).quantize(quantum, rounding=ROUND_HALF_UP, context=_ROUND_CONTEXT)
    return float(rounded)


def _fn_ceiling(args: list, ctx: dict, opts: Any) -> int | float:
    """CEILING(x [, significance]): rounds up to a multiple of significance (default 1)."""
    _arity("CEILING", args, 1, 2)
    x = num(args[0], opts, "CEILING")
    step = num(args[1], opts, "CEILING") if len(args) == 2 else 1
    if step == 0:
        return 0
    return check_number(math.ceil(x / step) * step)


def _fn_floor(args: list, ctx: dict, opts: Any) -> int | float:
    """FLOOR(x [, significance]): rounds down to a multiple of significance (default 1)."""
    _arity("FLOOR", args, 1, 2)
    x = num(args[0], opts, "FLOOR")
    step = num(args[1], opts, "FLOOR") if len(args) == 2 else 1
    if step == 0:
        return 0
    return check_number(math.floor(x / step) * step)


def _fn_abs(args: list, ctx: dict, opts: Any) -> int | float:
    _arity("ABS", args, 1)
    return abs(num(args[0], opts, "ABS"))


def _fn_mod(args: list, ctx: dict, opts: Any) -> int | float:
    """MOD(a, b): result takes the sign of the divisor."""
    _arity("MOD", args, 2)
    a = num(args[0], opts, "MOD")
    b = num(args[1], opts, "MOD")
    if b == 0:
        raise FormulaDomainError("MOD", "division by zero")
    return a % b


def _fn_pi(args: list, ctx: dict, opts: Any) -> float:
    _arity("PI", args, 0)
    return math.pi


def _fn_e(args: list, ctx: dict, opts: Any) -> float:
    _arity("E", args, 0)
    return math.e


def _fn_random(args: list, ctx: dict, opts: Any) -> float:
    """RANDOM(): uniform in [0, 1)."""
    _arity("RANDOM", args, 0)
    return opts.rng.random()


def _fn_randbetween(args: list, ctx: dict, opts: Any) -> int:
    """RANDBETWEEN(low, high): uniform integer, both bounds inclusive."""
    _arity("RANDBETWEEN", args, 2)
    low = math.ceil(num(args[0], opts, "RANDBETWEEN"))
    high = math.floor(num(args[1], opts, "RANDBETWEEN"))
    if low > high:
        raise FormulaDomainError("RANDBETWEEN", f"low bound {low} exceeds high bound {high}")
    return opts.rng.randint(low, high)


MATH_FUNCTIONS: dict[str, Any] = {
    "POWER": _fn_power,
    "SQRT": _fn_sqrt,
    "SIN": _unary("SIN", math.sin),
    "COS": _unary("COS", math.cos),
    "TAN": _unary("TAN", math.tan),
    "LOG10": _fn_log10,
    "ROUND": _fn_round,
    "CEILING": _fn_ceiling,
    "FLOOR": _fn_floor,
    "ABS": _fn_abs,
    "MOD": _fn_mod,
    "PI": _fn_pi,
    "E": _fn_e,
    "RANDOM": _fn_random,
    "RAND": _fn_random,
    "RANDBETWEEN": _fn_randbetween,
}
