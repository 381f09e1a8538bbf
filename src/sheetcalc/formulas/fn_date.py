"""Date formula functions: TODAY, NOW, DATE, YEAR, MONTH, DAY, EOMONTH.

Dates travel as ISO text (``"2024-03-15"``) since a cell value is a
number, string or boolean.  Date arguments also accept ISO datetimes and
Excel serial numbers.  TODAY and NOW read ``opts.clock``, so tests and
reproducible runs can pin the time.
"""

from __future__ import annotations

import calendar
import datetime
from typing import Any

from sheetcalc.formulas.coerce import num
from sheetcalc.formulas.errors import (
    FormulaDomainError,
    FormulaFunctionError,
    FormulaValueError,
)

# Agrees with Excel from serial 61 (1900-03-01); Excel also counts a 1900-02-29
_EXCEL_EPOCH = datetime.date(1899, 12, 30)


def utc_now() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


def _coerce_date(name: str, val: Any) -> datetime.date:
    """Read a date argument: ISO date or datetime text, or a serial number."""
    if isinstance(val, str):
        text = val.strip()
        try:
            return datetime.date.fromisoformat(text)
        except ValueError:
            pass
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            return datetime.datetime.fromisoformat(text).date()
        except ValueError:
            raise FormulaValueError(f"{name}: cannot read {val!r} as a date") from None
    if isinstance(val, (int, float)) and not isinstance(val, bool):
        serial = int(val)
        if serial < 1:
            raise FormulaDomainError(name, f"invalid date serial number {serial}")
        try:
            return _EXCEL_EPOCH + datetime.timedelta(days=serial)
        except OverflowError:
            raise FormulaDomainError(name, f"invalid date serial number {serial}") from None
    raise FormulaValueError(f"{name}: cannot read {val!r} as a date")


def _now(opts: Any) -> datetime.datetime:
    now = opts.clock()
    if now.tzinfo is not None:
        now = now.astimezone(datetime.timezone.utc)
    return now


def _fn_today(args: list, ctx: dict, opts: Any) -> str:
    if args:
        raise FormulaFunctionError("TODAY", "TODAY takes no arguments")
    return _now(opts).date().isoformat()


def _fn_now(args: list, ctx: dict, opts: Any) -> str:
    """NOW(): UTC timestamp with millisecond precision, e.g. ``2024-03-15T09:30:00.000Z``."""
    if args:
        raise FormulaFunctionError("NOW", "NOW takes no arguments")
    now = _now(opts)
    return now.strftime("%Y-%m-%dT%H:%M:%S.") + f"{now.microsecond // 1000:03d}Z"


def _fn_date(args: list, ctx: dict, opts: Any) -> str:
    """DATE(year, month, day)"""
    if len(args) != 3:
        raise FormulaFunctionError("DATE", "DATE requires exactly 3 arguments (year, month, day)")
    year, month, day = (int(num(a, opts, "DATE")) for a in args)
    try:
        return datetime.date(year, month, day).isoformat()
    except ValueError as exc:
        raise FormulaDomainError("DATE", f"invalid date: {exc}") from None


def _part(name: str, attr: str) -> Any:
    def fn(args: list, ctx: dict, opts: Any) -> int:
        if len(args) != 1:
            raise FormulaFunctionError(name, f"{name} requires exactly 1 argument")
        return getattr(_coerce_date(name, args[0]), attr)

    fn.__name__ = f"_fn_{name.lower()}"
    return fn


def _fn_eomonth(args: list, ctx: dict, opts: Any) -> str:
    """EOMONTH(start_date, months): last day of the month *months* away.

    EOMONTH("2024-01-15", 1) => "2024-02-29".
    """
    if len(args) != 2:
        raise FormulaFunctionError("EOMONTH", "EOMONTH requires exactly 2 arguments (start_date, months)")
    start = _coerce_date("EOMONTH", args[0])
    total_months = start.year * 12 + start.month - 1 + int(num(args[1], opts, "EOMONTH"))
    year, month = divmod(total_months, 12)
    month += 1
    if not datetime.MINYEAR <= year <= datetime.MAXYEAR:
        raise FormulaDomainError("EOMONTH", f"year {year} out of range")
    return datetime.date(year, month, calendar.monthrange(year, month)[1]).isoformat()


DATE_FUNCTIONS: dict[str, Any] = {
    "TODAY": _fn_today,
    "NOW": _fn_now,
    "DATE": _fn_date,
    "YEAR": _part("YEAR", "year"),
    "MONTH": _part("MONTH", "month"),
    "DAY": _part("DAY", "day"),
    "EOMONTH": _fn_eomonth,
}
