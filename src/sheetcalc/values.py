"""Coercion rules shared by the range expander and the evaluator."""

from __future__ import annotations

import math
import re
from typing import Any

ERROR_SENTINEL = "#ERROR!"

_NUMBER_RE = re.compile(r"[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")
_INT_RE = re.compile(r"[+-]?\d+")


class CellText(str):
    """Text read from a referenced cell rather than written as a literal.

    Arithmetic treats it as 0 unless the evaluation is strict.
    """


def to_number(value: Any) -> int | float | None:
    """Coerce a raw cell value to a finite number, or ``None`` if it doesn't coerce.

    Booleans count as 1/0, numeric text is parsed (``" 12 "`` -> 12),
    empty text, ``None`` and non-finite values do not coerce.
    """
    if value is None:
        return None
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return value if math.isfinite(value) else None
    if isinstance(value, str):
        text = value.strip()
        if not _NUMBER_RE.fullmatch(text):
            return None
        if _INT_RE.fullmatch(text):
            return int(text)
        number = float(text)
        return number if math.isfinite(number) else None
    return None


def is_empty(value: Any) -> bool:
    """True for absent cells: ``None`` or empty text."""
    return value is None or value == ""


def to_text(value: Any) -> str:
    """Render a value the way it appears when concatenated."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def display_text(value: Any) -> str:
    """Format a cell value for display: TRUE/FALSE, clean floats, empty for None."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, float):
        if value.is_integer():
            return str(int(value))
        return f"{value:.10g}"
    return str(value)
