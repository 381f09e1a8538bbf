"""A1-style cell address encoding and decoding.

Columns use bijective base-26 (A=0, Z=25, AA=26); rows are zero-based
internally and one-based in the string form, so ``"A1"`` is ``(0, 0)``.
"""

from __future__ import annotations

import re
from typing import NamedTuple

ADDRESS_RE = re.compile(r"([A-Z]+)([1-9][0-9]*)")


class CellAddress(NamedTuple):
    """Zero-based (row, col) position of a cell."""

    row: int
    col: int


def column_index(letters: str) -> int:
    """Convert column letter(s) to 0-based index.  A=0, B=1, ..., Z=25, AA=26."""
    idx = 0
    for ch in letters:
        idx = idx * 26 + (ord(ch) - ord("A") + 1)
    return idx - 1


def column_letters(idx: int) -> str:
    """Convert 0-based column index to letter(s).  0=A, 25=Z, 26=AA."""
    result = ""
    n = idx + 1
    while n > 0:
        n, rem = divmod(n - 1, 26)
        result = chr(65 + rem) + result
    return result


def encode_address(row: int, col: int) -> str:
    """Build a cell address from 0-based row/col.

    Raises:
        ValueError: If either coordinate is negative or not an integer.
    """
    for name, value in (("row", row), ("col", col)):
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValueError(f"{name} must be an int, got {value!r}")
        if value < 0:
            raise ValueError(f"{name} must be non-negative, got {value}")
    return f"{column_letters(col)}{row + 1}"


def decode_address(address: str) -> CellAddress | None:
    """Parse ``'A1'`` into ``CellAddress(row=0, col=0)``.

    Returns ``None`` for anything that is not a well-formed uppercase
    address (``"a1"``, ``"A"``, ``"12"``, ``"A0"``, ``"A01"``).
    """
    if not isinstance(address, str):
        return None
    m = ADDRESS_RE.fullmatch(address)
    if not m:
        return None
    return CellAddress(row=int(m.group(2)) - 1, col=column_index(m.group(1)))
