"""Rectangular range expansion over an evaluation context.

Ranges are normalized before iteration (``B3:A1`` is ``A1:B3``) and
always walked row-major: rows outer, columns inner.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from sheetcalc.addressing import CellAddress, decode_address, encode_address
from sheetcalc.values import is_empty, to_number


def _bounds(start: str, end: str) -> tuple[int, int, int, int]:
    """Return ``(r0, r1, c0, c1)`` with ``r0 <= r1`` and ``c0 <= c1``."""
    first = decode_address(start)
    last = decode_address(end)
    if first is None or last is None:
        bad = start if first is None else end
        raise ValueError(f"Invalid cell address: {bad!r}")
    r0, r1 = sorted((first.row, last.row))
    c0, c1 = sorted((first.col, last.col))
    return r0, r1, c0, c1


def range_addresses(start: str, end: str) -> list[str]:
    """Expand a rectangular range (e.g. A1:C3) into a flat list of addresses (row-major).

    Args:
        start: One corner, e.g. "A1".
        end: The opposite corner, e.g. "C3".

    Returns:
        Flat list of cell addresses in row-major order.

    Raises:
        ValueError: If either corner is not a valid address.
    """
    r0, r1, c0, c1 = _bounds(start, end)
    addrs: list[str] = []
    for r in range(r0, r1 + 1):
        for c in range(c0, c1 + 1):
            addrs.append(encode_address(r, c))
    return addrs


def _iter_cells(start: str, end: str, context: Mapping[str, Any]):
    """Yield ``(addr, raw_value)`` for the populated cells of a range, row-major.

    Large rectangles over a sparse context walk the context keys
    instead of every cell of the rectangle.
    """
    r0, r1, c0, c1 = _bounds(start, end)
    area = (r1 - r0 + 1) * (c1 - c0 + 1)

    if area <= len(context):
        for r in range(r0, r1 + 1):
            for c in range(c0, c1 + 1):
                addr = encode_address(r, c)
                yield addr, context.get(addr)
        return

    hits: list[tuple[CellAddress, str]] = []
    for addr in context:
        pos = decode_address(addr)
        if pos is None:
            continue
        if r0 <= pos.row <= r1 and c0 <= pos.col <= c1:
            hits.append((pos, addr))
    hits.sort()
    for _, addr in hits:
        yield addr, context.get(addr)


def expand_range(start: str, end: str, context: Mapping[str, Any]) -> list[int | float]:
    """Return the numeric values of a range, row-major.

    Cells that are absent or do not coerce to a number are skipped, so
    the result can be shorter than the rectangle.
    """
    values: list[int | float] = []
    for _, raw in _iter_cells(start, end, context):
        number = to_number(raw)
        if number is not None:
            values.append(number)
    return values


def expand_raw(start: str, end: str, context: Mapping[str, Any]) -> list[Any]:
    """Return every non-empty raw value of a range, row-major."""
    return [raw for _, raw in _iter_cells(start, end, context) if not is_empty(raw)]
