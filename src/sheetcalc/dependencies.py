"""Lexical extraction of the cells a formula references."""

from __future__ import annotations

import re

# A cell token on word boundaries that is not a function name such as LOG10(.
_CELL_TOKEN_RE = re.compile(r"\b[A-Z]+[0-9]+\b(?!\s*\()")


def extract_dependencies(formula: str) -> list[str]:
    """Return the cell tokens of *formula* in first-occurrence order, without duplicates.

    A range ``A1:A10`` contributes its two endpoints only.  A token that
    is followed by ``(`` (optionally after whitespace) is a function name,
    not a cell, so ``LOG10(A2)`` yields ``A2`` alone.  The scan is purely
    lexical: nothing is validated, and malformed formulas yield whatever
    tokens are present.

    Examples:
        ``"=SUM(A1:A10)"`` -> ``["A1", "A10"]``
        ``"=IF(C1>0, A1*B1, 0)"`` -> ``["C1", "A1", "B1"]``
        ``"=LOG10(A2) + ATAN2 (B1)"`` -> ``["A2", "B1"]``
    """
    if not isinstance(formula, str):
        return []
    deps: list[str] = []
    seen: set[str] = set()
    for match in _CELL_TOKEN_RE.finditer(formula):
        token = match.group(0)
        if token not in seen:
            seen.add(token)
            deps.append(token)
    return deps


_RANGE_TOKEN_RE = re.compile(r"\b([A-Z]+[0-9]+):([A-Z]+[0-9]+)\b")


def extract_ranges(formula: str) -> list[tuple[str, str]]:
    """Return the ``(start, end)`` pairs of every ``A1:B2`` range in *formula*.

    Lexical like ``extract_dependencies``; order of appearance, duplicates removed.
    """
    if not isinstance(formula, str):
        return []
    pairs: list[tuple[str, str]] = []
    for match in _RANGE_TOKEN_RE.finditer(formula):
        pair = (match.group(1), match.group(2))
        if pair not in pairs:
            pairs.append(pair)
    return pairs
