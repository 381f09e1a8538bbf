"""Public evaluation boundary.

``evaluate`` is total: every failure (syntax, unknown function, domain,
division by zero, range misuse) comes back as the ``"#ERROR!"`` value
instead of an exception, so callers can store the result directly as a
cell's display value.  ``evaluate_detailed`` returns the same outcome as
a tagged ``FormulaResult`` for callers that want the error kind.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, NamedTuple

from sheetcalc.formulas.errors import ErrorKind, classify
from sheetcalc.formulas.evaluator import evaluate_formula
from sheetcalc.formulas.parser import parse_formula
from sheetcalc.values import ERROR_SENTINEL

logger = logging.getLogger(__name__)


class FormulaResult(NamedTuple):
    """Outcome of one evaluation: a value, or an error kind and message."""

    value: Any
    error: ErrorKind | None = None
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def display(self) -> Any:
        """The value to show in the cell: the result, or the error sentinel."""
        return ERROR_SENTINEL if self.error is not None else self.value


def is_formula(value: Any) -> bool:
    """True for strings starting with ``=``."""
    return isinstance(value, str) and value.startswith("=")


def evaluate_detailed(
    formula: Any,
    context: Mapping[str, Any] | None = None,
    *,
    strict: bool = False,
    rng: Any = None,
    clock: Any = None,
) -> FormulaResult:
    """Evaluate *formula* and report success or failure as a ``FormulaResult``.

    Non-formula input (anything that is not a string starting with ``=``)
    is passed through unchanged as a successful value.
    """
    if not is_formula(formula):
        return FormulaResult(formula)
    try:
        tree = parse_formula(formula)
        value = evaluate_formula(tree, context if context is not None else {}, strict=strict, rng=rng, clock=clock)
    except Exception as exc:
        kind = classify(exc)
        logger.debug("formula %r failed (%s): %s", formula, kind.value, exc)
        return FormulaResult(ERROR_SENTINEL, kind, str(exc))
    return FormulaResult(value)


def evaluate(
    formula: Any,
    context: Mapping[str, Any] | None = None,
    *,
    strict: bool = False,
    rng: Any = None,
    clock: Any = None,
) -> Any:
    """Evaluate a cell formula against *context*; never raises.

    Args:
        formula: Cell input, e.g. ``"=SUM(A1:A3) * 2"``.  Anything that
            does not start with ``=`` is returned unchanged.
        context: Mapping of cell address to raw value.  Read only.
        strict: Treat non-numeric cell text in arithmetic as an error
            instead of 0.
        rng: Optional random source for RANDOM/RANDBETWEEN.
        clock: Optional callable returning the current datetime, used
            by TODAY and NOW.  Defaults to the UTC wall clock.

    Returns:
        A number, string or boolean, or ``"#ERROR!"`` on any failure.
    """
    return evaluate_detailed(formula, context, strict=strict, rng=rng, clock=clock).display
