"""Excel-like cell formula parsing and evaluation.

Public API::

    from sheetcalc.formulas import parse_formula, evaluate_formula
"""

from sheetcalc.formulas.errors import (
    ENGINE_ERRORS,
    ErrorKind,
    FormulaDomainError,
    FormulaError,
    FormulaFunctionError,
    FormulaParseError,
    FormulaRefError,
    FormulaValueError,
    classify,
)
from sheetcalc.formulas.evaluator import SUPPORTED_FUNCTIONS, EvalOptions, evaluate_formula
from sheetcalc.formulas.parser import parse_formula

__all__ = [
    "ENGINE_ERRORS",
    "ErrorKind",
    "EvalOptions",
    "FormulaDomainError",
    "FormulaError",
    "FormulaFunctionError",
    "FormulaParseError",
    "FormulaRefError",
    "FormulaValueError",
    "SUPPORTED_FUNCTIONS",
    "classify",
    "evaluate_formula",
    "parse_formula",
]
