"""sheetcalc -- spreadsheet formula engine.

Public API::

    from sheetcalc import evaluate, extract_dependencies, encode_address, decode_address

    evaluate("=SUM(A1:A3)", {"A1": 10, "A2": 20, "A3": 30})   # 60
    evaluate("=1/0", {})                                     # "#ERROR!"
"""

__version__ = "0.1.0"

from sheetcalc.addressing import CellAddress, decode_address, encode_address
from sheetcalc.dependencies import extract_dependencies
from sheetcalc.engine import FormulaResult, evaluate, evaluate_detailed
from sheetcalc.formulas.errors import ErrorKind
from sheetcalc.ranges import expand_range, range_addresses
from sheetcalc.sheet import CellCycleError, Sheet
from sheetcalc.values import ERROR_SENTINEL

__all__ = [
    "CellAddress",
    "CellCycleError",
    "ERROR_SENTINEL",
    "ErrorKind",
    "FormulaResult",
    "Sheet",
    "__version__",
    "decode_address",
    "encode_address",
    "evaluate",
    "evaluate_detailed",
    "expand_range",
    "extract_dependencies",
    "range_addresses",
]
