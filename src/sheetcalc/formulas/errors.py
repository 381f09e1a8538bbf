"""Error types for formula parsing and evaluation."""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    """Failure category carried by every formula error."""

    parse = "parse"
    unknown_function = "unknown_function"
    domain = "domain"
    arithmetic = "arithmetic"
    value = "value"
    reference = "reference"
    circular = "circular"


class FormulaError(Exception):
    """Base class for all formula-related errors."""

    kind: ErrorKind = ErrorKind.value


class FormulaParseError(FormulaError):
    """Syntax error in a formula expression.

    Attributes:
        position: Character position where the error was detected.
        message: Human-readable description.
    """

    kind = ErrorKind.parse

    def __init__(self, message: str, position: int | None = None) -> None:
        self.position = position
        full = f"Formula parse error: {message}"
        if position is not None:
            full += f" (at position {position})"
        super().__init__(full)


class FormulaRefError(FormulaError):
    """A reference that cannot be used where it appears.

    Attributes:
        ref_name: The offending reference, e.g. ``"A1:B2"``.
    """

    kind = ErrorKind.reference

    def __init__(self, ref_name: str, message: str | None = None) -> None:
        self.ref_name = ref_name
        super().__init__(message or f"Invalid reference: {ref_name!r}")


class FormulaFunctionError(FormulaError):
    """Unknown function or wrong number of arguments.

    Attributes:
        func_name: The function that caused the error.
    """

    kind = ErrorKind.unknown_function

    def __init__(self, func_name: str, message: str | None = None) -> None:
        self.func_name = func_name
        msg = message or f"Unknown function: {func_name!r}"
        super().__init__(msg)


class FormulaValueError(FormulaError):
    """Operand of the wrong type, e.g. text where a number is required."""

    kind = ErrorKind.value


class FormulaDomainError(FormulaError):
    """Argument outside a function's domain (negative SQRT, MOD by zero)."""

    kind = ErrorKind.domain

    def __init__(self, func_name: str, message: str) -> None:
        self.func_name = func_name
        super().__init__(f"{func_name}: {message}")


# Exceptions the evaluator may raise while walking a tree.
ENGINE_ERRORS: tuple[type[Exception], ...] = (
    FormulaError,
    ZeroDivisionError,
    OverflowError,
    ValueError,
    TypeError,
    RecursionError,
)


def classify(exc: BaseException) -> ErrorKind:
    """Map an exception raised during evaluation to an ``ErrorKind``."""
    if isinstance(exc, FormulaError):
        return exc.kind
    if isinstance(exc, (ZeroDivisionError, OverflowError)):
        return ErrorKind.arithmetic
    if isinstance(exc, ValueError):
        return ErrorKind.domain
    if isinstance(exc, RecursionError):
        return ErrorKind.parse
    return ErrorKind.value
