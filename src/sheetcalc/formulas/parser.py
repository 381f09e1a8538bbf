"""Lark-based parser for Excel-like cell formulas.

Supports:
- Cell references: ``A1``, ``AA10`` (uppercase A1-style)
- Ranges: ``A1:B3`` (only meaningful as aggregate function arguments)
- Number, string and ``TRUE``/``FALSE`` literals
- Arithmetic, comparisons, ``&`` concatenation, function calls, postfix percent (%)
"""

from __future__ import annotations

from lark import Lark, Token, Tree
from lark.exceptions import (
    LarkError,
    UnexpectedCharacters,
    UnexpectedEOF,
    UnexpectedInput,
    UnexpectedToken,
)

from sheetcalc.formulas.errors import FormulaParseError

# LALR(1) grammar for Excel-like cell formulas.
# Operator precedence (lowest to highest):
#   1. Comparison: > < >= <= = <>
#   2. Concatenation: &
#   3. Addition/subtraction: + -
#   4. Multiplication/division: * /
#   5. Unary plus/minus: + -
#   6. Exponentiation: ^ (right-associative)
#   7. Postfix percent: %  (3% = 0.03)
#   8. Atoms: number, bool, string, function call, range, cell, parenthesized expr
GRAMMAR = r"""
start: "=" expr

?expr: comparison

?comparison: concat
    | comparison ">" concat   -> gt
    | comparison "<" concat   -> lt
    | comparison ">=" concat  -> gte
    | comparison "<=" concat  -> lte
    | comparison "=" concat   -> eq
    | comparison "<>" concat  -> neq

?concat: addition
    | concat "&" addition  -> concat

?addition: multiplication
    | addition "+" multiplication  -> add
    | addition "-" multiplication  -> sub

?multiplication: unary
    | multiplication "*" unary  -> mul
    | multiplication "/" unary  -> div

?unary: exponentiation
    | "-" unary  -> neg
    | "+" unary  -> pos

?exponentiation: postfix
    | postfix "^" unary  -> pow

?postfix: atom
    | postfix "%"  -> percent

?atom: NUMBER                   -> number
    | BOOL                      -> boolean
    | ESCAPED_STRING            -> string
    | FUNC_OPEN args ")"        -> func_call
    | CELL_REF ":" CELL_REF     -> range_ref
    | CELL_REF                  -> cell_ref
    | "(" expr ")"

args: expr ("," expr)*
    |

BOOL.2: "TRUE" | "FALSE"

// Function name with its opening paren, so LOG10( is never read as a cell
FUNC_OPEN.3: /[A-Za-z_][A-Za-z0-9_.]*[ \t]*\(/

// Cell ref: A1, F2, AA10 (uppercase only)
CELL_REF.2: /[A-Z]+[0-9]+/

%import common.NUMBER
%import common.ESCAPED_STRING
%import common.WS
%ignore WS
"""

_parser = Lark(GRAMMAR, parser="lalr", start="start")


def parse_formula(text: str) -> Tree:
    """Parse ``=``-prefixed formula text into a lark tree.

    Surrounding whitespace is ignored.  Any lexer or parser failure is
    reported as ``FormulaParseError`` carrying the 1-based column lark
    stopped at, when it knows one.
    """
    source = text.strip()
    if source[:1] != "=":
        raise FormulaParseError("Formula must start with '='", position=0)
    try:
        return _parser.parse(source)
    except UnexpectedInput as exc:
        column = exc.column if isinstance(exc.column, int) else None
        raise FormulaParseError(_describe(exc), position=column) from exc
    except LarkError as exc:
        raise FormulaParseError(str(exc)) from exc


def _describe(exc: UnexpectedInput) -> str:
    if isinstance(exc, UnexpectedEOF):
        return "formula ends early"
    if isinstance(exc, UnexpectedToken):
        return f"unexpected {exc.token!r}"
    if isinstance(exc, UnexpectedCharacters):
        return f"unexpected character {exc.char!r}"
    return str(exc)


def function_name(token: Token) -> str:
    """``"SUM ("`` -> ``"SUM"``: drop the paren a ``FUNC_OPEN`` token ends with."""
    return str(token).rstrip("( \t")
