"""Spreadsheet formula lexing, parsing and evaluation.

Public API::

    from gridcalc.formulas import parse_formula, extract_refs, evaluate_formula
"""

from gridcalc.formulas.errors import (
    CellCycleError,
    CellValueError,
    ErrorCode,
    FormulaDivisionError,
    FormulaError,
    FormulaFunctionError,
    FormulaParseError,
    FormulaRefError,
    UnexpectedCharacterError,
    UnexpectedTokenError,
    UnterminatedStringError,
)
from gridcalc.formulas.evaluator import EvalContext, evaluate_formula, supported_functions
from gridcalc.formulas.lexer import Lexer, Token, TokenType, tokenize
from gridcalc.formulas.parser import (
    PRECEDENCE,
    Parser,
    extract_all_refs,
    extract_refs,
    iter_references,
    parse_formula,
)

__all__ = [
    "PRECEDENCE",
    "CellCycleError",
    "CellValueError",
    "ErrorCode",
    "EvalContext",
    "FormulaDivisionError",
    "FormulaError",
    "FormulaFunctionError",
    "FormulaParseError",
    "FormulaRefError",
    "Lexer",
    "Parser",
    "Token",
    "TokenType",
    "UnexpectedCharacterError",
    "UnexpectedTokenError",
    "UnterminatedStringError",
    "evaluate_formula",
    "extract_all_refs",
    "extract_refs",
    "iter_references",
    "parse_formula",
    "supported_functions",
    "tokenize",
]
