"""Error types for formula parsing and evaluation.

Every exception carries the boundary :class:`ErrorCode` it maps to, so
the engine can report the precise code of a failure however deep in the
expression tree it was raised.
"""

from __future__ import annotations

from enum import Enum


class ErrorCode(str, Enum):
    CYCLE = "CYCLE"
    REF = "REF"
    PARSE = "PARSE"
    DIV0 = "DIV0"


class FormulaError(Exception):
    """Base class for all formula-related errors."""

    code: ErrorCode = ErrorCode.PARSE


class FormulaParseError(FormulaError):
    """Syntax error in a formula expression.

    Attributes:
        position: Character position where the error was detected.
        message: Human-readable description.
    """

    def __init__(self, message: str, position: int | None = None) -> None:
        self.position = position
        self.message = message
        full = f"Formula parse error: {message}"
        if position is not None:
            full += f" (at position {position})"
        super().__init__(full)


class UnexpectedCharacterError(FormulaParseError):
    """The lexer met a character that starts no token."""

    def __init__(self, char: str, position: int) -> None:
        self.char = char
        super().__init__(f"Unexpected character: {char!r}", position=position)


class UnterminatedStringError(FormulaParseError):
    """A string literal has no closing quote."""

    def __init__(self, position: int) -> None:
        super().__init__("Unterminated string literal", position=position)


class UnexpectedTokenError(FormulaParseError):
    """The parser met a token it cannot use at this point."""

    def __init__(self, message: str, position: int | None = None) -> None:
        super().__init__(message, position=position)


class FormulaFunctionError(FormulaError):
    """Unknown function or wrong number of arguments.

    Attributes:
        func_name: The function that caused the error.
    """

    def __init__(self, func_name: str, message: str | None = None) -> None:
        self.func_name = func_name
        msg = message or f"Unknown function: {func_name!r}"
        super().__init__(msg)


class FormulaRefError(FormulaError):
    """Reference to a cell that cannot be resolved.

    Attributes:
        ref_name: The unresolved reference.
    """

    code = ErrorCode.REF

    def __init__(self, ref_name: str, reason: str | None = None) -> None:
        self.ref_name = ref_name
        msg = f"Invalid reference: {ref_name!r}"
        if reason:
            msg += f" ({reason})"
        super().__init__(msg)


class CellCycleError(FormulaError):
    """Raised when a cell transitively references itself.

    Attributes:
        cycle_path: Addresses along the cycle, first and last equal.
    """

    code = ErrorCode.CYCLE

    def __init__(self, cycle_path: list[str]) -> None:
        self.cycle_path = cycle_path
        super().__init__(f"Circular reference: {' -> '.join(cycle_path)}")


class FormulaDivisionError(FormulaError):
    """Division (or a zero base raised to a negative power) by zero."""

    code = ErrorCode.DIV0

    def __init__(self, message: str = "Division by zero") -> None:
        super().__init__(message)


class CellValueError(FormulaError):
    """A referenced cell holds a stored error; re-raised with its own code."""

    def __init__(self, code: ErrorCode, message: str) -> None:
        self.code = code
        super().__init__(message)

