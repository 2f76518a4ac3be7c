"""Recursive-descent parser for spreadsheet formulas.

Grammar (informal)::

    expression := primary (OPERATOR expression)*      -- precedence climbing
    primary    := NUMBER | STRING | TRUE | FALSE
                | CELL_REF [":" CELL_REF]
                | FUNCTION "(" [expression ("," expression)*] ")"
                | "(" expression ")"
                | ("+" | "-") primary

Operator precedence (lowest to highest):
    1. Equality: = <>
    2. Ordering: < <= > >=
    3. Addition/subtraction: + -
    4. Multiplication/division: * /
    5. Exponentiation: ^

All binary operators are left-associative.  Unary minus applies to a
primary, so ``-2^2`` is ``(-2)^2``.
"""

from __future__ import annotations

from typing import Iterator

from gridcalc.address import cells_in_range, parse_address, format_address
from gridcalc.formulas.ast import (
    BinaryOp,
    BooleanLiteral,
    CellRef,
    FormulaAst,
    FunctionCall,
    NumberLiteral,
    RangeRef,
    StringLiteral,
    UnaryOp,
)
from gridcalc.formulas.lexer import Lexer, Token, TokenType
from gridcalc.formulas.errors import UnexpectedTokenError

PRECEDENCE: dict[str, int] = {
    "=": 1,
    "<>": 1,
    "<": 2,
    "<=": 2,
    ">": 2,
    ">=": 2,
    "+": 3,
    "-": 3,
    "*": 4,
    "/": 4,
    "^": 5,
}

_BOOLEAN_NAMES = {"TRUE": True, "FALSE": False}


class Parser:
    """Parses one formula body; holds only the current token."""

    def __init__(self, text: str) -> None:
        self._lexer = Lexer(text)
        self._current: Token = self._lexer.next_token()

    def parse(self) -> FormulaAst:
        """Parse a complete expression and require end of input."""
        result = self._parse_expression()
        if self._current.type is not TokenType.EOF:
            raise UnexpectedTokenError(
                f"Unexpected token: {self._current.value!r}", position=self._current.pos
            )
        return result

    # ------------------------------------------------------------------
    # Expressions
    # ------------------------------------------------------------------

    def _parse_expression(self, min_precedence: int = 0) -> FormulaAst:
        left = self._parse_primary()

        while self._current.type is TokenType.OPERATOR:
            op = self._current.value
            precedence = PRECEDENCE[op]
            if precedence < min_precedence:
                break
            self._advance()
            right = self._parse_expression(precedence + 1)
            left = BinaryOp(op=op, left=left, right=right)

        return left

    def _parse_primary(self) -> FormulaAst:
        token = self._current

        if token.type is TokenType.NUMBER:
            self._advance()
            return NumberLiteral(value=_parse_number(token))

        if token.type is TokenType.STRING:
            self._advance()
            return StringLiteral(value=token.value)

        if token.type is TokenType.CELL_REF:
            self._advance()
            return self._parse_reference(token)

        if token.type is TokenType.FUNCTION:
            self._advance()
            upper = token.value.upper()
            if upper in _BOOLEAN_NAMES and self._current.type is not TokenType.LPAREN:
                return BooleanLiteral(value=_BOOLEAN_NAMES[upper])
            return self._parse_function(token.value)

        if token.type is TokenType.LPAREN:
            self._advance()
            expr = self._parse_expression()
            self._expect(TokenType.RPAREN)
            return expr

        if token.type is TokenType.OPERATOR and token.value in ("+", "-"):
            self._advance()
            return UnaryOp(op=token.value, operand=self._parse_primary())

        if token.type is TokenType.EOF:
            raise UnexpectedTokenError("Unexpected end of formula", position=token.pos)
        raise UnexpectedTokenError(f"Unexpected token: {token.value!r}", position=token.pos)

    def _parse_reference(self, token: Token) -> FormulaAst:
        start = parse_address(token.value)
        if self._current.type is not TokenType.COLON:
            return CellRef(
                address=format_address(start.col, start.row),
                absolute_col=start.absolute_col,
                absolute_row=start.absolute_row,
            )

        self._advance()
        end_token = self._current
        if end_token.type is not TokenType.CELL_REF:
            raise UnexpectedTokenError(
                "Expected cell reference after ':'", position=end_token.pos
            )
        self._advance()
        end = parse_address(end_token.value)
        return RangeRef(
            start=format_address(start.col, start.row),
            end=format_address(end.col, end.row),
        )

    def _parse_function(self, name: str) -> FunctionCall:
        self._expect(TokenType.LPAREN)
        args: list[FormulaAst] = []
        if self._current.type is not TokenType.RPAREN:
            args.append(self._parse_expression())
            while self._current.type is TokenType.COMMA:
                self._advance()
                args.append(self._parse_expression())
        self._expect(TokenType.RPAREN)
        return FunctionCall(name=name, args=tuple(args))

    # ------------------------------------------------------------------
    # Token helpers
    # ------------------------------------------------------------------

    def _advance(self) -> None:
        self._current = self._lexer.next_token()

    def _expect(self, token_type: TokenType) -> None:
        if self._current.type is not token_type:
            raise UnexpectedTokenError(
                f"Expected {token_type.value} but got {self._current.type.value}",
                position=self._current.pos,
            )
        self._advance()


def _parse_number(token: Token) -> int | float:
    """Parse a NUMBER token to int or float."""
    if "." in token.value:
        return float(token.value)
    try:
        return int(token.value)
    except ValueError:
        raise UnexpectedTokenError("Number literal too long", position=token.pos) from None


def parse_formula(text: str) -> FormulaAst:
    """Parse a formula string into an AST.

    One leading ``=`` is stripped if present, so ``"=SUM(A1)"`` and
    ``"SUM(A1)"`` parse identically.

    Raises:
        FormulaParseError: If the formula has invalid syntax.
    """
    text = text.strip()
    if text.startswith("="):
        text = text[1:]
    return Parser(text).parse()


# ---------------------------------------------------------------------------
# Reference extraction
# ---------------------------------------------------------------------------


def iter_references(node: FormulaAst) -> Iterator[CellRef | RangeRef]:
    """Yield every CellRef and RangeRef in *node*, left to right."""
    stack = [node]
    while stack:
        current = stack.pop()
        if isinstance(current, (CellRef, RangeRef)):
            yield current
        elif isinstance(current, BinaryOp):
            stack.append(current.right)
            stack.append(current.left)
        elif isinstance(current, UnaryOp):
            stack.append(current.operand)
        elif isinstance(current, FunctionCall):
            stack.extend(reversed(current.args))


def extract_refs(node: FormulaAst) -> list[str]:
    """Return every cell address *node* reads, ranges expanded eagerly.

    Addresses are normalized and de-duplicated, in first-seen order.
    """
    seen: dict[str, None] = {}
    for ref in iter_references(node):
        if isinstance(ref, CellRef):
            seen.setdefault(ref.address, None)
        else:
            for addr in cells_in_range(ref.start, ref.end):
                seen.setdefault(addr, None)
    return list(seen)


def extract_all_refs(node: FormulaAst) -> tuple[list[str], list[tuple[str, str]]]:
    """Split the references of *node* into direct cells and range spans.

    Returns:
        Tuple of (cell_refs, ranges) where cell_refs are the addresses
        of single-cell references and ranges are (start, end) pairs.
    """
    cells: dict[str, None] = {}
    ranges: list[tuple[str, str]] = []
    for ref in iter_references(node):
        if isinstance(ref, CellRef):
            cells.setdefault(ref.address, None)
        elif (ref.start, ref.end) not in ranges:
            ranges.append((ref.start, ref.end))
    return list(cells), ranges
