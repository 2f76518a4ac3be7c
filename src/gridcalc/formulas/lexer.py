"""Pull-model tokenizer for spreadsheet formulas.

The lexer keeps only its cursor between calls to :meth:`Lexer.next_token`.
Identifiers are classified purely by pattern: anything matching the cell
address grammar is a CELL_REF, every other identifier is a FUNCTION name.
"""

from __future__ import annotations

from enum import Enum
from typing import Iterator, NamedTuple

from gridcalc.address import is_address
from gridcalc.formulas.errors import UnexpectedCharacterError, UnterminatedStringError


class TokenType(str, Enum):
    NUMBER = "NUMBER"
    STRING = "STRING"
    CELL_REF = "CELL_REF"
    FUNCTION = "FUNCTION"
    OPERATOR = "OPERATOR"
    LPAREN = "LPAREN"
    RPAREN = "RPAREN"
    COMMA = "COMMA"
    COLON = "COLON"
    EOF = "EOF"


class Token(NamedTuple):
    type: TokenType
    value: str
    pos: int


_PUNCTUATION = {
    "(": TokenType.LPAREN,
    ")": TokenType.RPAREN,
    ",": TokenType.COMMA,
    ":": TokenType.COLON,
}

_SINGLE_OPERATORS = frozenset("+-*/^=")

# Two-character operators are matched before their one-character prefix.
_DOUBLE_OPERATORS = ("<=", "<>", ">=")


class Lexer:
    """Tokenizer over a single formula body (without the leading ``=``)."""

    def __init__(self, text: str) -> None:
        self.text = text
        self.pos = 0

    def __iter__(self) -> Iterator[Token]:
        while True:
            token = self.next_token()
            yield token
            if token.type is TokenType.EOF:
                return

    def next_token(self) -> Token:
        """Return the next token, or EOF once the input is exhausted.

        Raises:
            UnexpectedCharacterError: On a character that starts no token.
            UnterminatedStringError: On a string literal with no closing quote.
        """
        self._skip_whitespace()
        if self.pos >= len(self.text):
            return Token(TokenType.EOF, "", self.pos)

        ch = self.text[self.pos]
        start = self.pos

        if ch.isdigit() or (ch == "." and self._peek(1).isdigit()):
            return self._read_number()
        if ch == '"':
            return self._read_string()
        if _is_ident_start(ch):
            return self._read_identifier()
        if ch in _PUNCTUATION:
            self.pos += 1
            return Token(_PUNCTUATION[ch], ch, start)

        pair = self.text[self.pos:self.pos + 2]
        if pair in _DOUBLE_OPERATORS:
            self.pos += 2
            return Token(TokenType.OPERATOR, pair, start)
        if ch in _SINGLE_OPERATORS or ch in "<>":
            self.pos += 1
            return Token(TokenType.OPERATOR, ch, start)

        raise UnexpectedCharacterError(ch, start)

    # ------------------------------------------------------------------
    # Readers
    # ------------------------------------------------------------------

    def _peek(self, offset: int) -> str:
        pos = self.pos + offset
        return self.text[pos] if pos < len(self.text) else ""

    def _skip_whitespace(self) -> None:
        while self.pos < len(self.text) and self.text[self.pos].isspace():
            self.pos += 1

    def _read_number(self) -> Token:
        start = self.pos
        seen_dot = False
        while self.pos < len(self.text):
            ch = self.text[self.pos]
            if ch.isdigit():
                self.pos += 1
            elif ch == "." and not seen_dot:
                seen_dot = True
                self.pos += 1
            else:
                break
        return Token(TokenType.NUMBER, self.text[start:self.pos], start)

    def _read_string(self) -> Token:
        start = self.pos
        self.pos += 1  # opening quote
        while self.pos < len(self.text) and self.text[self.pos] != '"':
            # Escapes are skipped, not decoded.
            self.pos += 2 if self.text[self.pos] == "\\" else 1
        if self.pos >= len(self.text):
            raise UnterminatedStringError(start)
        self.pos += 1  # closing quote
        return Token(TokenType.STRING, self.text[start + 1:self.pos - 1], start)

    def _read_identifier(self) -> Token:
        start = self.pos
        self.pos += 1
        while self.pos < len(self.text) and _is_ident_char(self.text[self.pos]):
            self.pos += 1
        value = self.text[start:self.pos]
        if is_address(value):
            return Token(TokenType.CELL_REF, value, start)
        if value.startswith("$"):
            raise UnexpectedCharacterError("$", start)
        return Token(TokenType.FUNCTION, value, start)


def _is_ident_start(ch: str) -> bool:
    return ch == "$" or ("a" <= ch.lower() <= "z")


def _is_ident_char(ch: str) -> bool:
    return ch == "$" or ch == "_" or (ch.isascii() and ch.isalnum())


def tokenize(text: str) -> list[Token]:
    """Tokenize *text* eagerly, including the trailing EOF token."""
    return list(Lexer(text))
