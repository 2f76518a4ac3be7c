"""Tests for the formula tokenizer."""

from __future__ import annotations

import pytest

from gridcalc.formulas import (
    Lexer,
    Token,
    TokenType,
    UnexpectedCharacterError,
    UnterminatedStringError,
    tokenize,
)


def _types(text: str) -> list[TokenType]:
    return [t.type for t in tokenize(text)]


def _values(text: str) -> list[str]:
    return [t.value for t in tokenize(text) if t.type is not TokenType.EOF]


# ---------------------------------------------------------------------------
# Token kinds
# ---------------------------------------------------------------------------


class TestTokenKinds:
    def test_empty_input_is_eof(self) -> None:
        assert tokenize("") == [Token(TokenType.EOF, "", 0)]
        assert _types("   ") == [TokenType.EOF]

    def test_function_call_with_range(self) -> None:
        assert _types("SUM(A1:B2, 3)") == [
            TokenType.FUNCTION,
            TokenType.LPAREN,
            TokenType.CELL_REF,
            TokenType.COLON,
            TokenType.CELL_REF,
            TokenType.COMMA,
            TokenType.NUMBER,
            TokenType.RPAREN,
            TokenType.EOF,
        ]

    def test_numbers(self) -> None:
        assert _values("12 3.5 .25 7.") == ["12", "3.5", ".25", "7."]
        assert set(_types("12 3.5 .25")) == {TokenType.NUMBER, TokenType.EOF}

    def test_second_dot_starts_new_token(self) -> None:
        assert _values("1.2.3") == ["1.2", ".3"]

    def test_string_contents_exclude_quotes(self) -> None:
        tokens = tokenize('"hello world"')
        assert tokens[0] == Token(TokenType.STRING, "hello world", 0)

    def test_string_escape_kept_verbatim(self) -> None:
        """A backslash skips the next character without decoding it."""
        tokens = tokenize(r'"a\"b"')
        assert tokens[0].type is TokenType.STRING
        assert tokens[0].value == r"a\"b"

    def test_cell_refs_including_absolute(self) -> None:
        assert _types("A1 $B$2 C$3 $D4 AA100") == [TokenType.CELL_REF] * 5 + [TokenType.EOF]

    def test_identifiers_not_matching_address_are_functions(self) -> None:
        """Classification is purely lexical: A0 and lower-case names are not addresses."""
        assert _types("A0 sum TRUE a1 LOG10_X") == [TokenType.FUNCTION] * 5 + [TokenType.EOF]

    def test_identifier_with_digits_that_is_an_address(self) -> None:
        tokens = tokenize("LOG10")
        assert tokens[0].type is TokenType.CELL_REF

    def test_operators(self) -> None:
        assert _values("1+2-3*4/5^6") == ["1", "+", "2", "-", "3", "*", "4", "/", "5", "^", "6"]

    def test_two_char_operators_before_single(self) -> None:
        assert _values("A1<=B1<>C1>=D1<E1>F1=G1") == [
            "A1", "<=", "B1", "<>", "C1", ">=", "D1", "<", "E1", ">", "F1", "=", "G1",
        ]

    def test_positions(self) -> None:
        tokens = tokenize("  A1 + 10")
        assert [t.pos for t in tokens] == [2, 5, 7, 9]


# ---------------------------------------------------------------------------
# Pull model
# ---------------------------------------------------------------------------


class TestPullModel:
    def test_next_token_repeats_eof(self) -> None:
        lexer = Lexer("1")
        assert lexer.next_token().type is TokenType.NUMBER
        assert lexer.next_token().type is TokenType.EOF
        assert lexer.next_token().type is TokenType.EOF

    def test_iteration_stops_after_eof(self) -> None:
        tokens = list(Lexer("A1*2"))
        assert tokens[-1].type is TokenType.EOF
        assert len(tokens) == 4


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class TestLexerErrors:
    @pytest.mark.parametrize("text, char", [("1 # 2", "#"), ("A1 & B1", "&"), ("{1}", "{"), ("!", "!")])
    def test_unexpected_character(self, text: str, char: str) -> None:
        with pytest.raises(UnexpectedCharacterError) as exc_info:
            tokenize(text)
        assert exc_info.value.char == char
        assert exc_info.value.position == text.index(char)

    def test_unterminated_string(self) -> None:
        with pytest.raises(UnterminatedStringError) as exc_info:
            tokenize('1 + "abc')
        assert exc_info.value.position == 4

    def test_escaped_closing_quote_is_unterminated(self) -> None:
        with pytest.raises(UnterminatedStringError):
            tokenize(r'"abc\"')

    def test_dollar_on_non_address(self) -> None:
        with pytest.raises(UnexpectedCharacterError):
            tokenize("$SUM(1)")
