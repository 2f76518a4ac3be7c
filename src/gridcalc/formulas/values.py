"""Value coercion rules shared by operators and built-in functions."""

from __future__ import annotations

import re
from typing import Any

_NUMERIC_TEXT_RE = re.compile(r"^\s*[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?\s*$")


def is_number(value: Any) -> bool:
    """True for int/float values; booleans are not numbers here."""
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def is_numeric_text(value: Any) -> bool:
    return isinstance(value, str) and bool(_NUMERIC_TEXT_RE.match(value))


def parse_numeric_text(text: str) -> int | float:
    text = text.strip()
    if any(ch in text for ch in ".eE"):
        return float(text)
    return int(text)


def to_number(value: Any) -> int | float:
    """Arithmetic coercion: numeric text parses, TRUE=1, anything else is 0."""
    if isinstance(value, bool):
        return 1 if value else 0
    if is_number(value):
        return value
    if is_numeric_text(value):
        return parse_numeric_text(value)
    return 0


def numeric_values(arg: Any) -> list[int | float]:
    """Flatten one function argument into the numbers it contributes.

    Range values keep only their numeric entries; a scalar counts if it
    is a number or numeric-looking text.
    """
    if isinstance(arg, list):
        return [v for v in arg if is_number(v)]
    if is_number(arg):
        return [arg]
    if is_numeric_text(arg):
        return [parse_numeric_text(arg)]
    return []


def is_present(value: Any) -> bool:
    """COUNT membership: anything except None and empty text."""
    return value is not None and value != ""


def is_truthy(value: Any) -> bool:
    """Condition truthiness: not FALSE, not 0, not empty text."""
    if value is None or value is False or value == "":
        return False
    if is_number(value) and value == 0:
        return False
    return True


def _kind(value: Any) -> str:
    if isinstance(value, bool):
        return "boolean"
    if is_number(value):
        return "number"
    if isinstance(value, str):
        return "text"
    return "empty"


def values_equal(left: Any, right: Any) -> bool:
    """Exact equality: same kind and same value, no coercion."""
    return _kind(left) == _kind(right) and left == right
