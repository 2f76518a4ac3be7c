"""A1-style cell address codec.

Columns use bijective base-26 letters (A=0 ... Z=25, AA=26), rows are
1-based in text and 0-based internally.  A ``$`` before the column or
row marks it absolute; the flag survives a parse/format round trip but
does not change which cell is addressed.
"""

from __future__ import annotations

import re
from typing import NamedTuple

ADDRESS_PATTERN = r"\$?[A-Z]+\$?[1-9][0-9]*"

_ADDR_RE = re.compile(rf"^{ADDRESS_PATTERN}$")
_ADDR_PARTS_RE = re.compile(r"^(\$?)([A-Z]+)(\$?)([1-9][0-9]*)$")


class InvalidAddressError(ValueError):
    """Raised for text that is not a valid cell address or coordinate."""


class ParsedAddress(NamedTuple):
    col: int
    row: int
    absolute_col: bool
    absolute_row: bool


def col_to_letter(col: int) -> str:
    """Convert 0-based column index to letter(s).  0=A, 25=Z, 26=AA."""
    if col < 0:
        raise InvalidAddressError(f"Invalid column index: {col}")
    result = ""
    n = col + 1
    while n > 0:
        n, rem = divmod(n - 1, 26)
        result = chr(65 + rem) + result
    return result


def letter_to_col(letters: str) -> int:
    """Convert column letter(s) to 0-based index.  A=0, B=1, ..., Z=25, AA=26."""
    if not letters or not letters.isalpha() or not letters.isupper():
        raise InvalidAddressError(f"Invalid column letters: {letters!r}")
    idx = 0
    for ch in letters:
        idx = idx * 26 + (ord(ch) - ord("A") + 1)
    return idx - 1


def is_address(text: str) -> bool:
    """Return True if *text* matches the cell address grammar."""
    return bool(_ADDR_RE.match(text))


def to_address(text: str) -> str:
    """Validate *text* as a cell address and return it unchanged.

    Raises:
        InvalidAddressError: If *text* does not match ``$?[A-Z]+$?[1-9][0-9]*``.
    """
    if not isinstance(text, str) or not _ADDR_RE.match(text):
        raise InvalidAddressError(f"Invalid cell address format: {text!r}")
    return text


def parse_address(addr: str) -> ParsedAddress:
    """Parse ``'$B$12'`` -> ``ParsedAddress(col=1, row=11, True, True)``."""
    m = _ADDR_PARTS_RE.match(addr) if isinstance(addr, str) else None
    if not m:
        raise InvalidAddressError(f"Invalid cell address: {addr!r}")
    col_abs, letters, row_abs, digits = m.groups()
    return ParsedAddress(
        col=letter_to_col(letters),
        row=int(digits) - 1,
        absolute_col=col_abs == "$",
        absolute_row=row_abs == "$",
    )


def format_address(
    col: int,
    row: int,
    absolute_col: bool = False,
    absolute_row: bool = False,
) -> str:
    """Build a cell address from 0-based coordinates.

    Raises:
        InvalidAddressError: On negative coordinates.
    """
    if col < 0 or row < 0:
        raise InvalidAddressError(f"Invalid cell coordinates: col={col}, row={row}")
    col_part = ("$" if absolute_col else "") + col_to_letter(col)
    row_part = ("$" if absolute_row else "") + str(row + 1)
    return col_part + row_part


def normalize_address(addr: str) -> str:
    """Strip absolute markers: ``'$A$1'`` -> ``'A1'``."""
    parsed = parse_address(addr)
    return format_address(parsed.col, parsed.row)


def parse_range(text: str) -> tuple[str, str]:
    """Split ``'A1:B3'`` into ``('A1', 'B3')``."""
    parts = text.split(":")
    if len(parts) != 2:
        raise InvalidAddressError(f"Invalid range format: {text!r}")
    return to_address(parts[0]), to_address(parts[1])


def cells_in_range(start: str, end: str) -> list[str]:
    """Expand a rectangular range into normalized addresses.

    Corners may be given in any order; the span is inclusive on both
    axes and listed column by column.
    """
    s = parse_address(start)
    e = parse_address(end)
    c0, c1 = min(s.col, e.col), max(s.col, e.col)
    r0, r1 = min(s.row, e.row), max(s.row, e.row)
    return [
        format_address(col, row)
        for col in range(c0, c1 + 1)
        for row in range(r0, r1 + 1)
    ]


def is_valid_address(addr: str, n_rows: int, n_cols: int) -> bool:
    """Check whether *addr* falls inside a sheet of the given dimensions."""
    try:
        parsed = parse_address(addr)
    except InvalidAddressError:
        return False
    return 0 <= parsed.col < n_cols and 0 <= parsed.row < n_rows
