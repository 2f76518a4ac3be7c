"""Cell, sheet and evaluation-result models.

A ``Cell`` is one of three frozen variants: a literal value, a formula
parsed once at write time, or a terminal error.  ``Sheet`` is an
immutable snapshot; edits produce a new sheet.
"""

from __future__ import annotations

import re
from typing import Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from gridcalc.address import normalize_address
from gridcalc.formulas.ast import FormulaAst
from gridcalc.formulas.errors import ErrorCode, FormulaParseError
from gridcalc.formulas.parser import parse_formula

CellValue = Union[bool, int, float, str, None]

_NUMBER_RE = re.compile(r"^[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?$")


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


class LiteralCell(_Frozen):
    kind: Literal["literal"] = "literal"
    value: Union[bool, int, float, str]


class FormulaCell(_Frozen):
    """A formula cell.  ``source`` keeps the text as entered, ``=`` included."""

    kind: Literal["formula"] = "formula"
    source: str
    ast: FormulaAst


class ErrorCell(_Frozen):
    """A terminal error.  ``source`` keeps the text of a formula that failed to parse."""

    kind: Literal["error"] = "error"
    code: ErrorCode
    message: str
    source: Optional[str] = None


Cell = Union[LiteralCell, FormulaCell, ErrorCell]


class Sheet(_Frozen):
    """Snapshot of one sheet: a cell map plus row/column bounds.

    Keys of ``cells`` are normalized addresses (no ``$``).
    """

    name: str = "Sheet1"
    n_rows: int = 100
    n_cols: int = 26
    cells: dict[str, Cell] = Field(default_factory=dict)

    def get(self, addr: str) -> Cell | None:
        return self.cells.get(addr)

    def with_cell(self, addr: str, cell: Cell) -> Sheet:
        """Return a copy of this sheet with *cell* stored at *addr*."""
        cells = dict(self.cells)
        cells[normalize_address(addr)] = cell
        return self.model_copy(update={"cells": cells})

    def without_cell(self, addr: str) -> Sheet:
        """Return a copy of this sheet with *addr* cleared."""
        cells = dict(self.cells)
        cells.pop(normalize_address(addr), None)
        return self.model_copy(update={"cells": cells})

    def formula_addresses(self) -> list[str]:
        return [addr for addr, cell in self.cells.items() if isinstance(cell, FormulaCell)]


class CellErrorInfo(_Frozen):
    code: ErrorCode
    message: str


class EvalResult(_Frozen):
    """Computed value of one cell; ``error`` is set only on failure."""

    value: CellValue = None
    error: Optional[CellErrorInfo] = None

    @classmethod
    def ok(cls, value: CellValue) -> EvalResult:
        return cls(value=value)

    @classmethod
    def fail(cls, code: ErrorCode, message: str) -> EvalResult:
        return cls(value=None, error=CellErrorInfo(code=code, message=message))

    @property
    def is_error(self) -> bool:
        return self.error is not None


class ExplainTrace(_Frozen):
    """Diagnostic view of one cell: what it reads and what it computed."""

    cell: str
    formula: Optional[str] = None
    dependencies: list[str] = Field(default_factory=list)
    ranges: list[tuple[str, str]] = Field(default_factory=list)
    value: CellValue = None
    error: Optional[CellErrorInfo] = None


class CellEdit(_Frozen):
    """One user edit as received from the host UI/API."""

    addr: str
    kind: Literal["literal", "formula", "clear"]
    value: Union[bool, int, float, str, None] = None
    formula: Optional[str] = None


# ---------------------------------------------------------------------------
# Cell construction
# ---------------------------------------------------------------------------


def make_formula_cell(source: str) -> FormulaCell | ErrorCell:
    """Parse *source* once; a syntax error yields a PARSE error cell."""
    text = source if source.lstrip().startswith("=") else "=" + source
    try:
        ast = parse_formula(text)
    except FormulaParseError as exc:
        return ErrorCell(code=ErrorCode.PARSE, message=str(exc), source=text)
    except RecursionError:
        return ErrorCell(code=ErrorCode.PARSE, message="Formula nesting too deep", source=text)
    return FormulaCell(source=text, ast=ast)


def coerce_literal(raw: Any) -> bool | int | float | str:
    """Interpret raw input as a boolean, number or text."""
    if isinstance(raw, (bool, int, float)):
        return raw
    text = str(raw)
    upper = text.strip().upper()
    if upper in ("TRUE", "FALSE"):
        return upper == "TRUE"
    stripped = text.strip()
    if _NUMBER_RE.match(stripped):
        if any(ch in stripped for ch in ".eE"):
            return float(stripped)
        try:
            return int(stripped)
        except ValueError:
            return text
    return text


def make_cell(raw: Any) -> Cell | None:
    """Build a Cell from raw user input.

    Text starting with ``=`` is a formula; empty input clears the cell
    (returns ``None``); anything else is a literal.
    """
    if raw is None:
        return None
    if isinstance(raw, str):
        if raw.strip() == "":
            return None
        if raw.lstrip().startswith("="):
            return make_formula_cell(raw.strip())
    return LiteralCell(value=coerce_literal(raw))


def cell_from_edit(edit: CellEdit) -> Cell | None:
    """Translate a :class:`CellEdit` into the Cell to store (None = clear)."""
    if edit.kind == "clear":
        return None
    if edit.kind == "formula":
        if not edit.formula:
            return ErrorCell(code=ErrorCode.PARSE, message="Formula edit without formula text")
        return make_formula_cell(edit.formula)
    if edit.value is None:
        return None
    return LiteralCell(value=edit.value)


def make_edit(addr: str, raw: Any) -> CellEdit:
    """Build the :class:`CellEdit` that stores raw user input at *addr*."""
    if raw is None or (isinstance(raw, str) and raw.strip() == ""):
        return CellEdit(addr=addr, kind="clear")
    if isinstance(raw, str) and raw.lstrip().startswith("="):
        return CellEdit(addr=addr, kind="formula", formula=raw.strip())
    return CellEdit(addr=addr, kind="literal", value=coerce_literal(raw))
