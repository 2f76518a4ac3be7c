"""Load and save sheets as YAML documents.

File shape::

    name: Budget
    n_rows: 100
    n_cols: 26
    cells:
      A1: {value: 1}
      A2: {value: 2}
      A3: {formula: "=SUM(A1:A2)"}
      B1: {error: PARSE, message: "..."}

Formulas are parsed once while loading; a formula that does not parse
is loaded as a PARSE error cell and written back as its original text.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Optional, Union

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from gridcalc.address import normalize_address, to_address
from gridcalc.cells import Cell, ErrorCell, FormulaCell, LiteralCell, Sheet, make_formula_cell
from gridcalc.formulas.errors import ErrorCode
from gridcalc.project import DEFAULT_CONFIG


class CellSpec(BaseModel):
    value: Union[bool, int, float, str, None] = None
    formula: Optional[str] = None
    error: Optional[ErrorCode] = None
    message: str = ""

    @model_validator(mode="after")
    def _one_kind(self) -> CellSpec:
        kinds = [k for k in ("value", "formula", "error") if getattr(self, k) is not None]
        if len(kinds) != 1:
            raise ValueError("a cell needs exactly one of 'value', 'formula' or 'error'")
        return self


class SheetSpec(BaseModel):
    name: str = "Sheet1"
    n_rows: Optional[int] = Field(default=None, gt=0)
    n_cols: Optional[int] = Field(default=None, gt=0)
    cells: dict[str, CellSpec] = Field(default_factory=dict)

    @field_validator("cells")
    @classmethod
    def _valid_addresses(cls, cells: dict[str, CellSpec]) -> dict[str, CellSpec]:
        for addr in cells:
            to_address(addr)
        return cells


def _build_cell(entry: CellSpec) -> Cell:
    if entry.formula is not None:
        return make_formula_cell(entry.formula)
    if entry.error is not None:
        return ErrorCell(code=entry.error, message=entry.message)
    return LiteralCell(value=entry.value)


def sheet_from_dict(data: dict[str, Any], config: dict[str, Any] | None = None) -> Sheet:
    """Build a :class:`Sheet` from its YAML/JSON document form.

    Raises:
        ValueError: If the document does not describe a valid sheet.
    """
    cfg = config or DEFAULT_CONFIG
    try:
        doc = SheetSpec.model_validate(data)
    except ValidationError as exc:
        raise ValueError(f"Invalid sheet document: {exc}") from exc

    cells: dict[str, Cell] = {}
    for addr, cell_spec in doc.cells.items():
        cells[normalize_address(addr)] = _build_cell(cell_spec)
    return Sheet(
        name=doc.name,
        n_rows=doc.n_rows or cfg["default_rows"],
        n_cols=doc.n_cols or cfg["default_cols"],
        cells=cells,
    )


def sheet_to_dict(sheet: Sheet) -> dict[str, Any]:
    cells: dict[str, Any] = {}
    for addr, cell in sheet.cells.items():
        if isinstance(cell, FormulaCell):
            cells[addr] = {"formula": cell.source}
        elif isinstance(cell, ErrorCell) and cell.source is not None:
            cells[addr] = {"formula": cell.source}
        elif isinstance(cell, ErrorCell):
            cells[addr] = {"error": cell.code.value, "message": cell.message}
        else:
            cells[addr] = {"value": cell.value}
    return {
        "name": sheet.name,
        "n_rows": sheet.n_rows,
        "n_cols": sheet.n_cols,
        "cells": cells,
    }


def load_sheet(path: Path, config: dict[str, Any] | None = None) -> Sheet:
    """Read a sheet YAML file."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Sheet file not found: {path}")
    data = yaml.safe_load(path.read_text()) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path.name} must contain a mapping")
    return sheet_from_dict(data, config)


def dump_sheet(sheet: Sheet, path: Path) -> None:
    """Write *sheet* to *path* as YAML."""
    Path(path).write_text(
        yaml.dump(sheet_to_dict(sheet), default_flow_style=False, sort_keys=False)
    )
