"""Shared fixtures for gridcalc tests."""

from __future__ import annotations

from typing import Any, Callable

import pytest

from gridcalc.cells import Sheet, make_cell


@pytest.fixture(autouse=True)
def _detached_event_sink():
    """Keep the module-level event sink from leaking between tests."""
    from gridcalc.logging import reset_log_dir

    reset_log_dir()
    yield
    reset_log_dir()


@pytest.fixture
def make_sheet() -> Callable[..., Sheet]:
    """Build a sheet from raw user input per address (``'=...'`` is a formula)."""

    def _build(cells: dict[str, Any], *, n_rows: int = 100, n_cols: int = 26, name: str = "Sheet1") -> Sheet:
        built = {}
        for addr, raw in cells.items():
            cell = make_cell(raw)
            if cell is not None:
                built[addr] = cell
        return Sheet(name=name, n_rows=n_rows, n_cols=n_cols, cells=built)

    return _build
