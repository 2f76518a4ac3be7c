"""Sheet evaluation engine with incremental recalculation.

An :class:`Engine` owns one :class:`DependencyGraph` for one sheet
session.  ``evaluate_sheet`` rebuilds the graph from scratch and
evaluates every formula in topological order; ``update_cell`` patches
the graph for a single edit and recomputes only the cells downstream of
it.  Failures never escape: every cell ends up with an
:class:`EvalResult` carrying either a value or a classified error.

Each sheet session needs its own Engine; the engine does no locking, so
edits to one sheet must be applied one at a time.
"""

from __future__ import annotations

import logging
from collections import deque
from typing import Any, Iterable

from pydantic import BaseModel, ConfigDict

from gridcalc.address import normalize_address, to_address
from gridcalc.cells import (
    Cell,
    CellEdit,
    ErrorCell,
    EvalResult,
    ExplainTrace,
    FormulaCell,
    LiteralCell,
    Sheet,
    cell_from_edit,
)
from gridcalc.dep_graph import DependencyGraph
from gridcalc.formulas.ast import FormulaAst
from gridcalc.formulas.errors import CellValueError, ErrorCode, FormulaError
from gridcalc.formulas.evaluator import EvalContext, evaluate_formula
from gridcalc.formulas.parser import extract_all_refs, extract_refs
from gridcalc.logging import EventLevel, EventType, emit, emit_info, make_cell_event

logger = logging.getLogger(__name__)


class CellUpdate(BaseModel):
    """Outcome of one edit: the new sheet and every recomputed result."""

    model_config = ConfigDict(frozen=True)

    sheet: Sheet
    results: dict[str, EvalResult]


class Engine:
    """Formula engine for one sheet session.

    Usage::

        engine = Engine()
        results = engine.evaluate_sheet(sheet)
        update = engine.update_cell(sheet, "A1", LiteralCell(value=10))
        update.results["A3"].value

    Parameters
    ----------
    enforce_bounds : bool
        When True, references outside the sheet's rows/columns evaluate
        to a REF error; when False they read as empty like any absent
        cell.
    """

    def __init__(self, *, enforce_bounds: bool = True) -> None:
        self.enforce_bounds = enforce_bounds
        self._graph = DependencyGraph()

    @classmethod
    def from_config(cls, config: dict[str, Any]) -> Engine:
        return cls(enforce_bounds=bool(config.get("enforce_bounds", True)))

    @property
    def graph(self) -> DependencyGraph:
        return self._graph

    # ------------------------------------------------------------------
    # Dependency tracking
    # ------------------------------------------------------------------

    def rebuild(self, sheet: Sheet) -> None:
        """Replace the graph with the edges of every formula in *sheet*."""
        self._graph.clear()
        for addr in sheet.formula_addresses():
            self._extract_dependencies(addr, sheet.cells[addr].ast)

    def _extract_dependencies(self, addr: str, ast: FormulaAst) -> list[str]:
        """Add an edge per referenced cell; return targets that close a cycle."""
        cycles: list[str] = []
        for dep in extract_refs(ast):
            if self._graph.has_cycle(addr, dep):
                cycles.append(dep)
            self._graph.add_dependency(addr, dep)
        return cycles

    def dependencies_of(self, addr: str) -> list[str]:
        return sorted(self._graph.get_dependencies(normalize_address(addr)))

    def dependents_of(self, addr: str) -> list[str]:
        return sorted(self._graph.get_dependents(normalize_address(addr)))

    # ------------------------------------------------------------------
    # Evaluation
    # ------------------------------------------------------------------

    def evaluate_cell(
        self,
        sheet: Sheet,
        addr: str,
        *,
        cache: dict[str, Any] | None = None,
    ) -> EvalResult:
        """Evaluate one cell against *sheet*.

        An absent cell is empty text.  Errors raised while walking a
        formula are reported with the code the exception carries.

        Without a *cache*, the formula cells *addr* reads are evaluated
        first in dependency order, so resolving a long chain never
        recurses through it.
        """
        addr = normalize_address(addr)
        cell = sheet.get(addr)

        if cell is None:
            return EvalResult.ok("")
        if isinstance(cell, LiteralCell):
            return EvalResult.ok(cell.value)
        if isinstance(cell, ErrorCell):
            return EvalResult.fail(cell.code, cell.message)

        if cache is None:
            cache = {}
            if addr not in self._prime_cache(sheet, [addr], cache):
                return self._cycle_result(sheet, addr, cache)

        ctx = EvalContext(sheet, addr, enforce_bounds=self.enforce_bounds, cache=cache)
        try:
            value = evaluate_formula(cell.ast, ctx)
        except FormulaError as exc:
            logger.debug("%s failed with %s: %s", addr, exc.code.value, exc)
            result = EvalResult.fail(exc.code, str(exc))
        except RecursionError:
            result = EvalResult.fail(ErrorCode.PARSE, "Formula nesting too deep")
        except (ArithmeticError, ValueError, TypeError) as exc:
            logger.debug("%s failed: %s", addr, exc)
            result = EvalResult.fail(ErrorCode.PARSE, str(exc))
        else:
            result = EvalResult.ok(value)

        _store(cache, addr, result)
        return result

    def evaluate_sheet(self, sheet: Sheet) -> dict[str, EvalResult]:
        """Evaluate every cell of *sheet*; formulas in dependency order.

        Formula cells the topological sort cannot place (cycle members
        and cells downstream of a cycle) are reported as CYCLE errors.

        Returns:
            Mapping of address -> EvalResult for every stored cell, in
            the sheet's cell order.
        """
        self.rebuild(sheet)
        formula_cells = sheet.formula_addresses()
        computed = self._evaluate_in_order(sheet, formula_cells)

        results: dict[str, EvalResult] = {}
        for addr in sheet.cells:
            results[addr] = computed[addr] if addr in computed else self.evaluate_cell(sheet, addr)

        errors = sum(1 for r in results.values() if r.is_error)
        emit_info(
            EventType.sheet_evaluated,
            f"Evaluated {len(formula_cells)} formula cells ({errors} errors)",
            {"sheet": sheet.name, "formula_cells": len(formula_cells), "errors": errors},
            sheet=sheet.name,
        )
        return results

    def _evaluate_in_order(self, sheet: Sheet, cells: list[str]) -> dict[str, EvalResult]:
        order = self._graph.get_evaluation_order(cells)
        cache: dict[str, Any] = {}
        self._prime_cache(sheet, cells, cache)
        results: dict[str, EvalResult] = {}
        for addr in order:
            results[addr] = self.evaluate_cell(sheet, addr, cache=cache)

        for addr in cells:
            if addr in results:
                continue
            results[addr] = self._cycle_result(sheet, addr, cache)

        for addr, result in results.items():
            if result.is_error and isinstance(sheet.cells.get(addr), FormulaCell):
                self._emit_error(sheet, addr, result)
        return results

    def _cycle_result(self, sheet: Sheet, addr: str, cache: dict[str, Any]) -> EvalResult:
        """Result for a cell left out of the topological order."""
        cell = sheet.get(addr)
        if not isinstance(cell, FormulaCell):
            return self.evaluate_cell(sheet, addr, cache=cache)
        live = self.evaluate_cell(sheet, addr, cache=cache)
        if live.error is not None and live.error.code == ErrorCode.CYCLE:
            return live
        result = EvalResult.fail(ErrorCode.CYCLE, f"{addr} depends on a circular reference")
        _store(cache, addr, result)
        return result

    def _upstream_order(self, sheet: Sheet, addrs: Iterable[str]) -> list[str]:
        """*addrs* and the formula cells they read, dependencies first.

        Edges come from the stored ASTs, so the engine's own graph need
        not be current.  Cells on or behind a cycle are left out.
        """
        targets = set(addrs)
        local = DependencyGraph()
        seen = set(targets)
        queue = deque(targets)
        while queue:
            current = queue.popleft()
            cell = sheet.get(current)
            if not isinstance(cell, FormulaCell):
                continue
            for dep in extract_refs(cell.ast):
                local.add_dependency(current, dep)
                if dep not in seen:
                    seen.add(dep)
                    queue.append(dep)
        formulas = sorted(a for a in seen if isinstance(sheet.get(a), FormulaCell))
        return local.get_evaluation_order(formulas)

    def _prime_cache(self, sheet: Sheet, addrs: Iterable[str], cache: dict[str, Any]) -> set[str]:
        """Fill *cache* with everything upstream of *addrs*; return the placed cells."""
        targets = set(addrs)
        order = self._upstream_order(sheet, targets)
        for dep in order:
            if dep not in targets and dep not in cache:
                self.evaluate_cell(sheet, dep, cache=cache)
        return set(order)

    def _emit_error(self, sheet: Sheet, addr: str, result: EvalResult) -> None:
        code = result.error.code
        event_type = EventType.cycle_detected if code == ErrorCode.CYCLE else EventType.cell_eval_error
        emit(
            make_cell_event(
                event_type,
                EventLevel.warning,
                result.error.message,
                cell=addr,
                sheet=sheet.name,
                error_code=code.value,
            ),
            sheet=sheet.name,
        )

    # ------------------------------------------------------------------
    # Editing
    # ------------------------------------------------------------------

    def update_cell(self, sheet: Sheet, addr: str, cell: Cell | None) -> CellUpdate:
        """Store *cell* at *addr* and recompute everything downstream of it.

        Passing ``None`` clears the cell.  The edited cell and its
        transitive dependents are re-evaluated in topological order;
        unrelated cells are not touched.  *sheet* itself is not modified.
        """
        addr = normalize_address(to_address(addr))
        new_sheet = sheet.with_cell(addr, cell) if cell is not None else sheet.without_cell(addr)

        self._graph.clear_dependencies(addr)
        closing: list[str] = []
        if isinstance(cell, FormulaCell):
            closing = self._extract_dependencies(addr, cell.ast)
        if closing:
            logger.debug("%s closes a cycle through %s", addr, closing)

        affected = [addr] + sorted(self._graph.get_transitive_dependents(addr) - {addr})
        results = self._evaluate_in_order(new_sheet, affected)
        results = {a: results[a] for a in affected}

        emit_info(
            EventType.cell_updated,
            f"Updated {addr}; recomputed {len(affected) - 1} dependent cells",
            {"sheet": sheet.name, "cell": addr, "recomputed": affected[1:]},
            sheet=sheet.name,
        )
        return CellUpdate(sheet=new_sheet, results=results)

    def apply_edit(self, sheet: Sheet, edit: CellEdit) -> CellUpdate:
        """Apply a host-level :class:`CellEdit` via :meth:`update_cell`."""
        addr = normalize_address(edit.addr)
        cell = cell_from_edit(edit)
        if isinstance(cell, ErrorCell):
            emit(
                make_cell_event(
                    EventType.formula_parse_error,
                    EventLevel.warning,
                    cell.message,
                    cell=addr,
                    sheet=sheet.name,
                    error_code=cell.code.value,
                    extra={"formula": edit.formula},
                ),
                sheet=sheet.name,
            )
        return self.update_cell(sheet, addr, cell)

    # ------------------------------------------------------------------
    # Diagnostics
    # ------------------------------------------------------------------

    def explain(self, sheet: Sheet, addr: str) -> ExplainTrace:
        """Describe what *addr* reads and what it evaluates to.

        References come from the stored AST; the value comes from a
        single evaluation.
        """
        addr = normalize_address(addr)
        cell = sheet.get(addr)
        result = self.evaluate_cell(sheet, addr)
        if not isinstance(cell, FormulaCell):
            return ExplainTrace(cell=addr, value=result.value, error=result.error)
        dependencies, ranges = extract_all_refs(cell.ast)
        return ExplainTrace(
            cell=addr,
            formula=cell.source,
            dependencies=dependencies,
            ranges=ranges,
            value=result.value,
            error=result.error,
        )


def _store(cache: dict[str, Any], addr: str, result: EvalResult) -> None:
    """Record a computed result; failures are kept as errors to re-raise."""
    if result.error is None:
        cache[addr] = result.value
    else:
        cache[addr] = CellValueError(result.error.code, result.error.message)
