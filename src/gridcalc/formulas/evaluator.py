"""Tree-walking evaluator for parsed formula ASTs.

Cell references are resolved through an :class:`EvalContext` holding the
sheet snapshot and the live cycle guard: the set of formula cells on the
current resolution path.  A cell is pushed before its formula is walked
and popped afterwards, so two branches reading the same cell are fine
and only a genuine self-reference trips the guard.
"""

from __future__ import annotations

import math
from typing import TYPE_CHECKING, Any

from gridcalc.address import cells_in_range, is_valid_address
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
from gridcalc.formulas.errors import (
    CellCycleError,
    CellValueError,
    FormulaDivisionError,
    FormulaError,
    FormulaFunctionError,
    FormulaRefError,
)
from gridcalc.formulas.fn_aggregate import AGGREGATE_FUNCTIONS
from gridcalc.formulas.fn_logical import LOGICAL_FUNCTIONS, LOGICAL_LAZY_FUNCTIONS
from gridcalc.formulas.values import is_number, to_number, values_equal

if TYPE_CHECKING:
    from gridcalc.cells import Sheet


# Exact integer results wider than this no longer fit a float.
_MAX_INT_BITS = 1024


class EvalContext:
    """Per-evaluation state: sheet snapshot, current cell, cycle guard.

    Parameters
    ----------
    sheet : Sheet
        Snapshot the formula is evaluated against.
    address : str
        Normalized address of the formula cell being evaluated.
    enforce_bounds : bool
        When True, references outside the sheet's rows/columns raise
        :class:`FormulaRefError` instead of reading as empty.
    cache : dict[str, Any] | None
        Results of formula cells already computed against the same
        snapshot, shared across one pass.  A failed cell is stored as a
        :class:`CellValueError` and re-raised with its code when read.
    """

    def __init__(
        self,
        sheet: Sheet,
        address: str,
        *,
        enforce_bounds: bool = True,
        cache: dict[str, Any] | None = None,
    ) -> None:
        self.sheet = sheet
        self.address = address
        self.enforce_bounds = enforce_bounds
        self.visited: set[str] = {address}
        self._path: list[str] = [address]
        self._cache = cache if cache is not None else {}

    def resolve_cell(self, addr: str) -> Any:
        """Return the value of *addr*, evaluating its formula if needed."""
        from gridcalc.cells import ErrorCell, FormulaCell, LiteralCell

        if self.enforce_bounds and not is_valid_address(
            addr, self.sheet.n_rows, self.sheet.n_cols
        ):
            raise FormulaRefError(
                addr, f"outside sheet bounds {self.sheet.n_rows}x{self.sheet.n_cols}"
            )
        if addr in self.visited:
            start = self._path.index(addr)
            raise CellCycleError(self._path[start:] + [addr])

        cell = self.sheet.cells.get(addr)
        if cell is None:
            return ""
        if isinstance(cell, LiteralCell):
            return cell.value
        if isinstance(cell, ErrorCell):
            raise CellValueError(cell.code, cell.message)
        if isinstance(cell, FormulaCell):
            if addr in self._cache:
                cached = self._cache[addr]
                if isinstance(cached, CellValueError):
                    raise CellValueError(cached.code, str(cached))
                return cached
            self.visited.add(addr)
            self._path.append(addr)
            try:
                value = evaluate_node(cell.ast, self)
            finally:
                self.visited.discard(addr)
                self._path.pop()
            self._cache[addr] = value
            return value
        raise TypeError(f"Unknown cell kind: {type(cell).__name__}")

    def resolve_range(self, start: str, end: str) -> list[Any]:
        """Return the values of every cell in the span, blanks included."""
        return [self.resolve_cell(addr) for addr in cells_in_range(start, end)]


def evaluate_formula(ast: FormulaAst, ctx: EvalContext) -> Any:
    """Evaluate a formula AST to a scalar value.

    Raises:
        FormulaError: Any formula-level failure; ``exc.code`` is the
            boundary error code.
    """
    return evaluate_node(ast, ctx)


def evaluate_node(node: FormulaAst, ctx: EvalContext) -> Any:
    """Evaluate *node* in a scalar position."""
    if isinstance(node, RangeRef):
        raise FormulaError(
            f"Range {node.start}:{node.end} cannot be used as a single value"
        )
    return _eval(node, ctx)


def _eval(node: FormulaAst, ctx: EvalContext) -> Any:
    if isinstance(node, (NumberLiteral, StringLiteral, BooleanLiteral)):
        return node.value
    if isinstance(node, CellRef):
        return ctx.resolve_cell(node.address)
    if isinstance(node, RangeRef):
        return ctx.resolve_range(node.start, node.end)
    if isinstance(node, FunctionCall):
        return _eval_func(node, ctx)
    if isinstance(node, BinaryOp):
        return _eval_binary(node, ctx)
    if isinstance(node, UnaryOp):
        operand = evaluate_node(node.operand, ctx)
        if not is_number(operand):
            return 0
        return -operand if node.op == "-" else operand
    raise TypeError(f"Unknown AST node: {type(node).__name__}")


# ---------- Operators ----------


def _eval_binary(node: BinaryOp, ctx: EvalContext) -> Any:
    op = node.op
    left = evaluate_node(node.left, ctx)
    right = evaluate_node(node.right, ctx)

    if op == "=":
        return values_equal(left, right)
    if op == "<>":
        return not values_equal(left, right)

    a = to_number(left)
    b = to_number(right)

    if op == "+":
        return _checked(a + b)
    if op == "-":
        return _checked(a - b)
    if op == "*":
        return _checked(a * b)
    if op == "/":
        if b == 0:
            raise FormulaDivisionError()
        return a / b
    if op == "^":
        return _power(a, b)
    if op == "<":
        return a < b
    if op == "<=":
        return a <= b
    if op == ">":
        return a > b
    if op == ">=":
        return a >= b
    raise FormulaError(f"Unknown binary operator: {op}")


def _power(base: int | float, exponent: int | float) -> float:
    """Floating-point power; results that overflow a float are errors."""
    if base == 0 and exponent < 0:
        raise FormulaDivisionError("Zero raised to a negative power")
    if base < 0 and not isinstance(exponent, int) and not float(exponent).is_integer():
        raise FormulaError(f"Invalid exponentiation: {base}^{exponent}")
    try:
        result = float(base) ** exponent
    except OverflowError as exc:
        raise FormulaError(f"Numeric overflow in {base}^{exponent}") from exc
    if math.isinf(result):
        raise FormulaError(f"Numeric overflow in {base}^{exponent}")
    return result


def _checked(value: int | float) -> int | float:
    if isinstance(value, int) and value.bit_length() > _MAX_INT_BITS:
        raise FormulaError("Numeric overflow")
    return value


# ---------- Function dispatch ----------

_LAZY_FUNCTIONS = set(LOGICAL_LAZY_FUNCTIONS)

_FUNC_TABLE: dict[str, Any] = {
    **AGGREGATE_FUNCTIONS,
    **LOGICAL_FUNCTIONS,
}

# Functions whose arguments may be ranges (passed as flat value lists).
_RANGE_FUNCTIONS = set(AGGREGATE_FUNCTIONS)


def _eval_func(node: FunctionCall, ctx: EvalContext) -> Any:
    func_name = node.name.upper()
    if func_name not in _FUNC_TABLE:
        raise FormulaFunctionError(node.name)

    # Lazy functions receive unevaluated AST nodes
    if func_name in _LAZY_FUNCTIONS:
        return _FUNC_TABLE[func_name](node.args, ctx)

    if func_name in _RANGE_FUNCTIONS:
        args = [_eval(arg, ctx) for arg in node.args]
    else:
        args = [evaluate_node(arg, ctx) for arg in node.args]
    return _FUNC_TABLE[func_name](args, ctx)


def supported_functions() -> list[str]:
    """Names accepted by the evaluator (case-insensitive)."""
    return sorted(_FUNC_TABLE)
