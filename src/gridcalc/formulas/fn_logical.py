"""Logical formula functions: IF."""

from __future__ import annotations

from typing import Any

from gridcalc.formulas.errors import FormulaFunctionError
from gridcalc.formulas.values import is_truthy


def _fn_if(raw_args: tuple, ctx: Any) -> Any:
    """IF(condition, then_value [, else_value]) -- lazy evaluation.

    Only the chosen branch is evaluated.  Without an else branch a
    falsy condition yields FALSE.
    """
    if len(raw_args) < 2 or len(raw_args) > 3:
        raise FormulaFunctionError("IF", "IF requires 2 or 3 arguments")
    # Local import to avoid circular dependency
    from gridcalc.formulas.evaluator import evaluate_node

    condition = evaluate_node(raw_args[0], ctx)
    if is_truthy(condition):
        return evaluate_node(raw_args[1], ctx)
    if len(raw_args) == 3:
        return evaluate_node(raw_args[2], ctx)
    return False


LOGICAL_FUNCTIONS: dict[str, Any] = {
    "IF": _fn_if,
}

LOGICAL_LAZY_FUNCTIONS: set[str] = {"IF"}
