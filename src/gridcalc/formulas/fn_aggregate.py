"""Aggregate formula functions: SUM, AVERAGE, MIN, MAX, COUNT.

Each receives its evaluated arguments; a range argument arrives as a
flat list of cell values.  With no numeric input every numeric
aggregate returns 0.
"""

from __future__ import annotations

from typing import Any

from gridcalc.formulas.values import is_present, numeric_values


def _collect(args: list) -> list[int | float]:
    out: list[int | float] = []
    for arg in args:
        out.extend(numeric_values(arg))
    return out


def _fn_sum(args: list, ctx: Any) -> int | float:
    return sum(_collect(args))


def _fn_average(args: list, ctx: Any) -> int | float:
    nums = _collect(args)
    if not nums:
        return 0
    return sum(nums) / len(nums)


def _fn_min(args: list, ctx: Any) -> int | float:
    nums = _collect(args)
    return min(nums) if nums else 0


def _fn_max(args: list, ctx: Any) -> int | float:
    nums = _collect(args)
    return max(nums) if nums else 0


def _fn_count(args: list, ctx: Any) -> int:
    """COUNT(values...) -- numbers, text and booleans all count; blanks do not."""
    count = 0
    for arg in args:
        items = arg if isinstance(arg, list) else [arg]
        count += sum(1 for v in items if is_present(v))
    return count


AGGREGATE_FUNCTIONS: dict[str, Any] = {
    "SUM": _fn_sum,
    "AVERAGE": _fn_average,
    "AVG": _fn_average,
    "MIN": _fn_min,
    "MAX": _fn_max,
    "COUNT": _fn_count,
}
