"""Formula abstract syntax tree.

Nodes are frozen pydantic models forming a strict tree: every subtree is
owned by its parent and no node is shared.  ``FormulaAst`` is the closed
union of node kinds; each node carries a ``type`` discriminator.
"""

from __future__ import annotations

from typing import Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

BinaryOperator = Literal["+", "-", "*", "/", "^", "=", "<>", "<", "<=", ">", ">="]
UnaryOperator = Literal["+", "-"]


class _Node(BaseModel):
    model_config = ConfigDict(frozen=True)


class NumberLiteral(_Node):
    type: Literal["number"] = "number"
    value: Union[int, float]


class StringLiteral(_Node):
    type: Literal["string"] = "string"
    value: str


class BooleanLiteral(_Node):
    type: Literal["boolean"] = "boolean"
    value: bool


class CellRef(_Node):
    """A single-cell reference.

    ``address`` is normalized (no ``$``); the absolute markers from the
    source text are kept as flags.
    """

    type: Literal["ref"] = "ref"
    address: str
    absolute_col: bool = False
    absolute_row: bool = False


class RangeRef(_Node):
    """Rectangular span between two normalized corner addresses."""

    type: Literal["range"] = "range"
    start: str
    end: str


class FunctionCall(_Node):
    type: Literal["function"] = "function"
    name: str
    args: tuple["FormulaAst", ...] = ()


class BinaryOp(_Node):
    type: Literal["binary"] = "binary"
    op: BinaryOperator
    left: "FormulaAst"
    right: "FormulaAst"


class UnaryOp(_Node):
    type: Literal["unary"] = "unary"
    op: UnaryOperator
    operand: "FormulaAst"


FormulaAst = Union[
    NumberLiteral,
    StringLiteral,
    BooleanLiteral,
    CellRef,
    RangeRef,
    FunctionCall,
    BinaryOp,
    UnaryOp,
]

for _model in (FunctionCall, BinaryOp, UnaryOp):
    _model.model_rebuild()


class _AstEnvelope(BaseModel):
    node: FormulaAst = Field(discriminator="type")


def ast_to_dict(node: FormulaAst) -> dict[str, Any]:
    """Render *node* as a JSON-friendly dict (used by ``gridcalc parse``)."""
    return node.model_dump()


def ast_from_dict(data: dict[str, Any]) -> FormulaAst:
    """Rebuild a node from :func:`ast_to_dict` output."""
    return _AstEnvelope.model_validate({"node": data}).node
