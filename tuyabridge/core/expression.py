"""Safe arithmetic expressions for value transforms.

Expressions are written in terms of ``x`` (the incoming value) plus named
constants, e.g. ``(x - offset) / 2.3``. They are parsed once into a small tree
of nodes; evaluation never touches ``eval`` and only supports ``+ - * /`` and
unary minus.
"""

from __future__ import annotations

import ast
from dataclasses import dataclass
from typing import Mapping, Union

from tuyabridge.core.errors import ExpressionError

VARIABLE = "x"


@dataclass(frozen=True)
class Const:
    value: float

    def evaluate(self, x: float) -> float:
        return self.value

    def render(self) -> str:
        return f"{self.value:g}"


@dataclass(frozen=True)
class Var:
    def evaluate(self, x: float) -> float:
        return x

    def render(self) -> str:
        return VARIABLE


@dataclass(frozen=True)
class Neg:
    operand: Node

    def evaluate(self, x: float) -> float:
        return -self.operand.evaluate(x)

    def render(self) -> str:
        return f"-{self.operand.render()}"


@dataclass(frozen=True)
class BinOp:
    op: str
    left: Node
    right: Node

    def evaluate(self, x: float) -> float:
        left = self.left.evaluate(x)
        right = self.right.evaluate(x)
        if self.op == "+":
            return left + right
        if self.op == "-":
            return left - right
        if self.op == "*":
            return left * right
        if right == 0:
            raise ZeroDivisionError(f"division by zero in '{self.render()}'")
        return left / right

    def render(self) -> str:
        return f"({self.left.render()}{self.op}{self.right.render()})"


Node = Union[Const, Var, Neg, BinOp]

_BIN_OPS: dict[type, str] = {
    ast.Add: "+",
    ast.Sub: "-",
    ast.Mult: "*",
    ast.Div: "/",
}


def _convert(node: ast.AST, constants: Mapping[str, float], source: str) -> Node:
    if isinstance(node, ast.Expression):
        return _convert(node.body, constants, source)
    if isinstance(node, ast.Constant):
        if isinstance(node.value, bool) or not isinstance(node.value, (int, float)):
            raise ExpressionError(f"Only numeric literals are allowed in '{source}'")
        return Const(float(node.value))
    if isinstance(node, ast.Name):
        if node.id == VARIABLE:
            return Var()
        if node.id in constants:
            return Const(float(constants[node.id]))
        raise ExpressionError(f"Unknown name '{node.id}' in '{source}'")
    if isinstance(node, ast.UnaryOp):
        operand = _convert(node.operand, constants, source)
        if isinstance(node.op, ast.USub):
            return Neg(operand)
        if isinstance(node.op, ast.UAdd):
            return operand
    if isinstance(node, ast.BinOp) and type(node.op) in _BIN_OPS:
        return BinOp(
            _BIN_OPS[type(node.op)],
            _convert(node.left, constants, source),
            _convert(node.right, constants, source),
        )
    raise ExpressionError(f"Unsupported syntax '{type(node).__name__}' in '{source}'")


def parse_expression(source: str, constants: Mapping[str, float] | None = None) -> Node:
    """Parse ``source`` into an expression tree, substituting ``constants``."""
    try:
        tree = ast.parse(source.strip(), mode="eval")
    except SyntaxError as exc:
        raise ExpressionError(f"Invalid expression '{source}': {exc.msg}") from exc
    return _convert(tree, constants or {}, source)
