"""
Fuzzy Logic Module

Expression trees for logic rules and a parser for rule strings.

Boolean operators are relaxed to continuous values in [0, 1]:
AND -> min, OR -> max, NOT -> 1 - x.
"""

import ast
import re
from typing import FrozenSet, Mapping, Tuple, Union

from .exceptions import MissingNodeError, RuleSyntaxError


class Expression:
    """Base class for fuzzy-logic expressions over node activations."""

    def evaluate(self, state: Mapping[str, float]) -> float:
        raise NotImplementedError

    def references(self) -> FrozenSet[str]:
        """Names of all nodes the expression reads."""
        raise NotImplementedError

    def _key(self) -> tuple:
        raise NotImplementedError

    def __eq__(self, other):
        return type(self) is type(other) and self._key() == other._key()

    def __hash__(self):
        return hash((type(self).__name__, self._key()))

    def __and__(self, other):
        return And(self, as_expression(other))

    def __rand__(self, other):
        return And(as_expression(other), self)

    def __or__(self, other):
        return Or(self, as_expression(other))

    def __ror__(self, other):
        return Or(as_expression(other), self)

    def __invert__(self):
        return Not(self)

    def __repr__(self):
        return f"{type(self).__name__}({self})"


class Var(Expression):
    """Current activation of a named node."""

    __slots__ = ("name",)

    def __init__(self, name: str):
        if not isinstance(name, str) or not name:
            raise RuleSyntaxError(f"Node names must be non-empty strings; got {name!r}")
        self.name = name

    def evaluate(self, state):
        try:
            return state[self.name]
        except KeyError:
            raise MissingNodeError(self.name, "not present in state") from None

    def references(self):
        return frozenset((self.name,))

    def _key(self):
        return (self.name,)

    def __str__(self):
        return self.name


class Const(Expression):
    """Fixed input weight, e.g. a clamped external signal."""

    __slots__ = ("value",)

    def __init__(self, value: float):
        self.value = float(value)

    def evaluate(self, state):
        return self.value

    def references(self):
        return frozenset()

    def _key(self):
        return (self.value,)

    def __str__(self):
        return f"{self.value:g}"


class _Combinator(Expression):
    """N-ary min/max node; nested operands of the same kind are flattened."""

    __slots__ = ("operands",)
    symbol = ""

    def __init__(self, *operands: Expression):
        if len(operands) < 2:
            raise RuleSyntaxError(f"{type(self).__name__} needs at least two operands")
        flat = []
        for operand in operands:
            operand = as_expression(operand)
            if type(operand) is type(self):
                flat.extend(operand.operands)
            else:
                flat.append(operand)
        self.operands: Tuple[Expression, ...] = tuple(flat)

    def references(self):
        return frozenset().union(*(op.references() for op in self.operands))

    def _key(self):
        return self.operands

    def __str__(self):
        return f"{self.symbol}({', '.join(str(op) for op in self.operands)})"


class And(_Combinator):
    """Fuzzy AND: minimum of the operands."""

    symbol = "min"

    def evaluate(self, state):
        return min(op.evaluate(state) for op in self.operands)


class Or(_Combinator):
    """Fuzzy OR: maximum of the operands."""

    symbol = "max"

    def evaluate(self, state):
        return max(op.evaluate(state) for op in self.operands)


class Not(Expression):
    """Fuzzy NOT: complement 1 - x."""

    __slots__ = ("operand",)

    def __init__(self, operand: Expression):
        self.operand = as_expression(operand)

    def evaluate(self, state):
        return 1.0 - self.operand.evaluate(state)

    def references(self):
        return self.operand.references()

    def _key(self):
        return (self.operand,)

    def __str__(self):
        inner = str(self.operand)
        if isinstance(self.operand, (Var, Const)) or inner.endswith(")"):
            return f"1 - {inner}"
        return f"1 - ({inner})"


Rule = Union[Expression, str, float, int]


def as_expression(value) -> Expression:
    """Turn a rule (expression, rule string or number) into an expression."""
    if isinstance(value, Expression):
        return value
    if isinstance(value, bool):
        return Const(1.0 if value else 0.0)
    if isinstance(value, (int, float)):
        return Const(value)
    if isinstance(value, str):
        return parse_rule(value)
    raise RuleSyntaxError(f"Cannot build an expression from {value!r}")


# Spellings accepted in rule strings besides Python's own operators
_KEYWORDS = re.compile(r"\b(AND|OR|NOT)\b")
_FUNCTIONS = {"min": "and", "max": "or", "and_": "and", "or_": "or",
              "AND": "and", "OR": "or", "NOT": "not", "not_": "not"}


def _normalize(text: str) -> str:
    text = text.replace("&&", "&").replace("||", "|")
    text = re.sub(r"!(?!=)", "~", text)
    # AND(a, b) stays a call, bare AND becomes the Python keyword
    return _KEYWORDS.sub(
        lambda m: m.group(1) if text[m.end():].lstrip().startswith("(") else m.group(1).lower(),
        text,
    )


def parse_rule(text: str) -> Expression:
    """
    Parse a logic rule into an expression tree.

    Both the fuzzy and the Boolean notations are understood and can be mixed::

        min(max(X, A), 1 - B)
        (X | A) & !B
        (X or A) and not B
        AND(OR(X, A), NOT(B))

    Numbers are constant weights. ``1 - e`` is the complement of ``e``.

    Raises
    ------
    RuleSyntaxError
        If the string is not a valid rule.
    """
    if not isinstance(text, str) or not text.strip():
        raise RuleSyntaxError("Rule must be a non-empty string")
    try:
        tree = ast.parse(_normalize(text.strip()), mode="eval")
    except SyntaxError as exc:
        raise RuleSyntaxError(f"Invalid rule '{text}': {exc.msg}") from exc
    return _convert(tree.body, text)


def _convert(node: ast.AST, text: str) -> Expression:
    if isinstance(node, ast.Name):
        return Var(node.id)
    if isinstance(node, ast.Constant):
        if isinstance(node.value, (bool, int, float)):
            return as_expression(node.value)
    elif isinstance(node, ast.BoolOp):
        operands = [_convert(value, text) for value in node.values]
        return And(*operands) if isinstance(node.op, ast.And) else Or(*operands)
    elif isinstance(node, ast.UnaryOp):
        if isinstance(node.op, (ast.Not, ast.Invert)):
            return Not(_convert(node.operand, text))
    elif isinstance(node, ast.BinOp):
        if isinstance(node.op, ast.BitAnd):
            return And(_convert(node.left, text), _convert(node.right, text))
        if isinstance(node.op, ast.BitOr):
            return Or(_convert(node.left, text), _convert(node.right, text))
        if (isinstance(node.op, ast.Sub) and isinstance(node.left, ast.Constant)
                and node.left.value == 1):
            return Not(_convert(node.right, text))
    elif isinstance(node, ast.Call) and isinstance(node.func, ast.Name) and not node.keywords:
        kind = _FUNCTIONS.get(node.func.id)
        operands = [_convert(arg, text) for arg in node.args]
        if kind == "not" and len(operands) == 1:
            return Not(operands[0])
        if kind in ("and", "or") and len(operands) >= 2:
            return And(*operands) if kind == "and" else Or(*operands)
        if kind in ("and", "or") and len(operands) == 1:
            return operands[0]
    raise RuleSyntaxError(f"Unsupported construct in rule '{text}': {ast.dump(node)}")
