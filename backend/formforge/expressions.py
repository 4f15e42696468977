"""
Restricted expression language for custom derived fields.

A custom computation is a single expression over ``values``, the list of
parent values of the derived field, e.g.::

    values[0] * 2
    upper(values[0]) + "-" + str(len(values))
    float(values[0]) / float(values[1]) if float(values[1]) else 0

The source is parsed with ``ast`` and interpreted node by node over a
whitelist. There is no attribute access, no lambda/comprehension and no call
other than the helpers in ``FUNCTIONS``. Every visited node costs one step
and evaluation stops with ``ExpressionError`` once ``max_steps`` is used up.
"""
from __future__ import annotations

import ast
import operator
import re
from typing import Any, Sequence

MAX_SOURCE_LENGTH = 2000
MAX_EXPONENT = 1000
MAX_SEQUENCE_LENGTH = 10_000
MAX_INT_BITS = 100_000
DEFAULT_MAX_STEPS = 1000

_RETURN_PREFIX = re.compile(r"^return\b")


class ExpressionError(ValueError):
    """Raised when an expression is rejected or exceeds its budget."""


def _measure(x: Any, total: int = 0) -> int:
    # stops walking as soon as the running total passes the cap
    if isinstance(x, str):
        total += len(x)
    elif isinstance(x, (list, tuple)):
        total += len(x)
        for item in x:
            if total > MAX_SEQUENCE_LENGTH:
                break
            total = _measure(item, total)
    if total > MAX_SEQUENCE_LENGTH:
        raise ExpressionError("Sequence result too long")
    return total


def _check_size(x: Any) -> Any:
    _measure(x)
    return _check_int(x)


def _str(x=""):
    _measure(x)
    return _check_size(str(x))


def _sum(items, start=0):
    if not isinstance(start, (int, float)) or isinstance(start, bool):
        raise ExpressionError("sum() start value must be a number")
    return _check_size(sum(items, start))


def _min(*args):
    return _check_size(min(*args))


def _max(*args):
    return _check_size(max(*args))


def _upper(s):
    return _str(s).upper()


def _lower(s):
    return _str(s).lower()


def _strip(s):
    return _str(s).strip()


FUNCTIONS = {
    "len": len,
    "str": _str,
    "int": int,
    "float": float,
    "abs": abs,
    "round": round,
    "min": _min,
    "max": _max,
    "sum": _sum,
    "upper": _upper,
    "lower": _lower,
    "strip": _strip,
}


def _is_sized(x: Any) -> bool:
    return isinstance(x, (str, list, tuple))


def _is_int(x: Any) -> bool:
    return isinstance(x, int) and not isinstance(x, bool)


def _check_int(x: Any) -> Any:
    if _is_int(x) and x.bit_length() > MAX_INT_BITS:
        raise ExpressionError("Integer result too large")
    return x


def _add(a, b):
    if _is_sized(a) and _is_sized(b) and len(a) + len(b) > MAX_SEQUENCE_LENGTH:
        raise ExpressionError("Sequence result too long")
    return _check_int(a + b)


def _mul(a, b):
    for seq, n in ((a, b), (b, a)):
        if _is_sized(seq) and _is_int(n) and len(seq) * n > MAX_SEQUENCE_LENGTH:
            raise ExpressionError("Sequence result too long")
    if _is_int(a) and _is_int(b) and a.bit_length() + b.bit_length() > MAX_INT_BITS:
        raise ExpressionError("Integer result too large")
    return a * b


def _pow(a, b):
    if isinstance(b, (int, float)) and abs(b) > MAX_EXPONENT:
        raise ExpressionError("Exponent too large")
    if _is_int(a) and _is_int(b) and b > 0 and a.bit_length() * b > MAX_INT_BITS:
        raise ExpressionError("Integer result too large")
    return a ** b


_BIN_OPS = {
    ast.Add: _add,
    ast.Sub: operator.sub,
    ast.Mult: _mul,
    ast.Div: operator.truediv,
    ast.FloorDiv: operator.floordiv,
    ast.Mod: operator.mod,
    ast.Pow: _pow,
}

_UNARY_OPS = {
    ast.UAdd: operator.pos,
    ast.USub: operator.neg,
    ast.Not: operator.not_,
}

_COMPARE_OPS = {
    ast.Eq: operator.eq,
    ast.NotEq: operator.ne,
    ast.Lt: operator.lt,
    ast.LtE: operator.le,
    ast.Gt: operator.gt,
    ast.GtE: operator.ge,
    ast.In: lambda x, y: x in y,
    ast.NotIn: lambda x, y: x not in y,
    ast.Is: operator.is_,
    ast.IsNot: operator.is_not,
}

_CONSTANT_TYPES = (bool, int, float, str, type(None))


def _prepare_source(source: str) -> str:
    # bodies written for the browser editor look like `return values[0];`
    text = source.strip().rstrip(";").strip()
    if _RETURN_PREFIX.match(text):
        text = text[len("return"):].strip()
    return text


def evaluate_expression(
    source: str,
    values: Sequence[Any],
    max_steps: int = DEFAULT_MAX_STEPS,
) -> Any:
    """
    Evaluate ``source`` with ``values`` bound to the parent-value list.

    Returns "" for an empty body. Raises ExpressionError for syntax errors,
    unknown names, disallowed constructs and an exhausted step budget;
    ordinary runtime errors (ZeroDivisionError, TypeError, IndexError, ...)
    propagate unchanged.
    """
    if len(source) > MAX_SOURCE_LENGTH:
        raise ExpressionError("Expression too long")

    text = _prepare_source(source)
    if not text:
        return ""

    try:
        tree = ast.parse(text, mode="eval")
    except SyntaxError as e:
        raise ExpressionError(f"Invalid expression: {e.msg}") from e

    bound_values = list(values)
    steps = 0

    def _eval(node):
        nonlocal steps
        steps += 1
        if steps > max_steps:
            raise ExpressionError(f"Step budget of {max_steps} exhausted")

        if isinstance(node, ast.Constant):
            if not isinstance(node.value, _CONSTANT_TYPES):
                raise ExpressionError(f"Unsupported literal: {node.value!r}")
            return node.value

        elif isinstance(node, ast.Name):
            if node.id == "values":
                return bound_values
            raise ExpressionError(f"Unknown name: {node.id}")

        elif isinstance(node, ast.List):
            return [_eval(elt) for elt in node.elts]

        elif isinstance(node, ast.Tuple):
            return tuple(_eval(elt) for elt in node.elts)

        elif isinstance(node, ast.BinOp):
            op = _BIN_OPS.get(type(node.op))
            if op is None:
                raise ExpressionError(f"Unsupported operator: {type(node.op).__name__}")
            return op(_eval(node.left), _eval(node.right))

        elif isinstance(node, ast.UnaryOp):
            op = _UNARY_OPS.get(type(node.op))
            if op is None:
                raise ExpressionError(f"Unsupported operator: {type(node.op).__name__}")
            return op(_eval(node.operand))

        elif isinstance(node, ast.BoolOp):
            # same short-circuit and result semantics as Python's and/or
            result = None
            for value_node in node.values:
                result = _eval(value_node)
                if isinstance(node.op, ast.And) and not result:
                    return result
                if isinstance(node.op, ast.Or) and result:
                    return result
            return result

        elif isinstance(node, ast.Compare):
            left = _eval(node.left)
            for op_node, comparator in zip(node.ops, node.comparators):
                op = _COMPARE_OPS.get(type(op_node))
                if op is None:
                    raise ExpressionError(f"Unsupported operator: {type(op_node).__name__}")
                right = _eval(comparator)
                if not op(left, right):
                    return False
                left = right
            return True

        elif isinstance(node, ast.IfExp):
            return _eval(node.body) if _eval(node.test) else _eval(node.orelse)

        elif isinstance(node, ast.Subscript):
            container = _eval(node.value)
            if not isinstance(container, (list, tuple, str)):
                raise ExpressionError("Only lists and strings can be indexed")
            return container[_eval(node.slice)]

        elif isinstance(node, ast.Slice):
            return slice(
                _eval(node.lower) if node.lower is not None else None,
                _eval(node.upper) if node.upper is not None else None,
                _eval(node.step) if node.step is not None else None,
            )

        elif isinstance(node, ast.Call):
            if not isinstance(node.func, ast.Name) or node.func.id not in FUNCTIONS:
                raise ExpressionError("Only built-in helper functions can be called")
            if node.keywords or any(isinstance(a, ast.Starred) for a in node.args):
                raise ExpressionError("Keyword and starred arguments are not supported")
            args = [_eval(a) for a in node.args]
            return _check_size(FUNCTIONS[node.func.id](*args))

        raise ExpressionError(f"Unsupported expression type: {type(node).__name__}")

    return _eval(tree.body)
