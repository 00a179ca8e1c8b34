"""Restricted expression language for indicators.

Expressions such as ``sma(close, 14) - ema(close, 20)`` or
``abs(raw_bio - lag(raw_enrol, 4))`` are parsed into a small tagged tree and
interpreted over numpy arrays. Nothing in the language can reach the host
runtime: only bar fields, numeric literals, arithmetic and the rolling-window
functions below are accepted.

Series are NaN-padded to the length of the input. Warm-up bars, missing
fields and undefined arithmetic (division by zero, log of a non-positive
value) are NaN, and NaN propagates through every operation. Only finite
values are emitted as points.
"""

from __future__ import annotations

import ast
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Union, cast

import numpy as np
from numpy.lib.stride_tricks import sliding_window_view
from numpy.typing import NDArray

from aadhaar_velocity.exceptions import ExpressionError
from aadhaar_velocity.types import SeriesPoint

if TYPE_CHECKING:
    from aadhaar_velocity.types import Bar

Series = NDArray[np.float64]

FIELDS = frozenset([
    "open",
    "high",
    "low",
    "close",
    "volume",
    "spread",
    "migration",
    "youth",
    "workload",
    "raw_bio",
    "raw_enrol",
])


# -----------------------------------------------------------------------------
# AST nodes
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class NumberNode:
    value: float


@dataclass(frozen=True)
class FieldNode:
    name: str


@dataclass(frozen=True)
class UnaryNode:
    op: str
    operand: ExprNode


@dataclass(frozen=True)
class BinaryNode:
    op: str
    left: ExprNode
    right: ExprNode


@dataclass(frozen=True)
class CallNode:
    name: str
    args: tuple[ExprNode, ...]
    length: int | None = None


ExprNode = Union[NumberNode, FieldNode, UnaryNode, BinaryNode, CallNode]


# -----------------------------------------------------------------------------
# Series primitives
# -----------------------------------------------------------------------------


def _nan_series(n: int) -> Series:
    return np.full(n, np.nan, dtype=np.float64)


def _windows(values: Series, length: int) -> Series | None:
    if length > len(values):
        return None
    return sliding_window_view(values, length)


def _rolling(values: Series, length: int, reducer: Callable[[Series], Series]) -> Series:
    out = _nan_series(len(values))
    windows = _windows(values, length)
    if windows is not None:
        out[length - 1 :] = reducer(windows)
    return out


def _sma(values: Series, length: int) -> Series:
    return _rolling(values, length, lambda w: w.mean(axis=1))


def _rolling_std(values: Series, length: int) -> Series:
    return _rolling(values, length, lambda w: w.std(axis=1))


def _rolling_min(values: Series, length: int) -> Series:
    return _rolling(values, length, lambda w: w.min(axis=1))


def _rolling_max(values: Series, length: int) -> Series:
    return _rolling(values, length, lambda w: w.max(axis=1))


def _ema(values: Series, length: int) -> Series:
    """EMA seeded with the first finite value; emits ``length - 1`` bars later."""
    out = _nan_series(len(values))
    finite = np.flatnonzero(np.isfinite(values))
    if finite.size == 0:
        return out
    start = int(finite[0])
    k = 2 / (length + 1)
    ema = float(values[start])
    for i in range(start, len(values)):
        ema = float(values[i]) * k + ema * (1 - k)
        if i >= start + length - 1:
            out[i] = ema
    return out


def _lag(values: Series, length: int) -> Series:
    out = _nan_series(len(values))
    if length < len(values):
        out[length:] = values[: len(values) - length]
    return out


def _diff(values: Series) -> Series:
    out = _nan_series(len(values))
    out[1:] = values[1:] - values[:-1]
    return out


def _zscore(values: Series, length: int) -> Series:
    mean = _sma(values, length)
    std = _rolling_std(values, length)
    with np.errstate(divide="ignore", invalid="ignore"):
        return np.where(std > 0, (values - mean) / std, np.nan)


def _log(values: Series) -> Series:
    with np.errstate(divide="ignore", invalid="ignore"):
        return np.where(values > 0, np.log(np.where(values > 0, values, 1.0)), np.nan)


# f(series, length)
WINDOW_FUNCTIONS: dict[str, Callable[[Series, int], Series]] = {
    "sma": _sma,
    "ema": _ema,
    "lag": _lag,
    "rolling_mean": _sma,
    "rolling_std": _rolling_std,
    "rolling_min": _rolling_min,
    "rolling_max": _rolling_max,
    "zscore": _zscore,
}

UNARY_FUNCTIONS: dict[str, Callable[[Series], Series]] = {
    "abs": np.abs,
    "diff": _diff,
    "log": _log,
}

BINARY_FUNCTIONS: dict[str, Callable[[Series, Series], Series]] = {
    "min": np.minimum,
    "max": np.maximum,
}

FUNCTIONS = frozenset(WINDOW_FUNCTIONS) | frozenset(UNARY_FUNCTIONS) | frozenset(BINARY_FUNCTIONS)

_BINARY_OPS: dict[type[ast.operator], str] = {
    ast.Add: "+",
    ast.Sub: "-",
    ast.Mult: "*",
    ast.Div: "/",
}

_UNARY_OPS: dict[type[ast.unaryop], str] = {
    ast.USub: "-",
    ast.UAdd: "+",
}


# -----------------------------------------------------------------------------
# Parsing
# -----------------------------------------------------------------------------


def _length_argument(name: str, node: ast.expr) -> int:
    if (
        isinstance(node, ast.Constant)
        and isinstance(node.value, int)
        and not isinstance(node.value, bool)
        and node.value > 0
    ):
        return node.value
    raise ExpressionError(f"{name}() expects a positive integer length as its last argument")


def _convert(node: ast.expr) -> ExprNode:
    if isinstance(node, ast.Constant):
        if isinstance(node.value, bool) or not isinstance(node.value, (int, float)):
            raise ExpressionError(f"Unsupported literal {node.value!r}")
        return NumberNode(float(node.value))

    if isinstance(node, ast.Name):
        if node.id not in FIELDS:
            raise ExpressionError(
                f"Unknown field '{node.id}'. Available fields: {', '.join(sorted(FIELDS))}"
            )
        return FieldNode(node.id)

    if isinstance(node, ast.UnaryOp):
        op = _UNARY_OPS.get(type(node.op))
        if op is None:
            raise ExpressionError(f"Unsupported unary operator {type(node.op).__name__}")
        return UnaryNode(op, _convert(node.operand))

    if isinstance(node, ast.BinOp):
        op = _BINARY_OPS.get(type(node.op))
        if op is None:
            raise ExpressionError(f"Unsupported operator {type(node.op).__name__}")
        return BinaryNode(op, _convert(node.left), _convert(node.right))

    if isinstance(node, ast.Call):
        if not isinstance(node.func, ast.Name) or node.func.id not in FUNCTIONS:
            raise ExpressionError(
                f"Unknown function. Available functions: {', '.join(sorted(FUNCTIONS))}"
            )
        name = node.func.id
        if node.keywords:
            raise ExpressionError(f"{name}() does not accept keyword arguments")
        args = node.args
        if name in WINDOW_FUNCTIONS:
            if len(args) != 2:
                raise ExpressionError(f"{name}() expects (series, length)")
            return CallNode(name, (_convert(args[0]),), _length_argument(name, args[1]))
        if name in UNARY_FUNCTIONS:
            if len(args) != 1:
                raise ExpressionError(f"{name}() expects (series)")
            return CallNode(name, (_convert(args[0]),))
        if len(args) != 2:
            raise ExpressionError(f"{name}() expects (series, series)")
        return CallNode(name, (_convert(args[0]), _convert(args[1])))

    raise ExpressionError(f"Unsupported syntax: {type(node).__name__}")


def parse_expression(text: str) -> ExprNode:
    """Parse expression text into a tree.

    :raises ExpressionError: On syntax errors or anything outside the language.
    """
    source = text.strip()
    if not source:
        raise ExpressionError("Expression is empty")
    try:
        tree = ast.parse(source, mode="eval")
        return _convert(tree.body)
    except SyntaxError as e:
        raise ExpressionError(f"Invalid expression: {e.msg}") from e
    except (RecursionError, MemoryError) as e:
        raise ExpressionError("Expression is too deeply nested") from e


# -----------------------------------------------------------------------------
# Evaluation
# -----------------------------------------------------------------------------


def _field_series(bars: list[Bar], name: str) -> Series:
    values = [getattr(bar, name) for bar in bars]
    return np.array([np.nan if v is None else v for v in values], dtype=np.float64)


def evaluate(node: ExprNode, bars: list[Bar]) -> Series:
    """Evaluate a parsed expression into a series aligned with ``bars``."""
    n = len(bars)

    if isinstance(node, NumberNode):
        return np.full(n, node.value, dtype=np.float64)

    if isinstance(node, FieldNode):
        return _field_series(bars, node.name)

    if isinstance(node, UnaryNode):
        operand = evaluate(node.operand, bars)
        return -operand if node.op == "-" else operand

    if isinstance(node, BinaryNode):
        left = evaluate(node.left, bars)
        right = evaluate(node.right, bars)
        if node.op == "+":
            return left + right
        if node.op == "-":
            return left - right
        if node.op == "*":
            return left * right
        with np.errstate(divide="ignore", invalid="ignore"):
            return np.where(right == 0, np.nan, left / np.where(right == 0, 1.0, right))

    if isinstance(node, CallNode):
        args = [evaluate(arg, bars) for arg in node.args]
        if node.name in WINDOW_FUNCTIONS:
            return WINDOW_FUNCTIONS[node.name](args[0], cast(int, node.length))
        if node.name in UNARY_FUNCTIONS:
            return UNARY_FUNCTIONS[node.name](args[0])
        return BINARY_FUNCTIONS[node.name](args[0], args[1])

    raise ExpressionError(f"Unsupported node {node!r}")


def evaluate_expression(text: str, bars: list[Bar]) -> list[SeriesPoint]:
    """Parse and evaluate ``text``, returning one point per finite value."""
    tree = parse_expression(text)
    try:
        values = evaluate(tree, bars)
    except RecursionError as e:
        raise ExpressionError("Expression is too deeply nested") from e
    return [
        SeriesPoint(time=bar.time, value=float(value))
        for bar, value in zip(bars, values)
        if np.isfinite(value)
    ]

